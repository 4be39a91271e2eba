"""Resident profiles (the public users table)."""
