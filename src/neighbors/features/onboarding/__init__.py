"""Onboarding: signup, profile completion and the onboarding finalizer."""
