"""Email-status lookups for the signup form."""
