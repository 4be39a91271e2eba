"""Session events and the per-subject session state."""
