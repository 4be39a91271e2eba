"""Return paths and continuation tokens carried across the auth redirect."""
