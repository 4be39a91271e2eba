"""Community resolution and household-to-community mappings."""
