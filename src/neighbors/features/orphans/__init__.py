"""Detection and repair of orphaned provider identities."""
