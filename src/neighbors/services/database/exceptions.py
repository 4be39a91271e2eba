"""Store-level exceptions raised by the Supabase query layer."""


class StoreError(Exception):
    """Base exception for profile and mapping store failures."""

    pass


class TransientStoreError(StoreError):
    """Raised when a store call times out or fails for a reason worth retrying later."""

    pass


class UniqueConflictError(StoreError):
    """Raised when a write collides with a unique constraint (e.g. one profile per email)."""

    pass
