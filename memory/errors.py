"""Persistence error taxonomy shared by the profile stores."""


class PersistenceError(RuntimeError):
    """A store could not read or write."""


class SyncAuthorizationError(PersistenceError):
    """The backend rejected our credentials or row-level policy. Sticky."""


class SyncUnavailableError(PersistenceError):
    """Remote sync is switched off or the user id cannot be synced."""


class ProfileVersionConflict(PersistenceError):
    """Compare-and-set write lost against a newer stored profile."""

    def __init__(self, user_id: str, expected: int, stored: int) -> None:
        super().__init__(f"Profile {user_id} is at version {stored}, write expected {expected}")
        self.user_id = user_id
        self.expected = expected
        self.stored = stored


__all__ = ["PersistenceError", "ProfileVersionConflict", "SyncAuthorizationError", "SyncUnavailableError"]
