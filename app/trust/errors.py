"""Trust Score — exceptions raised across the engine and its stores."""


class TrustEngineError(Exception):
    """Base class for trust score errors."""


class ProfileNotFound(TrustEngineError):
    def __init__(self, profile_id: str):
        self.profile_id = profile_id
        super().__init__(f"Profile not found: {profile_id}")


class PersistenceError(TrustEngineError):
    """A store could not write a trust score."""
