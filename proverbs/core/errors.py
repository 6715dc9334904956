class RatingsError(Exception):
    """Base class for failures raised by the ratings subsystem."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArgument(RatingsError):
    """Missing or out-of-range input. Raised before any store access."""


class Unauthorized(RatingsError):
    """Missing or invalid access credential. Raised before any store access."""


class StorageError(RatingsError):
    """The underlying store failed or rejected a write unexpectedly."""


class AggregationFallbackUsed(UserWarning):
    """Statistics were computed client-side because the store's aggregate was unavailable."""
