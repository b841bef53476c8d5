"""Exception hierarchy for pystoresync."""

from typing import Optional


class StoreSyncError(Exception):
    """Base class for all pystoresync errors."""


# =============================================================================
# Transport level errors
# =============================================================================


class StoreConfigError(StoreSyncError):
    """Raised when required configuration is missing or invalid."""


class StoreAPIError(StoreSyncError):
    """Raised when a request to the remote store fails."""


class StoreAuthenticationError(StoreAPIError):
    """Raised on 401 responses."""


class StorePermissionError(StoreAPIError):
    """Raised on 403 responses."""


class StoreNotFoundError(StoreAPIError):
    """Raised on 404 responses."""


class StoreRateLimitError(StoreAPIError):
    """Raised on 429 responses."""


class StoreNetworkError(StoreAPIError):
    """Raised when the store cannot be reached."""


class StoreInvalidResponseError(StoreAPIError):
    """Raised when the store returns something that is not JSON."""


# =============================================================================
# Run level errors
# =============================================================================


class ScanError(StoreSyncError):
    """Raised when a local file cannot be inventoried or read."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ManifestFetchError(StoreSyncError):
    """Raised when the remote manifest cannot be retrieved."""


class UploadError(StoreSyncError):
    """Raised when at least one chunk upload of a run failed."""

    def __init__(self, message: str, sequence_id: Optional[int] = None):
        super().__init__(message)
        self.sequence_id = sequence_id


class CommitError(StoreSyncError):
    """Raised when the final commit call fails."""
