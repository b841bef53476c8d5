"""pystoresync - one-way incremental sync of a directory into a content store."""

from .api import StoreClient
from .exceptions import (
    CommitError,
    ManifestFetchError,
    ScanError,
    StoreAPIError,
    StoreAuthenticationError,
    StoreConfigError,
    StoreInvalidResponseError,
    StoreNetworkError,
    StoreNotFoundError,
    StorePermissionError,
    StoreRateLimitError,
    StoreSyncError,
    UploadError,
)
from .models import DataType, Item, Metadata, SyncResult, UploadData

__version__ = "0.1.0"

__all__ = [
    "StoreClient",
    "DataType",
    "Item",
    "Metadata",
    "SyncResult",
    "UploadData",
    "CommitError",
    "ManifestFetchError",
    "ScanError",
    "StoreAPIError",
    "StoreAuthenticationError",
    "StoreConfigError",
    "StoreInvalidResponseError",
    "StoreNetworkError",
    "StoreNotFoundError",
    "StorePermissionError",
    "StoreRateLimitError",
    "StoreSyncError",
    "UploadError",
]
