"""Unified access to Amazon S3 and Rackspace Cloud Files."""
from .base import StorageAdapter
from .cloudfiles import RackspaceAdapter
from .errors import (
    AlreadyExistsError,
    CDNError,
    ConfigurationError,
    ConsistencyTimeoutError,
    NotConnectedError,
    NotFoundError,
    VendorError,
)
from .facade import normalize_service, open_storage
from .models import BucketSummary, ObjectSummary, OperationResult
from .s3 import AmazonAdapter
from .settings import CDNSettings, SettingsStorage

__all__ = [
    "AlreadyExistsError",
    "AmazonAdapter",
    "BucketSummary",
    "CDNError",
    "CDNSettings",
    "ConfigurationError",
    "ConsistencyTimeoutError",
    "NotConnectedError",
    "NotFoundError",
    "ObjectSummary",
    "OperationResult",
    "RackspaceAdapter",
    "SettingsStorage",
    "StorageAdapter",
    "VendorError",
    "normalize_service",
    "open_storage",
]
