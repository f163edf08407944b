from __future__ import annotations
"""Exception types shared by the storage adapters."""


class CDNError(Exception):
    """Base class for every error reported by a storage adapter."""


class ConfigurationError(CDNError):
    """Raised for an unknown service or missing credentials."""


class NotConnectedError(CDNError):
    """Raised when an operation runs before ``init`` succeeded."""


class NotFoundError(CDNError):
    """Raised when a bucket, object or local file does not exist."""


class AlreadyExistsError(CDNError):
    """Raised when creating a bucket whose name is already taken."""


class ConsistencyTimeoutError(CDNError):
    """Raised when a new bucket did not become visible in time."""


class VendorError(CDNError):
    """Wraps any failure reported by the vendor client library."""

    def __init__(self, message: str, *, status: int | None = None):
        super().__init__(message)
        self.status = status
