from __future__ import annotations
"""Selects the storage adapter for a configured service."""
from typing import Callable

from .base import StorageAdapter
from .cloudfiles import RackspaceAdapter
from .errors import ConfigurationError
from .s3 import AmazonAdapter
from .settings import CDNSettings

SERVICE_ALIASES = {
    "rackspace": "rackspace",
    "aws": "aws",
    "amazon": "aws",
    "s3": "aws",
}
ADAPTERS: dict[str, Callable[..., StorageAdapter]] = {
    "rackspace": RackspaceAdapter,
    "aws": AmazonAdapter,
}


def normalize_service(name: str | None) -> str:
    """Map a service name or alias to ``rackspace`` or ``aws``."""
    if not name or not name.strip():
        raise ConfigurationError("No storage service configured")
    key = name.strip().lower()
    try:
        return SERVICE_ALIASES[key]
    except KeyError:
        raise ConfigurationError(f"Unknown storage service '{name}'") from None


def open_storage(
    service: str | None = None,
    *,
    settings: CDNSettings | None = None,
    **adapter_kwargs,
) -> StorageAdapter:
    """Build the adapter for ``service``, or for ``settings.service`` when omitted.

    Extra keyword arguments (``credential_store``, ``client_factory``,
    ``sleep``) are passed to the adapter constructor.

    Raises:
        ConfigurationError: when the service is empty or unknown.
    """
    settings = settings or CDNSettings()
    canonical = normalize_service(service or settings.service)
    return ADAPTERS[canonical](settings=settings, **adapter_kwargs)
