from __future__ import annotations
"""Data models returned by the storage adapters."""
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from .errors import CDNError

T = TypeVar("T")


def is_folder_key(name: str) -> bool:
    return name.endswith("/")


@dataclass
class BucketSummary:
    """A bucket or container with its usage totals."""

    name: str
    count: int = 0
    size: int = 0
    public: bool = False


@dataclass
class ObjectSummary:
    """A single object as reported by a bucket listing."""

    name: str
    size: int = 0
    last_modified: int = 0
    url: str = ""
    content_type: str = ""
    public: bool = False
    is_folder: bool = False


@dataclass
class BucketContext:
    """The bucket an adapter is currently bound to."""

    name: str = ""
    handle: object = None

    @property
    def bound(self) -> bool:
        return bool(self.name)


@dataclass
class ErrorState:
    message: str = ""
    flag: bool = False

    def record(self, message: str) -> None:
        self.message = message
        self.flag = True


@dataclass
class OperationResult(Generic[T]):
    """Outcome of one adapter call.

    ``value`` holds the operation's empty value when ``error`` is set, so
    callers that only look at ``value`` see ``False``/``[]``/``None``.
    """

    value: T
    error: Optional[CDNError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def __bool__(self) -> bool:
        return self.ok

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value
