from __future__ import annotations
"""Provider-independent storage adapter interface."""
from abc import ABC, abstractmethod
import functools
import logging
import mimetypes
import os
import time
from typing import Callable, Mapping, Optional

from .credentials import CredentialStore, missing_fields
from .errors import (
    AlreadyExistsError,
    CDNError,
    ConfigurationError,
    ConsistencyTimeoutError,
    NotConnectedError,
    NotFoundError,
)
from .models import BucketContext, BucketSummary, ErrorState, ObjectSummary, OperationResult
from .settings import CDNSettings

LOGGER = logging.getLogger(__name__)

SleepFn = Callable[[float], None]
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def wait_until(
    check: Callable[[], bool],
    *,
    attempts: int,
    interval: float,
    sleep: SleepFn = time.sleep,
) -> bool:
    """Call ``check`` up to ``attempts`` times, sleeping between calls.

    Returns ``True`` as soon as ``check`` does, ``False`` once the attempts
    are used up. There is no sleep after the final check.
    """
    for attempt in range(1, attempts + 1):
        if check():
            return True
        LOGGER.debug("Check %d/%d not satisfied yet", attempt, attempts)
        if attempt < attempts:
            sleep(interval)
    return False


def operation(empty: Callable[[], object]):
    """Turn an adapter method into one that returns an :class:`OperationResult`.

    Adapter errors and the adapter's vendor exceptions are captured into the
    result and the adapter's error state; ``empty`` builds the failure value.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(self: "StorageAdapter", *args, **kwargs):
            try:
                return OperationResult(func(self, *args, **kwargs))
            except CDNError as exc:
                return self._fail(func.__name__, exc, empty())
            except self.vendor_errors as exc:
                return self._fail(func.__name__, self._translate_error(exc), empty())

        return wrapper

    return decorator


class StorageAdapter(ABC):
    """Common bucket/object interface implemented by each provider.

    Every bucket-taking operation accepts the bucket explicitly and falls back
    to the bucket bound with :meth:`connect_bucket`. Instances keep that
    binding between calls and must not be shared across threads.
    """

    service = ""
    POLL_ATTEMPTS = 10
    POLL_INTERVAL = 1.0
    vendor_errors: tuple[type[BaseException], ...] = ()

    def __init__(
        self,
        *,
        settings: CDNSettings | None = None,
        credential_store: CredentialStore | None = None,
        client_factory: Callable[..., object] | None = None,
        sleep: SleepFn | None = None,
    ):
        self._settings = settings or CDNSettings()
        self._credential_store = credential_store or CredentialStore()
        self._client_factory = client_factory
        self._sleep = sleep or time.sleep
        self._client = None
        self._context = BucketContext()
        self._error_state = ErrorState()

    @property
    def settings(self) -> CDNSettings:
        return self._settings

    @property
    def connected_bucket(self) -> str:
        return self._context.name

    # Public operations ------------------------------------------------

    @operation(bool)
    def init(self, credentials: Optional[Mapping[str, str]] = None) -> bool:
        """Authenticate against the provider.

        ``credentials`` is a mapping of provider-specific keys. When omitted
        or empty, they are read from the credential store for this service.
        """
        if not credentials:
            credentials = self._credential_store.load(self.service)
        values = {key: value for key, value in dict(credentials).items() if value is not None}
        missing = missing_fields(self.service, values)
        if missing:
            raise ConfigurationError(
                f"Need {', '.join(missing)} to initialise the {self.service} storage"
            )
        self._client = self._connect(values)
        LOGGER.debug("Initialised %s storage client", self.service)
        return True

    @operation(bool)
    def connect_bucket(self, name: str = "") -> bool:
        self._require_client()
        if not name:
            if not self._context.bound:
                raise NotFoundError("Not connected to any bucket")
            return True
        if name != self._context.name:
            handle = self._open_bucket(name)
            self._context = BucketContext(name=name, handle=handle)
            LOGGER.debug("Connected to bucket '%s'", name)
        return True

    @operation(list)
    def list_buckets(self) -> list[BucketSummary]:
        self._require_client()
        return self._list_buckets()

    @operation(bool)
    def create_bucket(self, name: str, public: bool = True) -> bool:
        self._require_client()
        if not name:
            raise ConfigurationError("Bucket name cannot be empty")
        if self._bucket_exists(name):
            raise AlreadyExistsError(f"Bucket '{name}' already exists")
        self._create_bucket(name, public)
        LOGGER.info("Created %s bucket '%s'", "public" if public else "private", name)
        if self._settings.wait_for_bucket:
            attempts, interval = self._poll_policy()
            visible = wait_until(
                lambda: self._bucket_exists(name),
                attempts=attempts,
                interval=interval,
                sleep=self._sleep,
            )
            if not visible:
                raise ConsistencyTimeoutError(
                    f"Bucket '{name}' not visible after {attempts} checks"
                )
        self._after_create(name, public)
        return True

    @operation(bool)
    def delete_bucket(self, name: str) -> bool:
        self._require_client()
        if not name:
            raise ConfigurationError("Bucket name cannot be empty")
        self._delete_bucket(name)
        LOGGER.info("Deleted bucket '%s'", name)
        return True

    @operation(bool)
    def delete_object(self, name: str, bucket: str | None = None) -> bool:
        bucket_name = self._resolve_bucket(bucket)
        self._delete_object(bucket_name, name)
        return True

    @operation(list)
    def list_objects(self, bucket: str | None = None) -> list[ObjectSummary]:
        return self._list_objects(self._resolve_bucket(bucket))

    @operation(lambda: None)
    def upload_file(self, local_path: str, bucket: str | None = None) -> str:
        """Upload ``local_path`` under its basename and return the object URL."""
        bucket_name = self._resolve_bucket(bucket)
        if not os.path.isfile(local_path):
            raise NotFoundError(f"Local file '{local_path}' does not exist")
        name = os.path.basename(local_path)
        content_type = mimetypes.guess_type(name)[0] or DEFAULT_CONTENT_TYPE
        return self._upload(bucket_name, local_path, name, content_type)

    @operation(bytes)
    def get_file_contents(self, name: str, bucket: str | None = None) -> bytes:
        return self._read_object(self._resolve_bucket(bucket), name)

    @operation(str)
    def get_content_type(self, name: str, bucket: str | None = None) -> str:
        return self._content_type(self._resolve_bucket(bucket), name)

    @operation(bool)
    def is_public(self, bucket: str | None = None, name: str | None = None) -> bool:
        bucket_name = self._resolve_bucket(bucket)
        if name:
            return self._object_is_public(bucket_name, name)
        return self._bucket_is_public(bucket_name)

    @operation(bool)
    def make_public(self, bucket: str | None = None) -> bool:
        self._set_public(self._resolve_bucket(bucket), True)
        return True

    @operation(bool)
    def make_private(self, bucket: str | None = None) -> bool:
        self._set_public(self._resolve_bucket(bucket), False)
        return True

    def last_error(self) -> str:
        return self._error_state.message

    def has_error(self) -> bool:
        return self._error_state.flag

    # Helpers ----------------------------------------------------------

    def _require_client(self):
        if self._client is None:
            raise NotConnectedError(f"Call init() before using the {self.service} storage")
        return self._client

    def _resolve_bucket(self, bucket: str | None) -> str:
        self._require_client()
        if bucket:
            return bucket
        if self._context.bound:
            return self._context.name
        raise NotFoundError("No bucket given and not connected to any bucket")

    def _poll_policy(self) -> tuple[int, float]:
        attempts = self._settings.poll_attempts or self.POLL_ATTEMPTS
        interval = self._settings.poll_interval or self.POLL_INTERVAL
        return attempts, interval

    def _fail(self, operation_name: str, error: CDNError, empty) -> OperationResult:
        self._error_state.record(str(error))
        LOGGER.warning("%s %s failed: %s", self.service, operation_name, error)
        return OperationResult(empty, error)

    def _after_create(self, name: str, public: bool) -> None:
        """Hook run once a new bucket is visible."""

    # Provider hooks ---------------------------------------------------

    @abstractmethod
    def _connect(self, credentials: dict[str, str]):
        """Return an authenticated vendor client."""

    @abstractmethod
    def _translate_error(self, exc: BaseException) -> CDNError:
        ...

    @abstractmethod
    def _open_bucket(self, name: str):
        ...

    @abstractmethod
    def _bucket_exists(self, name: str) -> bool:
        ...

    @abstractmethod
    def _list_buckets(self) -> list[BucketSummary]:
        ...

    @abstractmethod
    def _create_bucket(self, name: str, public: bool) -> None:
        ...

    @abstractmethod
    def _delete_bucket(self, name: str) -> None:
        ...

    @abstractmethod
    def _delete_object(self, bucket: str, name: str) -> None:
        ...

    @abstractmethod
    def _list_objects(self, bucket: str) -> list[ObjectSummary]:
        ...

    @abstractmethod
    def _upload(self, bucket: str, local_path: str, name: str, content_type: str) -> str:
        ...

    @abstractmethod
    def _read_object(self, bucket: str, name: str) -> bytes:
        ...

    @abstractmethod
    def _content_type(self, bucket: str, name: str) -> str:
        ...

    @abstractmethod
    def _bucket_is_public(self, bucket: str) -> bool:
        ...

    @abstractmethod
    def _object_is_public(self, bucket: str, name: str) -> bool:
        ...

    @abstractmethod
    def _set_public(self, bucket: str, public: bool) -> None:
        ...
