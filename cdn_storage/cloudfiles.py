from __future__ import annotations
"""Rackspace Cloud Files adapter built on python-swiftclient.

Cloud Files is a Swift cluster with a separate CDN management endpoint.
Storage calls go through one authenticated connection; CDN calls go
through a second connection that reuses the storage token.
"""
from datetime import datetime, timezone
import logging
from urllib.parse import quote, urlsplit, urlunsplit

from requests.exceptions import RequestException
from swiftclient.client import Connection
from swiftclient.exceptions import ClientException

from .base import StorageAdapter
from .errors import CDNError, NotFoundError, VendorError
from .models import BucketSummary, ObjectSummary, is_folder_key

LOGGER = logging.getLogger(__name__)

RACKSPACE_AUTH_URL = "https://identity.api.rackspacecloud.com/v1.0"
CDN_MANAGEMENT_HOST = "cdn.clouddrive.com"


def cdn_management_url(storage_url: str) -> str:
    """Derive the CDN management URL from the account's storage URL."""
    path = urlsplit(storage_url).path
    return urlunsplit(("https", CDN_MANAGEMENT_HOST, path, "", ""))


def _cdn_enabled(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def _epoch(value: object) -> int:
    if not value:
        return 0
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        return 0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


class RackspaceAdapter(StorageAdapter):
    """Storage adapter for Rackspace Cloud Files containers."""

    service = "rackspace"
    # New containers can take a while to show up in the account listing.
    POLL_ATTEMPTS = 30
    POLL_INTERVAL = 2.0
    # swiftclient lets transport failures from requests escape unwrapped.
    vendor_errors = (ClientException, RequestException)

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._cdn = None

    def _connect(self, credentials: dict[str, str]):
        factory = self._client_factory or Connection
        conn = factory(
            authurl=credentials.get("rackspace_auth_url") or RACKSPACE_AUTH_URL,
            user=credentials["rackspace_username"],
            key=credentials["rackspace_api_key"],
            auth_version="1",
        )
        storage_url, token = conn.get_auth()
        cdn_url = credentials.get("rackspace_cdn_url") or cdn_management_url(storage_url)
        self._cdn = factory(preauthurl=cdn_url, preauthtoken=token)
        return conn

    def _translate_error(self, exc: BaseException) -> CDNError:
        status = getattr(exc, "http_status", None)
        if status == 404:
            return NotFoundError(str(exc))
        return VendorError(str(exc), status=status)

    def _open_bucket(self, name: str):
        return self._client.head_container(name)

    def _bucket_exists(self, name: str) -> bool:
        _, containers = self._client.get_account(full_listing=True)
        return any(container.get("name") == name for container in containers)

    def _public_containers(self) -> set[str]:
        # Per-container CDN queries are unreliable; use the CDN listing instead.
        _, containers = self._cdn.get_account(full_listing=True)
        return {
            container["name"]
            for container in containers
            if _cdn_enabled(container.get("cdn_enabled"))
        }

    def _cdn_uri(self, bucket: str) -> str:
        try:
            headers = self._cdn.head_container(bucket)
        except ClientException as exc:
            if exc.http_status == 404:
                return ""
            raise
        return headers.get("x-cdn-uri", "")

    def _list_buckets(self) -> list[BucketSummary]:
        _, containers = self._client.get_account(full_listing=True)
        public = self._public_containers()
        return [
            BucketSummary(
                name=container["name"],
                count=int(container.get("count") or 0),
                size=int(container.get("bytes") or 0),
                public=container["name"] in public,
            )
            for container in containers
        ]

    def _create_bucket(self, name: str, public: bool) -> None:
        self._client.put_container(name)

    def _after_create(self, name: str, public: bool) -> None:
        # New containers start without CDN access.
        if public:
            self._set_public(name, True)

    def _delete_bucket(self, name: str) -> None:
        self._client.delete_container(name)

    def _delete_object(self, bucket: str, name: str) -> None:
        self._client.delete_object(bucket, name)

    def _list_objects(self, bucket: str) -> list[ObjectSummary]:
        _, objects = self._client.get_container(bucket, full_listing=True)
        public = bucket in self._public_containers()
        cdn_uri = self._cdn_uri(bucket)
        summaries = []
        for obj in objects:
            name = obj["name"]
            summaries.append(
                ObjectSummary(
                    name=name,
                    size=int(obj.get("bytes") or 0),
                    last_modified=_epoch(obj.get("last_modified")),
                    url=self._object_url(cdn_uri, name),
                    content_type=obj.get("content_type") or "",
                    public=public,
                    is_folder=is_folder_key(name),
                )
            )
        return summaries

    def _upload(self, bucket: str, local_path: str, name: str, content_type: str) -> str:
        with open(local_path, "rb") as handle:
            self._client.put_object(bucket, name, contents=handle, content_type=content_type)
        LOGGER.debug("Uploaded '%s' to container '%s'", name, bucket)
        return self._object_url(self._cdn_uri(bucket), name)

    def _read_object(self, bucket: str, name: str) -> bytes:
        _, body = self._client.get_object(bucket, name)
        return body

    def _content_type(self, bucket: str, name: str) -> str:
        headers = self._client.head_object(bucket, name)
        return headers.get("content-type", "")

    def _bucket_is_public(self, bucket: str) -> bool:
        return bucket in self._public_containers()

    def _object_is_public(self, bucket: str, name: str) -> bool:
        # Objects inherit the container's CDN state.
        return self._bucket_is_public(bucket)

    def _set_public(self, bucket: str, public: bool) -> None:
        if public:
            self._cdn.put_container(
                bucket,
                headers={"X-CDN-Enabled": "True", "X-TTL": str(self._settings.cdn_ttl)},
            )
        else:
            self._cdn.post_container(bucket, headers={"X-CDN-Enabled": "False"})

    @staticmethod
    def _object_url(cdn_uri: str, name: str) -> str:
        if not cdn_uri:
            return ""
        return f"{cdn_uri.rstrip('/')}/{quote(name)}"
