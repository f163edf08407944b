from __future__ import annotations
"""Amazon S3 adapter built on boto3."""
from datetime import datetime, timezone
import logging
from typing import Iterator
from urllib.parse import quote

import boto3
from boto3.exceptions import Boto3Error
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from .base import StorageAdapter
from .errors import CDNError, ConfigurationError, NotFoundError, VendorError
from .models import BucketSummary, ObjectSummary, is_folder_key

LOGGER = logging.getLogger(__name__)

ALL_USERS_URI = "http://acs.amazonaws.com/groups/global/AllUsers"
DEFAULT_REGION = "us-east-1"
PAGE_SIZE = 1000
NOT_FOUND_CODES = {"404", "NotFound", "NoSuchBucket", "NoSuchKey"}


def grants_public_read(grants: list[dict] | None) -> bool:
    """Return True when an ACL grant list lets all users read."""
    for grant in grants or []:
        grantee = grant.get("Grantee") or {}
        if grantee.get("URI") == ALL_USERS_URI and grant.get("Permission") == "READ":
            return True
    return False


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def _http_status(exc: ClientError) -> int | None:
    return exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")


def _epoch(value: object) -> int:
    if not isinstance(value, datetime):
        return 0
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


class AmazonAdapter(StorageAdapter):
    """Storage adapter for Amazon S3 and S3-compatible endpoints."""

    service = "aws"
    POLL_ATTEMPTS = 10
    POLL_INTERVAL = 1.0
    # upload_file reports failures as boto3's S3UploadFailedError.
    vendor_errors = (BotoCoreError, ClientError, Boto3Error)

    def _connect(self, credentials: dict[str, str]):
        factory = self._client_factory or boto3.client
        kwargs = {
            "aws_access_key_id": credentials["aws_key"],
            "aws_secret_access_key": credentials["aws_secret_key"],
            "region_name": self._settings.aws_region or DEFAULT_REGION,
            "config": Config(signature_version="s3v4"),
        }
        if self._settings.aws_endpoint_url:
            kwargs["endpoint_url"] = self._settings.aws_endpoint_url
        try:
            return factory("s3", **kwargs)
        except ValueError as exc:
            # botocore rejects malformed endpoint URLs with ValueError.
            raise ConfigurationError(f"Invalid S3 client settings: {exc}") from exc

    def _translate_error(self, exc: BaseException) -> CDNError:
        if isinstance(exc, ClientError):
            status = _http_status(exc)
            if _error_code(exc) in NOT_FOUND_CODES or status == 404:
                return NotFoundError(str(exc))
            return VendorError(str(exc), status=status)
        return VendorError(str(exc))

    def _open_bucket(self, name: str):
        self._client.head_bucket(Bucket=name)
        return name

    def _bucket_exists(self, name: str) -> bool:
        try:
            self._client.head_bucket(Bucket=name)
        except ClientError as exc:
            status = _http_status(exc)
            if _error_code(exc) in NOT_FOUND_CODES or status == 404:
                return False
            # 403: the name belongs to another account.
            if status == 403:
                return True
            raise
        return True

    def _iter_objects(self, bucket: str) -> Iterator[dict]:
        token = None
        while True:
            params = {"Bucket": bucket, "MaxKeys": PAGE_SIZE}
            if token:
                params["ContinuationToken"] = token
            response = self._client.list_objects_v2(**params)
            yield from response.get("Contents", [])
            token = response.get("NextContinuationToken")
            if not response.get("IsTruncated") or not token:
                break

    def _list_buckets(self) -> list[BucketSummary]:
        response = self._client.list_buckets()
        summaries = []
        for bucket in response.get("Buckets", []):
            name = bucket["Name"]
            count = 0
            size = 0
            for obj in self._iter_objects(name):
                count += 1
                size += int(obj.get("Size") or 0)
            summaries.append(
                BucketSummary(name=name, count=count, size=size, public=self._bucket_is_public(name))
            )
        return summaries

    def _create_bucket(self, name: str, public: bool) -> None:
        params = {"Bucket": name, "ACL": "public-read" if public else "private"}
        region = self._settings.aws_region or DEFAULT_REGION
        if region != DEFAULT_REGION:
            params["CreateBucketConfiguration"] = {"LocationConstraint": region}
        self._client.create_bucket(**params)

    def _delete_bucket(self, name: str) -> None:
        self._client.delete_bucket(Bucket=name)

    def _delete_object(self, bucket: str, name: str) -> None:
        self._client.delete_object(Bucket=bucket, Key=name)

    def _list_objects(self, bucket: str) -> list[ObjectSummary]:
        summaries = []
        for obj in self._iter_objects(bucket):
            key = obj["Key"]
            head = self._client.head_object(Bucket=bucket, Key=key)
            public = self._object_is_public(bucket, key)
            summaries.append(
                ObjectSummary(
                    name=key,
                    size=int(obj.get("Size") or 0),
                    last_modified=_epoch(obj.get("LastModified")),
                    url=self._object_url(bucket, key, public),
                    content_type=head.get("ContentType") or "",
                    public=public,
                    is_folder=is_folder_key(key),
                )
            )
        return summaries

    def _upload(self, bucket: str, local_path: str, name: str, content_type: str) -> str:
        self._client.upload_file(local_path, bucket, name, ExtraArgs={"ContentType": content_type})
        LOGGER.debug("Uploaded '%s' to bucket '%s'", name, bucket)
        return self._object_url(bucket, name, self._object_is_public(bucket, name))

    def _read_object(self, bucket: str, name: str) -> bytes:
        response = self._client.get_object(Bucket=bucket, Key=name)
        return response["Body"].read()

    def _content_type(self, bucket: str, name: str) -> str:
        response = self._client.head_object(Bucket=bucket, Key=name)
        return response.get("ContentType") or ""

    def _bucket_is_public(self, bucket: str) -> bool:
        acl = self._client.get_bucket_acl(Bucket=bucket)
        return grants_public_read(acl.get("Grants"))

    def _object_is_public(self, bucket: str, name: str) -> bool:
        acl = self._client.get_object_acl(Bucket=bucket, Key=name)
        return grants_public_read(acl.get("Grants"))

    def _set_public(self, bucket: str, public: bool) -> None:
        self._client.put_bucket_acl(Bucket=bucket, ACL="public-read" if public else "private")

    def _object_url(self, bucket: str, key: str, public: bool) -> str:
        """Return a path-style URL (`<endpoint>/<bucket>/<key>`), presigned when private."""
        if public:
            endpoint = self._client.meta.endpoint_url.rstrip("/")
            return f"{endpoint}/{bucket}/{quote(key)}"
        # Private objects get a short-lived preview link.
        return self._client.generate_presigned_url(
            "get_object",
            Params={"Bucket": bucket, "Key": key},
            ExpiresIn=self._settings.signed_url_expiry,
        )
