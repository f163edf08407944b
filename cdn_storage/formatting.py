from __future__ import annotations
"""Helpers for presenting listings on the command line."""
from dataclasses import dataclass
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, metadata, version

from .models import BucketSummary, ObjectSummary

DIST_NAME = "pycdn"


@dataclass(frozen=True)
class PackageInfo:
    name: str
    version: str
    summary: str


def load_package_info(dist_name: str = DIST_NAME) -> PackageInfo:
    try:
        distribution_metadata = metadata(dist_name)
        package_version = version(dist_name)
    except PackageNotFoundError:
        return PackageInfo(
            name=dist_name,
            version="",
            summary="Unified access to Amazon S3 and Rackspace Cloud Files.",
        )
    return PackageInfo(
        name=distribution_metadata.get("Name") or dist_name,
        version=package_version,
        summary=distribution_metadata.get("Summary") or "",
    )


def format_size(size: int | None) -> str:
    if size is None:
        return "-"
    suffixes = ["B", "KB", "MB", "GB", "TB"]
    value = float(max(size, 0))
    for suffix in suffixes:
        if value < 1024 or suffix == suffixes[-1]:
            return f"{value:.1f} {suffix}" if suffix != "B" else f"{int(value)} {suffix}"
        value /= 1024
    return f"{size} B"


def format_last_modified(epoch: int | None) -> str:
    if not epoch:
        return "-"
    return datetime.fromtimestamp(epoch, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def format_bucket(bucket: BucketSummary) -> str:
    visibility = "public" if bucket.public else "private"
    return f"{bucket.name}\t{bucket.count} objects\t{format_size(bucket.size)}\t{visibility}"


def format_object(obj: ObjectSummary) -> str:
    if obj.is_folder:
        return f"{obj.name}\t-\t-\tfolder"
    visibility = "public" if obj.public else "private"
    return "\t".join(
        [
            obj.name,
            format_size(obj.size),
            format_last_modified(obj.last_modified),
            obj.content_type or "-",
            visibility,
            obj.url or "-",
        ]
    )
