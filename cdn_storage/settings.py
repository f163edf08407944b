from __future__ import annotations
"""Settings persistence helpers."""

from dataclasses import dataclass
import json
from pathlib import Path
from typing import Optional


@dataclass
class CDNSettings:
    """Non-secret configuration shared by the storage adapters."""

    service: str = ""
    wait_for_bucket: bool = True
    poll_interval: Optional[float] = None
    poll_attempts: Optional[int] = None
    aws_region: str = "us-east-1"
    aws_endpoint_url: str = ""
    signed_url_expiry: int = 300
    cdn_ttl: int = 86400


def _positive_int(value: object, default):
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number <= 0:
        return default
    return number


def _positive_float(value: object, default):
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number <= 0:
        return default
    return number


class SettingsStorage:
    """JSON-backed persistence for :class:`CDNSettings`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".pycdn_settings.json"
        self._path = Path(storage_path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> CDNSettings:
        if not self._path.exists():
            return CDNSettings()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return CDNSettings()
        if not isinstance(data, dict):
            return CDNSettings()

        defaults = CDNSettings()
        service = data.get("service", defaults.service)
        if not isinstance(service, str):
            service = defaults.service
        wait_for_bucket = data.get("wait_for_bucket", defaults.wait_for_bucket)
        if not isinstance(wait_for_bucket, bool):
            wait_for_bucket = defaults.wait_for_bucket
        region = data.get("aws_region", defaults.aws_region)
        if not isinstance(region, str) or not region:
            region = defaults.aws_region
        endpoint_url = data.get("aws_endpoint_url", defaults.aws_endpoint_url)
        if not isinstance(endpoint_url, str):
            endpoint_url = defaults.aws_endpoint_url

        return CDNSettings(
            service=service.strip().lower(),
            wait_for_bucket=wait_for_bucket,
            poll_interval=_positive_float(data.get("poll_interval"), None),
            poll_attempts=_positive_int(data.get("poll_attempts"), None),
            aws_region=region,
            aws_endpoint_url=endpoint_url,
            signed_url_expiry=_positive_int(data.get("signed_url_expiry"), defaults.signed_url_expiry),
            cdn_ttl=_positive_int(data.get("cdn_ttl"), defaults.cdn_ttl),
        )

    def save(self, settings: CDNSettings) -> None:
        payload = {
            "service": settings.service,
            "wait_for_bucket": bool(settings.wait_for_bucket),
            "poll_interval": settings.poll_interval,
            "poll_attempts": (
                max(int(settings.poll_attempts), 1) if settings.poll_attempts is not None else None
            ),
            "aws_region": settings.aws_region,
            "aws_endpoint_url": settings.aws_endpoint_url,
            "signed_url_expiry": max(int(settings.signed_url_expiry), 1),
            "cdn_ttl": max(int(settings.cdn_ttl), 1),
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            return
