from __future__ import annotations
"""Provider credentials and their persistence."""
import json
from pathlib import Path

import keyring
from keyring.errors import KeyringError

REQUIRED_FIELDS = {
    "rackspace": ("rackspace_username", "rackspace_api_key"),
    "aws": ("aws_key", "aws_secret_key"),
}
SECRET_FIELDS = {
    "rackspace": ("rackspace_api_key",),
    "aws": ("aws_secret_key",),
}


def missing_fields(service: str, credentials: dict[str, str]) -> list[str]:
    return [field for field in REQUIRED_FIELDS.get(service, ()) if not credentials.get(field)]


class KeychainStore:
    """Encapsulates OS keychain access for secrets."""

    def __init__(self, service_name: str = "pycdn"):
        self._service_name = service_name

    def get_secret(self, account: str) -> str:
        if not account:
            return ""
        try:
            return keyring.get_password(self._service_name, account) or ""
        except KeyringError:
            return ""

    def set_secret(self, account: str, secret: str) -> None:
        if not account:
            return
        if not secret:
            self.delete_secret(account)
            return
        try:
            keyring.set_password(self._service_name, account, secret)
        except KeyringError:
            return

    def delete_secret(self, account: str) -> None:
        if not account:
            return
        try:
            keyring.delete_password(self._service_name, account)
        except KeyringError:
            return


class CredentialStore:
    """JSON file for public fields, OS keychain for secrets.

    The file maps a canonical service name (``rackspace`` or ``aws``) to its
    credential fields. Secret fields are never written to the file.
    """

    def __init__(self, storage_path: str | Path | None = None, keychain: KeychainStore | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".pycdn_credentials.json"
        self._path = Path(storage_path)
        self._keychain = keychain or KeychainStore()

    def load(self, service: str) -> dict[str, str]:
        data = self._read_data()
        entry = data.get(service)
        if not isinstance(entry, dict):
            entry = {}

        credentials: dict[str, str] = {}
        saw_plaintext = False
        for field, value in entry.items():
            if isinstance(value, str):
                credentials[field] = value
        for field in SECRET_FIELDS.get(service, ()):
            secret = credentials.get(field, "")
            if secret:
                saw_plaintext = True
                self._keychain.set_secret(self._account(service, field), secret)
            else:
                credentials[field] = self._keychain.get_secret(self._account(service, field))

        if saw_plaintext:
            data[service] = self._public_fields(service, credentials)
            self._write_data(data)
        return credentials

    def save(self, service: str, credentials: dict[str, str]) -> None:
        data = self._read_data()
        for field in SECRET_FIELDS.get(service, ()):
            self._keychain.set_secret(self._account(service, field), credentials.get(field, ""))
        data[service] = self._public_fields(service, credentials)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._write_data(data)

    def delete(self, service: str) -> None:
        data = self._read_data()
        for field in SECRET_FIELDS.get(service, ()):
            self._keychain.delete_secret(self._account(service, field))
        if data.pop(service, None) is not None:
            self._write_data(data)

    @staticmethod
    def _account(service: str, field: str) -> str:
        return f"{service}:{field}"

    @staticmethod
    def _public_fields(service: str, credentials: dict[str, str]) -> dict[str, str]:
        secrets = SECRET_FIELDS.get(service, ())
        return {field: value for field, value in credentials.items() if field not in secrets}

    def _read_data(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_data(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
