from __future__ import annotations
"""Persistence for the remembered login credentials."""
import json
import logging
from pathlib import Path

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from .models import Credentials, CredentialsResult, ErrorKind, OperationResult

LOGGER = logging.getLogger(__name__)

SECRET_ACCOUNT = "secret_access_key"


class KeychainStore:
    """Encapsulates OS keychain access for the secret access key."""

    def __init__(self, service_name: str = "s3nav"):
        self._service_name = service_name

    def get_secret(self, account: str) -> str:
        try:
            return keyring.get_password(self._service_name, account) or ""
        except KeyringError:
            LOGGER.warning("Keychain lookup failed for '%s'", account)
            return ""

    def set_secret(self, account: str, secret: str) -> None:
        if not secret:
            self.delete_secret(account)
            return
        keyring.set_password(self._service_name, account, secret)

    def delete_secret(self, account: str) -> None:
        try:
            keyring.delete_password(self._service_name, account)
        except PasswordDeleteError:
            return


class CredentialStore:
    """Stores one credential record.

    The endpoint, access key id and bucket are written to a JSON file; the
    secret goes to the OS keychain. A plaintext secret found in the file is
    migrated to the keychain on read.
    """

    def __init__(self, storage_path: str | Path | None = None, keychain: KeychainStore | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".s3nav_credentials.json"
        self._path = Path(storage_path)
        self._keychain = keychain or KeychainStore()

    def save(self, credentials: Credentials) -> OperationResult:
        payload = {
            "endpoint": credentials.endpoint,
            "access_key_id": credentials.access_key_id,
            "bucket_name": credentials.bucket_name or "",
        }
        try:
            self._keychain.set_secret(SECRET_ACCOUNT, credentials.secret_access_key)
            self._write(payload)
        except (OSError, KeyringError) as exc:
            LOGGER.warning("Unable to save credentials: %s", exc)
            return OperationResult.failure(str(exc), ErrorKind.LOCAL_IO)
        return OperationResult.ok()

    def get(self) -> CredentialsResult:
        if not self._path.exists():
            return CredentialsResult.ok(credentials=None)
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.warning("Ignoring unreadable credentials file %s: %s", self._path, exc)
            return CredentialsResult.ok(credentials=None)
        if not isinstance(data, dict):
            return CredentialsResult.ok(credentials=None)

        try:
            endpoint = str(data["endpoint"])
            access_key_id = str(data["access_key_id"])
        except KeyError:
            return CredentialsResult.ok(credentials=None)
        secret = data.get("secret_access_key") or ""
        if secret:
            try:
                self._keychain.set_secret(SECRET_ACCOUNT, secret)
                self._write({key: value for key, value in data.items() if key != "secret_access_key"})
            except (OSError, KeyringError) as exc:
                LOGGER.warning("Unable to migrate plaintext secret: %s", exc)
        else:
            secret = self._keychain.get_secret(SECRET_ACCOUNT)
        return CredentialsResult.ok(
            credentials=Credentials(
                endpoint=endpoint,
                access_key_id=access_key_id,
                secret_access_key=secret,
                bucket_name=data.get("bucket_name") or None,
            )
        )

    def delete(self) -> OperationResult:
        try:
            self._keychain.delete_secret(SECRET_ACCOUNT)
            self._path.unlink(missing_ok=True)
        except (OSError, KeyringError) as exc:
            LOGGER.warning("Unable to delete credentials: %s", exc)
            return OperationResult.failure(str(exc), ErrorKind.LOCAL_IO)
        return OperationResult.ok()

    def _write(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2)
