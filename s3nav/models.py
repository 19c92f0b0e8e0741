from __future__ import annotations
"""Data models shared by the gateway, controller and views."""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Classification attached to failed operations."""

    VALIDATION = "validation"
    AUTH = "auth"
    NETWORK = "network"
    NOT_FOUND = "not_found"
    LOCAL_IO = "local_io"
    UNKNOWN = "unknown"


class View(str, Enum):
    LOGIN = "login"
    BUCKETS = "buckets"
    FILES = "files"
    SETTINGS = "settings"


class SortKey(str, Enum):
    NAME = "name"
    SIZE = "size"
    LAST_MODIFIED = "last_modified"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass
class Credentials:
    """Connection parameters entered on the login screen."""

    endpoint: str
    access_key_id: str
    secret_access_key: str
    bucket_name: Optional[str] = None

    def cleaned(self) -> "Credentials":
        bucket = (self.bucket_name or "").strip()
        return Credentials(
            endpoint=self.endpoint.strip(),
            access_key_id=self.access_key_id.strip(),
            secret_access_key=self.secret_access_key.strip(),
            bucket_name=bucket or None,
        )


@dataclass(frozen=True)
class BucketInfo:
    name: str
    creation_date: Optional[datetime] = None


@dataclass(frozen=True)
class ObjectEntry:
    """A single remote object returned by a listing."""

    key: str
    size: int = 0
    last_modified: Optional[datetime] = None


@dataclass
class OperationResult:
    """Tagged outcome of a storage operation.

    ``success`` is the tag. Failures carry a human readable ``error`` and an
    :class:`ErrorKind`; a user declining a dialog is reported with
    ``canceled=True`` and no error.
    """

    success: bool = True
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    canceled: bool = False

    @classmethod
    def ok(cls, **payload: Any):
        return cls(success=True, **payload)

    @classmethod
    def failure(cls, error: str, kind: ErrorKind = ErrorKind.UNKNOWN):
        return cls(success=False, error=error, error_kind=kind)

    @classmethod
    def cancelled(cls):
        return cls(success=False, canceled=True)


@dataclass
class BucketListResult(OperationResult):
    buckets: list[BucketInfo] = field(default_factory=list)


@dataclass
class ObjectListResult(OperationResult):
    prefix: str = ""
    files: list[ObjectEntry] = field(default_factory=list)
    folders: list[str] = field(default_factory=list)


@dataclass
class ObjectStreamResult(OperationResult):
    body: Any = None
    content_length: Optional[int] = None
    content_type: Optional[str] = None


@dataclass
class CredentialsResult(OperationResult):
    credentials: Optional[Credentials] = None


@dataclass
class SessionState:
    """Canonical browser state. Only the controller mutates it."""

    view: View = View.LOGIN
    current_bucket: Optional[str] = None
    current_path: str = ""
    buckets: tuple[BucketInfo, ...] = ()
    files: tuple[ObjectEntry, ...] = ()
    folders: tuple[str, ...] = ()
    sort_key: SortKey = SortKey.LAST_MODIFIED
    sort_direction: SortDirection = SortDirection.DESC
    search_term: str = ""
    loading: bool = False
    error: Optional[str] = None
    status: Optional[str] = None

    def snapshot(self) -> "SessionState":
        return replace(self)
