from __future__ import annotations
"""Storage gateway translating browser operations into S3 API calls."""
import logging
import re
from typing import BinaryIO, Callable, Optional
from urllib.parse import urlsplit

import boto3
from botocore.client import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
    NoCredentialsError,
    ParamValidationError,
    PartialCredentialsError,
)

from .models import (
    BucketInfo,
    BucketListResult,
    Credentials,
    ErrorKind,
    ObjectEntry,
    ObjectListResult,
    ObjectStreamResult,
    OperationResult,
)
from .navigator import DELIMITER, partition_listing

LOGGER = logging.getLogger(__name__)

DEFAULT_REGION = "auto"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://")

AUTH_ERROR_CODES = frozenset(
    {
        "AccessDenied",
        "InvalidAccessKeyId",
        "SignatureDoesNotMatch",
        "Unauthorized",
        "Forbidden",
        "InvalidToken",
        "ExpiredToken",
    }
)
NOT_FOUND_ERROR_CODES = frozenset({"NoSuchBucket", "NoSuchKey", "NotFound", "404"})

ACCOUNT_ID_HINT = (
    "The Access Key ID matches the account ID in the endpoint; "
    "use the S3 Access Key ID generated for an API token instead."
)


class TransferCancelledError(RuntimeError):
    """Raised when an upload or download is cancelled by the caller."""


def normalize_endpoint(endpoint: str) -> str:
    """Trim, default the scheme to https and drop one trailing slash."""

    normalized = endpoint.strip()
    if not _SCHEME_RE.match(normalized):
        normalized = f"https://{normalized}"
    if normalized.endswith("/"):
        normalized = normalized[:-1]
    return normalized


def endpoint_account_id(endpoint: str) -> Optional[str]:
    """Return the first DNS label of the endpoint host, if any."""

    host = urlsplit(normalize_endpoint(endpoint)).hostname or ""
    label = host.split(".", 1)[0]
    return label or None


def classify_error(exc: BaseException) -> ErrorKind:
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {}) or {}
        code = str(error.get("Code", ""))
        status = (exc.response.get("ResponseMetadata", {}) or {}).get("HTTPStatusCode")
        if code in AUTH_ERROR_CODES or status in (401, 403):
            return ErrorKind.AUTH
        if code in NOT_FOUND_ERROR_CODES or status == 404:
            return ErrorKind.NOT_FOUND
        return ErrorKind.UNKNOWN
    if isinstance(exc, (NoCredentialsError, PartialCredentialsError)):
        return ErrorKind.AUTH
    if isinstance(exc, ParamValidationError):
        return ErrorKind.VALIDATION
    if isinstance(exc, (BotoConnectionError, HTTPClientError, BotoCoreError)):
        return ErrorKind.NETWORK
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return ErrorKind.NETWORK
    if isinstance(exc, OSError):
        return ErrorKind.LOCAL_IO
    if isinstance(exc, ValueError):
        # botocore rejects malformed endpoint URLs with a ValueError.
        return ErrorKind.VALIDATION
    return ErrorKind.UNKNOWN


def describe_error(exc: BaseException, kind: ErrorKind, credentials: Credentials) -> str:
    message = str(exc) or exc.__class__.__name__
    if kind == ErrorKind.AUTH:
        account_id = endpoint_account_id(credentials.endpoint)
        access_key = credentials.access_key_id.strip()
        if account_id and access_key and account_id.lower() == access_key.lower():
            message = f"{message}\n{ACCOUNT_ID_HINT}"
    return message


def build_transfer_callback(
    progress_callback: Optional[Callable[[int], None]],
    cancel_requested: Optional[Callable[[], bool]],
):
    """Wrap progress reporting and cancellation into a boto3 ``Callback``."""

    if not progress_callback and not cancel_requested:
        return None

    transferred = 0

    def _callback(bytes_amount: int) -> None:
        nonlocal transferred
        if cancel_requested and cancel_requested():
            raise TransferCancelledError("Transfer cancelled by user")
        transferred += bytes_amount
        if progress_callback:
            progress_callback(transferred)
        if cancel_requested and cancel_requested():
            raise TransferCancelledError("Transfer cancelled by user")

    return _callback


class StorageGateway:
    """Runs single S3 operations and always answers with a tagged result.

    A new client is created for every call, so the gateway holds no session
    state; the credentials travel with each request.
    """

    def __init__(self, client_factory: Callable[..., object] | None = None):
        self._client_factory = client_factory or boto3.client

    def list_buckets(self, credentials: Credentials) -> BucketListResult:
        try:
            client = self._create_client(credentials)
            response = client.list_buckets()
        except Exception as exc:
            return self._failure(BucketListResult, exc, credentials, "list buckets")
        buckets = [
            BucketInfo(name=bucket["Name"], creation_date=bucket.get("CreationDate"))
            for bucket in response.get("Buckets", [])
        ]
        LOGGER.debug("Listed %d bucket(s)", len(buckets))
        return BucketListResult.ok(buckets=buckets)

    def list_objects(self, credentials: Credentials, bucket: str, prefix: str = "") -> ObjectListResult:
        params = {"Bucket": bucket, "Delimiter": DELIMITER}
        if prefix:
            params["Prefix"] = prefix
        try:
            client = self._create_client(credentials)
            response = client.list_objects_v2(**params)
        except Exception as exc:
            return self._failure(ObjectListResult, exc, credentials, f"list '{bucket}/{prefix}'")
        entries = [
            ObjectEntry(
                key=item["Key"],
                size=int(item.get("Size") or 0),
                last_modified=item.get("LastModified"),
            )
            for item in response.get("Contents", [])
        ]
        common_prefixes = [common["Prefix"] for common in response.get("CommonPrefixes", [])]
        files, folders = partition_listing(prefix, entries, common_prefixes)
        LOGGER.debug(
            "Listed '%s/%s': %d file(s), %d folder(s)", bucket, prefix, len(files), len(folders)
        )
        return ObjectListResult.ok(prefix=prefix, files=files, folders=folders)

    def put_object(
        self,
        credentials: Credentials,
        bucket: str,
        key: str,
        body: BinaryIO,
        content_type: str = DEFAULT_CONTENT_TYPE,
        *,
        progress_callback: Optional[Callable[[int], None]] = None,
        cancel_requested: Optional[Callable[[], bool]] = None,
    ) -> OperationResult:
        """Stream ``body`` to ``bucket/key`` using the managed transfer."""

        callback = build_transfer_callback(progress_callback, cancel_requested)
        try:
            client = self._create_client(credentials)
            client.upload_fileobj(
                body,
                bucket,
                key,
                ExtraArgs={"ContentType": content_type or DEFAULT_CONTENT_TYPE},
                Callback=callback,
            )
        except TransferCancelledError:
            LOGGER.debug("Upload of '%s/%s' cancelled", bucket, key)
            return OperationResult.cancelled()
        except Exception as exc:
            return self._failure(OperationResult, exc, credentials, f"upload '{bucket}/{key}'")
        LOGGER.debug("Uploaded '%s/%s' (%s)", bucket, key, content_type)
        return OperationResult.ok()

    def get_object(self, credentials: Credentials, bucket: str, key: str) -> ObjectStreamResult:
        """Open a download stream. The caller must close ``result.body``."""

        try:
            client = self._create_client(credentials)
            response = client.get_object(Bucket=bucket, Key=key)
        except Exception as exc:
            return self._failure(ObjectStreamResult, exc, credentials, f"get '{bucket}/{key}'")
        return ObjectStreamResult.ok(
            body=response["Body"],
            content_length=response.get("ContentLength"),
            content_type=response.get("ContentType"),
        )

    def delete_object(self, credentials: Credentials, bucket: str, key: str) -> OperationResult:
        try:
            client = self._create_client(credentials)
            client.delete_object(Bucket=bucket, Key=key)
        except Exception as exc:
            return self._failure(OperationResult, exc, credentials, f"delete '{bucket}/{key}'")
        LOGGER.debug("Deleted '%s/%s'", bucket, key)
        return OperationResult.ok()

    def _create_client(self, credentials: Credentials):
        endpoint_url = normalize_endpoint(credentials.endpoint)
        LOGGER.debug("Creating S3 client for %s", endpoint_url)
        config = Config(
            signature_version="s3v4",
            s3={"addressing_style": "path"},
            request_checksum_calculation="when_required",
            response_checksum_validation="when_required",
        )
        return self._client_factory(
            "s3",
            endpoint_url=endpoint_url,
            region_name=DEFAULT_REGION,
            aws_access_key_id=credentials.access_key_id.strip(),
            aws_secret_access_key=credentials.secret_access_key.strip(),
            config=config,
        )

    def _failure(self, result_cls, exc: Exception, credentials: Credentials, operation: str):
        kind = classify_error(exc)
        if kind == ErrorKind.UNKNOWN and not isinstance(exc, ClientError):
            LOGGER.exception("Unexpected error during %s", operation)
        else:
            LOGGER.warning("Failed to %s (%s): %s", operation, kind.value, exc)
        return result_cls.failure(describe_error(exc, kind, credentials), kind)
