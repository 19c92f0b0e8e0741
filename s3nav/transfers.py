from __future__ import annotations
"""Upload, download and delete orchestration on top of the gateway."""
import logging
import mimetypes
import os
from typing import Callable, Optional

from .models import Credentials, ErrorKind, OperationResult
from .navigator import basename
from .services import (
    DEFAULT_CONTENT_TYPE,
    StorageGateway,
    TransferCancelledError,
    build_transfer_callback,
    classify_error,
)

LOGGER = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 1024 * 1024

DestinationChooser = Callable[[str], Optional[str]]


def destination_key(prefix: str, file_path: str) -> str:
    name = os.path.basename(file_path)
    return f"{prefix}{name}" if prefix else name


def guess_content_type(file_path: str) -> str:
    content_type, _ = mimetypes.guess_type(file_path)
    return content_type or DEFAULT_CONTENT_TYPE


class TransferOrchestrator:
    """Runs one transfer at a time and reports a tagged outcome.

    ``choose_destination`` is the file-chooser collaborator used for
    downloads; it receives a suggested file name and returns a path, or
    ``None`` when the user declines.
    """

    def __init__(
        self,
        gateway: StorageGateway | None = None,
        choose_destination: DestinationChooser | None = None,
        *,
        chunk_size: int = DOWNLOAD_CHUNK_SIZE,
    ):
        self._gateway = gateway or StorageGateway()
        self._choose_destination = choose_destination
        self._chunk_size = chunk_size

    @property
    def gateway(self) -> StorageGateway:
        return self._gateway

    def upload_file(
        self,
        credentials: Credentials,
        bucket: str,
        file_path: str,
        prefix: str = "",
        *,
        progress_callback: Optional[Callable[[int], None]] = None,
        cancel_requested: Optional[Callable[[], bool]] = None,
    ) -> OperationResult:
        key = destination_key(prefix, file_path)
        content_type = guess_content_type(file_path)
        LOGGER.debug("Uploading '%s' to '%s/%s'", file_path, bucket, key)
        try:
            with open(file_path, "rb") as handle:
                return self._gateway.put_object(
                    credentials,
                    bucket,
                    key,
                    handle,
                    content_type,
                    progress_callback=progress_callback,
                    cancel_requested=cancel_requested,
                )
        except OSError as exc:
            LOGGER.warning("Unable to read '%s': %s", file_path, exc)
            return OperationResult.failure(f"Unable to read file: {exc}", ErrorKind.LOCAL_IO)

    def choose_destination(self, key: str) -> Optional[str]:
        if self._choose_destination is None:
            return None
        return self._choose_destination(basename(key) or key) or None

    def download_file(
        self,
        credentials: Credentials,
        bucket: str,
        key: str,
        *,
        progress_callback: Optional[Callable[[int], None]] = None,
        cancel_requested: Optional[Callable[[], bool]] = None,
    ) -> OperationResult:
        destination = self.choose_destination(key)
        if not destination:
            LOGGER.debug("Download of '%s/%s' declined", bucket, key)
            return OperationResult.cancelled()
        return self.download_to(
            credentials,
            bucket,
            key,
            destination,
            progress_callback=progress_callback,
            cancel_requested=cancel_requested,
        )

    def download_to(
        self,
        credentials: Credentials,
        bucket: str,
        key: str,
        destination: str,
        *,
        progress_callback: Optional[Callable[[int], None]] = None,
        cancel_requested: Optional[Callable[[], bool]] = None,
    ) -> OperationResult:
        """Stream ``bucket/key`` into ``destination``.

        The result is only successful once every chunk has been written and
        flushed. A failed or cancelled download removes the partial file.
        """

        stream = self._gateway.get_object(credentials, bucket, key)
        if not stream.success:
            return OperationResult.failure(stream.error or "Download failed", stream.error_kind or ErrorKind.UNKNOWN)

        callback = build_transfer_callback(progress_callback, cancel_requested)
        body = stream.body
        try:
            with open(destination, "wb") as handle:
                for chunk in body.iter_chunks(self._chunk_size):
                    if not chunk:
                        continue
                    handle.write(chunk)
                    if callback:
                        callback(len(chunk))
                handle.flush()
                os.fsync(handle.fileno())
        except TransferCancelledError:
            LOGGER.debug("Download of '%s/%s' cancelled", bucket, key)
            self._discard_partial(destination)
            return OperationResult.cancelled()
        except Exception as exc:
            kind = classify_error(exc)
            LOGGER.warning("Download of '%s/%s' failed: %s", bucket, key, exc)
            self._discard_partial(destination)
            return OperationResult.failure(str(exc) or exc.__class__.__name__, kind)
        finally:
            body.close()
        LOGGER.debug("Downloaded '%s/%s' to '%s'", bucket, key, destination)
        return OperationResult.ok()

    def delete_file(self, credentials: Credentials, bucket: str, key: str) -> OperationResult:
        return self._gateway.delete_object(credentials, bucket, key)

    def _discard_partial(self, destination: str) -> None:
        try:
            os.remove(destination)
        except FileNotFoundError:
            return
        except OSError as exc:
            LOGGER.warning("Unable to remove partial download '%s': %s", destination, exc)
