from __future__ import annotations
"""Session state machine coordinating the gateway, navigator and transfers."""
from dataclasses import dataclass, replace
import logging
import threading
from typing import Callable, Optional

from . import listing, navigator
from .credential_store import CredentialStore
from .models import (
    BucketListResult,
    Credentials,
    ObjectEntry,
    ObjectListResult,
    OperationResult,
    SessionState,
    SortKey,
    View,
)
from .services import StorageGateway
from .settings import AppSettings, SettingsStorage
from .transfers import TransferOrchestrator, destination_key
from .validation import validate_credentials, validate_endpoint

LOGGER = logging.getLogger(__name__)

Task = Callable[[], None]
DispatchFn = Callable[[Task], None]
RunnerFn = Callable[[Task], None]
Listener = Callable[[SessionState], None]
ProgressFn = Callable[[int], None]
DoneFn = Callable[[OperationResult], None]


class NotConnectedError(RuntimeError):
    """Raised when an S3 operation is attempted before logging in."""


def _thread_runner(task: Task) -> None:
    threading.Thread(target=task, daemon=True).start()


@dataclass(frozen=True)
class ListingTag:
    """Identifies the listing a response belongs to; ``bucket`` is ``None`` for the bucket list."""

    generation: int
    bucket: Optional[str]
    prefix: str


class BrowserController:
    """Owns the browser session and turns UI events into gateway calls.

    Network work is handed to ``runner`` (a daemon thread by default) and the
    result is passed back through ``dispatch``, which the view points at its
    event loop. State only changes inside dispatched callbacks, so listeners
    always observe it from the UI thread.

    Bucket lists and object listings are tagged with their target when issued;
    a response is applied only while that target is still current, so a slow
    request can never overwrite the result of a newer navigation.
    """

    def __init__(
        self,
        *,
        gateway: StorageGateway | None = None,
        transfers: TransferOrchestrator | None = None,
        credential_store: CredentialStore | None = None,
        settings_storage: SettingsStorage | None = None,
        dispatch: DispatchFn | None = None,
        runner: RunnerFn | None = None,
    ) -> None:
        if gateway is None:
            gateway = transfers.gateway if transfers is not None else StorageGateway()
        self._gateway = gateway
        self._transfers = transfers or TransferOrchestrator(gateway)
        self._credential_store = credential_store or CredentialStore()
        self._settings_storage = settings_storage or SettingsStorage()
        self._settings = self._settings_storage.load()
        self._dispatch = dispatch or (lambda func: func())
        self._runner = runner or _thread_runner
        self._listeners: list[Listener] = []
        self._credentials: Credentials | None = None
        self._generation = 0
        self._target: ListingTag | None = None
        self._previous_view = View.LOGIN
        self._state = self._initial_state()

    # -- observation -------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state.snapshot()

    @property
    def settings(self) -> AppSettings:
        return replace(self._settings)

    @property
    def is_connected(self) -> bool:
        return self._credentials is not None

    @property
    def credentials(self) -> Credentials | None:
        return self._credentials

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def visible_files(self) -> list[ObjectEntry]:
        state = self._state
        return listing.project(
            state.files,
            search_term=state.search_term,
            key=state.sort_key,
            direction=state.sort_direction,
        )

    def visible_folders(self) -> list[str]:
        return list(self._state.folders)

    def breadcrumbs(self) -> list[navigator.Breadcrumb]:
        return navigator.breadcrumbs(self._state.current_path)

    def visible_breadcrumbs(self) -> list[navigator.CrumbItem]:
        return navigator.visible_breadcrumbs(self._state.current_path)

    # -- credentials and settings -----------------------------------------

    def load_saved_credentials(self) -> Credentials | None:
        result = self._credential_store.get()
        if not result.success:
            return None
        return result.credentials

    def forget_credentials(self) -> OperationResult:
        return self._credential_store.delete()

    def update_settings(self, settings: AppSettings) -> None:
        self._settings = settings
        self._settings_storage.save(settings)
        self._notify()

    # -- session transitions ----------------------------------------------

    def login(self, credentials: Credentials, *, remember: bool | None = None) -> bool:
        """Validate ``credentials`` and start the session.

        Returns ``False`` when validation fails; no network call is made in
        that case. The view switches once the first listing succeeds.
        """

        cleaned = credentials.cleaned()
        self._begin()
        error = validate_endpoint(cleaned.endpoint) or validate_credentials(
            cleaned.access_key_id, cleaned.secret_access_key
        )
        if error:
            LOGGER.debug("Login rejected before connecting: %s", error)
            self._state.error = error
            self._notify()
            return False

        if remember is None:
            remember = self._settings.remember_credentials
        self._persist_login(cleaned, remember)

        self._generation += 1
        self._target = None
        self._credentials = cleaned
        if cleaned.bucket_name:
            self._request_listing(cleaned.bucket_name, "")
        else:
            self._request_buckets()
        return True

    def logout(self) -> None:
        LOGGER.debug("Logging out")
        self._generation += 1
        self._target = None
        self._credentials = None
        self._previous_view = View.LOGIN
        self._state = self._initial_state()
        self._notify()

    def select_bucket(self, bucket: str) -> None:
        self._require_connection()
        self._begin()
        self._request_listing(bucket, "")

    def back_to_buckets(self) -> None:
        self._require_connection()
        self._begin()
        self._target = None
        self._state.current_bucket = None
        self._state.current_path = ""
        self._state.files = ()
        self._state.folders = ()
        self._state.search_term = ""
        self._show(View.BUCKETS)
        if self._state.buckets:
            self._state.loading = False
            self._notify()
        else:
            self._request_buckets()

    def open_settings(self) -> None:
        if self._state.view != View.SETTINGS:
            self._previous_view = self._state.view
            self._state.view = View.SETTINGS
        self._notify()

    def close_settings(self) -> None:
        if self._state.view == View.SETTINGS:
            self._state.view = self._previous_view
        self._notify()

    # -- navigation ---------------------------------------------------------

    def open_folder(self, folder_prefix: str) -> None:
        bucket = self._require_bucket()
        self._begin()
        self._request_listing(bucket, navigator.descend(self._state.current_path, folder_prefix))

    def go_up(self) -> None:
        bucket = self._require_bucket()
        self._begin()
        self._request_listing(bucket, navigator.ascend_one(self._state.current_path))

    def open_breadcrumb(self, index: int) -> None:
        bucket = self._require_bucket()
        target = navigator.breadcrumb_target(self._state.current_path, index)
        self._begin()
        self._request_listing(bucket, target)

    def refresh(self) -> None:
        self._require_connection()
        self._begin()
        if self._active_view() == View.FILES and self._state.current_bucket:
            self._relist_current()
        else:
            self._request_buckets()

    # -- derived view controls ---------------------------------------------

    def set_search_term(self, term: str) -> None:
        self._state.search_term = term or ""
        self._notify()

    def sort_by(self, key: SortKey) -> None:
        self._state.sort_key, self._state.sort_direction = listing.toggle_sort(
            self._state.sort_key, self._state.sort_direction, SortKey(key)
        )
        self._notify()

    # -- transfers ----------------------------------------------------------

    def upload_file(
        self,
        file_path: str,
        *,
        on_progress: ProgressFn | None = None,
        cancel_requested: Callable[[], bool] | None = None,
        on_done: DoneFn | None = None,
    ) -> None:
        credentials = self._require_connection()
        bucket = self._require_bucket()
        prefix = self._state.current_path
        key = destination_key(prefix, file_path)
        generation = self._generation
        self._begin()
        self._state.loading = True
        self._notify()

        def task() -> OperationResult:
            return self._transfers.upload_file(
                credentials,
                bucket,
                file_path,
                prefix,
                progress_callback=self._dispatched(on_progress),
                cancel_requested=cancel_requested,
            )

        def apply(result: OperationResult) -> None:
            if generation != self._generation:
                LOGGER.debug("Discarding upload result for '%s' from an old session", key)
                return
            self._state.loading = False
            if result.success:
                self._state.status = f"Uploaded {key}"
                self._relist_current()
            elif result.canceled:
                self._state.status = f"Upload of {key} cancelled"
                self._notify()
            else:
                self._state.error = f"Upload failed: {result.error}"
                self._notify()
            if on_done:
                on_done(result)

        self._background(task, apply)

    def download_file(
        self,
        key: str,
        *,
        on_progress: ProgressFn | None = None,
        cancel_requested: Callable[[], bool] | None = None,
        on_done: DoneFn | None = None,
    ) -> None:
        credentials = self._require_connection()
        bucket = self._require_bucket()
        generation = self._generation
        self._begin()
        destination = self._transfers.choose_destination(key)
        if not destination:
            LOGGER.debug("Download of '%s' declined by the user", key)
            self._notify()
            if on_done:
                on_done(OperationResult.cancelled())
            return
        self._state.loading = True
        self._notify()

        def task() -> OperationResult:
            return self._transfers.download_to(
                credentials,
                bucket,
                key,
                destination,
                progress_callback=self._dispatched(on_progress),
                cancel_requested=cancel_requested,
            )

        def apply(result: OperationResult) -> None:
            if generation != self._generation:
                return
            self._state.loading = False
            if result.success:
                self._state.status = f"Downloaded {key} to {destination}"
            elif result.canceled:
                self._state.status = f"Download of {key} cancelled"
            else:
                self._state.error = f"Download failed: {result.error}"
            self._notify()
            if on_done:
                on_done(result)

        self._background(task, apply)

    def delete_file(self, key: str, *, on_done: DoneFn | None = None) -> None:
        credentials = self._require_connection()
        bucket = self._require_bucket()
        generation = self._generation
        self._begin()
        self._state.loading = True
        self._notify()

        def apply(result: OperationResult) -> None:
            if generation != self._generation:
                return
            self._state.loading = False
            if result.success:
                self._state.status = f"Deleted {key}"
                self._relist_current()
            else:
                self._state.error = f"Delete failed: {result.error}"
                self._notify()
            if on_done:
                on_done(result)

        self._background(lambda: self._transfers.delete_file(credentials, bucket, key), apply)

    # -- internals ----------------------------------------------------------

    def _initial_state(self) -> SessionState:
        return SessionState(
            sort_key=self._settings.sort_key,
            sort_direction=self._settings.sort_direction,
        )

    def _begin(self) -> None:
        self._state.error = None
        self._state.status = None

    def _notify(self) -> None:
        snapshot = self._state.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    def _active_view(self) -> View:
        if self._state.view == View.SETTINGS:
            return self._previous_view
        return self._state.view

    def _show(self, view: View) -> None:
        # Results arriving while settings are open land behind them.
        if self._state.view == View.SETTINGS:
            self._previous_view = view
        else:
            self._state.view = view

    def _background(self, task: Callable[[], object], apply: Callable[[object], None]) -> None:
        def run() -> None:
            result = task()
            self._dispatch(lambda: apply(result))

        self._runner(run)

    def _dispatched(self, callback: ProgressFn | None) -> ProgressFn | None:
        if callback is None:
            return None
        return lambda total: self._dispatch(lambda: callback(total))

    def _persist_login(self, credentials: Credentials, remember: bool) -> None:
        if remember:
            result = self._credential_store.save(credentials)
        else:
            result = self._credential_store.delete()
        if not result.success:
            LOGGER.warning("Credential store update failed: %s", result.error)
        if remember != self._settings.remember_credentials:
            self._settings = replace(self._settings, remember_credentials=remember)
            self._settings_storage.save(self._settings)

    def _request_buckets(self) -> None:
        credentials = self._require_connection()
        tag = ListingTag(self._generation, None, "")
        self._target = tag
        self._state.loading = True
        self._notify()
        LOGGER.debug("Requesting bucket list")

        def apply(result: BucketListResult) -> None:
            if tag != self._target:
                LOGGER.debug("Discarding stale bucket list")
                return
            self._state.loading = False
            if result.success:
                self._state.buckets = tuple(result.buckets)
                self._show(View.BUCKETS)
            else:
                self._fail_connection(result.error)
            self._notify()

        self._background(lambda: self._gateway.list_buckets(credentials), apply)

    def _request_listing(self, bucket: str, prefix: str) -> None:
        credentials = self._require_connection()
        tag = ListingTag(self._generation, bucket, prefix)
        self._target = tag
        self._state.loading = True
        self._notify()
        LOGGER.debug("Requesting listing for '%s/%s'", bucket, prefix)

        def apply(result: ObjectListResult) -> None:
            if tag != self._target:
                LOGGER.debug("Discarding stale listing for '%s/%s'", bucket, prefix)
                return
            self._state.loading = False
            if result.success:
                self._state.current_bucket = bucket
                self._state.current_path = prefix
                self._state.files = tuple(result.files)
                self._state.folders = tuple(result.folders)
                self._show(View.FILES)
                LOGGER.debug("Applied listing for '%s/%s'", bucket, prefix)
            else:
                self._fail_connection(result.error)
            self._notify()

        self._background(lambda: self._gateway.list_objects(credentials, bucket, prefix), apply)

    def _relist_current(self) -> None:
        if self._target is not None and self._target.bucket:
            bucket, prefix = self._target.bucket, self._target.prefix
        else:
            bucket, prefix = self._state.current_bucket, self._state.current_path
        if not bucket:
            self._notify()
            return
        self._request_listing(bucket, prefix)

    def _fail_connection(self, error: str | None) -> None:
        self._state.error = error or "Request failed"
        if self._active_view() == View.LOGIN:
            # The session never got past the first listing.
            self._credentials = None
            self._target = None

    def _require_connection(self) -> Credentials:
        if self._credentials is None:
            raise NotConnectedError("Not connected to S3")
        return self._credentials

    def _require_bucket(self) -> str:
        self._require_connection()
        bucket = self._state.current_bucket
        if not bucket:
            raise NotConnectedError("No bucket selected")
        return bucket
