from __future__ import annotations
"""Tkinter-based UI rendering :class:`BrowserController` state."""
import logging
import os
import threading
import tkinter as tk
from dataclasses import replace
from tkinter import filedialog, messagebox, ttk

from .controller import BrowserController
from .models import Credentials, OperationResult, SessionState, SortDirection, SortKey, View
from .navigator import ELLIPSIS, display_name
from .settings import THEMES
from .transfers import TransferOrchestrator
from .ui_utils import (
    column_heading,
    format_date,
    format_last_modified,
    format_size,
    load_about_info,
    mask_access_key,
)

LOGGER = logging.getLogger(__name__)

PALETTES = {
    "dark": {"background": "#1e1f24", "foreground": "#e6e6e6", "muted": "#9aa0a6", "error": "#ff6b6b"},
    "light": {"background": "#f5f5f5", "foreground": "#1e1f24", "muted": "#5f6368", "error": "#c0392b"},
}

PARENT_ROW = "__parent__"


class S3NavApp:
    """Tkinter view that delegates all behaviour to :class:`BrowserController`."""

    def __init__(self, root: tk.Tk, controller: BrowserController | None = None):
        self.root = root
        self.root.title("s3nav")
        self.root.geometry("900x670")
        self.root.minsize(640, 480)

        if controller is None:
            transfers = TransferOrchestrator(choose_destination=self._ask_save_path)
            controller = BrowserController(
                transfers=transfers,
                dispatch=lambda func: self.root.after(0, func),
            )
        self.controller = controller
        self._about = load_about_info()
        self._row_targets: dict[str, tuple[str, str]] = {}
        self._transfer_dialog: TransferDialog | None = None
        self._frames: dict[View, ttk.Frame] = {}

        self._create_widgets()
        self._apply_theme(self.controller.settings.theme)
        self._prefill_login()
        self.controller.subscribe(self._render)
        self._render(self.controller.state)

    # -- layout ---------------------------------------------------------------

    def _create_widgets(self) -> None:
        self.root.columnconfigure(0, weight=1)
        self.root.rowconfigure(1, weight=1)

        toolbar = ttk.Frame(self.root, padding=(10, 8))
        toolbar.grid(row=0, column=0, sticky=(tk.W, tk.E))
        toolbar.columnconfigure(2, weight=1)
        self.buckets_button = ttk.Button(toolbar, text="Buckets", command=self.controller.back_to_buckets)
        self.buckets_button.grid(row=0, column=0, padx=(0, 5))
        self.settings_button = ttk.Button(toolbar, text="Settings", command=self.controller.open_settings)
        self.settings_button.grid(row=0, column=1)
        self.connected_var = tk.StringVar()
        ttk.Label(toolbar, textvariable=self.connected_var, style="Muted.TLabel").grid(
            row=0, column=2, sticky=tk.E, padx=10
        )
        self.logout_button = ttk.Button(toolbar, text="Disconnect", command=self.controller.logout)
        self.logout_button.grid(row=0, column=3)

        container = ttk.Frame(self.root, padding=(10, 0))
        container.grid(row=1, column=0, sticky=(tk.W, tk.E, tk.N, tk.S))
        container.columnconfigure(0, weight=1)
        container.rowconfigure(0, weight=1)

        self._frames[View.LOGIN] = self._create_login_frame(container)
        self._frames[View.BUCKETS] = self._create_buckets_frame(container)
        self._frames[View.FILES] = self._create_files_frame(container)
        self._frames[View.SETTINGS] = self._create_settings_frame(container)
        for frame in self._frames.values():
            frame.grid(row=0, column=0, sticky=(tk.W, tk.E, tk.N, tk.S))

        footer = ttk.Frame(self.root, padding=(10, 5))
        footer.grid(row=2, column=0, sticky=(tk.W, tk.E))
        footer.columnconfigure(0, weight=1)
        self.progress = ttk.Progressbar(footer, mode="indeterminate")
        self.progress.grid(row=0, column=0, sticky=(tk.W, tk.E), pady=(0, 5))
        self.error_var = tk.StringVar()
        ttk.Label(footer, textvariable=self.error_var, style="Error.TLabel", wraplength=860).grid(
            row=1, column=0, sticky=tk.W
        )
        self.status_var = tk.StringVar(value="Ready")
        ttk.Label(footer, textvariable=self.status_var, anchor=tk.W).grid(row=2, column=0, sticky=(tk.W, tk.E))

    def _create_login_frame(self, parent: ttk.Frame) -> ttk.Frame:
        frame = ttk.Frame(parent, padding="20")
        frame.columnconfigure(1, weight=1)
        ttk.Label(frame, text="Connect to S3-compatible storage", style="Heading.TLabel").grid(
            row=0, column=0, columnspan=2, sticky=tk.W, pady=(0, 15)
        )

        self.endpoint_var = tk.StringVar()
        self.access_key_var = tk.StringVar()
        self.secret_key_var = tk.StringVar()
        self.bucket_name_var = tk.StringVar()
        self.remember_var = tk.BooleanVar(value=self.controller.settings.remember_credentials)

        fields = (
            ("Endpoint", self.endpoint_var, None),
            ("Access Key ID", self.access_key_var, None),
            ("Secret Access Key", self.secret_key_var, "*"),
            ("Bucket (optional)", self.bucket_name_var, None),
        )
        for row, (label, variable, show) in enumerate(fields, start=1):
            ttk.Label(frame, text=f"{label}:").grid(row=row, column=0, sticky=tk.W, pady=4)
            entry = ttk.Entry(frame, textvariable=variable, width=60)
            if show:
                entry.configure(show=show)
            entry.grid(row=row, column=1, sticky=(tk.W, tk.E), pady=4, padx=(10, 0))
            entry.bind("<Return>", lambda _event: self.submit_login())

        ttk.Checkbutton(frame, text="Remember me", variable=self.remember_var).grid(
            row=len(fields) + 1, column=1, sticky=tk.W, pady=(8, 0), padx=(10, 0)
        )
        self.connect_button = ttk.Button(frame, text="Connect", command=self.submit_login)
        self.connect_button.grid(row=len(fields) + 2, column=1, sticky=tk.E, pady=(15, 0))
        return frame

    def _create_buckets_frame(self, parent: ttk.Frame) -> ttk.Frame:
        frame = ttk.Frame(parent)
        frame.columnconfigure(0, weight=1)
        frame.rowconfigure(1, weight=1)
        header = ttk.Frame(frame)
        header.grid(row=0, column=0, sticky=(tk.W, tk.E), pady=(0, 8))
        header.columnconfigure(0, weight=1)
        ttk.Label(header, text="Buckets", style="Heading.TLabel").grid(row=0, column=0, sticky=tk.W)
        ttk.Button(header, text="Refresh", command=self.controller.refresh).grid(row=0, column=1)

        self.buckets_tree = ttk.Treeview(frame, columns=("created",), selectmode="browse")
        self.buckets_tree.heading("#0", text="Name")
        self.buckets_tree.heading("created", text="Created")
        self.buckets_tree.column("created", width=140, anchor=tk.W)
        self.buckets_tree.grid(row=1, column=0, sticky=(tk.W, tk.E, tk.N, tk.S))
        self.buckets_tree.bind("<Double-1>", self._handle_bucket_double_click)
        self.buckets_tree.bind("<Return>", self._handle_bucket_double_click)
        return frame

    def _create_files_frame(self, parent: ttk.Frame) -> ttk.Frame:
        frame = ttk.Frame(parent)
        frame.columnconfigure(0, weight=1)
        frame.rowconfigure(2, weight=1)

        self.breadcrumb_frame = ttk.Frame(frame)
        self.breadcrumb_frame.grid(row=0, column=0, sticky=(tk.W, tk.E), pady=(0, 8))

        actions = ttk.Frame(frame)
        actions.grid(row=1, column=0, sticky=(tk.W, tk.E), pady=(0, 8))
        actions.columnconfigure(1, weight=1)
        ttk.Label(actions, text="Search:").grid(row=0, column=0, sticky=tk.W)
        self.search_var = tk.StringVar()
        self.search_var.trace_add("write", lambda *_: self.controller.set_search_term(self.search_var.get()))
        ttk.Entry(actions, textvariable=self.search_var).grid(row=0, column=1, sticky=(tk.W, tk.E), padx=(5, 10))
        self.upload_button = ttk.Button(actions, text="Upload...", command=self.upload_file)
        self.upload_button.grid(row=0, column=2, padx=(0, 5))
        self.download_button = ttk.Button(actions, text="Download", command=self.download_selected)
        self.download_button.grid(row=0, column=3, padx=(0, 5))
        self.delete_button = ttk.Button(actions, text="Delete", command=self.delete_selected)
        self.delete_button.grid(row=0, column=4, padx=(0, 5))
        ttk.Button(actions, text="Refresh", command=self.controller.refresh).grid(row=0, column=5)

        tree_frame = ttk.Frame(frame)
        tree_frame.grid(row=2, column=0, sticky=(tk.W, tk.E, tk.N, tk.S))
        tree_frame.columnconfigure(0, weight=1)
        tree_frame.rowconfigure(0, weight=1)
        self.files_tree = ttk.Treeview(tree_frame, columns=("size", "modified"), selectmode="browse")
        self.files_tree.column("size", width=100, anchor=tk.E)
        self.files_tree.column("modified", width=200, anchor=tk.W)
        self.files_tree.grid(row=0, column=0, sticky=(tk.W, tk.E, tk.N, tk.S))
        tree_scroll_y = ttk.Scrollbar(tree_frame, orient="vertical", command=self.files_tree.yview)
        tree_scroll_y.grid(row=0, column=1, sticky=(tk.N, tk.S))
        self.files_tree.configure(yscrollcommand=tree_scroll_y.set)
        self.files_tree.bind("<Double-1>", self._handle_file_double_click)
        self.files_tree.bind("<Return>", self._handle_file_double_click)
        self.files_tree.bind("<<TreeviewSelect>>", lambda _: self._refresh_selection_controls())

        self.empty_var = tk.StringVar()
        ttk.Label(frame, textvariable=self.empty_var, style="Muted.TLabel").grid(row=3, column=0, sticky=tk.W)
        return frame

    def _create_settings_frame(self, parent: ttk.Frame) -> ttk.Frame:
        frame = ttk.Frame(parent, padding="20")
        frame.columnconfigure(1, weight=1)
        ttk.Label(frame, text="Settings", style="Heading.TLabel").grid(row=0, column=0, sticky=tk.W, pady=(0, 15))

        self.settings_remember_var = tk.BooleanVar()
        ttk.Checkbutton(
            frame,
            text="Remember credentials on this computer",
            variable=self.settings_remember_var,
            command=self._save_settings,
        ).grid(row=1, column=0, columnspan=2, sticky=tk.W, pady=4)

        ttk.Label(frame, text="Theme:").grid(row=2, column=0, sticky=tk.W, pady=4)
        self.theme_var = tk.StringVar()
        theme_frame = ttk.Frame(frame)
        theme_frame.grid(row=2, column=1, sticky=tk.W, pady=4)
        for column, theme in enumerate(THEMES):
            ttk.Radiobutton(
                theme_frame,
                text=theme.title(),
                value=theme,
                variable=self.theme_var,
                command=self._save_settings,
            ).grid(row=0, column=column, padx=(0, 10))

        ttk.Label(frame, text="Default sort:").grid(row=3, column=0, sticky=tk.W, pady=4)
        self.sort_key_var = tk.StringVar()
        self.sort_direction_var = tk.StringVar()
        sort_frame = ttk.Frame(frame)
        sort_frame.grid(row=3, column=1, sticky=tk.W, pady=4)
        for column, (variable, values) in enumerate(
            (
                (self.sort_key_var, [key.value for key in SortKey]),
                (self.sort_direction_var, [direction.value for direction in SortDirection]),
            )
        ):
            combo = ttk.Combobox(sort_frame, textvariable=variable, values=values, state="readonly", width=16)
            combo.grid(row=0, column=column, padx=(0, 10))
            combo.bind("<<ComboboxSelected>>", lambda _: self._save_settings())

        ttk.Button(frame, text="Forget Saved Credentials", command=self._forget_credentials).grid(
            row=4, column=0, columnspan=2, sticky=tk.W, pady=(15, 0)
        )

        ttk.Label(frame, text=self._about.text(), style="Muted.TLabel", justify="left").grid(
            row=5, column=0, columnspan=2, sticky=tk.W, pady=(20, 0)
        )
        ttk.Button(frame, text="Close", command=self.controller.close_settings).grid(
            row=6, column=1, sticky=tk.E, pady=(20, 0)
        )
        return frame

    # -- rendering --------------------------------------------------------

    def _render(self, state: SessionState) -> None:
        self._frames[state.view].tkraise()
        connected = self.controller.is_connected and state.view != View.LOGIN
        credentials = self.controller.credentials
        self.connected_var.set(
            f"Connected as {mask_access_key(credentials.access_key_id)}" if connected and credentials else ""
        )
        toolbar_state = "normal" if connected else "disabled"
        self.buckets_button.configure(state=toolbar_state)
        self.logout_button.configure(state=toolbar_state)

        if state.loading:
            self.progress.start(10)
        else:
            self.progress.stop()
        self.connect_button.configure(state="disabled" if state.loading else "normal")
        self.error_var.set(state.error or "")
        self.status_var.set(state.status or ("Loading..." if state.loading else "Ready"))

        if state.view == View.BUCKETS:
            self._render_buckets(state)
        elif state.view == View.FILES:
            self._render_files(state)
        elif state.view == View.SETTINGS:
            self._render_settings()

    def _render_buckets(self, state: SessionState) -> None:
        self.buckets_tree.delete(*self.buckets_tree.get_children())
        for bucket in state.buckets:
            self.buckets_tree.insert("", tk.END, iid=bucket.name, text=bucket.name, values=(format_date(bucket.creation_date),))

    def _render_files(self, state: SessionState) -> None:
        self._render_breadcrumbs(state)
        if self.search_var.get() != state.search_term:
            self.search_var.set(state.search_term)
        for column, heading_id in ((SortKey.NAME, "#0"), (SortKey.SIZE, "size"), (SortKey.LAST_MODIFIED, "modified")):
            self.files_tree.heading(
                heading_id,
                text=column_heading(column, state.sort_key, state.sort_direction),
                command=lambda key=column: self.controller.sort_by(key),
            )

        self.files_tree.delete(*self.files_tree.get_children())
        self._row_targets.clear()
        if state.current_path:
            self.files_tree.insert("", tk.END, iid=PARENT_ROW, text="..", values=("", ""))
            self._row_targets[PARENT_ROW] = ("parent", "")
        for folder in self.controller.visible_folders():
            iid = f"folder:{folder}"
            self.files_tree.insert(
                "", tk.END, iid=iid, text=f"[{display_name(folder, state.current_path)}]", values=("", "")
            )
            self._row_targets[iid] = ("folder", folder)
        files = self.controller.visible_files()
        for entry in files:
            iid = f"file:{entry.key}"
            self.files_tree.insert(
                "",
                tk.END,
                iid=iid,
                text=display_name(entry.key, state.current_path),
                values=(format_size(entry.size), format_last_modified(entry.last_modified)),
            )
            self._row_targets[iid] = ("file", entry.key)

        if not files and not state.folders:
            self.empty_var.set("No files found." if state.search_term else "This folder is empty.")
        else:
            self.empty_var.set("")
        self._refresh_selection_controls()

    def _render_breadcrumbs(self, state: SessionState) -> None:
        for child in self.breadcrumb_frame.winfo_children():
            child.destroy()
        ttk.Button(
            self.breadcrumb_frame, text=state.current_bucket or "", command=lambda: self.controller.open_breadcrumb(-1)
        ).pack(side=tk.LEFT)
        for item in self.controller.visible_breadcrumbs():
            ttk.Label(self.breadcrumb_frame, text="›", style="Muted.TLabel").pack(side=tk.LEFT, padx=2)
            if item is ELLIPSIS:
                ttk.Label(self.breadcrumb_frame, text=ELLIPSIS.label, style="Muted.TLabel").pack(side=tk.LEFT)
                continue
            ttk.Button(
                self.breadcrumb_frame,
                text=item.label,
                command=lambda index=item.index: self.controller.open_breadcrumb(index),
            ).pack(side=tk.LEFT)

    def _render_settings(self) -> None:
        settings = self.controller.settings
        self.settings_remember_var.set(settings.remember_credentials)
        self.theme_var.set(settings.theme)
        self.sort_key_var.set(settings.default_sort_key)
        self.sort_direction_var.set(settings.default_sort_direction)

    def _refresh_selection_controls(self) -> None:
        target = self._selected_target()
        state = "normal" if target and target[0] == "file" else "disabled"
        self.download_button.configure(state=state)
        self.delete_button.configure(state=state)

    def _apply_theme(self, theme: str) -> None:
        palette = PALETTES.get(theme, PALETTES["dark"])
        style = ttk.Style(self.root)
        self.root.configure(background=palette["background"])
        style.configure("TFrame", background=palette["background"])
        style.configure("TLabel", background=palette["background"], foreground=palette["foreground"])
        style.configure("TCheckbutton", background=palette["background"], foreground=palette["foreground"])
        style.configure("TRadiobutton", background=palette["background"], foreground=palette["foreground"])
        style.configure("Heading.TLabel", font=("TkDefaultFont", 14, "bold"))
        style.configure("Muted.TLabel", foreground=palette["muted"])
        style.configure("Error.TLabel", foreground=palette["error"])

    # -- actions ------------------------------------------------------------

    def _prefill_login(self) -> None:
        saved = self.controller.load_saved_credentials()
        if saved is None:
            return
        self.endpoint_var.set(saved.endpoint)
        self.access_key_var.set(saved.access_key_id)
        self.secret_key_var.set(saved.secret_access_key)
        self.bucket_name_var.set(saved.bucket_name or "")
        self.remember_var.set(True)

    def submit_login(self) -> None:
        credentials = Credentials(
            endpoint=self.endpoint_var.get(),
            access_key_id=self.access_key_var.get(),
            secret_access_key=self.secret_key_var.get(),
            bucket_name=self.bucket_name_var.get() or None,
        )
        self.controller.login(credentials, remember=self.remember_var.get())

    def upload_file(self) -> None:
        file_path = filedialog.askopenfilename(parent=self.root, title="Choose File to Upload")
        if not file_path:
            return
        try:
            file_size = os.path.getsize(file_path)
        except OSError as exc:
            messagebox.showerror("Error", f"Unable to read file: {exc}")
            return
        dialog = self._start_transfer_dialog(
            title="Uploading",
            description=f"Uploading {os.path.basename(file_path)}",
            total_bytes=file_size,
        )
        self.controller.upload_file(
            file_path,
            on_progress=dialog.update_progress,
            cancel_requested=dialog.cancel_requested,
            on_done=self._finish_transfer,
        )

    def download_selected(self) -> None:
        target = self._selected_target()
        if not target or target[0] != "file":
            return
        key = target[1]
        size = next((entry.size for entry in self.controller.state.files if entry.key == key), None)
        dialog_holder: dict[str, TransferDialog] = {}

        def progress(total: int) -> None:
            if "dialog" not in dialog_holder:
                dialog_holder["dialog"] = self._start_transfer_dialog(
                    title="Downloading", description=f"Downloading {key}", total_bytes=size
                )
            dialog_holder["dialog"].update_progress(total)

        def cancel_requested() -> bool:
            dialog = dialog_holder.get("dialog")
            return bool(dialog and dialog.cancel_requested())

        self.controller.download_file(
            key,
            on_progress=progress,
            cancel_requested=cancel_requested,
            on_done=self._finish_transfer,
        )

    def delete_selected(self) -> None:
        target = self._selected_target()
        if not target or target[0] != "file":
            return
        key = target[1]
        if not messagebox.askyesno("Delete", f'Delete "{key}"?', parent=self.root):
            return
        self.controller.delete_file(key)

    def _finish_transfer(self, result: OperationResult) -> None:
        if self._transfer_dialog is not None:
            self._transfer_dialog.close()
            self._transfer_dialog = None
        LOGGER.debug("Transfer finished: success=%s canceled=%s", result.success, result.canceled)

    def _start_transfer_dialog(self, *, title: str, description: str, total_bytes: int | None) -> "TransferDialog":
        if self._transfer_dialog is not None:
            self._transfer_dialog.close()
        self._transfer_dialog = TransferDialog(
            self.root, title=title, description=description, total_bytes=total_bytes
        )
        return self._transfer_dialog

    def _save_settings(self) -> None:
        settings = replace(
            self.controller.settings,
            remember_credentials=bool(self.settings_remember_var.get()),
            theme=self.theme_var.get() or "dark",
            default_sort_key=self.sort_key_var.get() or SortKey.LAST_MODIFIED.value,
            default_sort_direction=self.sort_direction_var.get() or SortDirection.DESC.value,
        )
        self.controller.update_settings(settings)
        self.remember_var.set(settings.remember_credentials)
        self._apply_theme(settings.theme)

    def _forget_credentials(self) -> None:
        result = self.controller.forget_credentials()
        if not result.success:
            messagebox.showerror("Error", result.error or "Unable to delete saved credentials")
            return
        messagebox.showinfo("Settings", "Saved credentials removed.", parent=self.root)

    def _ask_save_path(self, suggested_name: str) -> str | None:
        path = filedialog.asksaveasfilename(parent=self.root, title="Save File", initialfile=suggested_name)
        return path or None

    def _selected_target(self) -> tuple[str, str] | None:
        selection = self.files_tree.selection()
        if not selection:
            return None
        return self._row_targets.get(selection[0])

    def _handle_bucket_double_click(self, _event) -> None:
        selection = self.buckets_tree.selection()
        if selection:
            self.controller.select_bucket(selection[0])

    def _handle_file_double_click(self, _event) -> None:
        target = self._selected_target()
        if not target:
            return
        kind, value = target
        if kind == "parent":
            self.controller.go_up()
        elif kind == "folder":
            self.controller.open_folder(value)
        else:
            self.download_selected()


class TransferDialog:
    """Modal progress window for one upload or download.

    Cancel only raises a flag; the transfer thread polls it through
    :meth:`cancel_requested` between chunks.
    """

    def __init__(self, parent: tk.Tk, *, title: str, description: str, total_bytes: int | None = None):
        self._total = total_bytes if total_bytes and total_bytes > 0 else None
        self._cancel = threading.Event()
        self._closed = False

        self.top = tk.Toplevel(parent)
        self.top.title(title)
        self.top.transient(parent)
        self.top.resizable(False, False)
        self.top.protocol("WM_DELETE_WINDOW", self._on_cancel)

        body = ttk.Frame(self.top, padding="15")
        body.pack(fill=tk.BOTH, expand=True)
        ttk.Label(body, text=description, wraplength=360).pack(anchor=tk.W)
        self.bar = ttk.Progressbar(
            body,
            length=320,
            mode="determinate" if self._total else "indeterminate",
            maximum=self._total or 100,
        )
        self.bar.pack(fill=tk.X, pady=5)
        self.detail_var = tk.StringVar(value="Waiting for data...")
        ttk.Label(body, textvariable=self.detail_var, style="Muted.TLabel").pack(anchor=tk.W)
        self.cancel_button = ttk.Button(body, text="Cancel", command=self._on_cancel)
        self.cancel_button.pack(anchor=tk.E, pady=(15, 0))

        if self._total is None:
            self.bar.start(10)
        self.top.grab_set()

    def update_progress(self, transferred: int) -> None:
        if self._closed or self._cancel.is_set():
            return
        if self._total is None:
            self.detail_var.set(f"{format_size(transferred)} so far")
            return
        done = min(max(transferred, 0), self._total)
        self.bar["value"] = done
        self.detail_var.set(f"{format_size(done)} / {format_size(self._total)} ({done / self._total:.0%})")

    def cancel_requested(self) -> bool:
        return self._cancel.is_set()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.bar.stop()
        self.top.grab_release()
        self.top.destroy()

    def _on_cancel(self) -> None:
        if self._cancel.is_set():
            return
        self._cancel.set()
        self.detail_var.set("Cancelling...")
        self.cancel_button.state(["disabled"])
