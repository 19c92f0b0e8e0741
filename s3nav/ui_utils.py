from __future__ import annotations
"""UI-agnostic helpers for formatting listings and package metadata."""
from dataclasses import dataclass
from datetime import datetime
from importlib.metadata import PackageNotFoundError, metadata, version

from .models import SortDirection, SortKey

DIST_NAME = "s3nav"
FALLBACK_SUMMARY = "Browse S3-compatible object storage as folders."

COLUMN_TITLES = {
    SortKey.NAME: "Name",
    SortKey.SIZE: "Size",
    SortKey.LAST_MODIFIED: "Last Modified",
}


@dataclass(frozen=True)
class AboutInfo:
    name: str
    version: str
    summary: str

    def text(self) -> str:
        heading = f"{self.name} {self.version}".strip()
        return f"{heading}\n{self.summary}" if self.summary else heading


def load_about_info(dist_name: str = DIST_NAME) -> AboutInfo:
    """Describe the installed distribution for the settings About box."""

    try:
        dist_metadata = metadata(dist_name)
        return AboutInfo(
            name=dist_metadata.get("Name") or dist_name,
            version=version(dist_name),
            summary=dist_metadata.get("Summary") or "",
        )
    except PackageNotFoundError:
        # Running from a source checkout.
        return AboutInfo(name=dist_name, version="", summary=FALLBACK_SUMMARY)


def format_size(size: int | None) -> str:
    if size is None:
        return "-"
    value = max(size, 0)
    if value < 1024:
        return f"{value} B"
    for unit in ("KB", "MB", "GB", "TB"):
        value /= 1024
        if value < 1024 or unit == "TB":
            break
    return f"{value:.1f} {unit}"


def format_last_modified(value: datetime | None) -> str:
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M:%S %Z").rstrip()


def format_date(value: datetime | None) -> str:
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d")


def column_heading(column: SortKey, active: SortKey, direction: SortDirection) -> str:
    title = COLUMN_TITLES[column]
    if column != active:
        return title
    return f"{title} {'▲' if direction == SortDirection.ASC else '▼'}"


def mask_access_key(access_key_id: str, visible: int = 16) -> str:
    if len(access_key_id) <= visible:
        return access_key_id
    return f"{access_key_id[:visible]}..."
