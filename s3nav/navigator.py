from __future__ import annotations
"""Pure helpers that map flat S3 keys onto a folder hierarchy."""
from dataclasses import dataclass
from typing import Iterable, Union

from .models import ObjectEntry

DELIMITER = "/"
VISIBLE_CRUMBS = 3


@dataclass(frozen=True)
class Breadcrumb:
    label: str
    target_prefix: str
    index: int


class _Ellipsis:
    """Non-interactive marker standing in for collapsed breadcrumbs."""

    label = "../"

    def __repr__(self) -> str:
        return "ELLIPSIS"


ELLIPSIS = _Ellipsis()

CrumbItem = Union[Breadcrumb, _Ellipsis]


def segments(path: str) -> list[str]:
    return [part for part in path.split(DELIMITER) if part]


def descend(current_path: str, folder_prefix: str) -> str:
    # Common prefixes from the provider are already full paths from the root.
    return folder_prefix


def ascend_one(current_path: str) -> str:
    parts = segments(current_path)[:-1]
    return DELIMITER.join(parts) + DELIMITER if parts else ""


def breadcrumbs(current_path: str) -> list[Breadcrumb]:
    parts = segments(current_path)
    return [
        Breadcrumb(
            label=part,
            target_prefix=DELIMITER.join(parts[: index + 1]) + DELIMITER,
            index=index,
        )
        for index, part in enumerate(parts)
    ]


def breadcrumb_target(current_path: str, index: int) -> str:
    """Return the prefix a breadcrumb click navigates to.

    Index ``-1`` is the bucket-root crumb.
    """

    if index == -1:
        return ""
    crumbs = breadcrumbs(current_path)
    if index < 0 or index >= len(crumbs):
        raise IndexError(f"No breadcrumb at index {index} for '{current_path}'")
    return crumbs[index].target_prefix


def visible_breadcrumbs(current_path: str, limit: int = VISIBLE_CRUMBS) -> list[CrumbItem]:
    crumbs = breadcrumbs(current_path)
    if len(crumbs) <= limit:
        return list(crumbs)
    return [ELLIPSIS, *crumbs[-limit:]]


def partition_listing(
    prefix: str,
    entries: Iterable[ObjectEntry],
    common_prefixes: Iterable[str],
) -> tuple[list[ObjectEntry], list[str]]:
    """Split a delimited listing into files and folders.

    Directory markers (keys equal to the prefix) and anything outside the
    prefix are dropped.
    """

    files = [entry for entry in entries if entry.key != prefix and entry.key.startswith(prefix)]
    folders = [folder for folder in common_prefixes if folder != prefix and folder.startswith(prefix)]
    return files, folders


def display_name(key: str, current_path: str) -> str:
    relative = key[len(current_path):] if current_path and key.startswith(current_path) else key
    return relative.rstrip(DELIMITER) if relative.endswith(DELIMITER) else relative


def basename(key: str) -> str:
    cleaned = key.rstrip(DELIMITER)
    return cleaned.rsplit(DELIMITER, 1)[-1] if cleaned else ""
