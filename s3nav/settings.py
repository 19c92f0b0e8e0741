from __future__ import annotations
"""Application settings persistence helpers."""

from dataclasses import asdict, dataclass
import json
from pathlib import Path

from .models import SortDirection, SortKey

THEMES = ("dark", "light")


@dataclass
class AppSettings:
    """Simple container for persistent app settings."""

    remember_credentials: bool = False
    theme: str = "dark"
    default_sort_key: str = SortKey.LAST_MODIFIED.value
    default_sort_direction: str = SortDirection.DESC.value

    @property
    def sort_key(self) -> SortKey:
        return SortKey(self.default_sort_key)

    @property
    def sort_direction(self) -> SortDirection:
        return SortDirection(self.default_sort_direction)


def _choice(value: object, allowed: tuple[str, ...], default: str) -> str:
    return value if isinstance(value, str) and value in allowed else default


class SettingsStorage:
    """JSON-backed persistence for :class:`AppSettings`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".s3nav_settings.json"
        self._path = Path(storage_path)

    def load(self) -> AppSettings:
        if not self._path.exists():
            return AppSettings()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return AppSettings()
        if not isinstance(data, dict):
            return AppSettings()
        remember = data.get("remember_credentials", AppSettings.remember_credentials)
        return AppSettings(
            remember_credentials=remember if isinstance(remember, bool) else AppSettings.remember_credentials,
            theme=_choice(data.get("theme"), THEMES, AppSettings.theme),
            default_sort_key=_choice(
                data.get("default_sort_key"),
                tuple(key.value for key in SortKey),
                AppSettings.default_sort_key,
            ),
            default_sort_direction=_choice(
                data.get("default_sort_direction"),
                tuple(direction.value for direction in SortDirection),
                AppSettings.default_sort_direction,
            ),
        )

    def save(self, settings: AppSettings) -> None:
        payload = asdict(settings)
        payload["theme"] = _choice(settings.theme, THEMES, AppSettings.theme)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            return
