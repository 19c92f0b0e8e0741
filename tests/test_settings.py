import json
import tempfile
import unittest
from pathlib import Path

from s3nav.models import SortDirection, SortKey
from s3nav.settings import AppSettings, SettingsStorage


class SettingsStorageTests(unittest.TestCase):
    def test_load_returns_defaults_when_missing(self):
        with tempfile.TemporaryDirectory() as tmp:
            storage = SettingsStorage(Path(tmp) / "settings.json")

            settings = storage.load()

            self.assertEqual(AppSettings(), settings)
            self.assertEqual(SortKey.LAST_MODIFIED, settings.sort_key)
            self.assertEqual(SortDirection.DESC, settings.sort_direction)

    def test_load_sanitizes_invalid_values(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "settings.json"
            payload = {
                "remember_credentials": "yes",
                "theme": "neon",
                "default_sort_key": "colour",
                "default_sort_direction": 1,
            }
            path.write_text(json.dumps(payload), encoding="utf-8")

            settings = SettingsStorage(path).load()

            self.assertEqual(AppSettings(), settings)

    def test_load_ignores_non_object_payload(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "settings.json"
            path.write_text("[1, 2]", encoding="utf-8")

            self.assertEqual(AppSettings(), SettingsStorage(path).load())

    def test_save_then_load(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "nested" / "settings.json"
            storage = SettingsStorage(path)
            settings = AppSettings(
                remember_credentials=True,
                theme="light",
                default_sort_key="size",
                default_sort_direction="asc",
            )

            storage.save(settings)

            self.assertEqual(settings, storage.load())
            self.assertEqual(SortKey.SIZE, storage.load().sort_key)

    def test_save_replaces_unknown_theme(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "settings.json"

            SettingsStorage(path).save(AppSettings(theme="neon"))

            saved = json.loads(path.read_text(encoding="utf-8"))
            self.assertEqual("dark", saved["theme"])


if __name__ == "__main__":
    unittest.main()
