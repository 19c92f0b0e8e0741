import unittest
from datetime import datetime, timezone

from s3nav.listing import filter_entries, project, sort_entries, toggle_sort
from s3nav.models import ObjectEntry, SortDirection, SortKey

B = ObjectEntry(key="b.txt", size=200, last_modified=datetime(2024, 1, 2, tzinfo=timezone.utc))
A = ObjectEntry(key="a.txt", size=100, last_modified=datetime(2024, 1, 3, tzinfo=timezone.utc))


class SortTests(unittest.TestCase):
    def test_size_ascending(self):
        self.assertEqual([A, B], sort_entries([B, A], SortKey.SIZE, SortDirection.ASC))

    def test_name_both_directions(self):
        self.assertEqual([A, B], sort_entries([B, A], SortKey.NAME, SortDirection.ASC))
        self.assertEqual([B, A], sort_entries([A, B], SortKey.NAME, SortDirection.DESC))

    def test_names_differing_only_in_case_stay_together(self):
        entries = [ObjectEntry(key=name) for name in ("b.txt", "B.txt", "a.txt", "A.txt")]

        ordered = sort_entries(entries, SortKey.NAME, SortDirection.ASC)

        self.assertEqual(["a.txt", "A.txt", "b.txt", "B.txt"], [entry.key for entry in ordered])

    def test_last_modified_is_chronological(self):
        self.assertEqual([B, A], sort_entries([A, B], SortKey.LAST_MODIFIED, SortDirection.ASC))

    def test_missing_timestamps_sort_first(self):
        undated = ObjectEntry(key="c.txt", size=1)
        self.assertEqual(
            [undated, B, A],
            sort_entries([A, undated, B], SortKey.LAST_MODIFIED, SortDirection.ASC),
        )

    def test_toggle_same_column_flips_direction(self):
        self.assertEqual(
            (SortKey.SIZE, SortDirection.DESC),
            toggle_sort(SortKey.SIZE, SortDirection.ASC, SortKey.SIZE),
        )
        self.assertEqual(
            (SortKey.SIZE, SortDirection.ASC),
            toggle_sort(SortKey.SIZE, SortDirection.DESC, SortKey.SIZE),
        )

    def test_toggle_new_column_resets_to_ascending(self):
        self.assertEqual(
            (SortKey.SIZE, SortDirection.ASC),
            toggle_sort(SortKey.NAME, SortDirection.DESC, SortKey.SIZE),
        )


class FilterTests(unittest.TestCase):
    def test_filter_is_case_insensitive_substring(self):
        entries = [ObjectEntry(key="Reports/Q1.PDF"), ObjectEntry(key="notes.txt")]

        self.assertEqual([entries[0]], filter_entries(entries, "q1.pdf"))
        self.assertEqual(entries, filter_entries(entries, ""))

    def test_project_filters_then_sorts(self):
        entries = [B, A, ObjectEntry(key="other.bin", size=5)]

        self.assertEqual(
            [B, A],
            project(entries, search_term=".TXT", key=SortKey.NAME, direction=SortDirection.DESC),
        )


if __name__ == "__main__":
    unittest.main()
