"""
Tests for annostudio/dataset_utils.py: search, pagination, dashboard feeds, sharing.
"""

import unittest

from annostudio import dataset_utils as du
from annostudio.models import Dataset, SharedUser, User


def _ds(i, name, dtype="text", created="2024-01-01T00:00:00Z", description=""):
    return Dataset.model_validate(
        {"_id": f"d{i}", "name": name, "description": description, "datasetType": dtype, "createdAt": created}
    )


class TestSearch(unittest.TestCase):

    def setUp(self):
        self.items = [
            _ds(1, "Customer Reviews", description="product feedback"),
            _ds(2, "Street Photos", dtype="image"),
            _ds(3, "Call recordings", dtype="audio"),
        ]

    def test_case_insensitive_on_all_fields(self):
        self.assertEqual([d.id for d in du.filter_datasets(self.items, "REVIEW")], ["d1"])
        self.assertEqual([d.id for d in du.filter_datasets(self.items, "feedback")], ["d1"])
        self.assertEqual([d.id for d in du.filter_datasets(self.items, "image")], ["d2"])

    def test_blank_query_returns_all(self):
        self.assertEqual(len(du.filter_datasets(self.items, "  ")), 3)


class TestPagination(unittest.TestCase):

    def test_total_pages(self):
        self.assertEqual(du.total_pages(0, 6), 0)
        self.assertEqual(du.total_pages(6, 6), 1)
        self.assertEqual(du.total_pages(7, 6), 2)

    def test_page_slice(self):
        items = list(range(14))
        self.assertEqual(du.page_slice(items, 1, 6), [0, 1, 2, 3, 4, 5])
        self.assertEqual(du.page_slice(items, 3, 6), [12, 13])
        self.assertEqual(du.page_slice(items, 99, 6), [12, 13])

    def test_visible_pages_small(self):
        self.assertEqual(du.visible_pages(1, 0), [])
        self.assertEqual(du.visible_pages(1, 1), [1])
        self.assertEqual(du.visible_pages(2, 4), [1, 2, 3, 4])

    def test_visible_pages_with_ellipsis(self):
        self.assertEqual(du.visible_pages(1, 10), [1, 2, 3, du.ELLIPSIS, 10])
        self.assertEqual(du.visible_pages(5, 10), [1, du.ELLIPSIS, 3, 4, 5, 6, 7, du.ELLIPSIS, 10])
        self.assertEqual(du.visible_pages(10, 10), [1, du.ELLIPSIS, 8, 9, 10])


class TestDashboardFeeds(unittest.TestCase):

    def setUp(self):
        self.items = [
            _ds(i, f"ds{i}", created=f"2024-01-{i:02d}T10:00:00Z", dtype="image" if i % 2 else "text")
            for i in range(1, 8)
        ]

    def test_recent_datasets(self):
        self.assertEqual([d.id for d in du.recent_datasets(self.items)], ["d7", "d6", "d5", "d4", "d3"])

    def test_activity_feed(self):
        feed = du.activity_feed(self.items, limit=3)
        self.assertEqual([a.id for a in feed], ["dataset-d7", "dataset-d6", "dataset-d5"])
        self.assertEqual(feed[0].type, "dataset_created")
        self.assertEqual(feed[0].description, 'Created dataset "ds7"')

    def test_type_counts(self):
        counts = du.type_counts(self.items)
        self.assertEqual(counts, {"text": 3, "image": 4, "audio": 0, "multimodal": 0})


class TestSharing(unittest.TestCase):

    def setUp(self):
        self.users = [
            User(id="owner", email="o@x.io"),
            User(id="me", email="me@x.io"),
            User(id="u1", email="a@x.io", first_name="Ann"),
            User(id="u2", email="b@x.io", first_name="Ben"),
        ]

    def test_shareable_excludes_owner_self_and_shared(self):
        shared = [SharedUser(user_id="u1", email="a@x.io")]
        out = du.shareable_users(self.users, shared, current_user_id="me", owner_id="owner")
        self.assertEqual([u.id for u in out], ["u2"])

    def test_add_and_remove(self):
        shared = du.add_shared_user([], self.users[2])
        shared = du.add_shared_user(shared, self.users[2])
        self.assertEqual([s.user_id for s in shared], ["u1"])
        self.assertEqual(du.remove_shared_user(shared, "u1"), [])

    def test_filter_users(self):
        self.assertEqual([u.id for u in du.filter_users(self.users, "ben")], ["u2"])


class TestFormatDate(unittest.TestCase):

    def test_iso_and_missing(self):
        self.assertEqual(du.format_date("2024-03-05T08:00:00Z"), "Mar 05, 2024")
        self.assertEqual(du.format_date(None), "-")
        self.assertEqual(du.format_date("yesterday"), "yesterday")


if __name__ == "__main__":
    unittest.main()
