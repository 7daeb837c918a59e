"""
Tests for the SQLite release store.
"""

from datetime import datetime

import pytest


def _publish_fields(name="First Edition"):
    return {
        "status": "published",
        "release_name": name,
        "release_notes": None,
        "published_at": datetime(2026, 1, 1, 12, 0, 0),
    }


class TestCompareAndSetPublished:
    def test_publishes_unpublished_release(self, database, make_release):
        release = make_release()

        updated = database.compare_and_set_published(release["id"], "unpublished", _publish_fields())

        assert updated["status"] == "published"
        assert updated["release_name"] == "First Edition"
        assert updated["published_at"] == datetime(2026, 1, 1, 12, 0, 0)

    def test_second_write_does_not_match(self, database, make_release):
        release = make_release()

        assert database.compare_and_set_published(release["id"], "unpublished", _publish_fields("A")) is not None
        assert database.compare_and_set_published(release["id"], "unpublished", _publish_fields("B")) is None
        assert database.get_release(release["uuid"])["release_name"] == "A"

    def test_null_status_counts_as_unpublished(self, database, make_release):
        release = make_release(status=None)
        assert database.compare_and_set_published(release["id"], "unpublished", _publish_fields()) is not None

    def test_rejects_other_columns(self, database, make_release):
        release = make_release()
        with pytest.raises(ValueError):
            database.compare_and_set_published(release["id"], "unpublished", {"user_id": "user-2"})


class TestReleaseReads:
    def test_print_assets_joined(self, database, make_release):
        release = make_release(print_edition=True)

        assert release["print_cover"]["file_name"] == "cover.pdf"
        assert release["print_file"]["file_name"] == "interior.pdf"

    def test_digital_release_has_no_print_assets(self, database, make_release):
        release = make_release()
        assert release["print_cover"] is None
        assert release["print_file"] is None

    def test_list_releases_newest_first(self, database, book, make_release):
        older = make_release(created_at=datetime(2025, 1, 1))
        newer = make_release(created_at=datetime(2026, 1, 1))

        total, rows = database.list_releases(book["id"], limit=10, offset=0)

        assert total == 2
        assert [row["uuid"] for row in rows] == [newer["uuid"], older["uuid"]]

    def test_cover_and_file_joined(self, database, make_release):
        release = make_release(ebook=True)

        assert release["cover"]["aspect_ratio"] == "0.75"
        assert release["cover"]["blurhash"] == "LEHV6nWB2yk8"
        assert release["file"]["file_name"] == "book.epub"
        assert database.get_release(release["uuid"])["cover"]["uuid"] == release["cover"]["uuid"]


class TestReleaseCategories:
    def test_categories_ordered_by_key(self, database, make_release):
        release = make_release()
        other = make_release()
        for key in ["poetry", "drama"]:
            category = database.save_category(key, key.title())
            database.add_release_category(release["id"], category["id"])
        database.add_release_category(other["id"], database.save_category("essays", "Essays")["id"])

        total, rows = database.list_release_categories(release["id"], limit=10, offset=0)

        assert total == 2
        assert [row["key"] for row in rows] == ["drama", "poetry"]

    def test_adding_a_category_twice_is_ignored(self, database, make_release):
        release = make_release()
        category = database.save_category("drama", "Drama")

        database.add_release_category(release["id"], category["id"])
        database.add_release_category(release["id"], category["id"])

        assert database.list_release_categories(release["id"], limit=10, offset=0)[0] == 1
