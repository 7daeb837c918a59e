"""
SQLite persistence for store books, releases, their assets and categories.

This module provides the release store the publication workflow relies on.
Reads return plain dictionaries; the only mutation the workflow performs is
the conditional ``compare_and_set_published`` write.
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from .models import ReleaseStatus


# Default database path
DEFAULT_DB_PATH = Path("data/bookstore.db")

# Columns a publish may overwrite
PUBLISH_FIELDS = ("status", "release_name", "release_notes", "published_at")

_RELEASE_SELECT = """
    SELECT r.*, b.uuid AS store_book_uuid,
           c.uuid AS cover_uuid, c.aspect_ratio AS cover_aspect_ratio, c.blurhash AS cover_blurhash,
           f.uuid AS file_uuid, f.file_name AS file_file_name
    FROM store_book_releases r
    JOIN store_books b ON b.id = r.store_book_id
    LEFT JOIN store_book_covers c ON c.id = r.cover_id
    LEFT JOIN store_book_files f ON f.id = r.file_id
"""

_RELEASE_WITH_PRINT_ASSETS_SELECT = """
    SELECT r.*, b.uuid AS store_book_uuid,
           c.uuid AS cover_uuid, c.aspect_ratio AS cover_aspect_ratio, c.blurhash AS cover_blurhash,
           f.uuid AS file_uuid, f.file_name AS file_file_name,
           pc.uuid AS print_cover_uuid, pc.file_name AS print_cover_file_name,
           pf.uuid AS print_file_uuid, pf.file_name AS print_file_file_name
    FROM store_book_releases r
    JOIN store_books b ON b.id = r.store_book_id
    LEFT JOIN store_book_covers c ON c.id = r.cover_id
    LEFT JOIN store_book_files f ON f.id = r.file_id
    LEFT JOIN store_book_print_covers pc ON pc.id = r.print_cover_id
    LEFT JOIN store_book_print_files pf ON pf.id = r.print_file_id
"""


def _ensure_db_dir(db_path: Path) -> None:
    """Ensure the database directory exists."""
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _serialize_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Serialize datetime to ISO format string."""
    return dt.isoformat() if dt else None


def _deserialize_datetime(s: Optional[str]) -> Optional[datetime]:
    """Deserialize ISO format string to datetime."""
    if not s:
        return None
    return datetime.fromisoformat(s)


class BookstoreDatabase:
    """
    SQLite database for store books and their releases.

    Thread-safe: every call opens its own connection and SQLite serializes
    writers; the publish write takes the write lock up front.
    """

    def __init__(self, db_path: Path = DEFAULT_DB_PATH):
        self.db_path = Path(db_path)
        _ensure_db_dir(self.db_path)
        self._init_db()

    @contextmanager
    def _get_connection(self):
        """Get a database connection with proper settings."""
        conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS store_books (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    uuid TEXT UNIQUE NOT NULL,
                    user_id TEXT NOT NULL,
                    status TEXT
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS store_book_print_covers (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    uuid TEXT UNIQUE NOT NULL,
                    user_id TEXT NOT NULL,
                    file_name TEXT
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS store_book_print_files (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    uuid TEXT UNIQUE NOT NULL,
                    user_id TEXT NOT NULL,
                    file_name TEXT
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS store_book_covers (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    uuid TEXT UNIQUE NOT NULL,
                    user_id TEXT NOT NULL,
                    aspect_ratio TEXT,
                    blurhash TEXT
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS store_book_files (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    uuid TEXT UNIQUE NOT NULL,
                    user_id TEXT NOT NULL,
                    file_name TEXT
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS store_book_releases (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    uuid TEXT UNIQUE NOT NULL,
                    user_id TEXT NOT NULL,
                    store_book_id INTEGER NOT NULL REFERENCES store_books(id),
                    status TEXT,
                    release_name TEXT,
                    release_notes TEXT,
                    published_at TEXT,
                    created_at TEXT NOT NULL,
                    title TEXT,
                    description TEXT,
                    price INTEGER NOT NULL DEFAULT 0,
                    isbn TEXT,
                    cover_id INTEGER REFERENCES store_book_covers(id),
                    file_id INTEGER REFERENCES store_book_files(id),
                    print_cover_id INTEGER REFERENCES store_book_print_covers(id),
                    print_file_id INTEGER REFERENCES store_book_print_files(id)
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_releases_store_book
                ON store_book_releases(store_book_id, created_at DESC)
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS categories (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    uuid TEXT UNIQUE NOT NULL,
                    key TEXT UNIQUE NOT NULL,
                    name TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS store_book_release_categories (
                    release_id INTEGER NOT NULL REFERENCES store_book_releases(id),
                    category_id INTEGER NOT NULL REFERENCES categories(id),
                    PRIMARY KEY (release_id, category_id)
                )
            """)

    def save_store_book(self, user_id: str, status: Optional[str], uuid: Optional[str] = None) -> Dict[str, Any]:
        """
        Insert a store book.

        Args:
            user_id: The author's user id
            status: Book status (unpublished, review, published, hidden)
            uuid: Optional public identifier, generated if omitted

        Returns:
            The stored book as a dictionary
        """
        uuid = uuid or str(uuid4())
        with self._get_connection() as conn:
            cursor = conn.execute(
                "INSERT INTO store_books (uuid, user_id, status) VALUES (?, ?, ?)",
                (uuid, str(user_id), status),
            )
            return {"id": cursor.lastrowid, "uuid": uuid, "user_id": str(user_id), "status": status}

    def _save_file_asset(self, table: str, user_id: str, file_name: Optional[str], uuid: Optional[str]) -> Dict[str, Any]:
        uuid = uuid or str(uuid4())
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"INSERT INTO {table} (uuid, user_id, file_name) VALUES (?, ?, ?)",
                (uuid, str(user_id), file_name),
            )
            return {"id": cursor.lastrowid, "uuid": uuid, "file_name": file_name}

    def save_print_cover(self, user_id: str, file_name: Optional[str] = None, uuid: Optional[str] = None) -> Dict[str, Any]:
        return self._save_file_asset("store_book_print_covers", user_id, file_name, uuid)

    def save_print_file(self, user_id: str, file_name: Optional[str] = None, uuid: Optional[str] = None) -> Dict[str, Any]:
        return self._save_file_asset("store_book_print_files", user_id, file_name, uuid)

    def save_cover(
        self,
        user_id: str,
        aspect_ratio: Optional[str] = None,
        blurhash: Optional[str] = None,
        uuid: Optional[str] = None,
    ) -> Dict[str, Any]:
        uuid = uuid or str(uuid4())
        with self._get_connection() as conn:
            cursor = conn.execute(
                "INSERT INTO store_book_covers (uuid, user_id, aspect_ratio, blurhash) VALUES (?, ?, ?, ?)",
                (uuid, str(user_id), aspect_ratio, blurhash),
            )
            return {"id": cursor.lastrowid, "uuid": uuid, "aspect_ratio": aspect_ratio, "blurhash": blurhash}

    def save_file(self, user_id: str, file_name: Optional[str] = None, uuid: Optional[str] = None) -> Dict[str, Any]:
        return self._save_file_asset("store_book_files", user_id, file_name, uuid)

    def save_category(self, key: str, name: str, uuid: Optional[str] = None) -> Dict[str, Any]:
        uuid = uuid or str(uuid4())
        with self._get_connection() as conn:
            cursor = conn.execute(
                "INSERT INTO categories (uuid, key, name) VALUES (?, ?, ?)",
                (uuid, key, name),
            )
            return {"id": cursor.lastrowid, "uuid": uuid, "key": key, "name": name}

    def add_release_category(self, release_id: int, category_id: int) -> None:
        with self._get_connection() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO store_book_release_categories (release_id, category_id) VALUES (?, ?)",
                (release_id, category_id),
            )

    def save_release(self, release_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a release record.

        Args:
            release_data: Dictionary with at least ``user_id`` and ``store_book_id``

        Returns:
            The stored release as returned by get_release
        """
        uuid = release_data.get("uuid") or str(uuid4())
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO store_book_releases (
                    uuid, user_id, store_book_id, status, release_name,
                    release_notes, published_at, created_at, title,
                    description, price, isbn, cover_id, file_id,
                    print_cover_id, print_file_id
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                uuid,
                str(release_data["user_id"]),
                release_data["store_book_id"],
                release_data.get("status"),
                release_data.get("release_name"),
                release_data.get("release_notes"),
                _serialize_datetime(release_data.get("published_at")),
                _serialize_datetime(release_data.get("created_at") or datetime.now(timezone.utc)),
                release_data.get("title"),
                release_data.get("description"),
                release_data.get("price") or 0,
                release_data.get("isbn"),
                release_data.get("cover_id"),
                release_data.get("file_id"),
                release_data.get("print_cover_id"),
                release_data.get("print_file_id"),
            ))
        return self.get_release(uuid)  # type: ignore[return-value]

    def get_store_book(self, store_book_id: int) -> Optional[Dict[str, Any]]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM store_books WHERE id = ?", (store_book_id,)
            ).fetchone()
            return dict(row) if row else None

    def get_store_book_by_uuid(self, uuid: str) -> Optional[Dict[str, Any]]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM store_books WHERE uuid = ?", (uuid,)
            ).fetchone()
            return dict(row) if row else None

    def get_release(self, uuid: str) -> Optional[Dict[str, Any]]:
        """
        Retrieve a release by its public identifier.

        Args:
            uuid: The release uuid

        Returns:
            Release data dictionary or None if not found
        """
        with self._get_connection() as conn:
            row = conn.execute(
                f"{_RELEASE_SELECT} WHERE r.uuid = ?", (uuid,)
            ).fetchone()
            return self._release_row_to_dict(row) if row else None

    def get_release_with_print_assets(self, uuid: str) -> Optional[Dict[str, Any]]:
        """
        Retrieve a release together with its print cover and print file.

        ``print_cover`` and ``print_file`` are each either a dictionary
        (``uuid``, ``file_name``) or None when not attached.
        """
        with self._get_connection() as conn:
            row = conn.execute(
                f"{_RELEASE_WITH_PRINT_ASSETS_SELECT} WHERE r.uuid = ?", (uuid,)
            ).fetchone()

            if not row:
                return None

            release = self._release_row_to_dict(row)
            release["print_cover"] = _print_asset(row, "print_cover")
            release["print_file"] = _print_asset(row, "print_file")
            return release

    def list_releases(self, store_book_id: int, limit: int, offset: int) -> Tuple[int, List[Dict[str, Any]]]:
        """
        List the releases of a store book, newest first.

        Returns:
            Tuple of (total count, releases in the requested window)
        """
        with self._get_connection() as conn:
            total = conn.execute(
                "SELECT COUNT(*) FROM store_book_releases WHERE store_book_id = ?",
                (store_book_id,),
            ).fetchone()[0]

            rows = conn.execute(
                f"{_RELEASE_SELECT} WHERE r.store_book_id = ? "
                "ORDER BY r.created_at DESC, r.id DESC LIMIT ? OFFSET ?",
                (store_book_id, limit, offset),
            ).fetchall()

            return total, [self._release_row_to_dict(row) for row in rows]

    def list_release_categories(self, release_id: int, limit: int, offset: int) -> Tuple[int, List[Dict[str, Any]]]:
        """
        List the categories a release is filed under, ordered by key.

        Returns:
            Tuple of (total count, categories in the requested window)
        """
        with self._get_connection() as conn:
            total = conn.execute(
                "SELECT COUNT(*) FROM store_book_release_categories WHERE release_id = ?",
                (release_id,),
            ).fetchone()[0]

            rows = conn.execute(
                "SELECT c.uuid, c.key, c.name FROM categories c "
                "JOIN store_book_release_categories rc ON rc.category_id = c.id "
                "WHERE rc.release_id = ? ORDER BY c.key LIMIT ? OFFSET ?",
                (release_id, limit, offset),
            ).fetchall()

            return total, [dict(row) for row in rows]

    def compare_and_set_published(
        self,
        release_id: int,
        expected_status: str,
        fields: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        """
        Apply a publish write only if the release still has ``expected_status``.

        The status check and the write run in one ``BEGIN IMMEDIATE``
        transaction, so concurrent publishers are serialized and only the
        first one matches. A NULL status counts as unpublished.

        Args:
            release_id: Internal release id
            expected_status: Status the row must have at write time
            fields: Columns to write (subset of PUBLISH_FIELDS)

        Returns:
            The updated release, or None if the status no longer matched
        """
        unknown = set(fields) - set(PUBLISH_FIELDS)
        if unknown:
            raise ValueError(f"Cannot write columns on publish: {', '.join(sorted(unknown))}")

        columns = list(fields)
        values = [
            _serialize_datetime(fields[column]) if isinstance(fields[column], datetime) else fields[column]
            for column in columns
        ]
        assignments = ", ".join(f"{column} = ?" for column in columns)

        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            cursor = conn.execute(
                f"UPDATE store_book_releases SET {assignments} "
                "WHERE id = ? AND COALESCE(status, ?) = ?",
                [*values, release_id, ReleaseStatus.UNPUBLISHED.value, expected_status],
            )

            if cursor.rowcount == 0:
                return None

            row = conn.execute(
                f"{_RELEASE_SELECT} WHERE r.id = ?", (release_id,)
            ).fetchone()
            return self._release_row_to_dict(row)

    def _release_row_to_dict(self, row: sqlite3.Row) -> Dict[str, Any]:
        """Convert a database row to a release dictionary."""
        return {
            "id": row["id"],
            "uuid": row["uuid"],
            "user_id": row["user_id"],
            "store_book_id": row["store_book_id"],
            "store_book_uuid": row["store_book_uuid"],
            # Legacy rows have no status recorded
            "status": row["status"] or ReleaseStatus.UNPUBLISHED.value,
            "release_name": row["release_name"],
            "release_notes": row["release_notes"],
            "published_at": _deserialize_datetime(row["published_at"]),
            "created_at": _deserialize_datetime(row["created_at"]),
            "title": row["title"],
            "description": row["description"],
            "price": row["price"],
            "isbn": row["isbn"],
            "cover_id": row["cover_id"],
            "file_id": row["file_id"],
            "print_cover_id": row["print_cover_id"],
            "print_file_id": row["print_file_id"],
            "cover": _cover(row),
            "file": _print_asset(row, "file"),
        }


def _cover(row: sqlite3.Row) -> Optional[Dict[str, Any]]:
    if row["cover_uuid"] is None:
        return None
    return {
        "uuid": row["cover_uuid"],
        "aspect_ratio": row["cover_aspect_ratio"],
        "blurhash": row["cover_blurhash"],
    }


def _print_asset(row: sqlite3.Row, prefix: str) -> Optional[Dict[str, Any]]:
    uuid = row[f"{prefix}_uuid"]
    if uuid is None:
        return None
    return {"uuid": uuid, "file_name": row[f"{prefix}_file_name"]}
