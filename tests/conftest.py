"""
Pytest configuration and fixtures for Bookstore Backend tests.
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from fastapi import Header
from fastapi.testclient import TestClient
from omegaconf import OmegaConf

# Set test environment variables before importing the app
os.environ["BOOKSTORE_DB_PATH"] = str(Path(tempfile.mkdtemp(prefix="bookstore_test_db_")) / "bookstore.db")
os.environ["ADMIN_USER_IDS"] = "admin-1"

from bookstore_backend.asset_store import AssetStore
from bookstore_backend.configuration import make_runtime_config
from bookstore_backend.database import BookstoreDatabase
from bookstore_backend.document_inspector import PageSize
from bookstore_backend.main import app, get_identity, get_release_service
from bookstore_backend.models import Identity
from bookstore_backend.release_service import ReleaseService
from bookstore_backend.validation import PublicationPolicy

CDN_URL = "https://cdn.test"

# Matches the default validation config
INTERIOR_PAGE = PageSize(419.53, 595.28)
VALID_INTERIOR_PAGES = 30


def cover_page_for(interior_pages: int) -> PageSize:
    return PageSize(853.23 + interior_pages * 0.17, 609.45)


class FakeDocument:
    def __init__(self, pages: List[PageSize]):
        self.pages = pages
        self.requested_pages: List[int] = []

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def get_page(self, index: int) -> PageSize:
        self.requested_pages.append(index)
        return self.pages[index]


class FakeInspector:
    """Serves pre-registered documents by URL and records what was opened."""

    def __init__(self):
        self.documents: Dict[str, FakeDocument] = {}
        self.opened: List[str] = []

    def register(self, asset_uuid: str, pages: List[PageSize]) -> FakeDocument:
        document = FakeDocument(pages)
        self.documents[f"{CDN_URL}/{asset_uuid}"] = document
        return document

    def open(self, url: str) -> FakeDocument:
        self.opened.append(url)
        return self.documents[url]


@pytest.fixture(scope="session", autouse=True)
def test_db_dir():
    """Cleanup the app's database directory after all tests."""
    db_dir = Path(os.environ["BOOKSTORE_DB_PATH"]).parent
    yield db_dir
    shutil.rmtree(db_dir, ignore_errors=True)


@pytest.fixture
def database(tmp_path):
    return BookstoreDatabase(tmp_path / "bookstore.db")


@pytest.fixture
def policy():
    config = make_runtime_config()
    return PublicationPolicy.from_config(OmegaConf.to_container(config.validation))


@pytest.fixture
def inspector():
    return FakeInspector()


@pytest.fixture
def asset_store():
    return AssetStore(base_url=CDN_URL)


@pytest.fixture
def service(database, asset_store, inspector, policy):
    return ReleaseService(
        database=database,
        asset_store=asset_store,
        inspector=inspector,
        policy=policy,
        admins=["admin-1"],
    )


@pytest.fixture
def book(database):
    """A published store book owned by user-1."""
    return database.save_store_book(user_id="user-1", status="published")


@pytest.fixture
def make_release(database, book):
    """Factory for releases of ``book`` owned by user-1."""

    def _make_release(print_edition: bool = False, ebook: bool = False, **fields) -> Dict:
        data = {"user_id": "user-1", "store_book_id": book["id"], "status": "unpublished", **fields}
        if ebook:
            data["cover_id"] = database.save_cover("user-1", aspect_ratio="0.75", blurhash="LEHV6nWB2yk8")["id"]
            data["file_id"] = database.save_file("user-1", "book.epub")["id"]
        if print_edition:
            data["print_cover_id"] = database.save_print_cover("user-1", "cover.pdf")["id"]
            data["print_file_id"] = database.save_print_file("user-1", "interior.pdf")["id"]
        release = database.save_release(data)
        return database.get_release_with_print_assets(release["uuid"])

    return _make_release


@pytest.fixture
def register_print_documents(inspector):
    """Register interior and cover documents for a release with a print edition."""

    def _register(release: Dict, interior: Optional[List[PageSize]] = None, cover: Optional[List[PageSize]] = None):
        interior = interior if interior is not None else [INTERIOR_PAGE] * VALID_INTERIOR_PAGES
        cover = cover if cover is not None else [cover_page_for(len(interior))]
        interior_document = inspector.register(release["print_file"]["uuid"], interior)
        cover_document = inspector.register(release["print_cover"]["uuid"], cover)
        return interior_document, cover_document

    return _register


def _identity_from_header(authorization: Optional[str] = Header(default=None)) -> Optional[Identity]:
    # Tests send the user id itself as the access token
    return Identity(user_id=authorization) if authorization else None


@pytest.fixture
def client(service):
    """Create a test client for the FastAPI app wired to the test service."""
    app.dependency_overrides[get_release_service] = lambda: service
    app.dependency_overrides[get_identity] = _identity_from_header
    yield TestClient(app)
    app.dependency_overrides.clear()
