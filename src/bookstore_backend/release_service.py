"""
Release lifecycle: retrieval, listing and publication.

Publishing moves a release from ``unpublished`` to ``published`` exactly
once. The ReleaseService runs the checks in a fixed order:

1. Load the release (with its print assets)
2. Authorize the caller
3. Reject releases that are already published
4. Require the parent store book to be published or hidden
5. Run the validation pipeline and report every failure at once
6. Apply one conditional write that only succeeds while the release is
   still unpublished

Nothing is written unless every step passes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from .asset_store import AssetStore
from .authorization import can_publish, can_view_releases
from .database import BookstoreDatabase
from .document_inspector import DocumentInspector
from .errors import (
    AlreadyPublished,
    NotAuthenticated,
    ParentNotPublished,
    ReleaseDoesNotExist,
    StoreBookDoesNotExist,
    ValidationFailed,
)
from .models import (
    PUBLISHABLE_BOOK_STATUSES,
    CategoryList,
    Identity,
    PrintAsset,
    ReleaseStatus,
    StoreBookCover,
    StoreBookRelease,
    StoreBookReleaseList,
)
from .utils import normalize_pagination
from .validation import PublicationPolicy, validate_publication

logger = logging.getLogger(__name__)


@dataclass
class ReleaseRecord:
    """
    Internal representation of a release as read from the store.

    Attributes:
        id: Internal row id, used for the conditional write
        uuid: Public identifier
        user_id: Owner of the release
        store_book_id: Internal id of the parent book
        store_book_uuid: Public identifier of the parent book
        status: ``unpublished`` or ``published``
        cover: Attached store cover (uuid, aspect_ratio, blurhash), if any
        file: Attached ebook file, if any
        print_cover: Attached print cover, if any
        print_file: Attached print file, if any
    """

    id: int
    uuid: str
    user_id: str
    store_book_id: int
    store_book_uuid: str
    status: ReleaseStatus
    release_name: Optional[str] = None
    release_notes: Optional[str] = None
    published_at: Optional[datetime] = None
    title: Optional[str] = None
    description: Optional[str] = None
    price: int = 0
    isbn: Optional[str] = None
    cover: Optional[Dict[str, Any]] = None
    file: Optional[PrintAsset] = None
    print_cover: Optional[PrintAsset] = None
    print_file: Optional[PrintAsset] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ReleaseRecord":
        return cls(
            id=row["id"],
            uuid=row["uuid"],
            user_id=row["user_id"],
            store_book_id=row["store_book_id"],
            store_book_uuid=row["store_book_uuid"],
            status=ReleaseStatus(row["status"]),
            release_name=row["release_name"],
            release_notes=row["release_notes"],
            published_at=row["published_at"],
            title=row.get("title"),
            description=row.get("description"),
            price=row.get("price") or 0,
            isbn=row.get("isbn"),
            cover=row.get("cover"),
            file=PrintAsset(**row["file"]) if row.get("file") else None,
            print_cover=PrintAsset(**row["print_cover"]) if row.get("print_cover") else None,
            print_file=PrintAsset(**row["print_file"]) if row.get("print_file") else None,
        )

    @property
    def is_published(self) -> bool:
        return self.status == ReleaseStatus.PUBLISHED

    def to_response(self, asset_store: AssetStore) -> StoreBookRelease:
        cover = None
        if self.cover:
            cover = StoreBookCover(url=asset_store.public_url(self.cover["uuid"]), **self.cover)

        return StoreBookRelease(
            uuid=self.uuid,
            store_book=self.store_book_uuid,
            status=self.status,
            release_name=self.release_name,
            release_notes=self.release_notes,
            published_at=self.published_at,
            title=self.title,
            description=self.description,
            price=self.price,
            isbn=self.isbn,
            cover=cover,
            file=self.file,
            print_cover=self.print_cover,
            print_file=self.print_file,
        )


class ReleaseService:
    """
    Coordinates the release store, the authorization gate and validation.

    Args:
        database: Release and store book persistence
        asset_store: Resolves asset uuids to cover and download URLs
        inspector: Reads page counts and sizes of print PDFs
        policy: Validation thresholds
        admins: User ids allowed to act on any release
        default_page_size: Page size used when a list request has none
    """

    def __init__(
        self,
        database: BookstoreDatabase,
        asset_store: AssetStore,
        inspector: DocumentInspector,
        policy: PublicationPolicy,
        admins: Iterable[str] = (),
        default_page_size: int = 10,
    ) -> None:
        self.database = database
        self.asset_store = asset_store
        self.inspector = inspector
        self.policy = policy
        self.admins = [str(admin) for admin in admins]
        self.default_page_size = default_page_size

    def get_release(self, uuid: str) -> Optional[StoreBookRelease]:
        row = self.database.get_release_with_print_assets(uuid)
        return ReleaseRecord.from_row(row).to_response(self.asset_store) if row else None

    def list_releases(
        self,
        identity: Optional[Identity],
        store_book_uuid: str,
        limit: Optional[int],
        offset: Optional[int],
    ) -> StoreBookReleaseList:
        """
        List a store book's releases, newest first.

        Drafts are included, so only the book's author and admins may list.

        Raises:
            NotAuthenticated: If there is no caller identity
            StoreBookDoesNotExist: If the store book is unknown
            ActionNotAllowed: If the caller neither owns the book nor is an admin
        """
        if identity is None:
            raise NotAuthenticated()

        store_book = self.database.get_store_book_by_uuid(store_book_uuid)
        if store_book is None:
            raise StoreBookDoesNotExist()
        can_view_releases(identity, store_book, self.admins)

        take, skip = normalize_pagination(limit, offset, self.default_page_size)
        total, rows = self.database.list_releases(store_book["id"], take, skip)
        return StoreBookReleaseList(
            total=total,
            items=[ReleaseRecord.from_row(row).to_response(self.asset_store) for row in rows],
        )

    def list_release_categories(self, release_uuid: str, limit: Optional[int], offset: Optional[int]) -> CategoryList:
        """
        List the categories of a release, ordered by key.

        Raises:
            ReleaseDoesNotExist: If the release is unknown
        """
        release = self.database.get_release(release_uuid)
        if release is None:
            raise ReleaseDoesNotExist()

        take, skip = normalize_pagination(limit, offset, self.default_page_size)
        total, rows = self.database.list_release_categories(release["id"], take, skip)
        return CategoryList(total=total, items=rows)

    def publish(
        self,
        identity: Optional[Identity],
        release_uuid: str,
        release_name: str,
        release_notes: Optional[str] = None,
    ) -> StoreBookRelease:
        """
        Validate a release and publish it.

        Args:
            identity: The caller, or None if unauthenticated
            release_uuid: Release to publish
            release_name: Name to publish the release under
            release_notes: Optional notes; the stored notes are kept when omitted

        Returns:
            The published release

        Raises:
            NotAuthenticated: If there is no caller identity
            ReleaseDoesNotExist: If the release is unknown
            ActionNotAllowed: If the caller neither owns the release nor is an admin
            AlreadyPublished: If the release is, or concurrently became, published
            StoreBookDoesNotExist: If the parent store book is missing
            ParentNotPublished: If the parent store book is not published or hidden
            ValidationFailed: With every failed check
            DocumentInspectionError: If a print document cannot be fetched or parsed
        """
        if identity is None:
            raise NotAuthenticated()

        row = self.database.get_release_with_print_assets(release_uuid)
        if row is None:
            raise ReleaseDoesNotExist()

        release = ReleaseRecord.from_row(row)
        can_publish(identity, row, self.admins)
        logger.info(f"Publish requested for release {release.uuid} by user {identity.user_id}")

        if release.is_published:
            logger.info(f"Release {release.uuid} is already published")
            raise AlreadyPublished()

        store_book = self.database.get_store_book(release.store_book_id)
        if store_book is None:
            raise StoreBookDoesNotExist()
        if store_book["status"] not in PUBLISHABLE_BOOK_STATUSES:
            logger.info(f"Release {release.uuid} rejected: store book status is {store_book['status']}")
            raise ParentNotPublished()

        failures = validate_publication(
            row,
            release_name,
            release_notes,
            inspector=self.inspector,
            asset_store=self.asset_store,
            policy=self.policy,
        )
        if failures:
            raise ValidationFailed(failures)

        fields = {
            "status": ReleaseStatus.PUBLISHED.value,
            "release_name": release_name,
            "published_at": datetime.now(timezone.utc),
        }
        if release_notes is not None:
            fields["release_notes"] = release_notes

        published = self.database.compare_and_set_published(
            release.id,
            expected_status=ReleaseStatus.UNPUBLISHED.value,
            fields=fields,
        )
        if published is None:
            logger.warning(f"Release {release.uuid} was published concurrently; rejecting duplicate publish")
            raise AlreadyPublished()

        logger.info(f"Release {release.uuid} published as '{release_name}'")
        # The conditional write does not return print assets; keep the ones already loaded
        return ReleaseRecord.from_row({**row, **published}).to_response(self.asset_store)
