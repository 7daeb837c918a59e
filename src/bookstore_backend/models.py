from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReleaseStatus(str, Enum):
    UNPUBLISHED = "unpublished"
    PUBLISHED = "published"


class StoreBookStatus(str, Enum):
    UNPUBLISHED = "unpublished"
    REVIEW = "review"
    PUBLISHED = "published"
    HIDDEN = "hidden"


# Book states in which releases may be published
PUBLISHABLE_BOOK_STATUSES = {StoreBookStatus.PUBLISHED.value, StoreBookStatus.HIDDEN.value}


class Identity(BaseModel):
    user_id: str


class PrintAsset(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uuid: str
    file_name: Optional[str] = Field(default=None, serialization_alias="fileName")


class StoreBookCover(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uuid: str
    url: str
    aspect_ratio: Optional[str] = Field(default=None, serialization_alias="aspectRatio")
    blurhash: Optional[str] = None


class Category(BaseModel):
    uuid: str
    key: str
    name: str


class CategoryList(BaseModel):
    total: int
    items: List[Category]


class StoreBookRelease(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uuid: str
    store_book: str = Field(serialization_alias="storeBook")
    status: ReleaseStatus
    release_name: Optional[str] = Field(default=None, serialization_alias="releaseName")
    release_notes: Optional[str] = Field(default=None, serialization_alias="releaseNotes")
    published_at: Optional[datetime] = Field(default=None, serialization_alias="publishedAt")
    title: Optional[str] = None
    description: Optional[str] = None
    price: int = 0
    isbn: Optional[str] = None
    cover: Optional[StoreBookCover] = None
    file: Optional[PrintAsset] = None
    print_cover: Optional[PrintAsset] = Field(default=None, serialization_alias="printCover")
    print_file: Optional[PrintAsset] = Field(default=None, serialization_alias="printFile")


class StoreBookReleaseList(BaseModel):
    total: int
    items: List[StoreBookRelease]


class PublishReleaseRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    release_name: str = Field(alias="releaseName")
    release_notes: Optional[str] = Field(default=None, alias="releaseNotes")
