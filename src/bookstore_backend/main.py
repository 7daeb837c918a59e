from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from omegaconf import OmegaConf

from .asset_store import AssetStore
from .configuration import get_settings
from .database import BookstoreDatabase
from .document_inspector import PdfDocumentInspector
from .errors import ApiError, DocumentInspectionError
from .identity import IdentityClient
from .models import CategoryList, Identity, PublishReleaseRequest, StoreBookRelease, StoreBookReleaseList
from .release_service import ReleaseService
from .validation import PublicationPolicy


def setup_logging() -> None:
    """Configure logging based on environment variables"""
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    log_format = os.environ.get("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    logging.basicConfig(level=getattr(logging, log_level, logging.INFO), format=log_format)


setup_logging()
logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(title="Bookstore API", version="0.1.0")

allowed_origins = ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

release_service = ReleaseService(
    database=BookstoreDatabase(Path(settings.database.path)),
    asset_store=AssetStore(
        base_url=settings.assets.base_url,
        bucket_name=settings.assets.s3_bucket,
        expiration=settings.assets.url_expiration_seconds,
    ),
    inspector=PdfDocumentInspector(timeout=settings.inspector.timeout_seconds),
    policy=PublicationPolicy.from_config(OmegaConf.to_container(settings.validation)),  # type: ignore[arg-type]
    admins=settings.admins,
    default_page_size=settings.pagination.default_limit,
)

identity_client = IdentityClient(settings.identity.api_url, timeout=settings.identity.timeout_seconds)


def get_release_service() -> ReleaseService:
    return release_service


def get_identity(authorization: Optional[str] = Header(default=None)) -> Optional[Identity]:
    return identity_client.resolve_identity(authorization)


@app.get("/healthz")
def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/releases/{uuid}", response_model=StoreBookRelease)
def retrieve_release(uuid: str, service: ReleaseService = Depends(get_release_service)) -> StoreBookRelease:
    release = service.get_release(uuid)
    if not release:
        raise HTTPException(status_code=404, detail="Store book release not found")
    return release


@app.get("/store-books/{uuid}/releases", response_model=StoreBookReleaseList)
def list_releases(
    uuid: str,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    identity: Optional[Identity] = Depends(get_identity),
    service: ReleaseService = Depends(get_release_service),
) -> StoreBookReleaseList:
    try:
        return service.list_releases(identity, uuid, limit, offset)
    except ApiError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_detail()) from exc


@app.get("/releases/{uuid}/categories", response_model=CategoryList)
def list_release_categories(
    uuid: str,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    service: ReleaseService = Depends(get_release_service),
) -> CategoryList:
    try:
        return service.list_release_categories(uuid, limit, offset)
    except ApiError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_detail()) from exc


@app.post("/releases/{uuid}/publish", response_model=StoreBookRelease)
def publish_release(
    uuid: str,
    request: PublishReleaseRequest,
    identity: Optional[Identity] = Depends(get_identity),
    service: ReleaseService = Depends(get_release_service),
) -> StoreBookRelease:
    try:
        return service.publish(identity, uuid, request.release_name, request.release_notes)
    except ApiError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_detail()) from exc
    except DocumentInspectionError as exc:
        logger.error(f"Print document inspection failed for release {uuid}: {exc}")
        raise HTTPException(status_code=502, detail=str(exc)) from exc
