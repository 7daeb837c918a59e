"""
Bookstore Backend - REST API for a digital publishing marketplace

This package exposes store book releases and the workflow that publishes
them. A release is a draft edition of a book; publishing it validates the
release name and notes, structurally checks the print-ready cover and
interior PDFs when a print edition is attached, and then flips the release
from ``unpublished`` to ``published`` exactly once.

Key Components:
    - main: FastAPI application and HTTP endpoint definitions
    - release_service: Release retrieval, listings and the publish workflow
    - validation: Aggregated publication checks and their thresholds
    - authorization: Owner/admin permission checks
    - document_inspector: PDF page count and page size inspection
    - asset_store: Retrieval URLs for uploaded assets (S3 or CDN)
    - database: SQLite store for books, releases, their assets and categories
    - identity: Client for the external identity platform
    - configuration: OmegaConf config loading and overrides

Usage:
    Run the API server with:
        uvicorn bookstore_backend.main:app --reload --host 0.0.0.0 --port 8000
"""
