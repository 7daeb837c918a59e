"""
Page inspection for print-ready PDF documents.

The inspector downloads a document and reports its page count and the
physical size of any page. Sizes are PDF points taken from the page's crop
box (which defaults to the media box), i.e. the visible page area.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from io import BytesIO
from typing import Protocol, runtime_checkable

import httpx
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from .errors import DocumentInspectionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageSize:
    width: float
    height: float


@runtime_checkable
class InspectedDocument(Protocol):
    @property
    def page_count(self) -> int: ...

    def get_page(self, index: int) -> PageSize: ...


@runtime_checkable
class DocumentInspector(Protocol):
    def open(self, url: str) -> InspectedDocument: ...


class PdfDocument:
    """Random access to the page sizes of a parsed PDF. ``index`` is 0-based."""

    def __init__(self, reader: PdfReader) -> None:
        self._reader = reader

    @property
    def page_count(self) -> int:
        return len(self._reader.pages)

    def get_page(self, index: int) -> PageSize:
        if index < 0 or index >= self.page_count:
            raise IndexError(f"Page index {index} out of range for document with {self.page_count} pages")
        box = self._reader.pages[index].cropbox
        return PageSize(width=float(box.width), height=float(box.height))


class PdfDocumentInspector:
    """
    Fetches PDFs over HTTP and parses them with pypdf.

    Args:
        timeout: Seconds allowed for the whole download. The same value also
            bounds each connect, read, write and pool phase. Parsing is not
            covered.
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(self, timeout: float = 30.0, transport: httpx.BaseTransport | None = None) -> None:
        self.deadline = timeout
        self.timeout = httpx.Timeout(timeout)
        self._transport = transport

    def fetch(self, url: str) -> bytes:
        started = time.monotonic()
        chunks = []
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport, follow_redirects=True) as client:
                with client.stream("GET", url) as response:
                    response.raise_for_status()
                    for chunk in response.iter_bytes():
                        # httpx timeouts are per phase, a slow sender can outlast them
                        if time.monotonic() - started > self.deadline:
                            raise DocumentInspectionError(
                                f"Timed out fetching document from {url} after {self.deadline}s"
                            )
                        chunks.append(chunk)
        except httpx.TimeoutException as exc:
            raise DocumentInspectionError(f"Timed out fetching document from {url}") from exc
        except httpx.HTTPError as exc:
            raise DocumentInspectionError(f"Could not fetch document from {url}: {exc}") from exc

        content = b"".join(chunks)
        logger.info(f"Fetched document ({len(content)} bytes) from {url}")
        return content

    def open(self, url: str) -> PdfDocument:
        return self.open_bytes(self.fetch(url))

    def open_bytes(self, data: bytes) -> PdfDocument:
        try:
            reader = PdfReader(BytesIO(data))
            # Force the page tree to load so broken files fail here
            len(reader.pages)
        except (PyPdfError, ValueError) as exc:
            raise DocumentInspectionError(f"Document is not a readable PDF: {exc}") from exc
        return PdfDocument(reader)
