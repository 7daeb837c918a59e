"""
Validation checks run before a release is published.

Each check returns a ValidationFailure or None. ``validate_publication``
runs every check and returns all failures, so a caller sees every problem in
one response. Thresholds come from a PublicationPolicy built from
configuration; all page dimensions are PDF points.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple

from .asset_store import AssetStore
from .document_inspector import DocumentInspector, InspectedDocument
from .errors import ValidationFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LengthRule:
    min_length: int
    max_length: int


@dataclass(frozen=True)
class PrintFileRule:
    min_pages: int
    max_pages: int
    width: float
    height: float
    tolerance: float


@dataclass(frozen=True)
class PrintCoverRule:
    pages: int
    base_width: float
    spine_width_per_page: float
    height: float
    tolerance: float

    def expected_width(self, interior_pages: int) -> float:
        """Full cover width (back, spine, front) for an interior of the given page count."""
        return self.base_width + interior_pages * self.spine_width_per_page


@dataclass(frozen=True)
class PublicationPolicy:
    name: LengthRule
    notes: LengthRule
    print_file: PrintFileRule
    print_cover: PrintCoverRule

    @classmethod
    def from_config(cls, validation: Mapping[str, Any]) -> "PublicationPolicy":
        return cls(
            name=LengthRule(**validation["name"]),
            notes=LengthRule(**validation["notes"]),
            print_file=PrintFileRule(**validation["print_file"]),
            print_cover=PrintCoverRule(**validation["print_cover"]),
        )


def _within(value: float, expected: float, tolerance: float) -> bool:
    return abs(value - expected) <= tolerance


def validate_release_name_length(name: Optional[str], rule: LengthRule) -> Optional[ValidationFailure]:
    length = len(name or "")
    if length < rule.min_length:
        return ValidationFailure(
            "RELEASE_NAME_TOO_SHORT",
            f"Release name must be at least {rule.min_length} characters long",
        )
    if length > rule.max_length:
        return ValidationFailure(
            "RELEASE_NAME_TOO_LONG",
            f"Release name must be at most {rule.max_length} characters long",
        )
    return None


def validate_release_notes_length(notes: str, rule: LengthRule) -> Optional[ValidationFailure]:
    if len(notes) < rule.min_length:
        return ValidationFailure(
            "RELEASE_NOTES_TOO_SHORT",
            f"Release notes must be at least {rule.min_length} characters long",
        )
    if len(notes) > rule.max_length:
        return ValidationFailure(
            "RELEASE_NOTES_TOO_LONG",
            f"Release notes must be at most {rule.max_length} characters long",
        )
    return None


def validate_print_file_pages(pages: int, rule: PrintFileRule) -> Optional[ValidationFailure]:
    if pages < rule.min_pages:
        return ValidationFailure(
            "PRINT_FILE_PAGES_TOO_FEW",
            f"The print file has {pages} pages, at least {rule.min_pages} are required",
        )
    if pages > rule.max_pages:
        return ValidationFailure(
            "PRINT_FILE_PAGES_TOO_MANY",
            f"The print file has {pages} pages, at most {rule.max_pages} are allowed",
        )
    return None


def validate_print_file_page_sizes(document: InspectedDocument, rule: PrintFileRule) -> Optional[ValidationFailure]:
    """Check every interior page, not just the first one."""
    invalid_pages = []
    for index in range(document.page_count):
        size = document.get_page(index)
        if not (_within(size.width, rule.width, rule.tolerance) and _within(size.height, rule.height, rule.tolerance)):
            invalid_pages.append(index + 1)

    if not invalid_pages:
        return None

    listed = ", ".join(str(page) for page in invalid_pages[:10])
    if len(invalid_pages) > 10:
        listed += f" and {len(invalid_pages) - 10} more"
    return ValidationFailure(
        "PRINT_FILE_PAGE_SIZE_INVALID",
        f"Print file pages must be {rule.width:g} x {rule.height:g} pt; invalid pages: {listed}",
    )


def validate_print_cover_pages(pages: int, rule: PrintCoverRule) -> Optional[ValidationFailure]:
    if pages != rule.pages:
        return ValidationFailure(
            "PRINT_COVER_PAGES_INVALID",
            f"The print cover must have exactly {rule.pages} page(s), it has {pages}",
        )
    return None


def validate_print_cover_page_size(
    width: float,
    height: float,
    interior_pages: int,
    rule: PrintCoverRule,
) -> Optional[ValidationFailure]:
    expected_width = rule.expected_width(interior_pages)
    if _within(width, expected_width, rule.tolerance) and _within(height, rule.height, rule.tolerance):
        return None
    return ValidationFailure(
        "PRINT_COVER_PAGE_SIZE_INVALID",
        f"For a print file with {interior_pages} pages the print cover must be "
        f"{expected_width:.2f} x {rule.height:.2f} pt, it is {width:.2f} x {height:.2f} pt",
    )


def validate_print_documents(
    print_file: InspectedDocument,
    print_cover: InspectedDocument,
    policy: PublicationPolicy,
) -> List[ValidationFailure]:
    interior_pages = print_file.page_count
    cover_pages = print_cover.page_count

    results = [
        validate_print_file_pages(interior_pages, policy.print_file),
        validate_print_file_page_sizes(print_file, policy.print_file),
        validate_print_cover_pages(cover_pages, policy.print_cover),
    ]

    if cover_pages > 0:
        cover_size = print_cover.get_page(0)
        results.append(
            validate_print_cover_page_size(cover_size.width, cover_size.height, interior_pages, policy.print_cover)
        )

    return [failure for failure in results if failure is not None]


def print_assets_of(release: Mapping[str, Any]) -> Optional[Tuple[Mapping[str, Any], Mapping[str, Any]]]:
    """Return ``(print_cover, print_file)`` if both are attached, otherwise None."""
    print_cover = release.get("print_cover")
    print_file = release.get("print_file")
    if print_cover is None or print_file is None:
        return None
    return print_cover, print_file


def validate_publication(
    release: Mapping[str, Any],
    release_name: Optional[str],
    release_notes: Optional[str],
    inspector: DocumentInspector,
    asset_store: AssetStore,
    policy: PublicationPolicy,
) -> List[ValidationFailure]:
    """
    Run every publication check and collect the failures.

    Print validation runs only when both the print file and the print cover
    are attached; a release without either is digital-only. Documents are
    opened one at a time, interior first. Fetch or parse errors raise
    DocumentInspectionError and are not reported as validation failures.

    Returns:
        All failures, empty when the release may be published
    """
    failures: List[ValidationFailure] = []

    name_failure = validate_release_name_length(release_name, policy.name)
    if name_failure:
        failures.append(name_failure)

    if release_notes is not None:
        notes_failure = validate_release_notes_length(release_notes, policy.notes)
        if notes_failure:
            failures.append(notes_failure)

    print_assets = print_assets_of(release)
    if print_assets is not None:
        print_cover_asset, print_file_asset = print_assets
        print_file = inspector.open(asset_store.resolve_retrieval_url(print_file_asset["uuid"]))
        print_cover = inspector.open(asset_store.resolve_retrieval_url(print_cover_asset["uuid"]))
        failures.extend(validate_print_documents(print_file, print_cover, policy))

    if failures:
        logger.info(f"Publication validation found {len(failures)} problem(s): {[f.code for f in failures]}")
    return failures
