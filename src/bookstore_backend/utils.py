"""
Utility functions shared by the API routes and the store.
"""

from __future__ import annotations

from typing import Optional, Tuple


def normalize_pagination(limit: Optional[int], offset: Optional[int], default_limit: int = 10) -> Tuple[int, int]:
    """
    Clamp client-supplied pagination arguments.

    Args:
        limit: Requested page size; missing, zero or negative means ``default_limit``
        offset: Requested offset; missing or negative means 0

    Returns:
        A tuple of (limit, offset)

    Example:
        >>> normalize_pagination(0, -5)
        (10, 0)
        >>> normalize_pagination(25, 50)
        (25, 50)
    """
    take = limit or default_limit
    if take <= 0:
        take = default_limit

    skip = offset or 0
    if skip < 0:
        skip = 0

    return take, skip
