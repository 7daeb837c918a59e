from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

from .errors import ActionNotAllowed, NotAuthenticated
from .models import Identity


def is_admin(identity: Identity, admins: Iterable[str]) -> bool:
    return identity.user_id in {str(admin) for admin in admins}


def can_publish(identity: Optional[Identity], release: Mapping[str, Any], admins: Iterable[str]) -> bool:
    """
    Check that ``identity`` may publish ``release``.

    Admins may act on any release, everyone else only on their own.

    Raises:
        NotAuthenticated: If there is no identity at all
        ActionNotAllowed: If the identity is neither an admin nor the owner
    """
    if identity is None:
        raise NotAuthenticated()

    if not is_admin(identity, admins) and str(release["user_id"]) != identity.user_id:
        raise ActionNotAllowed()

    return True


def can_view_releases(identity: Optional[Identity], store_book: Mapping[str, Any], admins: Iterable[str]) -> bool:
    """
    Check that ``identity`` may list every release of ``store_book``, drafts included.

    Raises:
        NotAuthenticated: If there is no identity at all
        ActionNotAllowed: If the identity is neither an admin nor the book's author
    """
    if identity is None:
        raise NotAuthenticated()

    if not is_admin(identity, admins) and str(store_book["user_id"]) != identity.user_id:
        raise ActionNotAllowed()

    return True
