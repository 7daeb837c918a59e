"""
Client for the external identity platform.

The backend does not issue tokens. It forwards the caller's access token to
the platform's ``/user`` endpoint and reads back the user id.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .models import Identity

logger = logging.getLogger(__name__)


class IdentityClient:
    def __init__(self, api_url: str, timeout: float = 10.0, transport: httpx.BaseTransport | None = None) -> None:
        self.api_url = api_url.rstrip("/")
        self.timeout = httpx.Timeout(timeout)
        self._transport = transport

    def resolve_identity(self, access_token: Optional[str]) -> Optional[Identity]:
        """
        Look up the user an access token belongs to.

        Returns:
            The caller's identity, or None if there is no token or the
            platform rejects it

        Raises:
            httpx.HTTPError: If the platform cannot be reached or fails
        """
        if not access_token:
            return None

        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            response = client.get(f"{self.api_url}/user", headers={"Authorization": access_token})

        if response.status_code in (401, 403, 404):
            logger.info(f"Identity platform rejected access token ({response.status_code})")
            return None
        response.raise_for_status()

        return Identity(user_id=str(response.json()["id"]))
