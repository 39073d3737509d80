"""
Membership list client.

Fetches the signed-in user's memberships from the membership endpoint and
maps failures onto AuthenticationRequired / FetchFailed.
"""

from __future__ import annotations

import httpx
import structlog
from pydantic import ValidationError

from hearth_shared.schemas.memberships import Membership, MembershipListResponse

from .errors import AuthenticationRequired, FetchFailed
from .session import Session

log = structlog.get_logger()

_AUTH_STATUSES = (401, 403)


class MembershipStore:
    """Reads memberships over HTTP. Holds no membership state of its own."""

    def __init__(
        self,
        base_url: str,
        memberships_path: str = "/api/user/memberships",
        verify_tls: bool = True,
        request_timeout: int = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._path = "/" + memberships_path.lstrip("/")
        self._verify_tls = verify_tls
        self._request_timeout = request_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def open(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._request_timeout),
            verify=self._verify_tls,
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def load_memberships(self, session: Session | None) -> list[Membership]:
        """Return the session user's memberships in server order."""
        if session is None:
            raise AuthenticationRequired()
        assert self._client

        try:
            resp = await self._client.get(self._path, headers=session.auth_headers)
        except httpx.HTTPError as exc:
            log.warning("memberships.request_failed", user_id=session.user_id, error=str(exc))
            raise FetchFailed(f"Membership request failed: {exc}") from exc

        if resp.status_code in _AUTH_STATUSES:
            log.info("memberships.unauthenticated", status=resp.status_code)
            raise AuthenticationRequired()
        if not resp.is_success:
            log.warning(
                "memberships.bad_status",
                user_id=session.user_id,
                status=resp.status_code,
            )
            raise FetchFailed(
                f"Membership endpoint returned {resp.status_code}",
                status_code=resp.status_code,
            )

        try:
            parsed = MembershipListResponse.from_payload(resp.json())
        except (ValueError, ValidationError) as exc:
            log.warning("memberships.bad_payload", user_id=session.user_id, error=str(exc))
            raise FetchFailed(
                "Membership endpoint returned an invalid payload",
                status_code=resp.status_code,
            ) from exc

        log.debug("memberships.loaded", user_id=session.user_id, count=len(parsed.memberships))
        return list(parsed.memberships)
