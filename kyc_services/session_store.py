"""
kyc_services.session_store -- Cookie-backed session state.

Responsibility:
    Holds the access token and its expiry the way the dashboard keeps them
    in HTTP-only cookies (``access_token``, ``token_expires_at`` in epoch
    milliseconds), plus the active portal context (admin or vendor).

Invariants:
    - ``clear()`` removes every token cookie; after it the store is
      unauthenticated.
    - Token values are never logged.
"""

from __future__ import annotations

import time
from collections.abc import Mapping

import httpx

from kyc_config.settings import BackendSettings
from kyc_kernel.domain.caller import CONTEXT_ADMIN, CONTEXT_VENDOR
from kyc_kernel.logging_config import get_logger

logger = get_logger("services.session_store")

ACCESS_COOKIE = "access_token"
EXPIRES_COOKIE = "token_expires_at"
CONTEXT_COOKIE = "active_context"


def _now_ms() -> int:
    return int(time.time() * 1000)


class CookieSessionStore:
    """Session tokens kept in an ``httpx.Cookies`` jar."""

    def __init__(
        self,
        cookies: httpx.Cookies | Mapping[str, str] | None = None,
        access_cookie: str = ACCESS_COOKIE,
        expires_cookie: str = EXPIRES_COOKIE,
    ):
        self.cookies = httpx.Cookies(cookies)
        self._access_cookie = access_cookie
        self._expires_cookie = expires_cookie

    @classmethod
    def from_settings(
        cls,
        settings: BackendSettings,
        cookies: httpx.Cookies | Mapping[str, str] | None = None,
    ) -> CookieSessionStore:
        """Store using the cookie names configured for this backend."""
        return cls(
            cookies,
            access_cookie=settings.access_cookie,
            expires_cookie=settings.expires_cookie,
        )

    @property
    def access_token(self) -> str | None:
        return self.cookies.get(self._access_cookie)

    @property
    def expires_at_ms(self) -> int | None:
        raw = self.cookies.get(self._expires_cookie)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            return None

    @property
    def active_context(self) -> str | None:
        return self.cookies.get(CONTEXT_COOKIE)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def is_expired(self, now_ms: int | None = None) -> bool:
        """True when an expiry is known and has passed."""
        expires = self.expires_at_ms
        if expires is None:
            return False
        return (now_ms if now_ms is not None else _now_ms()) >= expires

    def store_tokens(
        self,
        access_token: str,
        expires_in: int | None = None,
        now_ms: int | None = None,
    ) -> None:
        """Store a fresh token; ``expires_in`` is in seconds."""
        self.cookies.set(self._access_cookie, access_token)
        if expires_in is not None:
            base = now_ms if now_ms is not None else _now_ms()
            self.cookies.set(self._expires_cookie, str(base + int(expires_in) * 1000))
        logger.debug("session_tokens_stored", extra={"expires_in": expires_in})

    def set_context(self, context: str) -> None:
        if context not in (CONTEXT_ADMIN, CONTEXT_VENDOR):
            raise ValueError(f"Unknown portal context: {context!r}")
        self.cookies.set(CONTEXT_COOKIE, context)

    def clear(self) -> None:
        for name in (self._access_cookie, self._expires_cookie, CONTEXT_COOKIE):
            if self.cookies.get(name) is not None:
                self.cookies.delete(name)
        logger.info("session_cleared")
