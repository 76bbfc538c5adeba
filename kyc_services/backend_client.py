"""
kyc_services.backend_client -- Authenticated client for the backend API.

Responsibility:
    Sends requests to the backend on behalf of the signed-in user, with the
    bearer token taken from the cookie session store.  Unwraps the
    backend's ``{"data": ...}`` envelope and normalises paginated payloads.

Architecture position:
    Services layer, I/O boundary.  Everything above it (admin/vendor KYC
    APIs, review service) talks to the backend only through this client.

Invariants:
    - A request is never sent without an access token.
    - Token refresh happens at most once per request: a 401 on a non-auth
      path triggers one ``POST /auth/refresh`` and one retry.  A failed
      refresh, or a second 401, clears the session.
    - Non-success responses become ``BackendRequestError`` carrying the
      backend's message and field errors; transport failures become
      ``BackendUnavailableError``.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from typing import Any

import httpx

from kyc_config.settings import BackendSettings, get_backend_settings
from kyc_kernel.domain.caller import Caller, caller_from_session_user
from kyc_kernel.exceptions import (
    BackendRequestError,
    BackendUnavailableError,
    NotAuthenticatedError,
    SessionExpiredError,
)
from kyc_kernel.logging_config import LogContext, get_logger
from kyc_services.session_store import CookieSessionStore

logger = get_logger("services.backend_client")

AUTH_PATH_PREFIX = "/auth/"
REFRESH_PATH = "/auth/refresh"
SWITCH_CONTEXT_PATH = "/auth/switch-context"
ME_PATH = "/auth/me"


def _is_auth_path(path: str) -> bool:
    return ("/" + path.lstrip("/")).startswith(AUTH_PATH_PREFIX)


def _clean_params(params: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if not params:
        return None
    cleaned: dict[str, Any] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        cleaned[key] = value
    return cleaned


def normalize_paginated_response(body: Any) -> Any:
    """Rename a named items key to ``data`` in paginated payloads.

    The backend returns ``{"data": {"kyc_documents": [...], "meta": {...}}}``;
    callers always get ``{"data": {"data": [...], "meta": {...}}}``.
    """
    if not isinstance(body, dict):
        return body
    data = body.get("data")
    if isinstance(data, dict) and "meta" in data and "data" not in data:
        items_key = next(
            (k for k, v in data.items() if k != "meta" and isinstance(v, list)),
            None,
        )
        if items_key is not None:
            extras = {k: v for k, v in data.items() if k not in (items_key, "meta")}
            return {**body, "data": {"data": data[items_key], "meta": data["meta"], **extras}}
    return body


def _error_details(response: httpx.Response) -> tuple[str, dict[str, list[str]]]:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or "", {}
    if not isinstance(body, dict):
        return "", {}
    message = body.get("message") or body.get("error") or ""
    errors = body.get("errors")
    if not isinstance(errors, dict):
        errors = {}
    return str(message), {
        str(k): [str(m) for m in (v if isinstance(v, list) else [v])]
        for k, v in errors.items()
    }


class BackendClient:
    """Backend API client bound to one user's session."""

    def __init__(
        self,
        session: CookieSessionStore,
        settings: BackendSettings | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.session = session
        self.settings = settings or get_backend_settings()
        self._http = httpx.Client(
            base_url=self.settings.api_base_url,
            timeout=self.settings.timeout_seconds,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> BackendClient:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Low-level send
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self.session.access_token}"}
        correlation_id = LogContext.get_all().get("correlation_id")
        if correlation_id:
            headers["X-Request-ID"] = correlation_id
        return headers

    def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        start = time.monotonic()
        try:
            response = self._http.request(method, path, headers=self._headers(), **kwargs)
        except httpx.TransportError as exc:
            logger.warning(
                "backend_unavailable",
                extra={"method": method, "path": path, "error": type(exc).__name__},
            )
            raise BackendUnavailableError(path) from exc
        logger.debug(
            "backend_request",
            extra={
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": round((time.monotonic() - start) * 1000, 3),
            },
        )
        return response

    def _raise_for_status(self, response: httpx.Response, path: str) -> None:
        if response.is_success:
            return
        message, errors = _error_details(response)
        logger.warning(
            "backend_request_failed",
            extra={"path": path, "status_code": response.status_code, "backend_message": message},
        )
        raise BackendRequestError(response.status_code, path, message, errors)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
        data: Mapping[str, Any] | None = None,
        files: Any = None,
        raw: bool = False,
    ) -> Any:
        """Send an authenticated request and return the unwrapped payload.

        With ``raw=True`` the response body is returned as bytes.

        Raises:
            NotAuthenticatedError: no access token in the session.
            SessionExpiredError: the token could not be refreshed.
            BackendRequestError: non-success status.
            BackendUnavailableError: the backend cannot be reached.
        """
        if not self.session.is_authenticated:
            raise NotAuthenticatedError()

        kwargs: dict[str, Any] = {"params": _clean_params(params)}
        if json is not None:
            kwargs["json"] = json
        if data is not None:
            kwargs["data"] = data
        if files is not None:
            kwargs["files"] = files

        response = self._send(method, path, **kwargs)
        if response.status_code == 401 and not _is_auth_path(path):
            self.refresh()
            response = self._send(method, path, **kwargs)
            if response.status_code == 401:
                self.session.clear()
                raise SessionExpiredError()

        self._raise_for_status(response, path)
        if raw:
            return response.content
        if response.status_code == 204 or not response.content:
            return None
        body = normalize_paginated_response(response.json())
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    def get(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return self.request("POST", path, json=json, **kwargs)

    def put(self, path: str, json: Any = None) -> Any:
        return self.request("PUT", path, json=json)

    def patch(self, path: str, json: Any = None) -> Any:
        return self.request("PATCH", path, json=json)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    def download(self, path: str, params: Mapping[str, Any] | None = None) -> bytes:
        return self.request("GET", path, params=params, raw=True)

    # ------------------------------------------------------------------
    # Session management
    # ------------------------------------------------------------------

    def refresh(self) -> None:
        """Exchange the current token for a new one.

        Raises:
            SessionExpiredError: refresh refused or malformed; session cleared.
        """
        if not self.session.is_authenticated:
            raise SessionExpiredError()
        try:
            response = self._send("POST", REFRESH_PATH)
        except BackendUnavailableError:
            self.session.clear()
            raise SessionExpiredError() from None

        token: str | None = None
        expires_in: int | None = None
        if response.is_success:
            try:
                payload = response.json().get("data") or {}
            except (ValueError, AttributeError):
                payload = {}
            tokens = payload.get("tokens", payload) if isinstance(payload, dict) else {}
            token = tokens.get("access_token") if isinstance(tokens, dict) else None
            expires_in = tokens.get("expires_in") if isinstance(tokens, dict) else None

        if not token:
            logger.warning("session_refresh_failed", extra={"status_code": response.status_code})
            self.session.clear()
            raise SessionExpiredError()

        self.session.store_tokens(token, expires_in)
        logger.info("session_refreshed", extra={"expires_in": expires_in})

    def switch_context(
        self,
        context_type: str,
        password: str | None = None,
        require_verification: bool | None = None,
    ) -> dict[str, Any]:
        """Switch between the admin and vendor portals.

        The backend issues a new token scoped to the requested context.
        """
        body: dict[str, Any] = {"context_type": context_type}
        if password is not None:
            body["password"] = password
        if require_verification is not None:
            body["require_verification"] = require_verification

        if not self.session.is_authenticated:
            raise NotAuthenticatedError()
        response = self._send("POST", SWITCH_CONTEXT_PATH, json=body)
        if response.status_code == 401:
            self.session.clear()
            raise SessionExpiredError()
        self._raise_for_status(response, SWITCH_CONTEXT_PATH)

        data = response.json().get("data") or {}
        token = data.get("access_token")
        if token:
            self.session.store_tokens(token)
        self.session.set_context(data.get("context") or context_type)
        logger.info("portal_context_switched", extra={"active_context": self.session.active_context})
        return data

    def current_user(self) -> dict[str, Any]:
        user = self.get(ME_PATH)
        if isinstance(user, dict) and isinstance(user.get("user"), dict):
            return user["user"]
        return user or {}

    def current_caller(self) -> Caller:
        """Derive the review ``Caller`` from ``/auth/me``."""
        return caller_from_session_user(self.current_user(), self.session.active_context)
