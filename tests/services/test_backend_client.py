"""
BackendClient tests over httpx.MockTransport.

Covers bearer auth, envelope unwrapping, pagination normalisation, the
refresh-and-retry-once rule, error mapping and portal context switching.
"""

import httpx
import pytest

from kyc_kernel.domain.caller import CONTEXT_ADMIN, CONTEXT_VENDOR
from kyc_kernel.exceptions import (
    BackendRequestError,
    BackendUnavailableError,
    NotAuthenticatedError,
    SessionExpiredError,
)
from kyc_kernel.logging_config import LogContext
from kyc_services.backend_client import BackendClient, normalize_paginated_response
from kyc_services.session_store import CookieSessionStore


def _refresh_ok(token="fresh-token", nested=False):
    tokens = {"access_token": token, "expires_in": 900}
    data = {"tokens": tokens} if nested else tokens
    return lambda request: httpx.Response(200, json={"success": True, "data": data})


class TestAuthenticatedRequests:

    def test_bearer_token_and_envelope(self, backend_client, fake_backend):
        fake_backend.json("GET", "/admin/kyc/5", {"success": True, "data": {"id": 5}})
        assert backend_client.get("/admin/kyc/5") == {"id": 5}
        request = fake_backend.requests[0]
        assert request.headers["Authorization"] == "Bearer test-access-token"
        assert request.url.path == "/api/v1/admin/kyc/5"

    def test_body_without_envelope_returned_as_is(self, backend_client, fake_backend):
        fake_backend.json("GET", "/ping", {"ok": True})
        assert backend_client.get("/ping") == {"ok": True}

    def test_no_token_sends_nothing(self, fake_backend, backend_settings):
        client = BackendClient(
            CookieSessionStore(),
            settings=backend_settings,
            transport=httpx.MockTransport(fake_backend.handler),
        )
        with client, pytest.raises(NotAuthenticatedError, match="No token found"):
            client.get("/admin/kyc")
        assert fake_backend.requests == []

    def test_params_cleaned(self, backend_client, fake_backend):
        fake_backend.json("GET", "/admin/kyc", {"data": []})
        backend_client.get("/admin/kyc", params={"status": "submitted", "search": None, "is_verified": True})
        params = fake_backend.requests[0].url.params
        assert params["status"] == "submitted"
        assert params["is_verified"] == "true"
        assert "search" not in params

    def test_correlation_id_forwarded(self, backend_client, fake_backend):
        fake_backend.json("GET", "/ping", {"data": {}})
        with LogContext.bind(correlation_id="corr-42"):
            backend_client.get("/ping")
        assert fake_backend.requests[0].headers["X-Request-ID"] == "corr-42"

    def test_no_content(self, backend_client, fake_backend):
        fake_backend.status("DELETE", "/organizations/1/kyc/documents/2", 204)
        assert backend_client.delete("/organizations/1/kyc/documents/2") is None

    def test_download_returns_bytes(self, backend_client, fake_backend):
        fake_backend.add(
            "GET", "/admin/kyc/export",
            lambda request: httpx.Response(200, content=b"id,status\n1,approved\n"),
        )
        assert backend_client.download("/admin/kyc/export") == b"id,status\n1,approved\n"


class TestRefreshAndRetry:

    def test_refresh_then_retry_once(self, backend_client, fake_backend, session_store):
        fake_backend.status("GET", "/admin/kyc/pending", 401)
        fake_backend.json("GET", "/admin/kyc/pending", {"data": [{"id": 1}]})
        fake_backend.add("POST", "/auth/refresh", _refresh_ok())

        assert backend_client.get("/admin/kyc/pending") == [{"id": 1}]
        assert len(fake_backend.calls("POST", "/auth/refresh")) == 1
        retried = fake_backend.calls("GET", "/admin/kyc/pending")
        assert len(retried) == 2
        assert retried[1].headers["Authorization"] == "Bearer fresh-token"
        assert session_store.access_token == "fresh-token"

    def test_nested_token_payload(self, backend_client, fake_backend, session_store):
        fake_backend.status("GET", "/me-ish", 401)
        fake_backend.json("GET", "/me-ish", {"data": {}})
        fake_backend.add("POST", "/auth/refresh", _refresh_ok("nested-token", nested=True))
        backend_client.get("/me-ish")
        assert session_store.access_token == "nested-token"

    def test_second_401_expires_session(self, backend_client, fake_backend, session_store):
        fake_backend.status("GET", "/admin/kyc", 401)
        fake_backend.add("POST", "/auth/refresh", _refresh_ok())

        with pytest.raises(SessionExpiredError):
            backend_client.get("/admin/kyc")
        assert len(fake_backend.calls("POST", "/auth/refresh")) == 1
        assert len(fake_backend.calls("GET", "/admin/kyc")) == 2
        assert session_store.is_authenticated is False

    def test_refresh_refused_clears_session(self, backend_client, fake_backend, session_store):
        fake_backend.status("GET", "/admin/kyc", 401)
        fake_backend.json("POST", "/auth/refresh", {"message": "Unauthenticated."}, status_code=401)

        with pytest.raises(SessionExpiredError, match="Please login again"):
            backend_client.get("/admin/kyc")
        assert len(fake_backend.calls("GET", "/admin/kyc")) == 1
        assert session_store.access_token is None

    def test_refresh_without_token_clears_session(self, backend_client, fake_backend, session_store):
        fake_backend.status("GET", "/admin/kyc", 401)
        fake_backend.json("POST", "/auth/refresh", {"success": True, "data": {}})
        with pytest.raises(SessionExpiredError):
            backend_client.get("/admin/kyc")
        assert not session_store.is_authenticated

    def test_auth_paths_not_retried(self, backend_client, fake_backend):
        fake_backend.json("GET", "/auth/me", {"message": "Unauthenticated."}, status_code=401)
        with pytest.raises(BackendRequestError) as exc_info:
            backend_client.get("/auth/me")
        assert exc_info.value.status_code == 401
        assert fake_backend.calls("POST", "/auth/refresh") == []


class TestErrorMapping:

    def test_validation_errors_carried(self, backend_client, fake_backend):
        fake_backend.json(
            "PATCH", "/admin/kyc/3/status",
            {"message": "The given data was invalid.", "errors": {"reason": ["The reason field is required."]}},
            status_code=422,
        )
        with pytest.raises(BackendRequestError) as exc_info:
            backend_client.patch("/admin/kyc/3/status", json={"status": "rejected"})
        err = exc_info.value
        assert err.status_code == 422
        assert err.message == "The given data was invalid."
        assert err.errors == {"reason": ["The reason field is required."]}
        assert err.code == "BACKEND_REQUEST_FAILED"

    def test_non_json_error_body(self, backend_client, fake_backend):
        fake_backend.add("GET", "/admin/kyc", lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(BackendRequestError) as exc_info:
            backend_client.get("/admin/kyc")
        assert exc_info.value.status_code == 500

    def test_connect_error(self, session_store, backend_settings):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = BackendClient(
            session_store, settings=backend_settings, transport=httpx.MockTransport(refuse)
        )
        with client, pytest.raises(BackendUnavailableError) as exc_info:
            client.get("/admin/kyc")
        assert exc_info.value.path == "/admin/kyc"


class TestPaginationNormalisation:

    def test_named_items_key_renamed(self):
        body = {
            "success": True,
            "data": {"kyc_documents": [{"id": 1}], "meta": {"total": 1}, "filters": {"a": 1}},
        }
        assert normalize_paginated_response(body) == {
            "success": True,
            "data": {"data": [{"id": 1}], "meta": {"total": 1}, "filters": {"a": 1}},
        }

    def test_already_normalised_untouched(self):
        body = {"data": {"data": [], "meta": {}}}
        assert normalize_paginated_response(body) is body

    @pytest.mark.parametrize("body", [None, [], "text", {"data": [1, 2]}])
    def test_non_paginated_untouched(self, body):
        assert normalize_paginated_response(body) == body

    def test_through_client(self, backend_client, fake_backend):
        fake_backend.json(
            "GET", "/admin/kyc",
            {"data": {"kyc_documents": [{"id": 7}], "meta": {"current_page": 1, "last_page": 1}}},
        )
        payload = backend_client.get("/admin/kyc")
        assert payload["data"] == [{"id": 7}]


class TestSessionEndpoints:

    def test_switch_context(self, backend_client, fake_backend, session_store):
        fake_backend.json(
            "POST", "/auth/switch-context",
            {"data": {"access_token": "admin-token", "context": "admin"}},
        )
        data = backend_client.switch_context(CONTEXT_ADMIN, password="secret")
        assert data["context"] == "admin"
        assert session_store.access_token == "admin-token"
        assert session_store.active_context == CONTEXT_ADMIN
        sent = fake_backend.requests[0]
        assert b'"context_type"' in sent.content

    def test_switch_context_401_clears(self, backend_client, fake_backend, session_store):
        fake_backend.status("POST", "/auth/switch-context", 401)
        with pytest.raises(SessionExpiredError):
            backend_client.switch_context(CONTEXT_VENDOR)
        assert not session_store.is_authenticated

    def test_current_caller(self, backend_client, fake_backend):
        fake_backend.json("GET", "/auth/me", {"data": {"user": {
            "id": 4,
            "admin": {"is_platform_admin": True, "platform_permissions": [{"name": "approve_kyc"}]},
        }}})
        caller = backend_client.current_caller()
        assert caller.actor_id == "4"
        assert caller.has_admin_access
        assert not caller.is_privileged
        assert "approve_kyc" in caller.permissions
