"""
Pytest fixtures for the KYC review kernel test suite.

Provides:
- Structured logging configuration and log capture
- Caller factories for the reviewer tiers
- An in-memory backend (httpx.MockTransport) with request recording

No network access: every HTTP test runs against MockTransport.
"""

import json
import logging
from io import StringIO

import httpx
import pytest

from kyc_config.settings import BackendSettings
from kyc_kernel.domain.caller import CONTEXT_ADMIN, CONTEXT_VENDOR, Caller
from kyc_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from kyc_services.backend_client import BackendClient
from kyc_services.session_store import CookieSessionStore

TEST_BASE_URL = "http://backend.test"
TEST_TOKEN = "test-access-token"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture kyc_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, review_service):
            review_service.update_status(...)
            logs = captured_logs()
            assert any(r["message"] == "kyc_status_transition" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("kyc_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Callers
# =============================================================================


@pytest.fixture
def reviewer():
    """Platform admin with the KYC permissions, not a super admin."""
    return Caller(
        actor_id="admin-1",
        is_privileged=False,
        has_admin_access=True,
        permissions=frozenset({"view_kyc", "approve_kyc", "export_kyc"}),
        roles=frozenset({"Platform Admin"}),
        active_context=CONTEXT_ADMIN,
    )


@pytest.fixture
def super_admin():
    return Caller(
        actor_id="root-1",
        is_privileged=True,
        has_admin_access=True,
        roles=frozenset({"Super Admin"}),
        active_context=CONTEXT_ADMIN,
    )


@pytest.fixture
def vendor_user():
    return Caller(actor_id="vendor-1", active_context=CONTEXT_VENDOR)


# =============================================================================
# In-memory backend
# =============================================================================


class FakeBackend:
    """Routes requests to canned handlers and records every request.

    Handlers are keyed by ``(method, path)`` where ``path`` is relative to
    the API base (``/admin/kyc``).  A handler is a callable taking the
    request and returning a fresh ``httpx.Response``.
    """

    API_ROOT = "/api/v1"

    def __init__(self):
        self.routes: dict[tuple[str, str], list] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, *handlers) -> None:
        self.routes.setdefault((method, path), []).extend(handlers)

    def json(self, method: str, path: str, body, status_code: int = 200) -> None:
        self.add(method, path, lambda request: httpx.Response(status_code, json=body))

    def status(self, method: str, path: str, status_code: int) -> None:
        self.add(method, path, lambda request: httpx.Response(status_code))

    def calls(self, method: str | None = None, path: str | None = None) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if (method is None or r.method == method)
            and (path is None or self._relative(r) == path)
        ]

    def _relative(self, request: httpx.Request) -> str:
        path = request.url.path
        return path[len(self.API_ROOT):] if path.startswith(self.API_ROOT) else path

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, self._relative(request)))
        if not queue:
            return httpx.Response(404, json={"message": "Not found"})
        # Last response is sticky; earlier ones are consumed in order.
        entry = queue.pop(0) if len(queue) > 1 else queue[0]
        return entry(request)


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def backend_settings():
    return BackendSettings(base_url=TEST_BASE_URL)


@pytest.fixture
def session_store(backend_settings):
    store = CookieSessionStore.from_settings(backend_settings)
    store.store_tokens(TEST_TOKEN, expires_in=3600)
    return store


@pytest.fixture
def backend_client(fake_backend, session_store, backend_settings):
    client = BackendClient(
        session_store,
        settings=backend_settings,
        transport=httpx.MockTransport(fake_backend.handler),
    )
    yield client
    client.close()
