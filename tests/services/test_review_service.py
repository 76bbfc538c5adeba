"""
KycReviewService tests.

Every update_status call emits exactly one KYC_STATUS_TRANSITION record, and
the backend is only called when RBAC, the gate, the validator and the
reason policy all pass.
"""

import json
from pathlib import Path

import pytest
import yaml

from kyc_config import get_active_policy
from kyc_kernel.domain.caller import Caller
from kyc_kernel.domain.status import KycStatus
from kyc_kernel.exceptions import (
    BackendRequestError,
    MalformedResponseError,
    PermissionDeniedError,
    ReasonRequiredError,
    RecordLockedError,
    TransitionNotPermittedError,
)
from kyc_kernel.logging_config import LogContext
from kyc_services.admin_kyc_api import AdminKycApi
from kyc_services.review_service import (
    LOCKED_MESSAGE,
    OUTCOME_BACKEND_ERROR,
    OUTCOME_PERMISSION_DENIED,
    OUTCOME_REASON_REQUIRED,
    OUTCOME_RECORD_LOCKED,
    OUTCOME_SUCCESS,
    OUTCOME_TRANSITION_NOT_PERMITTED,
    TRACE_TYPE_KYC_TRANSITION,
    KycReviewService,
)

ORG = "org-42"
STATUS_PATH = f"/admin/kyc/{ORG}/status"
DEFAULT_PACK_FILE = Path(__file__).resolve().parents[2] / "kyc_config" / "sets" / "default" / "policy.yaml"


@pytest.fixture
def traces():
    return []


@pytest.fixture
def service(backend_client, traces):
    return KycReviewService(AdminKycApi(backend_client), outcome_sink=traces.append)


def _backend_accepts(fake_backend, status):
    fake_backend.json("PATCH", STATUS_PATH, {"data": {"id": "k-1", "status": status}})


class TestUpdateStatusSuccess:

    def test_regular_reviewer_moves_forward(self, service, reviewer, fake_backend, traces):
        _backend_accepts(fake_backend, "in_review")
        result = service.update_status(reviewer, ORG, "submitted", "in_review")

        assert result.status is KycStatus.IN_REVIEW
        assert len(fake_backend.calls("PATCH", STATUS_PATH)) == 1
        assert len(traces) == 1
        trace = traces[0]
        assert trace["trace_type"] == TRACE_TYPE_KYC_TRANSITION
        assert trace["outcome"] == OUTCOME_SUCCESS
        assert trace["from_state"] == "submitted"
        assert trace["to_state"] == "in_review"
        assert trace["actor_id"] == "admin-1"
        assert trace["organization_id"] == ORG
        assert trace["message"] == "kyc_status_transition"

    def test_reason_and_notes_sent(self, service, reviewer, fake_backend):
        _backend_accepts(fake_backend, "rejected")
        service.update_status(
            reviewer, ORG, "reviewed", "rejected", reason="  Tax ID mismatch ", notes="checked twice"
        )
        body = json.loads(fake_backend.calls("PATCH", STATUS_PATH)[0].content)
        assert body == {"status": "rejected", "reason": "Tax ID mismatch", "notes": "checked twice"}

    def test_reason_only_sent_when_required(self, service, reviewer, fake_backend):
        _backend_accepts(fake_backend, "approved")
        service.update_status(reviewer, ORG, "reviewed", "approved", reason="looks fine")
        body = json.loads(fake_backend.calls("PATCH", STATUS_PATH)[0].content)
        assert body == {"status": "approved"}

    def test_super_admin_reopens_approved(self, service, super_admin, fake_backend, traces):
        _backend_accepts(fake_backend, "in_review")
        result = service.update_status(super_admin, ORG, KycStatus.APPROVED, KycStatus.IN_REVIEW)
        assert result.status is KycStatus.IN_REVIEW
        assert traces[0]["is_privileged"] is True
        assert traces[0]["outcome"] == OUTCOME_SUCCESS

    def test_trace_logged(self, service, reviewer, fake_backend, captured_logs):
        _backend_accepts(fake_backend, "in_review")
        with LogContext.bind(correlation_id="req-7"):
            service.update_status(reviewer, ORG, "submitted", "in_review")
        records = [r for r in captured_logs() if r["message"] == "kyc_status_transition"]
        assert len(records) == 1
        assert records[0]["outcome"] == OUTCOME_SUCCESS
        assert records[0]["correlation_id"] == "req-7"
        assert records[0]["trace_type"] == TRACE_TYPE_KYC_TRANSITION

    def test_trace_fields_win_over_log_context(self, service, reviewer, fake_backend, traces):
        _backend_accepts(fake_backend, "in_review")
        with LogContext.bind(organization_id="other-org", request_id="r-1"):
            service.update_status(reviewer, ORG, "submitted", "in_review")
        assert traces[0]["organization_id"] == ORG
        assert traces[0]["request_id"] == "r-1"


class TestUpdateStatusRefusals:
    """Failed checks raise, trace once and never reach the backend."""

    @pytest.mark.parametrize(
        "current,proposed,reason,error,outcome",
        [
            ("approved", "in_review", None, RecordLockedError, OUTCOME_RECORD_LOCKED),
            ("rejected", "submitted", None, RecordLockedError, OUTCOME_RECORD_LOCKED),
            ("submitted", "approved", None, TransitionNotPermittedError, OUTCOME_TRANSITION_NOT_PERMITTED),
            ("reviewed", "archived", "x", TransitionNotPermittedError, OUTCOME_TRANSITION_NOT_PERMITTED),
            ("reviewed", "rejected", "", ReasonRequiredError, OUTCOME_REASON_REQUIRED),
            ("in_review", "needs_more_info", "   ", ReasonRequiredError, OUTCOME_REASON_REQUIRED),
        ],
    )
    def test_check_failures(
        self, service, reviewer, fake_backend, traces, current, proposed, reason, error, outcome
    ):
        with pytest.raises(error):
            service.update_status(reviewer, ORG, current, proposed, reason=reason)
        assert fake_backend.requests == []
        assert [t["outcome"] for t in traces] == [outcome]

    def test_permission_denied(self, service, fake_backend, traces):
        viewer = Caller(
            actor_id="viewer-1",
            has_admin_access=True,
            permissions=frozenset({"view_kyc"}),
            active_context="admin",
        )
        with pytest.raises(PermissionDeniedError) as exc_info:
            service.update_status(viewer, ORG, "submitted", "in_review")
        assert exc_info.value.permission == "approve_kyc"
        assert exc_info.value.actor_id == "viewer-1"
        assert fake_backend.requests == []
        assert traces[0]["outcome"] == OUTCOME_PERMISSION_DENIED
        assert "approve_kyc" in traces[0]["reason"]

    def test_rbac_runs_before_transition_checks(self, service, vendor_user, traces):
        with pytest.raises(PermissionDeniedError):
            service.update_status(vendor_user, ORG, "approved", "in_review")
        assert traces[0]["outcome"] == OUTCOME_PERMISSION_DENIED

    def test_backend_error_traced(self, service, reviewer, fake_backend, traces):
        fake_backend.json("PATCH", STATUS_PATH, {"message": "Record changed"}, status_code=409)
        with pytest.raises(BackendRequestError):
            service.update_status(reviewer, ORG, "submitted", "in_review")
        assert [t["outcome"] for t in traces] == [OUTCOME_BACKEND_ERROR]

    @pytest.mark.parametrize(
        "body",
        [
            {"data": {"id": "k-1", "kyc_status": "in_review"}},
            {"data": {"id": "k-1", "status": "escalated"}},
        ],
    )
    def test_malformed_success_body_traced(self, service, reviewer, fake_backend, traces, body):
        fake_backend.json("PATCH", STATUS_PATH, body)
        with pytest.raises(MalformedResponseError):
            service.update_status(reviewer, ORG, "submitted", "in_review")
        assert len(fake_backend.calls("PATCH", STATUS_PATH)) == 1
        assert len(traces) == 1
        assert traces[0]["outcome"] == OUTCOME_BACKEND_ERROR
        assert "status" in traces[0]["reason"]


class TestReviewOptions:

    def test_open_record(self, service, reviewer):
        options = service.review_options(reviewer, "reviewed")
        assert options.can_modify is True
        assert options.lock_message is None
        assert options.current_label == "Reviewed"
        assert [o.status for o in options.next_states] == [
            KycStatus.IN_REVIEW, KycStatus.APPROVED, KycStatus.REJECTED,
        ]
        assert [o.label for o in options.next_states] == ["In Review", "Approved", "Rejected"]
        assert options.reason_required_for == {KycStatus.REJECTED}

    @pytest.mark.parametrize("status", ["approved", "rejected"])
    def test_final_record_locked_for_reviewer(self, service, reviewer, status):
        options = service.review_options(reviewer, status)
        assert options.can_modify is False
        assert options.next_states == ()
        assert options.lock_message == LOCKED_MESSAGE

    def test_final_record_open_for_super_admin(self, service, super_admin):
        options = service.review_options(super_admin, "approved")
        assert options.can_modify is True
        assert {o.status for o in options.next_states} == {KycStatus.IN_REVIEW, KycStatus.REJECTED}

    def test_unknown_status(self, service, reviewer):
        options = service.review_options(reviewer, "archived")
        assert options.can_modify is False
        assert options.current_label == "archived"
        assert options.next_states == ()


class TestActivePolicy:
    """Without an explicit policy the service follows the active pack."""

    def test_default_policy_comes_from_pack(self, backend_client, captured_logs):
        KycReviewService(AdminKycApi(backend_client))
        assert any(r["message"] == "KYC_POLICY_TRACE" for r in captured_logs())

    def test_pack_rules_govern_decisions(
        self, backend_client, reviewer, fake_backend, monkeypatch, tmp_path
    ):
        data = yaml.safe_load(DEFAULT_PACK_FILE.read_text())
        data["transitions"]["regular"]["submitted"] = ["in_review", "needs_more_info"]
        pack_dir = tmp_path / "strict"
        pack_dir.mkdir()
        (pack_dir / "policy.yaml").write_text(yaml.safe_dump(data))
        compiled = get_active_policy("strict", config_dir=tmp_path)
        monkeypatch.setattr(
            "kyc_services.review_service.get_active_policy", lambda: compiled
        )

        service = KycReviewService(AdminKycApi(backend_client))
        assert service.policy is compiled.policy
        with pytest.raises(TransitionNotPermittedError):
            service.update_status(reviewer, ORG, "submitted", "rejected", reason="fraud")
        assert fake_backend.requests == []
