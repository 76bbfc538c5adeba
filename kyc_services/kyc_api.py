"""
kyc_services.kyc_api -- Vendor-side KYC document endpoints.

A vendor organization uploads its documents in one multipart request.
Submitting moves the record to ``submitted``; when the caller knows the
record's current status the move is checked against the regular transition
table first.  The reviewer modification gate does not apply here, so a
rejected record can be resubmitted while an approved one cannot.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from kyc_config import get_active_policy
from kyc_kernel.domain.dtos import KycDocument
from kyc_kernel.domain.review import is_transition_permitted
from kyc_kernel.domain.status import KycStatus
from kyc_kernel.domain.transitions import RESUBMISSION_TARGET, TransitionPolicy
from kyc_kernel.exceptions import TransitionNotPermittedError
from kyc_kernel.logging_config import get_logger
from kyc_services.backend_client import BackendClient

logger = get_logger("services.kyc_api")

REQUIRED_UPLOADS = ("id_document", "proof_of_address")
OPTIONAL_UPLOADS = ("registration_certificate",)


def _documents_path(organization_id: str) -> str:
    return f"/organizations/{organization_id}/kyc/documents"


class VendorKycApi:
    """KYC document operations for a vendor organization.

    The resubmission check uses the active policy pack unless a ``policy``
    is passed in.
    """

    def __init__(self, client: BackendClient, policy: TransitionPolicy | None = None):
        self._client = client
        self._policy = policy if policy is not None else get_active_policy().policy

    def documents(self, organization_id: str) -> list[KycDocument]:
        payload = self._client.get(_documents_path(organization_id)) or []
        if isinstance(payload, Mapping):
            payload = payload.get("data") or []
        return [KycDocument.from_payload(item) for item in payload]

    def document(self, organization_id: str, document_id: str) -> KycDocument:
        payload = self._client.get(f"{_documents_path(organization_id)}/{document_id}")
        return KycDocument.from_payload(payload)

    def submit_documents(
        self,
        organization_id: str,
        files: Mapping[str, Any],
        tax_id: str | None = None,
        current_status: KycStatus | str | None = None,
    ) -> Any:
        """Upload the organization's KYC documents.

        ``files`` maps upload field names (``id_document``,
        ``proof_of_address``, optionally ``registration_certificate``) to
        anything httpx accepts as a file.

        Raises:
            ValueError: a required upload is missing or a field is unknown.
            TransitionNotPermittedError: ``current_status`` cannot move to
                ``submitted``.
        """
        missing = [name for name in REQUIRED_UPLOADS if not files.get(name)]
        if missing:
            raise ValueError(f"Missing required KYC uploads: {', '.join(missing)}")
        unknown = sorted(set(files) - set(REQUIRED_UPLOADS) - set(OPTIONAL_UPLOADS))
        if unknown:
            raise ValueError(f"Unknown KYC upload fields: {', '.join(unknown)}")

        if current_status is not None and not is_transition_permitted(
            current_status, RESUBMISSION_TARGET, False, self._policy,
        ):
            logger.warning(
                "kyc_submission_refused",
                extra={"organization_id": organization_id, "from_state": str(current_status)},
            )
            raise TransitionNotPermittedError(str(current_status), RESUBMISSION_TARGET.value, False)

        data = {"tax_id": tax_id} if tax_id else None
        result = self._client.post(
            _documents_path(organization_id),
            data=data,
            files={name: value for name, value in files.items() if value},
        )
        logger.info("kyc_documents_submitted", extra={"organization_id": organization_id})
        return result

    def delete_document(self, organization_id: str, document_id: str) -> None:
        self._client.delete(f"{_documents_path(organization_id)}/{document_id}")
