"""
kyc_services.admin_kyc_api -- Admin endpoints for KYC review.

Responsibility:
    Thin typed wrapper over the backend's ``/admin/kyc`` endpoints: listing,
    detail, pending queue, statistics, the unified status update and export.

Architecture position:
    Services layer.  Performs no authorization of its own; the review
    service runs the RBAC and transition checks before calling
    ``update_status``.
"""

from __future__ import annotations

from typing import Any

from kyc_kernel.domain.dtos import (
    AdminKycFilters,
    ExportFormat,
    KycActionResult,
    KycListPage,
    KycStatistics,
    KycStatusUpdateRequest,
)
from kyc_kernel.exceptions import InvalidFilterError
from kyc_kernel.logging_config import get_logger
from kyc_services.backend_client import BackendClient

logger = get_logger("services.admin_kyc_api")

ADMIN_KYC_PATH = "/admin/kyc"


class AdminKycApi:
    """Admin KYC operations against the backend."""

    def __init__(self, client: BackendClient):
        self._client = client

    def list(self, filters: AdminKycFilters | None = None) -> KycListPage:
        params = filters.to_params() if filters is not None else None
        return KycListPage.from_payload(self._client.get(ADMIN_KYC_PATH, params=params))

    def get(self, kyc_id: str) -> dict[str, Any]:
        return self._client.get(f"{ADMIN_KYC_PATH}/{kyc_id}") or {}

    def pending(self) -> KycListPage:
        return KycListPage.from_payload(self._client.get(f"{ADMIN_KYC_PATH}/pending"))

    def statistics(
        self,
        date_from: str | None = None,
        date_to: str | None = None,
    ) -> KycStatistics:
        # format and range checks come from the listing filters
        AdminKycFilters(date_from=date_from, date_to=date_to)
        payload = self._client.get(
            f"{ADMIN_KYC_PATH}/statistics",
            params={"date_from": date_from, "date_to": date_to},
        )
        return KycStatistics.from_payload(payload or {})

    def update_status(
        self,
        organization_id: str,
        request: KycStatusUpdateRequest,
    ) -> KycActionResult:
        """Apply a status change through the single transition endpoint."""
        payload = self._client.patch(
            f"{ADMIN_KYC_PATH}/{organization_id}/status",
            json=request.to_json(),
        )
        logger.info(
            "kyc_status_updated",
            extra={"organization_id": organization_id, "to_state": request.status.value},
        )
        return KycActionResult.from_payload(payload or {"status": request.status.value})

    def export(
        self,
        fmt: ExportFormat | str = ExportFormat.CSV,
        filters: AdminKycFilters | None = None,
    ) -> bytes:
        try:
            export_format = ExportFormat(fmt)
        except ValueError:
            raise InvalidFilterError("format", fmt) from None
        params: dict[str, Any] = filters.to_params() if filters is not None else {}
        params["format"] = export_format.value
        return self._client.download(f"{ADMIN_KYC_PATH}/export", params=params)
