"""
DTOs -- KYC data transfer objects.

Responsibility:
    Immutable request/response shapes exchanged with the backend KYC
    endpoints: listing filters, the unified status-update request, action
    results, statistics, paginated listings and vendor documents.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ``from_payload()`` class methods
    are boundary converters for backend JSON and are only invoked from the
    service layer.

Invariants enforced:
    - ``AdminKycFilters`` validates every field at construction; an invalid
      filter never reaches the backend (``InvalidFilterError``).
    - Status fields are ``KycStatus`` members, never raw strings.

Failure modes:
    - ``InvalidFilterError`` for out-of-range filters.
    - ``UnknownStatusError`` when a backend payload carries a status outside
      the enumeration.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from kyc_kernel.domain.status import KycStatus, parse_status
from kyc_kernel.exceptions import (
    InvalidFilterError,
    MalformedResponseError,
    UnknownStatusError,
)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

SORT_FIELDS = frozenset({"created_at", "updated_at", "reviewed_at", "status", "organization_name"})
SORT_DIRECTIONS = frozenset({"asc", "desc"})

DOCUMENT_TYPES = frozenset({
    "business_registration",
    "tax_certificate",
    "directors_id",
    "proof_of_address",
    "bank_statement",
    "memorandum_of_association",
    "passport",
    "national_id",
    "drivers_license",
    "voters_card",
    "selfie",
})

MAX_PER_PAGE = 100


class ExportFormat(str, Enum):
    CSV = "csv"
    XLSX = "xlsx"
    PDF = "pdf"


def _check_date(name: str, value: str | None) -> None:
    if value is None:
        return
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise InvalidFilterError(name, value, f"'{name}' must be a YYYY-MM-DD date")
    try:
        date.fromisoformat(value)
    except ValueError:
        raise InvalidFilterError(name, value, f"'{name}' is not a valid date") from None


def _check_range(lower: str, upper: str, lo: str | None, hi: str | None) -> None:
    if lo is not None and hi is not None and lo > hi:
        raise InvalidFilterError(upper, hi, f"'{upper}' is before '{lower}'")


@dataclass(frozen=True)
class AdminKycFilters:
    """Filters for the admin KYC listing and export endpoints."""

    search: str | None = None
    status: KycStatus | str | None = None
    document_type: str | None = None
    organization_id: str | None = None
    date_from: str | None = None
    date_to: str | None = None
    reviewed_from: str | None = None
    reviewed_to: str | None = None
    is_verified: bool | None = None
    is_expired: bool | None = None
    sort_by: str | None = None
    sort_direction: str | None = None
    per_page: int | None = None
    page: int | None = None

    def __post_init__(self) -> None:
        if self.status is not None:
            try:
                object.__setattr__(self, "status", parse_status(self.status))
            except UnknownStatusError:
                raise InvalidFilterError("status", self.status) from None
        if self.document_type is not None and self.document_type not in DOCUMENT_TYPES:
            raise InvalidFilterError("document_type", self.document_type)
        for name in ("date_from", "date_to", "reviewed_from", "reviewed_to"):
            _check_date(name, getattr(self, name))
        _check_range("date_from", "date_to", self.date_from, self.date_to)
        _check_range("reviewed_from", "reviewed_to", self.reviewed_from, self.reviewed_to)
        if self.sort_by is not None and self.sort_by not in SORT_FIELDS:
            raise InvalidFilterError("sort_by", self.sort_by)
        if self.sort_direction is not None and self.sort_direction not in SORT_DIRECTIONS:
            raise InvalidFilterError("sort_direction", self.sort_direction)
        if self.per_page is not None:
            if isinstance(self.per_page, bool) or not isinstance(self.per_page, int) or not (
                1 <= self.per_page <= MAX_PER_PAGE
            ):
                raise InvalidFilterError(
                    "per_page", self.per_page, f"'per_page' must be between 1 and {MAX_PER_PAGE}"
                )
        if self.page is not None and (not isinstance(self.page, int) or self.page < 1):
            raise InvalidFilterError("page", self.page)

    def to_params(self) -> dict[str, Any]:
        """Query parameters with unset fields dropped."""
        params: dict[str, Any] = {}
        for name in self.__dataclass_fields__:
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, Enum):
                value = value.value
            params[name] = value
        return params


@dataclass(frozen=True)
class KycStatusUpdateRequest:
    """Body of the unified ``PATCH /admin/kyc/{organization}/status`` call."""

    status: KycStatus
    notes: str | None = None
    reason: str | None = None

    def to_json(self) -> dict[str, Any]:
        body: dict[str, Any] = {"status": self.status.value}
        if self.notes:
            body["notes"] = self.notes
        if self.reason:
            body["reason"] = self.reason
        return body


@dataclass(frozen=True)
class KycActionResult:
    """What the backend returns after a status change."""

    id: str
    status: KycStatus
    reviewed_at: str | None = None
    reviewed_by: str | None = None
    organization: Mapping[str, Any] | None = None
    reviewer: Mapping[str, Any] | None = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> KycActionResult:
        """
        Raises:
            MalformedResponseError: no mapping, no status or an unknown status.
        """
        if not isinstance(data, Mapping) or "status" not in data:
            raise MalformedResponseError("kyc status update", "missing 'status'")
        try:
            status = parse_status(data["status"])
        except UnknownStatusError as exc:
            raise MalformedResponseError("kyc status update", str(exc)) from exc
        return cls(
            id=str(data.get("id", "")),
            status=status,
            reviewed_at=data.get("reviewed_at"),
            reviewed_by=data.get("reviewed_by"),
            organization=data.get("organization"),
            reviewer=data.get("reviewer"),
        )


@dataclass(frozen=True)
class KycStatistics:
    """Review queue statistics for a period."""

    total: int
    status_counts: Mapping[str, int]
    average_review_time_hours: float
    period_from: str | None = None
    period_to: str | None = None

    def count(self, status: KycStatus | str) -> int:
        return int(self.status_counts.get(parse_status(status).value, 0))

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> KycStatistics:
        stats = data.get("statistics", data)
        period = data.get("period") or {}
        counts: dict[str, int] = {}
        breakdown = stats.get("status_breakdown") or {}
        for status in KycStatus:
            value = breakdown.get(status.value, stats.get(status.value))
            if value is not None:
                counts[status.value] = int(value)
        return cls(
            total=int(stats.get("total", 0)),
            status_counts=counts,
            average_review_time_hours=float(stats.get("average_review_time_hours") or 0.0),
            period_from=period.get("from"),
            period_to=period.get("to"),
        )


@dataclass(frozen=True)
class PaginationMeta:
    current_page: int = 1
    per_page: int = 15
    total: int = 0
    last_page: int = 1

    @classmethod
    def from_payload(cls, data: Mapping[str, Any] | None) -> PaginationMeta:
        data = data or {}
        return cls(
            current_page=int(data.get("current_page", 1)),
            per_page=int(data.get("per_page", 15)),
            total=int(data.get("total", 0)),
            last_page=int(data.get("last_page", 1)),
        )

    @property
    def has_next(self) -> bool:
        return self.current_page < self.last_page


@dataclass(frozen=True)
class KycListPage:
    """One page of the admin KYC listing."""

    items: tuple[Mapping[str, Any], ...]
    meta: PaginationMeta = field(default_factory=PaginationMeta)

    @classmethod
    def from_payload(cls, data: Any) -> KycListPage:
        if isinstance(data, list):
            return cls(items=tuple(data), meta=PaginationMeta(total=len(data)))
        data = data or {}
        return cls(
            items=tuple(data.get("data") or ()),
            meta=PaginationMeta.from_payload(data.get("meta")),
        )


@dataclass(frozen=True)
class KycDocument:
    """A document uploaded by a vendor organization."""

    id: str
    organization_id: str
    document_type: str
    status: str
    document_number: str | None = None
    rejection_reason: str | None = None
    reviewed_at: str | None = None
    is_verified: bool = False
    is_expired: bool = False

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> KycDocument:
        return cls(
            id=str(data["id"]),
            organization_id=str(data.get("organization_id", "")),
            document_type=data.get("document_type", ""),
            status=data.get("status", "pending"),
            document_number=data.get("document_number"),
            rejection_reason=data.get("rejection_reason"),
            reviewed_at=data.get("reviewed_at"),
            is_verified=bool(data.get("is_verified", False)),
            is_expired=bool(data.get("is_expired", False)),
        )
