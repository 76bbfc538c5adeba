"""
KYC status registry (``kyc_kernel.domain.status``).

Responsibility
--------------
Single source of truth for the closed set of KYC lifecycle statuses and
their display metadata (label, description, finality).

Architecture position
---------------------
**Kernel domain layer** -- pure value objects and lookups.  ZERO I/O.

Invariants enforced
-------------------
* The status set is closed: ``KycStatus`` is the only way to name a status.
* ``approved`` and ``rejected`` are the only final statuses.
* Every ``KycStatus`` member has exactly one ``StatusInfo`` entry.

Failure modes
-------------
* Lookups given a value outside the enumeration raise
  ``UnknownStatusError``.  The transition layer does NOT go through these
  lookups for its decisions; it fails closed instead (see
  ``kyc_kernel.domain.transitions``).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from kyc_kernel.exceptions import UnknownStatusError


class KycStatus(str, Enum):
    """Lifecycle status of an organization's KYC record.

    Values are the wire strings used by the backend API.
    """

    NOT_SUBMITTED = "not_submitted"
    PENDING = "pending"
    SUBMITTED = "submitted"
    IN_REVIEW = "in_review"
    NEEDS_MORE_INFO = "needs_more_info"
    REVIEWED = "reviewed"
    APPROVED = "approved"
    REJECTED = "rejected"

    def __str__(self) -> str:
        return self.value


INITIAL_STATUS = KycStatus.NOT_SUBMITTED


@dataclass(frozen=True)
class StatusInfo:
    """Display metadata for one status."""

    status: KycStatus
    label: str
    description: str
    is_final: bool = False


_REGISTRY: dict[KycStatus, StatusInfo] = {
    info.status: info
    for info in (
        StatusInfo(
            KycStatus.NOT_SUBMITTED,
            "Not Submitted",
            "KYC documents have not been submitted",
        ),
        StatusInfo(
            KycStatus.PENDING,
            "Pending",
            "KYC documents are pending submission",
        ),
        StatusInfo(
            KycStatus.SUBMITTED,
            "Submitted",
            "KYC documents have been submitted for review",
        ),
        StatusInfo(
            KycStatus.IN_REVIEW,
            "In Review",
            "KYC documents are currently being reviewed",
        ),
        StatusInfo(
            KycStatus.NEEDS_MORE_INFO,
            "Needs More Info",
            "Additional information or documents are required",
        ),
        StatusInfo(
            KycStatus.REVIEWED,
            "Reviewed",
            "KYC documents have been reviewed and are pending final approval",
        ),
        StatusInfo(
            KycStatus.APPROVED,
            "Approved",
            "KYC documents have been approved",
            is_final=True,
        ),
        StatusInfo(
            KycStatus.REJECTED,
            "Rejected",
            "KYC documents have been rejected",
            is_final=True,
        ),
    )
}

STATUS_REGISTRY = MappingProxyType(_REGISTRY)

FINAL_STATUSES: frozenset[KycStatus] = frozenset(
    info.status for info in _REGISTRY.values() if info.is_final
)


def parse_status(value: KycStatus | str) -> KycStatus:
    """Convert a wire string (or a status) to ``KycStatus``.

    Raises:
        UnknownStatusError: if ``value`` is not a KYC status.
    """
    if isinstance(value, KycStatus):
        return value
    try:
        return KycStatus(value)
    except ValueError:
        raise UnknownStatusError(value) from None


def coerce_status(value: object) -> KycStatus | None:
    """Like ``parse_status`` but returns None for anything unknown."""
    if isinstance(value, KycStatus):
        return value
    if not isinstance(value, str):
        return None
    try:
        return KycStatus(value)
    except ValueError:
        return None


def status_info(status: KycStatus | str) -> StatusInfo:
    """Return the registry entry for ``status``."""
    return _REGISTRY[parse_status(status)]


def label_for(status: KycStatus | str) -> str:
    """Human-readable label, e.g. ``"Needs More Info"``."""
    return status_info(status).label


def description_for(status: KycStatus | str) -> str:
    """Help text for tooltips."""
    return status_info(status).description


def is_final(status: KycStatus | str) -> bool:
    """True exactly for ``approved`` and ``rejected``."""
    return status_info(status).is_final
