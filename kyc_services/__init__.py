"""
kyc_services -- Package init and public API.

Responsibility:
    The I/O layer: cookie session state, the authenticated backend client,
    the admin and vendor KYC endpoint wrappers, RBAC and the review service
    that composes them with the pure checks in ``kyc_kernel``.

Architecture position:
    Services -- above ``kyc_kernel`` and ``kyc_config``.

        kyc_services/ -> kyc_config/  (allowed)
        kyc_services/ -> kyc_kernel/  (allowed)
        kyc_kernel/   -> kyc_services/ (FORBIDDEN)
"""

from kyc_services.admin_kyc_api import AdminKycApi
from kyc_services.backend_client import BackendClient, normalize_paginated_response
from kyc_services.kyc_api import VendorKycApi
from kyc_services.rbac_authority import check_permission, get_permission_for_action
from kyc_services.review_service import KycReviewService, NextStateOption, ReviewOptions
from kyc_services.session_store import CookieSessionStore

__all__ = [
    "AdminKycApi",
    "BackendClient",
    "CookieSessionStore",
    "KycReviewService",
    "NextStateOption",
    "ReviewOptions",
    "VendorKycApi",
    "check_permission",
    "get_permission_for_action",
    "normalize_paginated_response",
]
