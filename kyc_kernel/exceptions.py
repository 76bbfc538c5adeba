"""
Typed Exception Hierarchy for the KYC Review Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A reviewer who is refused a status change needs to be told WHICH kind of
refusal happened. "You are not allowed", "explain why" and "this record is
finalized" lead to three different screens. Parsing messages to tell them
apart is fragile, so every refusal has:
  1. Its own exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA as attributes (not just a message string)

Example - WRONG way to handle errors:
    try:
        service.update_status(...)
    except Exception as e:
        if "finalized" in str(e):  # FRAGILE - message might change
            show_locked_banner()

Example - RIGHT way (what this module enables):
    try:
        service.update_status(...)
    except RecordLockedError as e:
        show_locked_banner(e.status)
    except ReasonRequiredError as e:
        focus_reason_field(e.to_status)
    except TransitionNotPermittedError as e:
        api_response(code=e.code, from_status=e.from_status, to_status=e.to_status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from KycKernelError:

    KycKernelError (base)
    |
    +-- ReviewError
    |   +-- RecordLockedError
    |   +-- TransitionNotPermittedError
    |
    +-- KycValidationError
    |   +-- ReasonRequiredError
    |   +-- UnknownStatusError
    |   +-- InvalidFilterError
    |
    +-- PolicyError
    |   +-- PolicyStructureError
    |
    +-- AuthorizationError
    |   +-- PermissionDeniedError
    |
    +-- SessionError
    |   +-- NotAuthenticatedError
    |   +-- SessionExpiredError
    |
    +-- BackendError
        +-- BackendUnavailableError
        +-- BackendRequestError
        +-- MalformedResponseError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|---------------------------------------
Review          | KYC_RECORD_LOCKED             | Non-privileged caller on a final record
                | KYC_TRANSITION_NOT_PERMITTED  | Target not reachable in one step
----------------|-------------------------------|---------------------------------------
Validation      | KYC_REASON_REQUIRED           | Reject / needs-more-info without reason
                | UNKNOWN_KYC_STATUS            | Value outside the status enumeration
                | INVALID_KYC_FILTER            | Listing/export filter out of range
----------------|-------------------------------|---------------------------------------
Policy          | POLICY_STRUCTURE_INVALID      | Transition tables violate invariants
----------------|-------------------------------|---------------------------------------
Authorization   | PERMISSION_DENIED             | Caller lacks the action's permission
----------------|-------------------------------|---------------------------------------
Session         | NOT_AUTHENTICATED             | No access token in the session store
                | SESSION_EXPIRED               | Token refresh failed or was rejected
----------------|-------------------------------|---------------------------------------
Backend         | BACKEND_UNAVAILABLE           | Backend API cannot be reached
                | BACKEND_REQUEST_FAILED        | Backend answered with a non-2xx status
                | BACKEND_RESPONSE_MALFORMED    | 2xx body is missing or has bad fields

===============================================================================
HANDLING PATTERNS
===============================================================================

1. REVIEW FAILURES ARE USER-FACING, NEVER FATAL:

    except ReviewError as e:
        return {"error": e.code, "message": str(e)}
    except KycValidationError as e:
        return {"error": e.code, "field": "reason"}

2. SESSION FAILURES SEND THE USER BACK TO LOGIN:

    except SessionError:
        redirect("/login")

3. BACKEND FAILURES CARRY THE BACKEND'S OWN MESSAGE AND FIELD ERRORS:

    except BackendRequestError as e:
        for field, messages in e.errors.items():
            ...
"""


class KycKernelError(Exception):
    """
    Base exception for all KYC kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "KYC_KERNEL_ERROR"


# Review-related exceptions


class ReviewError(KycKernelError):
    """Base exception for refused review actions."""

    code: str = "REVIEW_ERROR"


class RecordLockedError(ReviewError):
    """
    The record is in a final status and the caller is not privileged.

    Raised before any specific target status is considered.
    """

    code: str = "KYC_RECORD_LOCKED"

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"This KYC record is finalized ({status}) and cannot be modified")


class TransitionNotPermittedError(ReviewError):
    """The proposed status is not reachable from the current one for this caller."""

    code: str = "KYC_TRANSITION_NOT_PERMITTED"

    def __init__(self, from_status: str, to_status: str, is_privileged: bool):
        self.from_status = from_status
        self.to_status = to_status
        self.is_privileged = is_privileged
        super().__init__(
            f"You cannot move this record from {from_status} to {to_status}"
        )


# Validation exceptions


class KycValidationError(KycKernelError):
    """Base exception for input the caller must correct."""

    code: str = "KYC_VALIDATION_ERROR"


class ReasonRequiredError(KycValidationError):
    """A justification is mandatory for this target status and none was given."""

    code: str = "KYC_REASON_REQUIRED"

    def __init__(self, to_status: str):
        self.to_status = to_status
        super().__init__(f"A reason is required when moving a record to {to_status}")


class UnknownStatusError(KycValidationError):
    """Value is not one of the KYC lifecycle statuses."""

    code: str = "UNKNOWN_KYC_STATUS"

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Unknown KYC status: {value!r}")


class InvalidFilterError(KycValidationError):
    """A listing or export filter is outside its allowed range."""

    code: str = "INVALID_KYC_FILTER"

    def __init__(self, field: str, value: object, message: str = ""):
        self.field = field
        self.value = value
        super().__init__(message or f"Invalid value for filter '{field}': {value!r}")


# Policy exceptions


class PolicyError(KycKernelError):
    """Base exception for transition policy problems."""

    code: str = "POLICY_ERROR"


class PolicyStructureError(PolicyError):
    """
    Transition tables violate a structural invariant.

    Raised at construction time so that a broken policy can never be used
    for a decision.
    """

    code: str = "POLICY_STRUCTURE_INVALID"

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        super().__init__(
            "Invalid transition policy: " + "; ".join(self.problems)
        )


# Authorization exceptions


class AuthorizationError(KycKernelError):
    """Base exception for permission checks."""

    code: str = "AUTHORIZATION_ERROR"


class PermissionDeniedError(AuthorizationError):
    """Caller does not hold the permission the action requires."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, permission: str, actor_id: str | None = None):
        self.permission = permission
        self.actor_id = actor_id
        super().__init__(f"Permission '{permission}' is required for this action")


# Session exceptions


class SessionError(KycKernelError):
    """Base exception for session and token problems."""

    code: str = "SESSION_ERROR"


class NotAuthenticatedError(SessionError):
    """No access token is available for an authenticated request."""

    code: str = "NOT_AUTHENTICATED"

    def __init__(self, message: str = "No token found"):
        super().__init__(message)


class SessionExpiredError(SessionError):
    """The access token expired and could not be refreshed."""

    code: str = "SESSION_EXPIRED"

    def __init__(self, message: str = "Your session has expired. Please login again."):
        super().__init__(message)


# Backend exceptions


class BackendError(KycKernelError):
    """Base exception for failures talking to the backend API."""

    code: str = "BACKEND_ERROR"


class BackendUnavailableError(BackendError):
    """Backend API cannot be reached."""

    code: str = "BACKEND_UNAVAILABLE"

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Cannot connect to backend API ({path})")


class BackendRequestError(BackendError):
    """
    Backend answered with a non-success status.

    ``errors`` holds field-level validation messages when the backend
    returned them (``{"reason": ["The reason field is required."]}``).
    """

    code: str = "BACKEND_REQUEST_FAILED"

    def __init__(
        self,
        status_code: int,
        path: str,
        message: str = "",
        errors: dict[str, list[str]] | None = None,
    ):
        self.status_code = status_code
        self.path = path
        self.message = message or "An error occurred"
        self.errors = dict(errors or {})
        super().__init__(f"{path} failed with HTTP {status_code}: {self.message}")


class MalformedResponseError(BackendError):
    """
    Backend answered with a success status but a body that cannot be parsed.

    For a status update this means the change may already be stored.
    """

    code: str = "BACKEND_RESPONSE_MALFORMED"

    def __init__(self, what: str, detail: str):
        self.what = what
        self.detail = detail
        super().__init__(f"Malformed backend response for {what}: {detail}")
