"""
Application-wide exception hierarchy and failure classification.

Services raise these types; blueprints register handlers against them once and
get consistent HTTP status codes everywhere.

Taxonomy:
    NotFoundError          → 404  referenced entity missing
    PermissionDeniedError  → 403  mutation rejected by the authorization layer
    ValidationError        → 422  well-formed input violating a business rule
    ConflictError          → 409  unique constraint would be violated
    TransientFailure       → 500  anything else; surfaced generically, never retried

Usage:
    from okrops.core.exceptions import NotFoundError, PermissionDeniedError

    raise NotFoundError(resource="Item", resource_id=item_id)
    raise PermissionDeniedError("items.update_status", actor_id=actor_id)
"""

from enum import Enum


INSUFFICIENT_ROLE_MESSAGE = "Insufficient role for this action"
UNKNOWN_ERROR_MESSAGE = "Unknown error"


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Item", "Team").
        resource_id: The id that was looked up. Included in logs and message.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class PermissionDeniedError(Exception):
    """Raised when the actor's roles do not grant the requested operation.

    The HTTP message is always the user-facing "insufficient role" text; the
    codename and actor are kept on the instance for logging.
    """

    def __init__(self, permission: str, actor_id: str | None = None) -> None:
        self.permission = permission
        self.actor_id = actor_id
        super().__init__(INSUFFICIENT_ROLE_MESSAGE)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would create a duplicate unique row."""

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")


class TransientFailure(Exception):
    """Any other request failure. Surfaced generically; not retried."""

    def __init__(self, message: str = UNKNOWN_ERROR_MESSAGE) -> None:
        super().__init__(message)


# ── Failure classification ───────────────────────────────────────────────────


class FailureKind(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    TRANSIENT = "transient"


# PostgreSQL SQLSTATE codes
_FORBIDDEN_CODES = {"42501", "403"}
_NOT_FOUND_CODES = {"PGRST116", "404"}
_CONFLICT_CODES = {"23505", "409"}

_FORBIDDEN_MARKERS = (
    "permission denied",
    "row-level security",
    "row level security",
    "forbidden",
    "insufficient",
    "not authorized",
)

_USER_MESSAGES = {
    FailureKind.PERMISSION_DENIED: INSUFFICIENT_ROLE_MESSAGE,
    FailureKind.NOT_FOUND: "Not found",
    FailureKind.CONFLICT: "Already exists",
    FailureKind.TRANSIENT: UNKNOWN_ERROR_MESSAGE,
}


def _failure_code(error) -> str | None:
    # psycopg exposes the SQLSTATE as .pgcode / .sqlstate on the DBAPI error,
    # which SQLAlchemy wraps under .orig
    for source in (getattr(error, "orig", None), error):
        if source is None:
            continue
        for attr in ("pgcode", "sqlstate", "code", "status_code"):
            value = getattr(source, attr, None)
            if value is not None:
                return str(value)
    return None


def classify_failure(error) -> tuple[FailureKind, str]:
    """Classify a failed request into the error taxonomy.

    Accepts our own exceptions, SQLAlchemy / DBAPI errors, or any object that
    exposes ``code`` and/or ``message``. Returns ``(kind, user_message)``.

    A forbidden signature (SQLSTATE 42501, HTTP 403, or a message mentioning
    permission / row-level security) yields PERMISSION_DENIED so the caller can
    show "insufficient role" instead of a generic failure.
    """
    if isinstance(error, PermissionDeniedError):
        return FailureKind.PERMISSION_DENIED, INSUFFICIENT_ROLE_MESSAGE
    if isinstance(error, NotFoundError):
        return FailureKind.NOT_FOUND, str(error)
    if isinstance(error, ValidationError):
        return FailureKind.VALIDATION, str(error)
    if isinstance(error, ConflictError):
        return FailureKind.CONFLICT, str(error)

    code = _failure_code(error)
    message = (getattr(error, "message", None) or str(error) or "").lower()

    if code in _FORBIDDEN_CODES or any(m in message for m in _FORBIDDEN_MARKERS):
        kind = FailureKind.PERMISSION_DENIED
    elif code in _NOT_FOUND_CODES:
        kind = FailureKind.NOT_FOUND
    elif code in _CONFLICT_CODES:
        kind = FailureKind.CONFLICT
    else:
        kind = FailureKind.TRANSIENT
    return kind, _USER_MESSAGES[kind]
