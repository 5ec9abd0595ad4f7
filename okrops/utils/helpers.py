"""Shared utility functions used across services and blueprints.

get_or_raise:        primary-key lookup raising NotFoundError
parse_date:          lenient date parsing (returns None on bad input)
parse_date_input:    strict date parsing (raises ValidationError on bad input)
text_input:          stripped string field (raises ValidationError on non-strings)
db_commit_or_error:  commit with rollback + failure classification
"""
import logging
from datetime import date, datetime

from okrops.core.exceptions import (
    FailureKind,
    NotFoundError,
    ValidationError,
    classify_failure,
)
from okrops.models import db
from okrops.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def get_or_raise(model, pk, label=None):
    """Fetch a model instance by primary key or raise NotFoundError."""
    label = label or model.__name__
    obj = db.session.get(model, pk) if pk else None
    if obj is None:
        raise NotFoundError(resource=label, resource_id=pk)
    return obj


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY
    """
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_date_input(value, field="date"):
    """Parse a date, raising ValidationError when a non-empty value is malformed."""
    if value in (None, ""):
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError(
            f"Invalid {field}. Use YYYY-MM-DD or DD.MM.YYYY.",
            details={field: "invalid date"},
        )
    return parsed


def text_input(data, field, required=False):
    """Return the stripped string value of *field*, or None when blank.

    Raises ValidationError for a non-string value, or for a blank value
    when *required*.
    """
    value = data.get(field)
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={field: "must be a string"})
    value = (value or "").strip()
    if not value:
        if required:
            raise ValidationError(f"{field} is required", details={field: "required"})
        return None
    return value


# ── Database commit helper ───────────────────────────────────────────────────

def db_commit_or_error():
    """Commit the current SQLAlchemy session, returning an error response on failure.

    Returns:
        None on success.
        (response, status_code) tuple on failure — ready for ``return``.

    Usage::

        err = db_commit_or_error()
        if err:
            return err

    IntegrityError → 409 (duplicate / constraint violation)
    Forbidden signature (SQLSTATE 42501 / "permission denied") → 403
    Other → 500 (generic, not retried)
    """
    from sqlalchemy.exc import IntegrityError

    try:
        db.session.commit()
        return None
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        return api_error(E.CONFLICT_DUPLICATE, "Duplicate or constraint violation")
    except Exception as exc:
        db.session.rollback()
        kind, message = classify_failure(exc)
        if kind is FailureKind.PERMISSION_DENIED:
            logger.warning("Commit rejected by database authorization: %s", exc)
            return api_error(E.FORBIDDEN, message)
        logger.exception("Unexpected database error on commit")
        return api_error(E.DATABASE, message)
