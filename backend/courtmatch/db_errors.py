"""Helpers for classifying database/SQLAlchemy errors."""

from __future__ import annotations

from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError

_EXCLUSION_VIOLATION_SQLSTATES = {"23P01"}
_UNIQUE_VIOLATION_SQLSTATES = {"23505"}


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = getattr(exc, "orig", None)
    if orig is None:
        return None
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_overlap_violation(exc: IntegrityError, constraint_name: str) -> bool:
    """Return ``True`` if ``exc`` was raised by the booking exclusion constraint."""

    if _sqlstate(exc) in _EXCLUSION_VIOLATION_SQLSTATES:
        return True
    return constraint_name.lower() in str(getattr(exc, "orig", exc)).lower()


def is_unique_violation(exc: IntegrityError, index_name: str | None = None) -> bool:
    """Return ``True`` if ``exc`` is a unique-constraint violation.

    Parameters
    ----------
    exc:
        The SQLAlchemy integrity error to inspect.
    index_name:
        Optional index/constraint name that must appear in the original
        database error message. SQLite does not report index names, so a
        generic ``UNIQUE constraint failed`` message also matches.
    """

    if _sqlstate(exc) in _UNIQUE_VIOLATION_SQLSTATES:
        return index_name is None or index_name.lower() in str(exc.orig).lower()

    message = str(getattr(exc, "orig", exc)).lower()
    if "unique constraint failed" in message:
        return True
    return index_name is not None and index_name.lower() in message


def is_transient_error(exc: BaseException) -> bool:
    """Return ``True`` for store failures that are safe to retry wholesale."""

    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return isinstance(exc, (OperationalError, InterfaceError))
