from fastapi import HTTPException
from pydantic import BaseModel
from typing import Optional


class ProblemDetail(BaseModel):
    """RFC 7807 compliant error response."""

    type: str = "about:blank"
    title: str
    detail: Optional[str] = None
    status: int
    instance: Optional[str] = None
    code: str


class DomainException(Exception):
    """Base class for domain-specific exceptions."""

    def __init__(
        self,
        status_code: int,
        title: str,
        *,
        code: str,
        detail: str | None = None,
        type_: str = "about:blank",
    ) -> None:
        super().__init__(detail or title)
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type = type_
        self.code = code


class NotFound(DomainException):
    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(
            status_code=404,
            title=f"{entity.capitalize()} not found",
            detail=f"{entity} '{entity_id}' not found",
            code=f"{entity}_not_found",
        )


class Forbidden(DomainException):
    def __init__(self, entity: str, detail: str) -> None:
        super().__init__(
            status_code=403,
            title="Forbidden",
            detail=detail,
            code=f"{entity}_forbidden",
        )


class InvalidState(DomainException):
    """The entity is not in a state that permits the operation."""

    def __init__(
        self, entity: str, current: str | None, action: str, *, detail: str | None = None
    ) -> None:
        self.current = current
        super().__init__(
            status_code=409,
            title="Invalid state",
            detail=detail or f"cannot {action} a {entity} with status '{current}'",
            code=f"{entity}_invalid_state",
        )


class InvalidScore(DomainException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=422,
            title="Invalid score",
            detail=detail,
            code="match_invalid_score",
        )


class SelfConfirmation(DomainException):
    def __init__(self) -> None:
        super().__init__(
            status_code=403,
            title="Self confirmation",
            detail="you cannot confirm or dispute your own result submission",
            code="match_self_confirmation",
        )


class SlotConflict(DomainException):
    def __init__(self, court_id: str) -> None:
        super().__init__(
            status_code=409,
            title="Slot conflict",
            detail=f"court '{court_id}' is already booked for that time",
            code="booking_slot_conflict",
        )


class PastBooking(DomainException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=400,
            title="Booking in the past",
            detail=detail,
            code="booking_in_past",
        )


class InvalidBooking(DomainException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=400,
            title="Invalid booking",
            detail=detail,
            code="booking_invalid",
        )


class InvalidRequest(DomainException):
    def __init__(self, detail: str) -> None:
        super().__init__(
            status_code=400,
            title="Invalid match request",
            detail=detail,
            code="request_invalid",
        )


class DuplicateRequest(DomainException):
    def __init__(self, recipient_id: str) -> None:
        super().__init__(
            status_code=409,
            title="Duplicate match request",
            detail=f"a pending request to '{recipient_id}' already exists",
            code="request_duplicate",
        )


def http_problem(
    status_code: int,
    detail: str,
    code: str,
    *,
    headers: Optional[dict[str, str]] = None,
) -> HTTPException:
    """Create an HTTPException with an attached problem code."""

    exc = HTTPException(status_code=status_code, detail=detail, headers=headers)
    setattr(exc, "code", code)
    return exc
