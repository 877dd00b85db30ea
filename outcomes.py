"""Typed outcomes for the save / publish / upload pipelines.

Expected rejections (quota, slug conflict, not found, rate limited) come back
as a ``Failure`` value. Only unexpected problems, such as an unreachable
database, are raised.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Union

from fastapi import HTTPException, status

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation_error"
    UNAUTHORIZED = "unauthorized"
    QUOTA_EXCEEDED = "quota_exceeded"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"


HTTP_STATUS = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.QUOTA_EXCEEDED: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.SERVER_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str
    retry_after: Optional[int] = None  # seconds, rate limiting only

    def to_http_exception(self) -> HTTPException:
        headers = None
        if self.retry_after is not None:
            headers = {
                "Retry-After": str(self.retry_after),
                "X-RateLimit-Reset": str(self.retry_after),
            }
        return HTTPException(
            status_code=HTTP_STATUS[self.kind],
            detail=self.message,
            headers=headers,
        )


Outcome = Union[Success[T], Failure]


def unwrap(outcome: "Outcome[T]") -> T:
    """Return the success value or raise the matching HTTPException."""
    if isinstance(outcome, Failure):
        raise outcome.to_http_exception()
    return outcome.value
