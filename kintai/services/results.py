from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from kintai.errors import STORAGE_ERROR

T = TypeVar("T")


@dataclass(frozen=True)
class ActionResult(Generic[T]):
    """Outcome of a store-backed operation.

    Expected failures (state conflicts, locked months, storage errors) are
    reported here instead of raised so callers can render them directly.
    """

    success: bool
    message: str
    code: str | None = None
    value: T | None = None

    @classmethod
    def ok(cls, message: str, value: T | None = None) -> ActionResult[T]:
        return cls(success=True, message=message, value=value)

    @classmethod
    def failure(cls, code: str, message: str, value: T | None = None) -> ActionResult[T]:
        return cls(success=False, message=message, code=code, value=value)

    @classmethod
    def storage_failure(cls, prefix: str, exc: SQLAlchemyError) -> ActionResult[T]:
        detail = str(getattr(exc, "orig", None) or exc)
        return cls(success=False, message=f"{prefix}: {detail}", code=STORAGE_ERROR)
