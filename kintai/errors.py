from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

# Failure codes carried by service results and API error bodies.
STATE_CONFLICT = "STATE_CONFLICT"
MONTH_LOCKED = "MONTH_LOCKED"
STORAGE_ERROR = "STORAGE_ERROR"
NOT_FOUND = "NOT_FOUND"
FORBIDDEN = "FORBIDDEN"

_STATUS_BY_CODE = {
    STATE_CONFLICT: 409,
    MONTH_LOCKED: 409,
    STORAGE_ERROR: 503,
    NOT_FOUND: 404,
    FORBIDDEN: 403,
}


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message

    @classmethod
    def from_failure(cls, code: str, message: str) -> ApiError:
        return cls(status_code=_STATUS_BY_CODE.get(code, 400), code=code, message=message)


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(request: Request, *, status_code: int, code: str, message: str) -> JSONResponse:
    payload = {
        "error": {
            "code": code,
            "message": message,
            "request_id": get_request_id(request),
        }
    }
    return JSONResponse(status_code=status_code, content=payload)
