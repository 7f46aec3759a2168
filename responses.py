from typing import Any, Optional

from fastapi import HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from services import ErrorKind, ServiceResult

STATUS_BY_KIND = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    # wrong actor is reported like any other rejected action
    ErrorKind.FORBIDDEN: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def send_success(data: Any = None, message: Optional[str] = None, status_code: int = 200) -> JSONResponse:
    body: dict = {"success": True}
    if data is not None:
        body["data"] = jsonable_encoder(data, by_alias=True)
    if message:
        body["message"] = message
    return JSONResponse(body, status_code=status_code)


def send_error(error: str, status_code: int = 400, details: Any = None) -> JSONResponse:
    body: dict = {"success": False, "error": error}
    if details is not None:
        body["details"] = jsonable_encoder(details)
    return JSONResponse(body, status_code=status_code)


def send_result(result: ServiceResult, status_code: int = 200) -> JSONResponse:
    """Map a ServiceResult onto the envelope and an HTTP status."""
    if result.success:
        return send_success(result.data, result.message, status_code)
    kind = result.kind or ErrorKind.VALIDATION
    return send_error(result.error or "Request failed", STATUS_BY_KIND[kind])


def parse_id(raw: str, label: str) -> int:
    """Path ids must be positive integers; anything else is a 400 before any lookup."""
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"Invalid {label} ID")
    if value < 1:
        raise HTTPException(status_code=400, detail=f"Invalid {label} ID")
    return value
