"""
api/responses.py -- Envelope builders shared by routes and exception handlers.

Success: {"success": true,  "data": {...}}
Error:   {"success": false, "error": {"message": "...", "details"?: ..., "reset"?: "..."}}

Keys are serialized by alias (camelCase) and None-valued optional error keys
are dropped, so "details" only appears when there is something to show.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from api.models import ErrorDetail, ErrorResponse, SuccessResponse


def success_response(data: BaseModel, status_code: int = 200) -> JSONResponse:
    body = SuccessResponse[type(data)](data=data)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", by_alias=True))


def error_response(
    status_code: int,
    message: str,
    details: Any = None,
    reset: Optional[str] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(message=message, details=details, reset=reset))
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers=headers,
    )
