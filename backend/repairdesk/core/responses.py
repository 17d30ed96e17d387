"""Standardized API response envelope.

Every JSON response has the shape:
    {"status": <int>, "message": <str>, "data": {...}}        (success)
    {"status": <int>, "message": <str>, "errors": {...}}      (error)

Empty ``data`` / ``errors`` are always serialized as ``{}`` so clients can
rely on an object being present.
"""

from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def envelope_body(
    status: int,
    message: str,
    data: Any = None,
    errors: Optional[Dict[str, Any]] = None,
    is_error: bool = False,
) -> dict:
    """Build the raw envelope dict (used by handlers and tests)."""
    body = {"status": status, "message": message}
    if is_error:
        body["errors"] = jsonable_encoder(errors) if errors else {}
    else:
        body["data"] = jsonable_encoder(data) if data else {}
    return body


def success(
    message: str,
    data: Any = None,
    status: int = 200,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Success envelope: ``{"status", "message", "data"}``."""
    return JSONResponse(
        status_code=status,
        content=envelope_body(status, message, data=data),
        headers=headers,
    )


def error(
    message: str,
    errors: Optional[Dict[str, Any]] = None,
    status: int = 400,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Error envelope: ``{"status", "message", "errors"}``."""
    return JSONResponse(
        status_code=status,
        content=envelope_body(status, message, errors=errors, is_error=True),
        headers=headers,
    )
