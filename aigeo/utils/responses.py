"""
Response Envelope

Every handler answers with the same JSON shape:

    {"status": "ok", "data": ..., "meta": {"generatedAt": ...}}
    {"status": "error", "error": "...", "details": ..., "meta": {...}}

Extra top-level fields (counts, echo of request params) are allowed next
to "data".
"""

from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse

from aigeo.utils.dates import utc_now_iso


def build_meta(**extra: Any) -> Dict[str, Any]:
    meta = {"generatedAt": utc_now_iso()}
    meta.update({key: value for key, value in extra.items() if value is not None})
    return meta


def ok_response(
    data: Any = None,
    status_code: int = 200,
    meta: Optional[Dict[str, Any]] = None,
    status: str = "ok",
    **fields: Any,
) -> JSONResponse:
    """Success envelope. `fields` are merged at the top level."""
    body: Dict[str, Any] = {"status": status, "data": data}
    body.update(fields)
    body["meta"] = build_meta(**(meta or {}))
    return JSONResponse(status_code=status_code, content=body)


def error_response(
    message: str,
    status_code: int = 500,
    details: Any = None,
    meta: Optional[Dict[str, Any]] = None,
    **fields: Any,
) -> JSONResponse:
    """Error envelope."""
    body: Dict[str, Any] = {"status": "error", "error": message}
    if details is not None:
        body["details"] = details
    body.update(fields)
    body["meta"] = build_meta(**(meta or {}))
    return JSONResponse(status_code=status_code, content=body)


def upstream_error(
    message: str,
    error: Exception,
    default_status: int = 500,
    **fields: Any,
) -> JSONResponse:
    """Error envelope for a failed upstream call, keeping its HTTP status when it has one."""
    status_code = getattr(error, "status_code", None) or default_status
    if status_code < 400:
        status_code = default_status
    return error_response(message, status_code=status_code, details=str(error), **fields)
