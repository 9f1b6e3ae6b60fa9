import time
from typing import Optional

from fastapi import Request
from fastapi.responses import ORJSONResponse

from ...domain.models import ErrorResponse
from ...logging import error, warning, LogRecord, LogEvent


def build_error_response(
    status_code: int, message: str, request_id: Optional[str] = None
) -> ORJSONResponse:
    """JSON body ``{"success": false, "error": ...}`` with the given status."""
    body = ErrorResponse(error=message, request_id=request_id)
    return ORJSONResponse(
        status_code=status_code, content=body.model_dump(exclude_none=True)
    )


async def log_and_return_error_response(
    request: Request,
    status_code: int,
    error_message: str,
    caught_exception: Optional[BaseException] = None,
) -> ORJSONResponse:
    request_id = getattr(request.state, "request_id", None)
    start_time_mono = getattr(request.state, "start_time_monotonic", time.monotonic())
    duration_ms = (time.monotonic() - start_time_mono) * 1000

    log_data = {
        "status_code": status_code,
        "duration_ms": duration_ms,
        "method": request.method,
        "path": request.url.path,
        "client_ip": request.client.host if request.client else "unknown",
    }
    record = LogRecord(
        event=LogEvent.REQUEST_FAILURE.value,
        message=f"Request failed: {error_message}",
        request_id=request_id,
        data=log_data,
    )
    # Client errors are expected traffic; only server errors go to the error log.
    if status_code >= 500:
        error(record, exc=caught_exception)
    else:
        warning(record)
    return build_error_response(status_code, error_message, request_id)
