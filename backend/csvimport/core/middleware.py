"""
Request tracking middleware.
"""

import re
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from csvimport.core.logging import get_logger, import_id_var, request_id_var

logger = get_logger(__name__)

IMPORT_PATH = re.compile(r"/imports/(?P<import_id>[0-9a-f-]{36})(?:/|$)")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag every request with an id and log its duration.

    Requests under ``/imports/{id}`` also tag their log lines with the
    import id, so one import can be followed across its batch requests.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_var.set(request_id)
        match = IMPORT_PATH.search(request.url.path)
        import_id_var.set(match.group("import_id") if match else None)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                extra={
                    "extra_fields": {
                        "query": str(request.query_params),
                        "duration_ms": round(duration_ms, 2),
                        "error": str(e),
                    }
                },
                exc_info=True,
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            f"{request.method} {request.url.path} - {response.status_code}",
            extra={
                "extra_fields": {
                    "query": str(request.query_params),
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                }
            },
        )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response
