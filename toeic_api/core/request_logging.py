"""
Request/response logging middleware.

Tags every request with an id, logs start and completion, flags slow
requests and server errors, and emits a performance record per request.
"""
import logging
import time
import uuid

from fastapi import Request

from toeic_api.core import config
from toeic_api.core.logging_config import METRICS_LOGGER_NAME, format_fields
from toeic_api.core.rate_limit import get_client_ip

logger = logging.getLogger(__name__)
metrics_logger = logging.getLogger(METRICS_LOGGER_NAME)

REQUEST_ID_HEADER = "X-Request-ID"


async def request_logging_middleware(request: Request, call_next):
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = request_id

    method = request.method
    path = request.url.path
    ip = get_client_ip(request)
    start = time.perf_counter()

    logger.info(f"Request started: request_id={request_id} method={method} path={path} ip={ip}")

    try:
        response = await call_next(request)
    except Exception:
        duration_ms = (time.perf_counter() - start) * 1000
        logger.exception(
            f"Request crashed: request_id={request_id} method={method} path={path} duration_ms={duration_ms:.1f}"
        )
        raise

    duration_ms = (time.perf_counter() - start) * 1000
    status_code = response.status_code

    response.headers[REQUEST_ID_HEADER] = request_id
    response.headers["X-Response-Time"] = f"{duration_ms:.1f}ms"

    summary = (
        f"request_id={request_id} method={method} path={path} "
        f"status={status_code} duration_ms={duration_ms:.1f}"
    )
    if status_code >= 500:
        logger.error(f"Request failed: {summary}")
    elif status_code >= 400:
        logger.warning(f"Request completed with client error: {summary}")
    else:
        logger.info(f"Request completed: {summary}")

    if duration_ms > config.SLOW_REQUEST_THRESHOLD_MS:
        logger.warning(f"Slow request: {summary} threshold_ms={config.SLOW_REQUEST_THRESHOLD_MS}")

    metrics_logger.info("performance " + format_fields({
        "request_id": request_id,
        "method": method,
        "path": path,
        "status": status_code,
        "duration_ms": round(duration_ms, 1),
        "content_length": response.headers.get("content-length", "0"),
    }))

    return response
