"""
Per-request log context.

Request metadata is bound into structlog's context variables so every line
logged while handling the request (store, unlocker, producer) carries the
same trace id and caller.
"""
import time
from fastapi import Request
from opentelemetry import trace
import structlog

logger = structlog.get_logger(__name__)


def _trace_id() -> str:
    context = trace.get_current_span().get_span_context()
    return format(context.trace_id, '032x') if context.is_valid else ""


async def logging_middleware(request: Request, call_next):
    structlog.contextvars.clear_contextvars()
    trace_id = _trace_id()
    structlog.contextvars.bind_contextvars(
        trace_id=trace_id,
        caller_id=request.headers.get("x-user-id") or "guest",
        route=f"{request.method} {request.url.path}",
    )

    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("Request crashed")
        raise
    elapsed_ms = round((time.perf_counter() - started) * 1000, 1)

    log = logger.warning if response.status_code >= 500 else logger.info
    log("Request handled", status_code=response.status_code, elapsed_ms=elapsed_ms)

    if trace_id:
        response.headers["X-Trace-Id"] = trace_id
    structlog.contextvars.clear_contextvars()
    return response
