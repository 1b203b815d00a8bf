"""
Prometheus metrics for the Donation Ledger Service
"""
import time
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

http_requests_total = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

# Ledger metrics
donations_recorded_total = Counter(
    'donations_recorded_total',
    'Total number of donations persisted',
    ['type']
)

badges_unlocked_total = Counter(
    'badges_unlocked_total',
    'Total number of badges newly added to a user badge set',
    ['badge_id']
)

goal_completions_total = Counter(
    'goal_completions_total',
    'Total number of goals transitioned to completed'
)

achievement_failures_total = Counter(
    'achievement_evaluation_failures_total',
    'Achievement evaluation steps skipped because of a store failure',
    ['stage']
)

# Cache metrics
cache_operations_total = Counter(
    'cache_operations_total',
    'Total number of cache operations',
    ['operation', 'status']
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect Prometheus metrics for HTTP requests"""

    async def dispatch(self, request: Request, call_next):
        # Skip metrics endpoint itself
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.time()

        response = await call_next(request)

        # Use the route template so ids do not explode label cardinality
        endpoint = request.url.path
        route = request.scope.get('route')
        if route is not None and hasattr(route, 'path'):
            endpoint = route.path

        duration = time.time() - start_time

        http_requests_total.labels(
            method=request.method,
            endpoint=endpoint,
            status=str(response.status_code)
        ).inc()

        http_request_duration_seconds.labels(
            method=request.method,
            endpoint=endpoint
        ).observe(duration)

        return response


async def metrics_endpoint(request: Request):
    """Endpoint to expose Prometheus metrics"""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
