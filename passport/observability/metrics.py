import time
from typing import Callable

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.requests import Request
from starlette.responses import Response


REQUEST_COUNTER = Counter(
    "api_requests_total",
    "HTTP requests total",
    ["method", "path", "status"],
)

REQUEST_LATENCY = Histogram(
    "api_request_duration_seconds",
    "HTTP request latency",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)

ROLE_RESOLUTION_COUNTER = Counter(
    "passport_role_resolutions_total",
    "Role resolutions by the precedence tier that produced the role",
    ["tier"],
)

SECRET_VERIFICATION_COUNTER = Counter(
    "passport_client_secret_verifications_total",
    "Client secret verifications",
    ["result"],
)

ADMIN_ACTION_COUNTER = Counter(
    "passport_admin_actions_total",
    "Administrative mutations",
    ["action"],
)


def increment_role_resolution(tier: str) -> None:
    ROLE_RESOLUTION_COUNTER.labels(tier).inc()


def increment_secret_verification(result: str) -> None:
    SECRET_VERIFICATION_COUNTER.labels(result).inc()


def increment_admin_action(action: str) -> None:
    ADMIN_ACTION_COUNTER.labels(action).inc()


async def metrics_endpoint(_: Request) -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


async def request_metrics_middleware(request: Request, call_next: Callable):
    start = time.time()
    response = await call_next(request)
    elapsed = time.time() - start
    path = request.url.path
    # avoid high cardinality by trimming numeric ids
    if path.count("/") > 2:
        parts = path.split("/")
        parts = [p if not p.isdigit() else ":id" for p in parts]
        path = "/".join(parts)
    REQUEST_COUNTER.labels(request.method, path, str(response.status_code)).inc()
    REQUEST_LATENCY.observe(elapsed)
    return response
