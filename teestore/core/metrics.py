from __future__ import annotations

from typing import Any

from prometheus_client import Counter, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from teestore.core.config import settings


class _NoOpMetric:
    def labels(self, *args: Any, **kwargs: Any) -> "_NoOpMetric":
        return self

    def observe(self, *_: Any, **__: Any) -> None:
        return None

    def inc(self, *_: Any, **__: Any) -> None:
        return None


def _metric_or_noop(metric_factory: Any) -> Any:
    if not settings.METRICS_ENABLED:
        return _NoOpMetric()
    return metric_factory()


REQUEST_LATENCY = _metric_or_noop(
    lambda: Histogram(
        f"{settings.METRICS_NAMESPACE}_http_request_duration_seconds",
        "HTTP request latency in seconds.",
        ["method", "path", "status_code"],
        buckets=settings.METRICS_LATENCY_BUCKETS,
    )
)

REQUEST_COUNT = _metric_or_noop(
    lambda: Counter(
        f"{settings.METRICS_NAMESPACE}_http_requests_total",
        "Total HTTP requests processed.",
        ["method", "path", "status_code"],
    )
)

REQUEST_ERRORS = _metric_or_noop(
    lambda: Counter(
        f"{settings.METRICS_NAMESPACE}_http_errors_total",
        "Total HTTP requests resulting in 4xx/5xx.",
        ["method", "path", "status_code"],
    )
)

PRICE_RESOLUTIONS = _metric_or_noop(
    lambda: Counter(
        f"{settings.METRICS_NAMESPACE}_price_resolutions_total",
        "Product price resolutions partitioned by outcome.",
        ["outcome"],
    )
)

COUPON_VALIDATIONS = _metric_or_noop(
    lambda: Counter(
        f"{settings.METRICS_NAMESPACE}_coupon_validations_total",
        "Coupon validations partitioned by outcome.",
        ["outcome"],
    )
)

COUPON_REDEMPTIONS = _metric_or_noop(
    lambda: Counter(
        f"{settings.METRICS_NAMESPACE}_coupon_redemptions_total",
        "Coupon usage commits partitioned by outcome.",
        ["outcome"],
    )
)


def normalize_path(request) -> str:
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    if path:
        return path
    return request.url.path


def record_request_metrics(request, status_code: int, elapsed: float) -> None:
    method = request.method
    path = normalize_path(request)
    labels = (method, path, str(status_code))
    REQUEST_COUNT.labels(*labels).inc()
    REQUEST_LATENCY.labels(*labels).observe(elapsed)
    if status_code >= 400:
        REQUEST_ERRORS.labels(*labels).inc()


def record_price_resolution(outcome: str) -> None:
    PRICE_RESOLUTIONS.labels(outcome=outcome).inc()


def record_coupon_validation(outcome: str) -> None:
    COUPON_VALIDATIONS.labels(outcome=outcome).inc()


def record_coupon_redemption(outcome: str) -> None:
    COUPON_REDEMPTIONS.labels(outcome=outcome).inc()


def export_metrics() -> tuple[bytes, str]:
    if not settings.METRICS_ENABLED:
        return b"", "text/plain; charset=utf-8"
    return generate_latest(), CONTENT_TYPE_LATEST
