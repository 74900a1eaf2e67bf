"""Metrics module using Prometheus."""

from .prometheus_metrics import (
    CatalogMetrics,
    HTTPMetrics,
    get_catalog_metrics,
    get_http_metrics,
    get_metrics_handler,
)

__all__ = [
    "CatalogMetrics",
    "HTTPMetrics",
    "get_catalog_metrics",
    "get_http_metrics",
    "get_metrics_handler",
]
