"""
Metric sources for bucket-driven scaling.

Sources report the number of objects pending in a bucket:
- GCS: object listing of a Google Cloud Storage bucket
- Mock: scripted counts for tests
"""

from .base import (
    AuthError,
    FetchError,
    FetchTimeoutError,
    MetricSource,
    MockMetricSource,
    RateLimitError,
)
from .gcs import GCSObjectCountSource

__all__ = [
    "MetricSource",
    "MockMetricSource",
    "GCSObjectCountSource",
    "FetchError",
    "FetchTimeoutError",
    "RateLimitError",
    "AuthError",
]
