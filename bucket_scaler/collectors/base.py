"""
Metric source interface.

A metric source returns the number of objects pending in a bucket. Sources
report every failure as a FetchError (or subclass) so the polling controller
can keep its last decision and back off.
"""

from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from bucket_scaler.utils.logging import get_logger

logger = get_logger(__name__)


class FetchError(Exception):
    """Transient failure to read the object count."""

    error_type = "fetch"


class FetchTimeoutError(FetchError):
    """The metric source did not answer within the fetch timeout."""

    error_type = "timeout"


class RateLimitError(FetchError):
    """The metric source throttled the request."""

    error_type = "rate_limit"


class AuthError(FetchError):
    """Credentials were rejected or could not be loaded."""

    error_type = "auth"


class MetricSource(ABC):
    """
    Abstract base class for object-count sources.

    Subclasses must implement:
    - fetch_count(bucket_identifier, credentials) -> int
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._fetches_total = 0
        self._fetches_failed = 0
        self._last_fetch_time: datetime | None = None
        self._last_error: str | None = None

    @abstractmethod
    async def fetch_count(self, bucket_identifier: str, credentials: str | None) -> int:
        """
        Read the number of pending objects.

        Args:
            bucket_identifier: Opaque handle of the bucket
            credentials: Opaque credential reference from the trigger definition

        Returns:
            Non-negative object count

        Raises:
            FetchError: If the count could not be read
        """

    def record_fetch(self, error: Exception | None = None) -> None:
        """Record the outcome of a fetch for stats."""
        self._fetches_total += 1
        self._last_fetch_time = datetime.now(UTC)
        if error is not None:
            self._fetches_failed += 1
            self._last_error = str(error)
        else:
            self._last_error = None

    async def close(self) -> None:
        """Release any client resources."""

    def get_stats(self) -> dict[str, Any]:
        """Get source statistics."""
        return {
            "name": self.name,
            "fetches_total": self._fetches_total,
            "fetches_failed": self._fetches_failed,
            "last_fetch_time": self._last_fetch_time.isoformat()
            if self._last_fetch_time
            else None,
            "last_error": self._last_error,
        }


class MockMetricSource(MetricSource):
    """
    Scripted metric source for testing.

    Returns queued results in order (ints are counts, exceptions are raised),
    then keeps returning the fallback count.
    """

    def __init__(
        self,
        results: Iterable[int | Exception] | None = None,
        fallback_count: int = 0,
    ) -> None:
        super().__init__("mock")
        self._results: deque[int | Exception] = deque(results or [])
        self._fallback_count = fallback_count
        self.calls: list[tuple[str, str | None]] = []

    def push(self, *results: int | Exception) -> None:
        """Queue more results."""
        self._results.extend(results)

    def set_count(self, count: int) -> None:
        """Set the count returned once the queue is empty."""
        self._fallback_count = count

    async def fetch_count(self, bucket_identifier: str, credentials: str | None) -> int:
        self.calls.append((bucket_identifier, credentials))
        result = self._results.popleft() if self._results else self._fallback_count

        if isinstance(result, Exception):
            self.record_fetch(result)
            raise result

        self.record_fetch()
        return result
