"""
Polling controller for a single trigger.

Responsibilities:
- Drive the tick loop: fetch count -> cooldown state -> raw size -> hold rule
- Bound every fetch with a timeout
- Keep the last decision and back off exponentially while the source fails
- Report trigger health when credentials keep being rejected
- Stop at a tick boundary, discarding an in-flight result

Each controller owns its CooldownTracker outright. Ticks are single-flight,
so neither the tracker nor the backoff state needs further locking.
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from bucket_scaler.collectors.base import (
    AuthError,
    FetchError,
    FetchTimeoutError,
    MetricSource,
)
from bucket_scaler.decision.cooldown import ActivityState, CooldownTracker
from bucket_scaler.decision.models import MetricSample, ScalingDecision
from bucket_scaler.decision.rule import ConfigError, ScalingRule
from bucket_scaler.decision.scaler import compute_desired_replicas
from bucket_scaler.execution.base import DecisionSink
from bucket_scaler.monitoring.health import HealthStatus, TriggerHealth
from bucket_scaler.monitoring.metrics import ScalerMetrics
from bucket_scaler.utils.logging import get_logger, log_context

logger = get_logger(__name__)

# Exponents beyond this saturate any sane ceiling
_MAX_BACKOFF_EXPONENT = 64


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential retry delay after consecutive fetch failures."""

    base_seconds: float
    multiplier: float = 2.0
    max_seconds: float = 300.0

    def __post_init__(self) -> None:
        if self.base_seconds <= 0:
            raise ConfigError(f"base_seconds must be > 0, got {self.base_seconds}")
        if self.multiplier < 1.0:
            raise ConfigError(f"multiplier must be >= 1, got {self.multiplier}")
        if self.max_seconds <= 0:
            raise ConfigError(f"max_seconds must be > 0, got {self.max_seconds}")

    def delay_for(self, failures: int) -> float:
        """
        Delay before the next attempt after ``failures`` consecutive failures.

        One failure waits ``base_seconds``; each further failure multiplies the
        delay, capped at ``max_seconds`` (never below ``base_seconds``).
        """
        if failures <= 0:
            return self.base_seconds
        ceiling = max(self.max_seconds, self.base_seconds)
        exponent = min(failures - 1, _MAX_BACKOFF_EXPONENT)
        return min(self.base_seconds * self.multiplier**exponent, ceiling)


class PollingController:
    """
    Timed fetch/compute/emit loop for one trigger.

    Failures of the metric source never end the loop and never change the
    emitted decision: the previous decision stands until a fetch succeeds.
    """

    def __init__(
        self,
        name: str,
        rule: ScalingRule,
        source: MetricSource,
        sink: DecisionSink,
        fetch_timeout_seconds: float | None = None,
        backoff: BackoffPolicy | None = None,
        auth_failure_threshold: int = 3,
        metrics: ScalerMetrics | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Initialize the controller.

        Args:
            name: Trigger name (used in logs, metrics and sink calls)
            rule: Validated trigger configuration
            source: Metric source collaborator
            sink: Decision sink collaborator
            fetch_timeout_seconds: Fetch timeout (defaults to the polling interval)
            backoff: Retry policy (defaults to doubling from the polling interval)
            auth_failure_threshold: Consecutive auth failures before DEGRADED
            metrics: Prometheus metrics
            clock: Source of "now" for samples and decisions

        Raises:
            ConfigError: If the configuration cannot run
        """
        if not name:
            raise ConfigError("Trigger name must not be empty")
        if not isinstance(rule, ScalingRule):
            raise ConfigError(f"Expected a ScalingRule, got {type(rule).__name__}")
        if fetch_timeout_seconds is not None and fetch_timeout_seconds <= 0:
            raise ConfigError(
                f"fetch_timeout_seconds must be > 0, got {fetch_timeout_seconds}"
            )
        if auth_failure_threshold < 1:
            raise ConfigError(
                f"auth_failure_threshold must be >= 1, got {auth_failure_threshold}"
            )

        self.name = name
        self.rule = rule
        self._source = source
        self._sink = sink
        self._metrics = metrics
        self._clock = clock or utc_now
        self._fetch_timeout = float(fetch_timeout_seconds or rule.polling_interval_seconds)
        self._backoff = backoff or BackoffPolicy(base_seconds=rule.polling_interval_seconds)
        self._auth_failure_threshold = auth_failure_threshold

        if self._fetch_timeout > rule.polling_interval_seconds:
            logger.warning(
                "Fetch timeout exceeds polling interval",
                trigger=name,
                fetch_timeout=self._fetch_timeout,
                polling_interval=rule.polling_interval_seconds,
            )

        self._tracker = CooldownTracker(rule, self._clock())

        self._tick_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._running = False

        self._last_decision: ScalingDecision | None = None
        self._consecutive_failures = 0
        self._auth_failures = 0
        self._health = HealthStatus.UNKNOWN
        self._last_error: str | None = None

        # Stats
        self._ticks_total = 0
        self._failures_total = 0
        self._discarded_total = 0

    # Properties

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def last_decision(self) -> ScalingDecision | None:
        return self._last_decision

    @property
    def activity_state(self) -> ActivityState:
        return self._tracker.state

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def health(self) -> HealthStatus:
        return self._health

    @property
    def fetch_timeout(self) -> float:
        return self._fetch_timeout

    def next_delay(self) -> float:
        """Delay before the next tick: the polling interval, or the backoff delay."""
        if self._consecutive_failures == 0:
            return float(self.rule.polling_interval_seconds)
        return self._backoff.delay_for(self._consecutive_failures)

    # Tick

    async def tick(self) -> ScalingDecision | None:
        """
        Run one fetch/compute/emit cycle.

        Returns:
            The emitted decision, or None when the fetch failed or the result
            was discarded because the controller is stopping.
        """
        async with self._tick_lock:
            with log_context(trigger=self.name):
                return await self._tick()

    async def _tick(self) -> ScalingDecision | None:
        started = time.perf_counter()
        count: int | None = None
        error: FetchError | None = None

        try:
            count = await asyncio.wait_for(
                self._source.fetch_count(
                    self.rule.bucket_identifier,
                    self.rule.credentials_ref,
                ),
                timeout=self._fetch_timeout,
            )
            if isinstance(count, bool) or not isinstance(count, int) or count < 0:
                raise FetchError(f"Metric source returned an invalid count: {count!r}")
        except asyncio.TimeoutError:
            error = FetchTimeoutError(
                f"Fetch did not complete within {self._fetch_timeout}s"
            )
        except FetchError as e:
            error = e
        except Exception as e:
            logger.exception("Unexpected metric source error", error=str(e))
            error = FetchError(f"Unexpected metric source error: {e}")
            error.__cause__ = e

        if self._stop_event.is_set():
            self._discarded_total += 1
            logger.debug("Controller stopping, discarding fetch result")
            return None

        if error is not None:
            await self._record_failure(error)
            return None

        duration = time.perf_counter() - started
        now = self._clock()
        sample = MetricSample(count=count, observed_at=now)

        self._tracker.observe(sample)
        raw_desired = compute_desired_replicas(sample, self.rule)
        decision = self._tracker.apply(raw_desired, computed_at=now, object_count=count)

        self._last_decision = decision
        self._ticks_total += 1
        await self._record_success(duration)

        logger.debug(
            "Decision computed",
            object_count=count,
            raw_desired=raw_desired,
            desired=decision.desired_replicas,
            reason=decision.reason.value,
            state=self._tracker.state.value,
        )

        try:
            await self._sink.emit_decision(self.name, decision)
        except Exception as e:
            logger.error("Failed to emit decision", error=str(e))

        return decision

    async def _record_success(self, duration: float) -> None:
        if self._consecutive_failures:
            logger.info(
                "Metric source recovered",
                failures=self._consecutive_failures,
            )

        self._consecutive_failures = 0
        self._auth_failures = 0
        self._last_error = None

        if self._metrics:
            self._metrics.record_fetch(self.name, duration)
            self._metrics.reset_failures(self.name)

        if self._health != HealthStatus.HEALTHY:
            await self._set_health(HealthStatus.HEALTHY, "Metric source reachable")

    async def _record_failure(self, error: FetchError) -> None:
        self._consecutive_failures += 1
        self._failures_total += 1
        self._last_error = str(error)

        if isinstance(error, AuthError):
            self._auth_failures += 1
        else:
            self._auth_failures = 0

        retry_in = self._backoff.delay_for(self._consecutive_failures)
        log = logger.error if isinstance(error, AuthError) else logger.warning
        log(
            "Metric fetch failed, keeping last decision",
            error=str(error),
            error_type=error.error_type,
            consecutive_failures=self._consecutive_failures,
            retry_in_seconds=retry_in,
            desired_replicas=self._last_decision.desired_replicas
            if self._last_decision
            else None,
        )

        if self._metrics:
            self._metrics.record_fetch_failure(
                self.name, error.error_type, self._consecutive_failures
            )

        if (
            self._auth_failures >= self._auth_failure_threshold
            and self._health != HealthStatus.DEGRADED
        ):
            await self._set_health(
                HealthStatus.DEGRADED,
                f"Credentials rejected {self._auth_failures} times in a row",
            )

    async def _set_health(self, status: HealthStatus, message: str) -> None:
        self._health = status
        health = TriggerHealth(
            trigger_name=self.name,
            status=status,
            message=message,
            consecutive_failures=self._consecutive_failures,
            last_error=self._last_error,
        )
        try:
            await self._sink.report_health(self.name, health)
        except Exception as e:
            logger.error("Failed to report health", status=status.value, error=str(e))

    # Loop

    async def _run_loop(self) -> None:
        loop = asyncio.get_running_loop()
        logger.info(
            "Polling controller started",
            trigger=self.name,
            bucket=self.rule.bucket_identifier,
            interval=self.rule.polling_interval_seconds,
            cooldown=self.rule.cooldown_period_seconds,
        )

        while not self._stop_event.is_set():
            tick_started = loop.time()
            try:
                await self.tick()
            except Exception as e:
                logger.exception("Polling tick failed", trigger=self.name, error=str(e))

            delay = self.next_delay()
            if self._consecutive_failures == 0:
                delay = max(0.0, delay - (loop.time() - tick_started))

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

        logger.info("Polling controller stopped", trigger=self.name)

    async def start(self) -> None:
        """Start the background polling loop."""
        if self._running:
            logger.warning("Controller already running", trigger=self.name)
            return

        self._stop_event.clear()
        self._running = True
        self._task = asyncio.create_task(self._run_loop(), name=f"poll-{self.name}")

    async def stop(self) -> None:
        """
        Stop the polling loop at the next tick boundary.

        Waits for an in-flight fetch to finish or time out; its result is
        discarded.
        """
        if not self._running:
            return

        self._stop_event.set()
        if self._task:
            await self._task
            self._task = None
        self._running = False

    def get_status(self) -> dict[str, Any]:
        """Get controller status."""
        return {
            "name": self.name,
            "running": self._running,
            "rule": self.rule.to_dict(),
            "cooldown": self._tracker.to_dict(),
            "last_decision": self._last_decision.to_dict() if self._last_decision else None,
            "consecutive_failures": self._consecutive_failures,
            "next_delay_seconds": self.next_delay(),
            "health": self._health.value,
            "last_error": self._last_error,
            "ticks_total": self._ticks_total,
            "failures_total": self._failures_total,
            "discarded_total": self._discarded_total,
        }

    async def __aenter__(self) -> "PollingController":
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()
