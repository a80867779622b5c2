"""
Trigger registry.

Responsibilities:
- Validate trigger definitions and create one PollingController per trigger
- Start and stop every controller together
- Tear down a trigger's rule, cooldown state and source on deregistration
- Load trigger definitions from a JSON file

Controllers share nothing mutable with each other; the registry only holds
references to them.
"""

import json
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from bucket_scaler.collectors.base import MetricSource
from bucket_scaler.collectors.gcs import GCSObjectCountSource
from bucket_scaler.decision.rule import ConfigError, TriggerDefinition
from bucket_scaler.execution.base import DecisionSink
from bucket_scaler.monitoring.metrics import ScalerMetrics
from bucket_scaler.services.controller import BackoffPolicy, PollingController
from bucket_scaler.utils.logging import get_logger
from config.settings import ControllerSettings, GCSSettings

logger = get_logger(__name__)

SourceFactory = Callable[[TriggerDefinition], MetricSource]


def gcs_source_factory(
    settings: GCSSettings | None = None,
    fetch_timeout_seconds: float | None = None,
) -> SourceFactory:
    """
    Build a factory creating a GCS source per trigger.

    Listing requests are bounded by the controller's fetch timeout, which
    defaults to the trigger's polling interval.
    """
    settings = settings or GCSSettings()

    def factory(definition: TriggerDefinition) -> MetricSource:
        return GCSObjectCountSource(
            project=settings.project,
            blob_prefix=definition.blob_prefix,
            blob_delimiter=definition.blob_delimiter,
            max_bucket_items_to_scan=definition.max_bucket_items_to_scan
            or settings.max_bucket_items_to_scan,
            fetch_timeout=fetch_timeout_seconds or definition.polling_interval_seconds,
        )

    return factory


def load_trigger_definitions(path: str | Path) -> list[TriggerDefinition]:
    """
    Load trigger definitions from a JSON file.

    The file holds either a list of definitions or an object with a
    ``triggers`` list.

    Raises:
        ConfigError: If the file cannot be read or a definition is invalid
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read trigger definitions from {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Trigger definitions in {path} are not valid JSON: {e}") from e

    if isinstance(data, Mapping):
        data = data.get("triggers")
    if not isinstance(data, list):
        raise ConfigError(f"Expected a list of trigger definitions in {path}")

    return [TriggerDefinition.parse(item) for item in data]


class TriggerRegistry:
    """
    Registry of active triggers.

    Each registered trigger gets its own metric source, cooldown state and
    polling loop.
    """

    def __init__(
        self,
        sink: DecisionSink,
        source_factory: SourceFactory | None = None,
        controller_settings: ControllerSettings | None = None,
        metrics: ScalerMetrics | None = None,
        clock: Callable | None = None,
    ) -> None:
        """
        Initialize the registry.

        Args:
            sink: Sink shared by all controllers
            source_factory: Builds the metric source of a trigger (GCS by default)
            controller_settings: Timeout, backoff and health settings
            metrics: Prometheus metrics shared by all controllers
            clock: Clock passed to every controller
        """
        self._sink = sink
        self._settings = controller_settings or ControllerSettings()
        self._source_factory = source_factory or gcs_source_factory(
            fetch_timeout_seconds=self._settings.fetch_timeout_seconds
        )
        self._metrics = metrics
        self._clock = clock

        self._controllers: dict[str, PollingController] = {}
        self._definitions: dict[str, TriggerDefinition] = {}
        self._sources: dict[str, MetricSource] = {}
        self._running = False

        logger.info("Trigger registry initialized")

    def _build_controller(
        self,
        definition: TriggerDefinition,
        source: MetricSource,
    ) -> PollingController:
        rule = definition.to_rule()
        backoff = BackoffPolicy(
            base_seconds=rule.polling_interval_seconds,
            multiplier=self._settings.backoff_multiplier,
            max_seconds=self._settings.backoff_max_seconds,
        )
        return PollingController(
            name=definition.name,
            rule=rule,
            source=source,
            sink=self._sink,
            fetch_timeout_seconds=self._settings.fetch_timeout_seconds,
            backoff=backoff,
            auth_failure_threshold=self._settings.auth_failure_threshold,
            metrics=self._metrics,
            clock=self._clock,
        )

    async def register(
        self,
        definition: TriggerDefinition | Mapping[str, Any],
    ) -> PollingController:
        """
        Register a trigger and start polling if the registry is running.

        Raises:
            ConfigError: If the definition is invalid or the name is taken
        """
        definition = TriggerDefinition.parse(definition)
        name = definition.name

        if name in self._controllers:
            raise ConfigError(f"Trigger {name} is already registered")

        source = self._source_factory(definition)
        controller = self._build_controller(definition, source)

        self._controllers[name] = controller
        self._definitions[name] = definition
        self._sources[name] = source
        self._update_gauge()

        logger.info(
            "Trigger registered",
            trigger=name,
            bucket=definition.bucket_name,
            target_object_count=definition.target_object_count,
            min_replicas=definition.min_replica_count,
            max_replicas=definition.max_replica_count,
        )

        if self._running:
            await controller.start()

        return controller

    async def deregister(self, name: str) -> None:
        """
        Stop and remove a trigger.

        Raises:
            KeyError: If the trigger is not registered
        """
        if name not in self._controllers:
            raise KeyError(f"Unknown trigger: {name}")

        controller = self._controllers.pop(name)
        self._definitions.pop(name, None)
        source = self._sources.pop(name, None)

        await controller.stop()
        if source:
            await source.close()
        self._sink.forget(name)
        self._update_gauge()

        logger.info("Trigger deregistered", trigger=name)

    async def register_all(
        self,
        definitions: list[TriggerDefinition | Mapping[str, Any]],
    ) -> list[PollingController]:
        """Register several triggers, failing on the first invalid one."""
        return [await self.register(d) for d in definitions]

    async def load_file(self, path: str | Path) -> list[PollingController]:
        """Register every trigger defined in a JSON file."""
        definitions = load_trigger_definitions(path)
        controllers = await self.register_all(definitions)
        logger.info("Trigger definitions loaded", path=str(path), count=len(controllers))
        return controllers

    async def start(self) -> None:
        """Start every registered controller."""
        if self._running:
            logger.warning("Registry already running")
            return

        self._running = True
        for controller in self._controllers.values():
            await controller.start()

        logger.info("Trigger registry started", trigger_count=len(self._controllers))

    async def stop(self) -> None:
        """Stop every controller and release sources."""
        if not self._running:
            return

        for controller in self._controllers.values():
            await controller.stop()
        for source in self._sources.values():
            await source.close()

        self._running = False
        logger.info("Trigger registry stopped")

    def _update_gauge(self) -> None:
        if self._metrics:
            self._metrics.registered_triggers.set(len(self._controllers))

    def get(self, name: str) -> PollingController | None:
        """Get the controller of a trigger."""
        return self._controllers.get(name)

    def get_definition(self, name: str) -> TriggerDefinition | None:
        return self._definitions.get(name)

    def list_triggers(self) -> list[str]:
        return list(self._controllers)

    def __contains__(self, name: object) -> bool:
        return name in self._controllers

    def __len__(self) -> int:
        return len(self._controllers)

    @property
    def is_running(self) -> bool:
        return self._running

    def get_stats(self) -> dict[str, Any]:
        """Get registry statistics."""
        statuses = [c.get_status() for c in self._controllers.values()]
        return {
            "running": self._running,
            "total_triggers": len(statuses),
            "failing_triggers": len([s for s in statuses if s["consecutive_failures"] > 0]),
            "degraded_triggers": len([s for s in statuses if s["health"] == "degraded"]),
        }
