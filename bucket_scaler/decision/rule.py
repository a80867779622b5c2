"""
Trigger configuration.

ScalingRule is the validated, immutable configuration a trigger runs with.
TriggerDefinition is the external record it is built from: flat field names,
a trigger entry with a nested ``metadata`` block, or a whole KEDA ScaledObject
manifest.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator


class ConfigError(ValueError):
    """Invalid trigger configuration. Fatal: the trigger is never started."""


def _require_int(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class ScalingRule:
    """Static configuration of one trigger."""

    bucket_identifier: str
    target_object_count: int
    max_replica_count: int
    polling_interval_seconds: int
    cooldown_period_seconds: int
    min_replica_count: int = 0
    credentials_ref: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.bucket_identifier, str) or not self.bucket_identifier.strip():
            raise ConfigError("bucket_identifier must be a non-empty string")

        for name in (
            "target_object_count",
            "max_replica_count",
            "min_replica_count",
            "polling_interval_seconds",
            "cooldown_period_seconds",
        ):
            _require_int(name, getattr(self, name))

        if self.target_object_count <= 0:
            raise ConfigError(
                f"target_object_count must be > 0, got {self.target_object_count}"
            )
        if self.min_replica_count < 0:
            raise ConfigError(
                f"min_replica_count must be >= 0, got {self.min_replica_count}"
            )
        if self.max_replica_count <= self.min_replica_count:
            raise ConfigError(
                f"max_replica_count ({self.max_replica_count}) must be greater than "
                f"min_replica_count ({self.min_replica_count})"
            )
        if self.polling_interval_seconds <= 0:
            raise ConfigError(
                f"polling_interval_seconds must be > 0, got {self.polling_interval_seconds}"
            )
        if self.cooldown_period_seconds < 0:
            raise ConfigError(
                f"cooldown_period_seconds must be >= 0, got {self.cooldown_period_seconds}"
            )

    def clamp(self, replicas: int) -> int:
        """Clamp a replica count into [min_replica_count, max_replica_count]."""
        return max(self.min_replica_count, min(replicas, self.max_replica_count))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary. The credential reference is not included."""
        return {
            "bucket_identifier": self.bucket_identifier,
            "target_object_count": self.target_object_count,
            "min_replica_count": self.min_replica_count,
            "max_replica_count": self.max_replica_count,
            "polling_interval_seconds": self.polling_interval_seconds,
            "cooldown_period_seconds": self.cooldown_period_seconds,
        }


# ScaledObject field names and their flat equivalents
_SCALED_OBJECT_KEYS = {
    "pollingInterval": "pollingIntervalSeconds",
    "cooldownPeriod": "cooldownPeriodSeconds",
}

# spec.triggers[].type handled by this scaler
SCALER_TYPE = "gcp-storage"


def _trigger_metadata(triggers: Any) -> Mapping[str, Any]:
    """Pick the metadata block of the single gcp-storage entry of spec.triggers."""
    if not isinstance(triggers, list):
        raise ValueError("spec.triggers must be a list")

    matches = [
        t for t in triggers if isinstance(t, Mapping) and t.get("type") == SCALER_TYPE
    ]
    if len(matches) != 1:
        raise ValueError(
            f"expected exactly one {SCALER_TYPE} trigger in spec.triggers, "
            f"found {len(matches)}"
        )

    metadata = matches[0].get("metadata")
    if not isinstance(metadata, Mapping):
        raise ValueError(f"{SCALER_TYPE} trigger has no metadata block")
    return metadata


class TriggerDefinition(BaseModel):
    """External trigger-definition record."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    name: str = Field(min_length=1)
    bucket_name: str = Field(alias="bucketName", min_length=1)
    target_object_count: int = Field(alias="targetObjectCount")
    max_replica_count: int = Field(alias="maxReplicaCount")
    polling_interval_seconds: int = Field(alias="pollingIntervalSeconds")
    cooldown_period_seconds: int = Field(alias="cooldownPeriodSeconds")
    min_replica_count: int = Field(default=0, alias="minReplicaCount")
    credentials_from_env: str | None = Field(default=None, alias="credentialsFromEnv")

    # Options understood by the GCS source only
    blob_prefix: str | None = Field(default=None, alias="blobPrefix")
    blob_delimiter: str | None = Field(default=None, alias="blobDelimiter")
    max_bucket_items_to_scan: int | None = Field(
        default=None, alias="maxBucketItemsToScan", ge=1
    )

    @model_validator(mode="before")
    @classmethod
    def flatten_scaled_object(cls, data: Any) -> Any:
        """
        Accept ScaledObject manifests and trigger entries as well as flat records.

        A manifest (``metadata`` + ``spec``) takes its name from
        ``metadata.name``, its replica bounds and timings from ``spec`` and its
        trigger fields from the gcp-storage entry of ``spec.triggers``. Without
        ``spec``, a ``metadata`` block holds the trigger fields directly.
        """
        if not isinstance(data, Mapping):
            return data

        flat = dict(data)
        metadata = flat.pop("metadata", None)
        spec = flat.pop("spec", None)

        if isinstance(spec, Mapping):
            if isinstance(metadata, Mapping) and "name" in metadata:
                flat.setdefault("name", metadata["name"])
            for key, value in spec.items():
                if key != "triggers":
                    flat.setdefault(key, value)
            metadata = _trigger_metadata(spec.get("triggers"))

        if isinstance(metadata, Mapping):
            for key, value in metadata.items():
                flat.setdefault(key, value)

        for source_key, target_key in _SCALED_OBJECT_KEYS.items():
            if source_key in flat:
                flat.setdefault(target_key, flat.pop(source_key))

        return flat

    @classmethod
    def parse(cls, data: "TriggerDefinition | Mapping[str, Any]") -> "TriggerDefinition":
        """Validate a raw record, raising ConfigError on any problem."""
        if isinstance(data, TriggerDefinition):
            definition = data
        else:
            try:
                definition = cls.model_validate(data)
            except ValidationError as e:
                raise ConfigError(f"Invalid trigger definition: {e}") from e

        # Surface rule-level errors at parse time too
        definition.to_rule()
        return definition

    def to_rule(self) -> ScalingRule:
        """Build the validated ScalingRule for this trigger."""
        return ScalingRule(
            bucket_identifier=self.bucket_name,
            target_object_count=self.target_object_count,
            min_replica_count=self.min_replica_count,
            max_replica_count=self.max_replica_count,
            polling_interval_seconds=self.polling_interval_seconds,
            cooldown_period_seconds=self.cooldown_period_seconds,
            credentials_ref=self.credentials_from_env,
        )
