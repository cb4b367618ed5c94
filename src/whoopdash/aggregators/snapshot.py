"""Normalizer turning raw Whoop payloads into the dashboard snapshot.

Whoop responses are not schema-stable across API versions:

- collections arrive either as a bare list or as ``{"records": [...]}``
- metrics sit either on the record itself or under a ``score`` / ``data``
  sub-object

Every collection goes through ``parse_collection`` once, and every metric
through ``_metric``, so the rest of the pipeline only sees the stable
``Snapshot`` shape. Missing numbers become 0; a record without its own
``timestamp`` falls back to ``end`` and then ``created_at``.
"""

import copy
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from whoopdash.adapters.base import NormalizationError

logger = structlog.get_logger()

KILOJOULE_TO_KCAL = 0.239
METRIC_CONTAINERS = ("score", "data")


class RawList(BaseModel):
    """A collection returned as a bare JSON array."""

    kind: Literal["list"] = "list"
    records: list[Any]


class RawRecordsWrapper(BaseModel):
    """A collection returned as ``{"records": [...]}``; ``next_token`` is ignored."""

    kind: Literal["records"] = "records"
    records: list[Any]


RawCollection = RawList | RawRecordsWrapper


def parse_collection(payload: Any) -> RawCollection:
    """Classify an upstream collection payload.

    Raises:
        NormalizationError: The payload is neither shape.
    """
    if isinstance(payload, list):
        return RawList(records=payload)
    if isinstance(payload, dict) and isinstance(payload.get("records"), list):
        return RawRecordsWrapper(records=payload["records"])
    raise NormalizationError(f"Unrecognised collection shape: {type(payload).__name__}")


def unwrap_records(payload: Any, section: str) -> list[dict[str, Any]]:
    """Return the records of a collection payload, or [] if it has none."""
    if payload is None:
        return []
    try:
        collection = parse_collection(payload)
    except NormalizationError as e:
        logger.warning("Collection left empty", section=section, error=str(e))
        return []

    records = [r for r in collection.records if isinstance(r, dict)]
    skipped = len(collection.records) - len(records)
    if skipped:
        logger.warning("Skipped non-object records", section=section, skipped=skipped)
    return records


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _metric(record: dict[str, Any], *keys: str) -> float:
    """First numeric value for any of ``keys``, on the record or a sub-object."""
    sources = [record] + [
        record[name] for name in METRIC_CONTAINERS if isinstance(record.get(name), dict)
    ]
    for source in sources:
        for key in keys:
            value = source.get(key)
            if _is_number(value):
                return float(value)
    return 0.0


def _nested_metric(record: dict[str, Any], container: str, *keys: str) -> float:
    """Like ``_metric`` but for values one level deeper, e.g. score.stage_summary."""
    for source_name in (None,) + METRIC_CONTAINERS:
        source = record if source_name is None else record.get(source_name)
        if isinstance(source, dict) and isinstance(source.get(container), dict):
            value = _metric(source[container], *keys)
            if value:
                return value
    return 0.0


def _timestamp(record: dict[str, Any]) -> str | None:
    for key in ("timestamp", "end", "created_at"):
        value = record.get(key)
        if value:
            return str(value)
    return None


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RecoveryPoint(_CamelModel):
    timestamp: str | None = None
    score: float = 0.0
    resting_heart_rate: float = 0.0
    heart_rate_variability: float = 0.0

    @classmethod
    def from_raw(cls, record: dict[str, Any]) -> "RecoveryPoint":
        return cls(
            timestamp=_timestamp(record),
            score=_metric(record, "recovery_score", "score"),
            resting_heart_rate=_metric(record, "resting_heart_rate"),
            heart_rate_variability=_metric(
                record, "hrv_rmssd_milli", "heart_rate_variability_ms", "hrv"
            ),
        )


class SleepPoint(_CamelModel):
    timestamp: str | None = None
    score: float = 0.0
    duration_in_seconds: float = 0.0

    @classmethod
    def from_raw(cls, record: dict[str, Any]) -> "SleepPoint":
        duration = _metric(record, "duration_seconds")
        if not duration:
            duration = _metric(record, "total_sleep_time_milli") / 1000
        if not duration:
            # Whoop v1 only reports per-stage totals
            duration = sum(
                _nested_metric(record, "stage_summary", key)
                for key in (
                    "total_light_sleep_time_milli",
                    "total_slow_wave_sleep_time_milli",
                    "total_rem_sleep_time_milli",
                )
            ) / 1000
        return cls(
            timestamp=_timestamp(record),
            score=_metric(record, "sleep_performance_percentage", "score"),
            duration_in_seconds=duration,
        )


class WorkoutPoint(_CamelModel):
    timestamp: str | None = None
    strain: float = 0.0
    calories_burned: float = 0.0
    activity_type: int | str = "Unknown"

    @classmethod
    def from_raw(cls, record: dict[str, Any]) -> "WorkoutPoint":
        calories = _metric(record, "calories")
        if not calories:
            calories = _metric(record, "kilojoule") * KILOJOULE_TO_KCAL

        activity_type: int | str = "Unknown"
        for key in ("sport_id", "sport_name", "type"):
            value = record.get(key)
            if value is not None and value != "":
                activity_type = value if isinstance(value, (int, str)) else str(value)
                break

        return cls(
            timestamp=_timestamp(record),
            strain=_metric(record, "strain"),
            calories_burned=calories,
            activity_type=activity_type,
        )


class Snapshot(_CamelModel):
    """The document the dashboard reads from ``all-data.json``."""

    last_updated: str
    profile: dict[str, Any] = Field(default_factory=dict)
    recovery: list[RecoveryPoint] = Field(default_factory=list)
    sleep: list[SleepPoint] = Field(default_factory=list)
    workout: list[WorkoutPoint] = Field(default_factory=list)
    cycle: list[dict[str, Any]] = Field(default_factory=list)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ErrorSnapshot(_CamelModel):
    """Written instead of a Snapshot when the run fails; same array fields, all empty."""

    error: Literal[True] = True
    error_message: str
    status: str = "API request failed"
    last_updated: str
    recovery: list[Any] = Field(default_factory=list)
    sleep: list[Any] = Field(default_factory=list)
    workout: list[Any] = Field(default_factory=list)
    cycle: list[Any] = Field(default_factory=list)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def format_timestamp(moment: datetime | None = None) -> str:
    moment = moment or datetime.now(timezone.utc)
    return moment.isoformat()


def _points(payload: Any, section: str, build: Callable[[dict[str, Any]], Any]) -> list[Any]:
    points = []
    for record in unwrap_records(payload, section):
        try:
            points.append(build(record))
        except (TypeError, ValueError) as e:
            logger.warning("Dropped unreadable record", section=section, error=type(e).__name__)
    return points


def normalize(
    raw_profile: Any,
    raw_cycles: Any,
    raw_recoveries: Any,
    raw_sleep: Any,
    raw_workouts: Any,
    *,
    last_updated: datetime | None = None,
) -> Snapshot:
    """Build a Snapshot from raw payloads.

    Pure apart from logging: inputs are not modified, and the same inputs
    with the same ``last_updated`` always give an equal Snapshot.
    """
    profile = copy.deepcopy(raw_profile) if isinstance(raw_profile, dict) else {}
    return Snapshot(
        last_updated=format_timestamp(last_updated),
        profile=profile,
        recovery=_points(raw_recoveries, "recovery", RecoveryPoint.from_raw),
        sleep=_points(raw_sleep, "sleep", SleepPoint.from_raw),
        workout=_points(raw_workouts, "workout", WorkoutPoint.from_raw),
        cycle=copy.deepcopy(unwrap_records(raw_cycles, "cycle")),
    )


def error_snapshot(message: str, last_updated: datetime | None = None) -> ErrorSnapshot:
    return ErrorSnapshot(error_message=message, last_updated=format_timestamp(last_updated))
