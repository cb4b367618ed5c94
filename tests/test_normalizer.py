import copy

import pytest

from conftest import NOW
from whoopdash.adapters.base import NormalizationError
from whoopdash.aggregators.snapshot import (
    RawList,
    RawRecordsWrapper,
    RecoveryPoint,
    SleepPoint,
    WorkoutPoint,
    normalize,
    parse_collection,
    unwrap_records,
)

CYCLES = [
    {"id": 101, "start": "2026-01-18T06:00:00Z", "end": "2026-01-19T06:00:00Z", "score": {"strain": 12.1}},
    {"id": 102, "start": "2026-01-17T06:00:00Z", "end": "2026-01-18T06:00:00Z", "score": {"strain": 8.4}},
]

RECOVERIES = [
    {
        "cycle_id": 101,
        "timestamp": "2026-01-18T06:00:00Z",
        "score": {"recovery_score": 71, "resting_heart_rate": 52, "hrv_rmssd_milli": 64.5},
    },
    {"cycle_id": 102, "timestamp": "2026-01-17T06:00:00Z", "score": 40, "resting_heart_rate": 58, "hrv": 41},
]

SLEEP = [
    {
        "id": 1,
        "end": "2026-01-19T07:00:00Z",
        "score": {
            "sleep_performance_percentage": 88,
            "stage_summary": {
                "total_light_sleep_time_milli": 12_000_000,
                "total_slow_wave_sleep_time_milli": 6_000_000,
                "total_rem_sleep_time_milli": 7_200_000,
            },
        },
    },
    {"id": 2, "created_at": "2026-01-18T07:10:00Z", "data": {"score": 75, "duration_seconds": 27000}},
]

WORKOUTS = [
    {"id": 9, "end": "2026-01-18T18:00:00Z", "sport_id": 0, "score": {"strain": 10.5, "kilojoule": 2000}},
    {"id": 10, "end": "2026-01-17T18:00:00Z", "type": "Cycling", "strain": 6, "calories": 350},
]


def run(**overrides):
    inputs = {
        "raw_profile": {"user_id": 7, "first_name": "Ada"},
        "raw_cycles": CYCLES,
        "raw_recoveries": RECOVERIES,
        "raw_sleep": SLEEP,
        "raw_workouts": WORKOUTS,
    }
    inputs.update(overrides)
    return normalize(**inputs, last_updated=NOW)


def test_parse_collection_tags_both_shapes():
    assert isinstance(parse_collection([{"id": 1}]), RawList)
    wrapped = parse_collection({"records": [{"id": 1}], "next_token": "abc"})
    assert isinstance(wrapped, RawRecordsWrapper)
    assert wrapped.records == [{"id": 1}]
    assert "next_token" not in wrapped.model_dump()


@pytest.mark.parametrize("payload", [{"data": []}, "text", 42, {"records": "nope"}])
def test_parse_collection_rejects_other_shapes(payload):
    with pytest.raises(NormalizationError):
        parse_collection(payload)


def test_unwrap_records_defaults_unknown_shapes_to_empty():
    assert unwrap_records(None, "sleep") == []
    assert unwrap_records({"unexpected": True}, "sleep") == []
    assert unwrap_records([{"id": 1}, "junk", None], "sleep") == [{"id": 1}]


def test_bare_list_and_records_wrapper_give_same_snapshot():
    from_lists = run()
    from_wrappers = run(
        raw_cycles={"records": CYCLES, "next_token": None},
        raw_recoveries={"records": RECOVERIES},
        raw_sleep={"records": SLEEP},
        raw_workouts={"records": WORKOUTS, "next_token": "next"},
    )

    assert from_lists == from_wrappers


def test_normalize_is_idempotent_and_leaves_inputs_untouched():
    before = copy.deepcopy((CYCLES, RECOVERIES, SLEEP, WORKOUTS))

    first = run()
    second = run()

    assert first == second
    assert first.to_json_dict() == second.to_json_dict()
    assert (CYCLES, RECOVERIES, SLEEP, WORKOUTS) == before


def test_recovery_metrics_from_score_object_and_top_level():
    snapshot = run()

    assert snapshot.recovery[0] == RecoveryPoint(
        timestamp="2026-01-18T06:00:00Z", score=71, resting_heart_rate=52, heart_rate_variability=64.5
    )
    assert snapshot.recovery[1] == RecoveryPoint(
        timestamp="2026-01-17T06:00:00Z", score=40, resting_heart_rate=58, heart_rate_variability=41
    )


def test_sleep_duration_and_timestamp_fallbacks():
    snapshot = run()

    assert snapshot.sleep[0] == SleepPoint(
        timestamp="2026-01-19T07:00:00Z", score=88, duration_in_seconds=25_200
    )
    # no end: created_at is used, metrics read from the data sub-object
    assert snapshot.sleep[1] == SleepPoint(
        timestamp="2026-01-18T07:10:00Z", score=75, duration_in_seconds=27_000
    )


def test_workout_calories_and_activity_type():
    snapshot = run()

    assert snapshot.workout[0].strain == 10.5
    assert snapshot.workout[0].calories_burned == pytest.approx(2000 * 0.239)
    # sport_id 0 is a real sport, not a missing value
    assert snapshot.workout[0].activity_type == 0
    assert snapshot.workout[1] == WorkoutPoint(
        timestamp="2026-01-17T18:00:00Z", strain=6, calories_burned=350, activity_type="Cycling"
    )


def test_missing_metrics_default_to_zero():
    snapshot = run(
        raw_recoveries=[{"timestamp": "t"}],
        raw_sleep=[{"end": "e", "score": {"sleep_performance_percentage": None}}],
        raw_workouts=[{"created_at": "c", "score": {"strain": "high"}}],
    )

    assert snapshot.recovery == [RecoveryPoint(timestamp="t")]
    assert snapshot.sleep == [SleepPoint(timestamp="e")]
    assert snapshot.workout == [WorkoutPoint(timestamp="c")]
    assert snapshot.workout[0].activity_type == "Unknown"


def test_timestamp_prefers_end_over_created_at():
    snapshot = run(raw_sleep=[{"end": "end-time", "created_at": "created-time"}])
    assert snapshot.sleep[0].timestamp == "end-time"

    snapshot = run(raw_sleep=[{"score": 50}])
    assert snapshot.sleep[0].timestamp is None


def test_json_shape_uses_dashboard_field_names():
    data = run().to_json_dict()

    assert set(data) == {"lastUpdated", "profile", "recovery", "sleep", "workout", "cycle"}
    assert "error" not in data
    assert data["lastUpdated"] == NOW.isoformat()
    assert set(data["recovery"][0]) == {"timestamp", "score", "restingHeartRate", "heartRateVariability"}
    assert set(data["sleep"][0]) == {"timestamp", "score", "durationInSeconds"}
    assert set(data["workout"][0]) == {"timestamp", "strain", "caloriesBurned", "activityType"}
    assert data["cycle"] == CYCLES
    assert data["profile"] == {"user_id": 7, "first_name": "Ada"}


def test_unusable_inputs_still_give_every_array():
    snapshot = normalize(None, "garbage", None, {"oops": 1}, 17, last_updated=NOW)
    data = snapshot.to_json_dict()

    assert data["profile"] == {}
    for section in ("recovery", "sleep", "workout", "cycle"):
        assert data[section] == []
