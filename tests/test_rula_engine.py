from __future__ import annotations

import pytest

from driver_posture.models import ValidationError
from driver_posture.rula import RulaEngine, compute_score
from driver_posture.rula.config import JOINT_SCORE_RANGES, available_calibrations
from driver_posture.rula.feedback import AFFIRMATIVE_TEXT, DEFAULT_RECOMMENDATION_RULES
from driver_posture.rula.landmarks import LandmarkSnapshot, Point

STEERING_TEXT = DEFAULT_RECOMMENDATION_RULES[0].feedback_text


def _partial_left_profile() -> LandmarkSnapshot:
    return LandmarkSnapshot(
        left_shoulder=Point(0.5, 0.5),
        left_elbow=Point(0.55, 0.65),
        left_hip=Point(0.5, 0.8),
    )


def test_partial_left_profile_scores_against_driving_bands() -> None:
    result, trace = RulaEngine().evaluate_with_trace(_partial_left_profile())

    assert result.camera_side == "right"
    assert result.joint_scores == {"upper_arm": 4, "lower_arm": 2, "wrist": 1, "neck": 2, "trunk": 1}
    assert (trace.score_a, trace.score_b) == (2, 2)
    assert result.final_score == 2
    assert result.risk == "low"
    assert result.recommendations == (STEERING_TEXT,)

    assert trace.measurement("upper_arm") == pytest.approx(-18.4349, abs=1e-3)
    assert trace.measurement("trunk") == pytest.approx(0.0)
    assert trace.measurement("lower_arm") is None


def test_empty_snapshot_is_the_neutral_baseline() -> None:
    result = compute_score(LandmarkSnapshot())

    assert result.camera_side == "unknown"
    assert result.joint_scores == {"upper_arm": 2, "lower_arm": 2, "wrist": 1, "neck": 2, "trunk": 2}
    assert result.final_score == 2
    assert result.risk == "low"
    assert result.recommendations == (AFFIRMATIVE_TEXT,)


def test_good_posture(good_posture: LandmarkSnapshot) -> None:
    result = compute_score(good_posture)

    assert result.joint_scores == {"upper_arm": 1, "lower_arm": 1, "wrist": 1, "neck": 1, "trunk": 1}
    assert result.final_score == 1
    assert result.risk == "low"
    assert result.recommendations == (AFFIRMATIVE_TEXT,)


def test_slouched_posture(slouched_posture: LandmarkSnapshot) -> None:
    result, trace = RulaEngine("driving").evaluate_with_trace(slouched_posture)

    assert result.joint_scores == {"upper_arm": 3, "lower_arm": 3, "wrist": 1, "neck": 4, "trunk": 3}
    assert (trace.score_a, trace.score_b) == (3, 5)
    assert result.final_score == 4
    assert result.risk == "medium"
    assert list(result.recommendations) == [rule.feedback_text for rule in DEFAULT_RECOMMENDATION_RULES[:4]]


def test_scoring_is_deterministic(slouched_posture: LandmarkSnapshot) -> None:
    engine = RulaEngine()
    assert engine.evaluate(slouched_posture) == engine.evaluate(slouched_posture)
    assert compute_score(slouched_posture) == compute_score(slouched_posture)


@pytest.mark.parametrize("calibration", available_calibrations())
@pytest.mark.parametrize(
    "snapshot",
    [
        LandmarkSnapshot(),
        LandmarkSnapshot(nose=Point(0.5, 0.5)),
        LandmarkSnapshot(left_shoulder=Point(0.5, 0.5), left_elbow=Point(0.5, 0.5), left_wrist=Point(0.5, 0.5)),
        LandmarkSnapshot(left_ear=Point(0.5, 0.5), left_shoulder=Point(0.5, 0.5), left_hip=Point(0.5, 0.5)),
        LandmarkSnapshot(right_shoulder=Point(-3.0, 9.0), right_elbow=Point(40.0, -2.0), right_hip=Point(0.0, 0.0)),
    ],
)
def test_every_snapshot_yields_a_valid_result(calibration: str, snapshot: LandmarkSnapshot) -> None:
    result = compute_score(snapshot, calibration)

    for joint, value in result.joint_scores.items():
        lo, hi = JOINT_SCORE_RANGES[joint]
        assert lo <= value <= hi
    assert 1 <= result.final_score <= 7
    assert result.risk in {"low", "medium", "high", "very-high"}
    assert result.recommendations


def test_engine_binds_calibration_at_construction() -> None:
    engine = RulaEngine("Generic")
    assert engine.calibration.name == "generic"
    assert repr(engine) == "RulaEngine(calibration='generic')"

    with pytest.raises(ValidationError):
        RulaEngine("racing")


def test_result_and_trace_serialise(good_posture: LandmarkSnapshot) -> None:
    result, trace = RulaEngine().evaluate_with_trace(good_posture)

    body = result.to_dict()
    assert body["final_score"] == 1
    assert body["recommendations"] == [AFFIRMATIVE_TEXT]
    assert body["camera_side"] == "right"

    trace_body = trace.to_dict()
    assert trace_body["calibration"] == "driving"
    assert set(trace_body["joints"]) == {"upper_arm", "lower_arm", "wrist", "neck", "trunk"}
    assert trace_body["joints"]["upper_arm"]["measurement"] == pytest.approx(60.0)
    assert trace_body["joints"]["wrist"]["measurement"] is None
