"""Posture-to-risk scoring engine.

`compute_score(snapshot)` runs the whole pipeline for one frame:
camera side -> joint classifiers -> tables A/B/C -> risk tier and
recommendations. The engine holds no state between calls and never logs;
`RulaEngine.evaluate_with_trace` returns the intermediate measurements as a
separate value for callers that want them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from driver_posture.rula.camera import detect_camera_side
from driver_posture.rula.config import JOINTS, RulaCalibration, get_calibration
from driver_posture.rula.feedback import classify_risk, generate_recommendations
from driver_posture.rula.joints import JointAssessment, assess_joint
from driver_posture.rula.landmarks import LandmarkSnapshot
from driver_posture.rula.tables import combine_scores


@dataclass(frozen=True)
class RulaScoreResult:
    """Per-frame RULA assessment; a pure function of the input snapshot."""

    upper_arm: int
    lower_arm: int
    wrist: int
    neck: int
    trunk: int
    final_score: int
    risk: str
    recommendations: Tuple[str, ...]
    camera_side: str

    @property
    def joint_scores(self) -> Dict[str, int]:
        return {joint: getattr(self, joint) for joint in JOINTS}

    def to_dict(self) -> dict[str, object]:
        return {
            "upper_arm": self.upper_arm,
            "lower_arm": self.lower_arm,
            "wrist": self.wrist,
            "neck": self.neck,
            "trunk": self.trunk,
            "final_score": self.final_score,
            "risk": self.risk,
            "recommendations": list(self.recommendations),
            "camera_side": self.camera_side,
        }


@dataclass(frozen=True)
class ScoreTrace:
    """Intermediate values behind a result: per-joint measurements and table scores."""

    calibration: str
    camera_side: str
    joints: Tuple[JointAssessment, ...]
    score_a: int
    score_b: int

    def measurement(self, joint: str) -> Optional[float]:
        for entry in self.joints:
            if entry.joint == joint:
                return entry.measurement
        return None

    def to_dict(self) -> dict[str, object]:
        return {
            "calibration": self.calibration,
            "camera_side": self.camera_side,
            "score_a": self.score_a,
            "score_b": self.score_b,
            "joints": {
                entry.joint: {"score": entry.score, "measurement": entry.measurement, "side": entry.side}
                for entry in self.joints
            },
        }


class RulaEngine:
    """Scoring engine bound to one calibration, chosen at construction time."""

    def __init__(self, calibration: str | RulaCalibration | None = None) -> None:
        self.calibration = get_calibration(calibration)

    def __repr__(self) -> str:
        return f"RulaEngine(calibration={self.calibration.name!r})"

    def evaluate_with_trace(self, snapshot: LandmarkSnapshot) -> tuple[RulaScoreResult, ScoreTrace]:
        calibration = self.calibration
        camera_side = detect_camera_side(snapshot)
        assessments = {joint: assess_joint(joint, snapshot, camera_side, calibration) for joint in JOINTS}
        scores = {joint: entry.score for joint, entry in assessments.items()}

        score_a, score_b, final_score = combine_scores(
            upper_arm=scores["upper_arm"],
            lower_arm=scores["lower_arm"],
            wrist=scores["wrist"],
            neck=scores["neck"],
            trunk=scores["trunk"],
        )
        result = RulaScoreResult(
            upper_arm=scores["upper_arm"],
            lower_arm=scores["lower_arm"],
            wrist=scores["wrist"],
            neck=scores["neck"],
            trunk=scores["trunk"],
            final_score=final_score,
            risk=classify_risk(final_score),
            recommendations=tuple(generate_recommendations(scores, calibration.recommendations)),
            camera_side=camera_side,
        )
        trace = ScoreTrace(
            calibration=calibration.name,
            camera_side=camera_side,
            joints=tuple(assessments[joint] for joint in JOINTS),
            score_a=score_a,
            score_b=score_b,
        )
        return result, trace

    def evaluate(self, snapshot: LandmarkSnapshot) -> RulaScoreResult:
        result, _trace = self.evaluate_with_trace(snapshot)
        return result


def compute_score(snapshot: LandmarkSnapshot, calibration: str | RulaCalibration | None = None) -> RulaScoreResult:
    """Score one frame with the given calibration (the driving preset by default)."""
    return RulaEngine(calibration).evaluate(snapshot)


__all__ = ["RulaScoreResult", "ScoreTrace", "RulaEngine", "compute_score"]
