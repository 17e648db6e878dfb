"""Independent joint-level classifiers: upper arm, lower arm, wrist, neck, trunk.

Every classifier is a pure function of (snapshot, camera side, calibration)
and always returns a score inside the joint's valid range. When the needed
landmarks are missing, or the geometry is unusable, the calibration's neutral
score for that joint is returned instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Tuple

from driver_posture.rula.angles import (
    angle_between,
    angle_from_vertical,
    forward_head_ratio,
    wrist_deviation,
)
from driver_posture.rula.camera import CAMERA_LEFT, CAMERA_UNKNOWN
from driver_posture.rula.config import (
    DRIVING_CALIBRATION,
    JOINT_SCORE_RANGES,
    SELECTION_FRONTAL,
    RulaCalibration,
)
from driver_posture.rula.landmarks import LandmarkSnapshot, Point

# Side reported when a joint's landmarks came from both sides of the body.
SIDE_MIXED = "mixed"


@dataclass(frozen=True)
class JointAssessment:
    """Score plus the measurement it came from (None when the neutral default was used)."""

    joint: str
    score: int
    measurement: Optional[float] = None
    side: Optional[str] = None

    @property
    def neutral(self) -> bool:
        return self.measurement is None


def _clamp(joint: str, score: int) -> int:
    lo, hi = JOINT_SCORE_RANGES[joint]
    return max(lo, min(hi, int(score)))


def preferred_side(camera_side: str) -> str:
    """Body side facing the camera; the left profile is assumed when unknown."""
    return "right" if camera_side == CAMERA_LEFT else "left"


def _other(side: str) -> str:
    return "right" if side == "left" else "left"


def _profile_point(snapshot: LandmarkSnapshot, camera_side: str, joint: str) -> Tuple[Optional[Point], str]:
    side = preferred_side(camera_side)
    point = snapshot.side(side, joint)
    if point is None:
        side = _other(side)
        point = snapshot.side(side, joint)
    return point, side


def _profile_points(
    snapshot: LandmarkSnapshot, camera_side: str, joints: Iterable[str]
) -> Tuple[Optional[Tuple[Point, ...]], str]:
    """Pick each landmark from the preferred side, falling back per landmark.

    The returned side is the one every landmark came from, or "mixed".
    """
    points: list[Point] = []
    sides: set[str] = set()
    for joint in joints:
        point, side = _profile_point(snapshot, camera_side, joint)
        if point is None:
            return None, preferred_side(camera_side)
        points.append(point)
        sides.add(side)
    return tuple(points), sides.pop() if len(sides) == 1 else SIDE_MIXED


def _side_points(snapshot: LandmarkSnapshot, side: str, joints: Iterable[str]) -> Optional[Tuple[Point, ...]]:
    points = tuple(snapshot.side(side, joint) for joint in joints)
    if any(point is None for point in points):
        return None
    return points  # type: ignore[return-value]


# Measurement functions: (points, camera_side) -> value or None.
def _upper_arm_measure(points: Tuple[Point, ...], camera_side: str) -> Optional[float]:
    shoulder, elbow = points
    return angle_from_vertical(shoulder, elbow, camera_side)


def _lower_arm_measure(points: Tuple[Point, ...], camera_side: str) -> Optional[float]:
    shoulder, elbow, wrist = points
    return angle_between(shoulder, elbow, wrist)


def _neck_measure(points: Tuple[Point, ...], camera_side: str) -> Optional[float]:
    ear, shoulder = points
    return forward_head_ratio(ear, shoulder, camera_side)


def _trunk_measure(points: Tuple[Point, ...], camera_side: str) -> Optional[float]:
    shoulder, hip = points
    return angle_from_vertical(hip, shoulder, camera_side, upward=True)


def _wrist_measure(points: Tuple[Point, ...], camera_side: str) -> Optional[float]:
    elbow, wrist, index = points
    return wrist_deviation(elbow, wrist, index)


_MEASURES: Dict[str, Tuple[Tuple[str, ...], Callable[[Tuple[Point, ...], str], Optional[float]], bool]] = {
    # joint: (landmarks, measure, signed)
    "upper_arm": (("shoulder", "elbow"), _upper_arm_measure, True),
    "lower_arm": (("shoulder", "elbow", "wrist"), _lower_arm_measure, False),
    "neck": (("ear", "shoulder"), _neck_measure, True),
    "trunk": (("shoulder", "hip"), _trunk_measure, True),
    "wrist": (("elbow", "wrist", "index"), _wrist_measure, False),
}


def _neutral(joint: str, calibration: RulaCalibration) -> JointAssessment:
    return JointAssessment(joint, _clamp(joint, calibration.neutral(joint)))


def _assess_profile(
    joint: str, snapshot: LandmarkSnapshot, camera_side: str, calibration: RulaCalibration
) -> JointAssessment:
    names, measure, _signed = _MEASURES[joint]
    points, side = _profile_points(snapshot, camera_side, names)
    if points is None:
        return _neutral(joint, calibration)
    value = measure(points, camera_side)
    if value is None:
        return _neutral(joint, calibration)
    table = calibration.bands_for(joint)
    return JointAssessment(joint, _clamp(joint, table.classify(value)), float(value), side)


def _frontal_neck(snapshot: LandmarkSnapshot) -> Optional[float]:
    """Lateral head tilt: nose offset from the shoulder midpoint over its height."""
    nose, ls, rs = snapshot.nose, snapshot.left_shoulder, snapshot.right_shoulder
    if nose is None or ls is None or rs is None:
        return None
    mid_x = (ls.x + rs.x) / 2.0
    mid_y = (ls.y + rs.y) / 2.0
    vertical = abs(mid_y - nose.y)
    if vertical == 0.0:
        return None
    return abs(nose.x - mid_x) / vertical


def _assess_frontal(
    joint: str, snapshot: LandmarkSnapshot, calibration: RulaCalibration
) -> JointAssessment:
    """Score each visible side on its own landmarks; the worse side wins."""
    table = calibration.bands_for(joint)
    if joint == "neck":
        value = _frontal_neck(snapshot)
        if value is None:
            return _neutral(joint, calibration)
        return JointAssessment(joint, _clamp(joint, table.classify(value)), value, None)

    names, measure, signed = _MEASURES[joint]
    best: Optional[JointAssessment] = None
    for side in ("left", "right"):
        points = _side_points(snapshot, side, names)
        if points is None:
            continue
        value = measure(points, CAMERA_UNKNOWN)
        if value is None:
            continue
        if signed:
            value = abs(value)
        candidate = JointAssessment(joint, _clamp(joint, table.classify(value)), float(value), side)
        if best is None or candidate.score > best.score:
            best = candidate
    return best if best is not None else _neutral(joint, calibration)


def assess_joint(
    joint: str,
    snapshot: LandmarkSnapshot,
    camera_side: str,
    calibration: RulaCalibration = DRIVING_CALIBRATION,
) -> JointAssessment:
    """Score one joint; see the module docstring for the fallback contract."""
    if joint not in JOINT_SCORE_RANGES:
        raise KeyError(joint)
    if joint == "wrist" and calibration.wrist is None:
        return JointAssessment("wrist", _clamp("wrist", calibration.fixed_wrist_score))
    if calibration.selection == SELECTION_FRONTAL:
        return _assess_frontal(joint, snapshot, calibration)
    return _assess_profile(joint, snapshot, camera_side, calibration)


def score_upper_arm(
    snapshot: LandmarkSnapshot, camera_side: str, calibration: RulaCalibration = DRIVING_CALIBRATION
) -> int:
    return assess_joint("upper_arm", snapshot, camera_side, calibration).score


def score_lower_arm(
    snapshot: LandmarkSnapshot, camera_side: str, calibration: RulaCalibration = DRIVING_CALIBRATION
) -> int:
    return assess_joint("lower_arm", snapshot, camera_side, calibration).score


def score_wrist(
    snapshot: LandmarkSnapshot, camera_side: str, calibration: RulaCalibration = DRIVING_CALIBRATION
) -> int:
    return assess_joint("wrist", snapshot, camera_side, calibration).score


def score_neck(
    snapshot: LandmarkSnapshot, camera_side: str, calibration: RulaCalibration = DRIVING_CALIBRATION
) -> int:
    return assess_joint("neck", snapshot, camera_side, calibration).score


def score_trunk(
    snapshot: LandmarkSnapshot, camera_side: str, calibration: RulaCalibration = DRIVING_CALIBRATION
) -> int:
    return assess_joint("trunk", snapshot, camera_side, calibration).score


__all__ = [
    "SIDE_MIXED",
    "JointAssessment",
    "preferred_side",
    "assess_joint",
    "score_upper_arm",
    "score_lower_arm",
    "score_wrist",
    "score_neck",
    "score_trunk",
]
