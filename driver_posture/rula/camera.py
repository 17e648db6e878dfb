"""Camera side detection from landmark visibility."""

from __future__ import annotations

from typing import Tuple

from driver_posture.rula.landmarks import LandmarkSnapshot

CAMERA_LEFT = "left"
CAMERA_RIGHT = "right"
CAMERA_UNKNOWN = "unknown"
CAMERA_SIDES: Tuple[str, ...] = (CAMERA_LEFT, CAMERA_RIGHT, CAMERA_UNKNOWN)

_COUNTED_JOINTS = ("shoulder", "elbow", "wrist", "hip", "ear")


def visible_counts(snapshot: LandmarkSnapshot) -> Tuple[int, int]:
    """(left, right) counts of present shoulder/elbow/wrist/hip/ear landmarks."""
    left = sum(1 for joint in _COUNTED_JOINTS if snapshot.side("left", joint) is not None)
    right = sum(1 for joint in _COUNTED_JOINTS if snapshot.side("right", joint) is not None)
    return left, right


def detect_camera_side(snapshot: LandmarkSnapshot) -> str:
    """Infer which side of the subject the camera sits on.

    A camera on the subject's right sees the left profile, so more left-side
    landmarks means "right" (and vice versa). On a tie the nose is compared to
    the shoulder midpoint: left of it means the subject faces image-left, i.e.
    the camera is on the right.
    """
    left, right = visible_counts(snapshot)
    if left > right:
        return CAMERA_RIGHT
    if right > left:
        return CAMERA_LEFT

    nose = snapshot.nose
    left_shoulder = snapshot.left_shoulder
    right_shoulder = snapshot.right_shoulder
    if nose is not None and left_shoulder is not None and right_shoulder is not None:
        shoulder_mid_x = (left_shoulder.x + right_shoulder.x) / 2.0
        if nose.x < shoulder_mid_x:
            return CAMERA_RIGHT
        return CAMERA_LEFT

    return CAMERA_UNKNOWN


def opposite_side(side: str) -> str:
    if side == CAMERA_LEFT:
        return CAMERA_RIGHT
    if side == CAMERA_RIGHT:
        return CAMERA_LEFT
    return CAMERA_UNKNOWN


__all__ = [
    "CAMERA_LEFT",
    "CAMERA_RIGHT",
    "CAMERA_UNKNOWN",
    "CAMERA_SIDES",
    "visible_counts",
    "detect_camera_side",
    "opposite_side",
]
