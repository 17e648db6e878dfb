"""Segment angle geometry for side-view posture scoring.

Image coordinates: x grows to the right, y grows downward. Every signed angle
is normalised so that "forward" (toward the wheel / direction of gaze) is
positive whichever side of the subject the camera occupies.
"""

from __future__ import annotations

import math
from typing import Any, Optional

import numpy as np

from driver_posture.rula.camera import CAMERA_LEFT, CAMERA_RIGHT


def _xy(point: Any) -> np.ndarray:
    if hasattr(point, "x") and hasattr(point, "y"):
        return np.array([float(point.x), float(point.y)], dtype=float)
    arr = np.asarray(point, dtype=float).reshape(-1)
    return arr[:2]


def forward_sign(camera_side: str) -> float:
    """-1 when the camera is on the subject's right (subject faces image-left)."""
    return -1.0 if camera_side == CAMERA_RIGHT else 1.0


def angle_between(p1: Any, p2: Any, p3: Any) -> float:
    """Angle at vertex p2 formed by rays p2->p1 and p2->p3, in degrees [0, 180].

    Depth is ignored. A zero-length ray yields 0.0 instead of dividing by zero.
    """
    v1 = _xy(p1) - _xy(p2)
    v2 = _xy(p3) - _xy(p2)
    norm1 = float(np.linalg.norm(v1))
    norm2 = float(np.linalg.norm(v2))
    if norm1 == 0.0 or norm2 == 0.0:
        return 0.0
    cosine = float(np.clip(np.dot(v1, v2) / (norm1 * norm2), -1.0, 1.0))
    return float(np.degrees(np.arccos(cosine)))


def angle_from_vertical(start: Any, end: Any, camera_side: str, *, upward: bool = False) -> float:
    """Signed angle of the segment start->end from the image vertical, in degrees.

    With `upward=False` the reference is straight down (a hanging arm is 0,
    an arm reaching horizontally forward is +90). With `upward=True` the
    reference is straight up (an upright trunk is 0, a forward lean positive,
    a recline negative). The result lies in (-180, 180].
    """
    a = _xy(start)
    b = _xy(end)
    dx = float(b[0] - a[0]) * forward_sign(camera_side)
    dy = float(b[1] - a[1])
    if upward:
        dy = -dy
    if dx == 0.0 and dy == 0.0:
        return 0.0
    return math.degrees(math.atan2(dx, dy))


def forward_head_ratio(ear: Any, shoulder: Any, camera_side: str) -> Optional[float]:
    """Horizontal ear-ahead-of-shoulder distance over the shoulder-to-ear height.

    Positive means the head sits forward of the shoulder. Only a camera on the
    subject's left reads "forward" as +x; a right or unknown camera reads it as
    -x, matching the left-profile landmarks preferred in those cases. Returns
    None when the ear and shoulder are level (no usable height).
    """
    e = _xy(ear)
    s = _xy(shoulder)
    vertical = abs(float(s[1] - e[1]))
    if vertical == 0.0:
        return None
    if camera_side == CAMERA_LEFT:
        forward = float(e[0] - s[0])
    else:
        forward = float(s[0] - e[0])
    return forward / vertical


def wrist_deviation(elbow: Any, wrist: Any, hand: Any) -> float:
    """Bend of the hand away from the forearm line, in degrees (0 = straight).

    Coincident points carry no direction and read as straight.
    """
    w = _xy(wrist)
    if np.array_equal(_xy(elbow), w) or np.array_equal(_xy(hand), w):
        return 0.0
    return 180.0 - angle_between(elbow, wrist, hand)


__all__ = [
    "forward_sign",
    "angle_between",
    "angle_from_vertical",
    "forward_head_ratio",
    "wrist_deviation",
]
