from __future__ import annotations

import math
import os

import pytest

from driver_posture.config import get_config
from driver_posture.rula.landmarks import LandmarkSnapshot, Point

# Camera on the subject's right: the left profile is visible and forward is -x.
FORWARD_RIGHT_CAMERA = -1.0


def limb(origin: Point, angle_from_down: float, length: float = 0.2, forward: float = FORWARD_RIGHT_CAMERA) -> Point:
    """Endpoint of a segment leaving `origin` at `angle_from_down` degrees (forward positive)."""
    rad = math.radians(angle_from_down)
    return Point(origin.x + forward * length * math.sin(rad), origin.y + length * math.cos(rad))


def driver_snapshot(
    *,
    upper_arm: float,
    elbow_interior: float,
    head_ratio: float,
    trunk_lean: float,
    forward: float = FORWARD_RIGHT_CAMERA,
) -> LandmarkSnapshot:
    """Left-profile driver built from the measurements each classifier reads."""
    hip = Point(0.5, 0.8)
    shoulder = limb(hip, 180.0 - trunk_lean, length=0.3, forward=forward)
    elbow = limb(shoulder, upper_arm, forward=forward)
    wrist = limb(elbow, upper_arm + 180.0 - elbow_interior, forward=forward)
    ear = Point(shoulder.x + forward * head_ratio * 0.2, shoulder.y - 0.2)
    return LandmarkSnapshot(
        left_shoulder=shoulder,
        left_elbow=elbow,
        left_wrist=wrist,
        left_hip=hip,
        left_ear=ear,
        nose=Point(ear.x + forward * 0.05, ear.y + 0.01),
    )


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("DRIVER_POSTURE_"):
            monkeypatch.delenv(key, raising=False)
    get_config.cache_clear()
    yield
    get_config.cache_clear()


@pytest.fixture
def good_posture() -> LandmarkSnapshot:
    return driver_snapshot(upper_arm=60.0, elbow_interior=90.0, head_ratio=0.1, trunk_lean=5.0)


@pytest.fixture
def slouched_posture() -> LandmarkSnapshot:
    return driver_snapshot(upper_arm=5.0, elbow_interior=170.0, head_ratio=0.8, trunk_lean=45.0)


@pytest.fixture
def make_driver():
    return driver_snapshot
