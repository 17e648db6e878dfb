"""RULA posture-to-risk scoring engine.

This module is intentionally **lazy-imported** so the CLI and web app only pay
for the pieces they touch; the optional `mediapipe` probe in `config` runs on
first access.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "Point",
    "LandmarkSnapshot",
    "snapshot_from_payload",
    "detect_camera_side",
    "angle_between",
    "angle_from_vertical",
    "assess_joint",
    "combine_scores",
    "classify_risk",
    "generate_recommendations",
    "RulaEngine",
    "RulaScoreResult",
    "ScoreTrace",
    "compute_score",
    "RulaCalibration",
    "get_calibration",
    "available_calibrations",
    "load_calibration_from_file",
    "RULA_LOGGER",
]

_LANDMARK_EXPORTS = {"Point", "LandmarkSnapshot", "snapshot_from_payload"}
_CAMERA_EXPORTS = {"detect_camera_side"}
_ANGLE_EXPORTS = {"angle_between", "angle_from_vertical"}
_JOINT_EXPORTS = {"assess_joint"}
_TABLE_EXPORTS = {"combine_scores"}
_FEEDBACK_EXPORTS = {"classify_risk", "generate_recommendations"}
_ENGINE_EXPORTS = {"RulaEngine", "RulaScoreResult", "ScoreTrace", "compute_score"}
_CONFIG_EXPORTS = {
    "RulaCalibration",
    "get_calibration",
    "available_calibrations",
    "load_calibration_from_file",
    "RULA_LOGGER",
}

_MODULES = (
    (_LANDMARK_EXPORTS, "landmarks"),
    (_CAMERA_EXPORTS, "camera"),
    (_ANGLE_EXPORTS, "angles"),
    (_JOINT_EXPORTS, "joints"),
    (_TABLE_EXPORTS, "tables"),
    (_FEEDBACK_EXPORTS, "feedback"),
    (_ENGINE_EXPORTS, "engine"),
    (_CONFIG_EXPORTS, "config"),
)


def __getattr__(name: str) -> Any:  # pragma: no cover - exercised indirectly
    for exports, module_name in _MODULES:
        if name in exports:
            from importlib import import_module

            module = import_module(f"{__name__}.{module_name}")
            return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:  # pragma: no cover - trivial
    return sorted(set(list(globals()) + __all__))
