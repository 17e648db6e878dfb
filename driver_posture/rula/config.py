"""Calibration presets and configuration for the RULA scoring engine.

Settings include:
- POSE_LANDMARK_INDICES: MediaPipe pose landmark indices for each snapshot slot.
- JOINT_SCORE_RANGES: valid ordinal range per joint score.
- ScoreBand / BandTable: ordered angle-range -> score rules (first match wins).
- RulaCalibration: one engine configuration (bands, selection strategy,
  neutral defaults, recommendation rules).
- PRESETS: `driving` (canonical), `generic` (McAtamney & Corlett 1993 bands),
  `frontal` (generic bands with frontal landmark selection).

Custom calibrations can be loaded from TOML or JSON on top of a preset.
"""

from __future__ import annotations

import json
import logging
import math
import os
import warnings
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from driver_posture.env import get_env
from driver_posture.models import ValidationError, coerce_number, coerce_score
from driver_posture.rula.feedback import (
    DEFAULT_RECOMMENDATION_RULES,
    RecommendationRule,
    load_recommendation_rules,
)

try:  # Optional heavy dependency (pose estimation)
    import mediapipe as mp  # type: ignore
except ModuleNotFoundError:  # pragma: no cover
    mp = None  # type: ignore[assignment]


def _has_mediapipe_solutions() -> bool:
    """Return True when `mediapipe.solutions` APIs are available.

    Some MediaPipe wheels ship only the Tasks API (`mediapipe.tasks`) and do not
    include `mediapipe.solutions.*`.
    """
    if mp is None:
        return False
    try:
        solutions = getattr(mp, "solutions", None)
        return bool(solutions and getattr(solutions, "pose", None))
    except Exception:
        return False


HAS_MEDIAPIPE_SOLUTIONS = _has_mediapipe_solutions()

try:  # Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - fallback when tomllib missing
    try:
        import tomli as tomllib  # type: ignore
    except ModuleNotFoundError:
        tomllib = None  # type: ignore[assignment]


def _configure_logger() -> logging.Logger:
    logger = logging.getLogger("driver_posture.rula")
    level_name = get_env("LOG_LEVEL") or os.getenv("LOG_LEVEL")
    if level_name:
        level = getattr(logging, level_name.upper(), logging.INFO)
        logger.setLevel(level)
    return logger


RULA_LOGGER = _configure_logger()
logger = RULA_LOGGER

# https://developers.google.com/mediapipe/solutions/vision/pose_landmarker
_FALLBACK_POSE_LANDMARK_INDICES: Dict[str, int] = {
    "nose": 0,
    "left_ear": 7,
    "right_ear": 8,
    "left_shoulder": 11,
    "right_shoulder": 12,
    "left_elbow": 13,
    "right_elbow": 14,
    "left_wrist": 15,
    "right_wrist": 16,
    "left_index": 19,
    "right_index": 20,
    "left_hip": 23,
    "right_hip": 24,
}

if HAS_MEDIAPIPE_SOLUTIONS:
    POSE_LANDMARK = mp.solutions.pose.PoseLandmark
    POSE_LANDMARK_INDICES: Dict[str, int] = {
        slot: POSE_LANDMARK[slot.upper()].value for slot in _FALLBACK_POSE_LANDMARK_INDICES
    }
else:  # pragma: no cover - only when mediapipe unavailable
    POSE_LANDMARK = None
    POSE_LANDMARK_INDICES = dict(_FALLBACK_POSE_LANDMARK_INDICES)

JOINTS: Tuple[str, ...] = ("upper_arm", "lower_arm", "wrist", "neck", "trunk")

JOINT_SCORE_RANGES: Dict[str, Tuple[int, int]] = {
    "upper_arm": (1, 4),
    "lower_arm": (1, 3),
    "wrist": (1, 4),
    "neck": (1, 4),
    "trunk": (1, 4),
}

DEFAULT_NEUTRAL_SCORES: Dict[str, int] = {
    "upper_arm": 2,
    "lower_arm": 2,
    "wrist": 1,
    "neck": 2,
    "trunk": 2,
}

SELECTION_PROFILE = "profile"
SELECTION_FRONTAL = "frontal"
SELECTION_STRATEGIES: Tuple[str, ...] = (SELECTION_PROFILE, SELECTION_FRONTAL)

DEFAULT_CALIBRATION = "driving"


@dataclass(frozen=True)
class ScoreBand:
    """Closed measurement interval mapped to a score; `None` bounds are open-ended."""

    score: int
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    def contains(self, value: float) -> bool:
        if self.minimum is not None and value < self.minimum:
            return False
        if self.maximum is not None and value > self.maximum:
            return False
        return True


@dataclass(frozen=True)
class BandTable:
    """Ordered bands; the first containing band wins, `otherwise` covers the rest."""

    bands: Tuple[ScoreBand, ...]
    otherwise: int

    def classify(self, value: float) -> int:
        if not math.isfinite(value):
            return self.otherwise
        for band in self.bands:
            if band.contains(value):
                return band.score
        return self.otherwise

    def scores(self) -> set[int]:
        return {band.score for band in self.bands} | {self.otherwise}


def _bands(*entries: Tuple[int, Optional[float], Optional[float]], otherwise: int) -> BandTable:
    return BandTable(tuple(ScoreBand(score, lo, hi) for score, lo, hi in entries), otherwise)


@dataclass(frozen=True)
class RulaCalibration:
    """Threshold bands plus landmark-selection strategy for one scoring variant.

    Measurements fed to each table:
      - upper_arm: shoulder->elbow angle from the downward vertical (deg, forward +)
      - lower_arm: interior elbow angle shoulder-elbow-wrist (deg, 0-180)
      - neck: forward ear displacement / shoulder-to-ear vertical distance (ratio)
      - trunk: hip->shoulder lean from the upward vertical (deg, forward +)
      - wrist: deviation of the hand from the forearm line (deg); `None` pins
        the wrist to `fixed_wrist_score`
    """

    name: str
    description: str
    upper_arm: BandTable
    lower_arm: BandTable
    neck: BandTable
    trunk: BandTable
    wrist: Optional[BandTable] = None
    fixed_wrist_score: int = 1
    selection: str = SELECTION_PROFILE
    neutral_scores: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_NEUTRAL_SCORES))
    recommendations: Tuple[RecommendationRule, ...] = DEFAULT_RECOMMENDATION_RULES

    def neutral(self, joint: str) -> int:
        return int(self.neutral_scores.get(joint, DEFAULT_NEUTRAL_SCORES[joint]))

    def bands_for(self, joint: str) -> Optional[BandTable]:
        return getattr(self, joint)


# Seated-driving reference posture, side view: arms reaching for the wheel,
# elbows bent, slight recline. Wrist articulation is not visible from the side.
DRIVING_CALIBRATION = RulaCalibration(
    name="driving",
    description="Side-view calibration around a seated driving posture (canonical).",
    upper_arm=_bands((1, 30, 90), (2, 15, 30), (2, 90, 110), (3, 0, 15), (3, 110, None), otherwise=4),
    lower_arm=_bands((1, 60, 120), (2, 45, 60), (2, 120, 150), otherwise=3),
    neck=_bands((1, None, 0.15), (2, None, 0.3), (3, None, 0.5), otherwise=4),
    trunk=_bands((1, -25, 20), (2, 20, 35), (2, -40, -25), (3, 35, 50), otherwise=4),
)

_TAN_10 = math.tan(math.radians(10.0))
_TAN_20 = math.tan(math.radians(20.0))

# McAtamney & Corlett (1993) bands. Lower arm flexion 60-100 deg is an interior
# elbow angle of 80-120 deg; neck flexion bands are expressed as tan(angle).
GENERIC_CALIBRATION = RulaCalibration(
    name="generic",
    description="Side-view McAtamney & Corlett (1993) RULA bands for a generic posture.",
    upper_arm=_bands((1, -20, 20), (2, 20, 45), (2, None, -20), (3, 45, 90), otherwise=4),
    lower_arm=_bands((1, 80, 120), otherwise=2),
    neck=_bands((1, 0, _TAN_10), (2, _TAN_10, _TAN_20), (3, _TAN_20, None), otherwise=4),
    trunk=_bands((1, -5, 5), (2, 5, 20), (3, 20, 60), (4, 60, None), otherwise=2),
)

FRONTAL_CALIBRATION = replace(
    GENERIC_CALIBRATION,
    name="frontal",
    description="Frontal view: generic bands, worst side wins, wrist deviation from the index finger.",
    wrist=_bands((1, 0, 5), (2, 5, 15), otherwise=3),
    selection=SELECTION_FRONTAL,
)

PRESETS: Dict[str, RulaCalibration] = {
    cal.name: cal for cal in (DRIVING_CALIBRATION, GENERIC_CALIBRATION, FRONTAL_CALIBRATION)
}


def available_calibrations() -> list[str]:
    return sorted(PRESETS)


def get_calibration(name: str | RulaCalibration | None = None) -> RulaCalibration:
    """Resolve a preset by name (case-insensitive); `None` yields the canonical preset."""
    if isinstance(name, RulaCalibration):
        return name
    if name is not None and not isinstance(name, str):
        raise ValidationError(f"Calibration must be a preset name; received {name!r}.")
    key = (name or DEFAULT_CALIBRATION).strip().lower()
    try:
        return PRESETS[key]
    except KeyError:
        raise ValidationError(
            f"Unknown calibration {name!r}; expected one of: {', '.join(available_calibrations())}."
        ) from None


def _load_toml_file(path: Path) -> Dict[str, Any]:
    if tomllib is None:
        raise ImportError("TOML calibrations require Python 3.11+ or the 'tomli' package.")
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _coerce_bound(value: Any, *, field: str) -> Optional[float]:
    if value is None:
        return None
    return coerce_number(value, field=field)


def _coerce_band_table(raw: Any, *, joint: str, base: Optional[BandTable]) -> Optional[BandTable]:
    """Parse `{"otherwise": n, "bands": [{"score", "min", "max"}, ...]}`."""
    if raw is None:
        return base
    if not isinstance(raw, Mapping):
        raise ValueError(f"Calibration section '{joint}' must be a table with 'bands' and 'otherwise'.")
    bands_raw = raw.get("bands", [])
    if not isinstance(bands_raw, Sequence) or isinstance(bands_raw, (str, bytes)):
        raise ValueError(f"Calibration '{joint}.bands' must be a list.")
    bands: list[ScoreBand] = []
    for idx, entry in enumerate(bands_raw):
        label = f"{joint}.bands[{idx}]"
        if isinstance(entry, Mapping):
            score = coerce_score(entry.get("score"), field=f"{label}.score")
            lo = _coerce_bound(entry.get("min", entry.get("minimum")), field=f"{label}.min")
            hi = _coerce_bound(entry.get("max", entry.get("maximum")), field=f"{label}.max")
        elif isinstance(entry, Sequence) and len(entry) == 3:
            score = coerce_score(entry[0], field=f"{label}.score")
            lo = _coerce_bound(entry[1], field=f"{label}.min")
            hi = _coerce_bound(entry[2], field=f"{label}.max")
        else:
            raise ValueError(f"Calibration '{label}' must be a table or a [score, min, max] triple.")
        bands.append(ScoreBand(score, lo, hi))
    fallback = base.otherwise if base is not None else None
    otherwise_raw = raw.get("otherwise", fallback)
    if otherwise_raw is None:
        raise ValueError(f"Calibration '{joint}' needs an 'otherwise' score.")
    otherwise = coerce_score(otherwise_raw, field=f"{joint}.otherwise")
    return BandTable(tuple(bands), otherwise)


def calibration_from_mapping(raw: Mapping[str, Any], *, base: str | RulaCalibration | None = None) -> RulaCalibration:
    """Overlay a decoded calibration mapping onto a base preset."""
    body = raw.get("calibration", raw) if isinstance(raw, Mapping) else raw
    if not isinstance(body, Mapping):
        raise ValueError("Invalid calibration structure; expected a dict or a [calibration] section.")

    base_cal = get_calibration(body.get("base", base))
    updates: Dict[str, Any] = {}
    for joint in ("upper_arm", "lower_arm", "neck", "trunk"):
        updates[joint] = _coerce_band_table(body.get(joint), joint=joint, base=base_cal.bands_for(joint))
    if "wrist" in body:
        wrist_raw = body.get("wrist")
        pinned = wrist_raw is False or (isinstance(wrist_raw, str) and wrist_raw.strip().lower() == "fixed")
        updates["wrist"] = None if pinned else _coerce_band_table(wrist_raw, joint="wrist", base=base_cal.wrist)
    if "fixed_wrist_score" in body:
        updates["fixed_wrist_score"] = coerce_score(body["fixed_wrist_score"], field="fixed_wrist_score")

    selection = str(body.get("selection", base_cal.selection)).strip().lower()
    if selection not in SELECTION_STRATEGIES:
        raise ValueError(f"Unsupported selection {selection!r}; expected one of {SELECTION_STRATEGIES}.")
    updates["selection"] = selection

    neutral_raw = body.get("neutral_scores")
    if neutral_raw is not None:
        if not isinstance(neutral_raw, Mapping):
            raise ValueError("Calibration 'neutral_scores' must be a table of joint -> score.")
        neutral = dict(base_cal.neutral_scores)
        for joint, value in neutral_raw.items():
            if joint not in JOINTS:
                raise ValueError(f"Unknown joint in neutral_scores: {joint!r}.")
            neutral[joint] = coerce_score(value, field=f"neutral_scores.{joint}")
        updates["neutral_scores"] = neutral

    if "recommendations" in body:
        updates["recommendations"] = load_recommendation_rules(body.get("recommendations"))

    updates["name"] = str(body.get("name") or f"{base_cal.name}-custom")
    updates["description"] = str(body.get("description") or f"Custom calibration based on '{base_cal.name}'.")
    return replace(base_cal, **updates)


def load_calibration_from_file(config_path: Path | str, *, base: str | RulaCalibration | None = None) -> RulaCalibration:
    """Load a calibration from TOML or JSON on top of a base preset.

    Supports either a root-level mapping or a [calibration] table/object.
    """
    path = Path(config_path).expanduser()
    if not path.exists():
        raise FileNotFoundError(f"Calibration not found: {path}")
    if not path.is_file():
        raise ValueError(f"Expected a calibration file, but got a directory: {path}")

    suffix = path.suffix.lower()
    if suffix == ".toml":
        raw = _load_toml_file(path)
    elif suffix == ".json":
        with path.open("r", encoding="utf-8") as handle:
            raw = json.load(handle)
    else:
        raise ValueError(f"Unsupported calibration format for {path}; expected .toml or .json.")

    if not isinstance(raw, Mapping):
        raise ValueError("Invalid calibration structure; expected a dict or a [calibration] section.")
    calibration = calibration_from_mapping(raw, base=base)
    logger.info("Loaded calibration '%s' from %s", calibration.name, path)
    validate_calibration(calibration)
    return calibration


def validate_calibration(calibration: RulaCalibration) -> list[str]:
    """Warn about scores outside each joint's valid range; return the messages."""
    problems: list[str] = []
    for joint in JOINTS:
        lo, hi = JOINT_SCORE_RANGES[joint]
        table = calibration.bands_for(joint)
        scores = set(table.scores()) if table is not None else {calibration.fixed_wrist_score}
        scores.add(calibration.neutral(joint))
        for score in sorted(scores):
            if not lo <= score <= hi:
                problems.append(f"{calibration.name}: {joint} score {score} is outside [{lo},{hi}]")
        if table is not None:
            for band in table.bands:
                if band.minimum is not None and band.maximum is not None and band.minimum > band.maximum:
                    problems.append(
                        f"{calibration.name}: {joint} band {band.minimum}..{band.maximum} is empty"
                    )
    for message in problems:
        warnings.warn(message, RuntimeWarning, stacklevel=2)
        logger.warning("%s", message)
    return problems


def validate_mediapipe_indices() -> None:
    """Verify POSE_LANDMARK_INDICES matches the installed MediaPipe pose model."""
    if mp is None or not HAS_MEDIAPIPE_SOLUTIONS:  # pragma: no cover - optional dependency
        logger.debug("mediapipe solutions unavailable; skipping validate_mediapipe_indices().")
        return
    pose_enum = mp.solutions.pose.PoseLandmark
    for slot, configured in _FALLBACK_POSE_LANDMARK_INDICES.items():
        expected = pose_enum[slot.upper()].value
        if configured != expected:
            warnings.warn(
                f"{slot} index differs from MediaPipe Pose ({configured} != {expected}).",
                RuntimeWarning,
                stacklevel=2,
            )
            logger.warning("%s index mismatch MediaPipe Pose (configured=%s, expected=%s)", slot, configured, expected)


def describe_calibration(calibration: RulaCalibration) -> list[str]:
    """Human-readable band listing used by the CLI."""

    def fmt(value: Optional[float], unbounded: str) -> str:
        return unbounded if value is None else f"{value:g}"

    lines = [f"{calibration.name}: {calibration.description}", f"  selection: {calibration.selection}"]
    for joint in JOINTS:
        table = calibration.bands_for(joint)
        if table is None:
            lines.append(f"  {joint}: fixed {calibration.fixed_wrist_score}")
            continue
        parts = [f"[{fmt(b.minimum, '-inf')}, {fmt(b.maximum, 'inf')}]->{b.score}" for b in table.bands]
        parts.append(f"else->{table.otherwise}")
        lines.append(f"  {joint}: " + ", ".join(parts) + f" (neutral {calibration.neutral(joint)})")
    return lines


__all__ = [
    "RULA_LOGGER",
    "POSE_LANDMARK_INDICES",
    "JOINTS",
    "JOINT_SCORE_RANGES",
    "DEFAULT_NEUTRAL_SCORES",
    "SELECTION_PROFILE",
    "SELECTION_FRONTAL",
    "DEFAULT_CALIBRATION",
    "ScoreBand",
    "BandTable",
    "RulaCalibration",
    "DRIVING_CALIBRATION",
    "GENERIC_CALIBRATION",
    "FRONTAL_CALIBRATION",
    "PRESETS",
    "available_calibrations",
    "get_calibration",
    "calibration_from_mapping",
    "load_calibration_from_file",
    "validate_calibration",
    "validate_mediapipe_indices",
    "describe_calibration",
]
