"""Landmark snapshot: the per-frame input of the RULA engine.

A snapshot is a fixed set of named, optional 2D points (with an optional depth
component) in normalised image coordinates. A missing slot means "not detected
this frame" and is never an error for the engine. Validation of malformed
payloads happens here, at the boundary, through `ValidationError`.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional, Sequence

import numpy as np

from driver_posture.models import ValidationError, coerce_number
from driver_posture.rula.config import POSE_LANDMARK_INDICES

# Slots counted by the camera-side detector and used by the side-view classifiers.
BODY_SLOTS: tuple[str, ...] = (
    "nose",
    "left_ear",
    "right_ear",
    "left_shoulder",
    "right_shoulder",
    "left_elbow",
    "right_elbow",
    "left_wrist",
    "right_wrist",
    "left_hip",
    "right_hip",
)

# Index finger tips; only the frontal wrist classifier reads them.
HAND_SLOTS: tuple[str, ...] = ("left_index", "right_index")

SLOT_NAMES: tuple[str, ...] = BODY_SLOTS + HAND_SLOTS

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


@dataclass(frozen=True)
class Point:
    """Normalised image point; `z` is the model's relative depth when present."""

    x: float
    y: float
    z: Optional[float] = None

    def mirrored(self) -> "Point":
        return Point(1.0 - self.x, self.y, self.z)

    def to_dict(self) -> dict[str, float]:
        out = {"x": float(self.x), "y": float(self.y)}
        if self.z is not None:
            out["z"] = float(self.z)
        return out


def _slot_name(key: str) -> str:
    return _CAMEL_RE.sub("_", str(key).strip()).lower()


def _attr_or_key(value: Any, name: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(name)
    return getattr(value, name, None)


def _coerce_point(
    value: Any,
    *,
    field: str,
    visibility_threshold: Optional[float],
    strict: bool,
) -> Optional[Point]:
    """Turn a mapping, attribute object or 2-4 length sequence into a Point.

    Sequences follow the (x, y[, z[, visibility]]) layout. With `strict` set,
    malformed coordinates raise `ValidationError`; otherwise they read as absent.
    """
    if value is None:
        return None

    visibility: Any = None
    if isinstance(value, Mapping) or (hasattr(value, "x") and hasattr(value, "y")):
        raw_x, raw_y, raw_z = _attr_or_key(value, "x"), _attr_or_key(value, "y"), _attr_or_key(value, "z")
        visibility = _attr_or_key(value, "visibility")
    else:
        arr = np.asarray(value, dtype=object).reshape(-1)
        if arr.size < 2 or arr.size > 4:
            if strict:
                raise ValidationError(f"{field} must have 2-4 components; received {value!r}.")
            return None
        raw_x, raw_y = arr[0], arr[1]
        raw_z = arr[2] if arr.size >= 3 else None
        visibility = arr[3] if arr.size == 4 else None

    try:
        x = coerce_number(raw_x, field=f"{field}.x")
        y = coerce_number(raw_y, field=f"{field}.y")
        z = None if raw_z is None else coerce_number(raw_z, field=f"{field}.z")
    except ValidationError:
        if strict:
            raise
        return None

    if visibility_threshold is not None and visibility is not None:
        try:
            vis = float(visibility)
        except (TypeError, ValueError):
            vis = math.nan
        if not math.isfinite(vis) or vis < float(visibility_threshold):
            return None

    return Point(x, y, z)


@dataclass(frozen=True)
class LandmarkSnapshot:
    """One subject's tracked landmarks for a single frame."""

    nose: Optional[Point] = None
    left_ear: Optional[Point] = None
    right_ear: Optional[Point] = None
    left_shoulder: Optional[Point] = None
    right_shoulder: Optional[Point] = None
    left_elbow: Optional[Point] = None
    right_elbow: Optional[Point] = None
    left_wrist: Optional[Point] = None
    right_wrist: Optional[Point] = None
    left_hip: Optional[Point] = None
    right_hip: Optional[Point] = None
    left_index: Optional[Point] = None
    right_index: Optional[Point] = None

    def get(self, slot: str) -> Optional[Point]:
        return getattr(self, slot, None)

    def side(self, side: str, joint: str) -> Optional[Point]:
        """Return the `joint` landmark of `side` ("left" or "right")."""
        return self.get(f"{side}_{joint}")

    def present(self) -> list[str]:
        return [f.name for f in fields(self) if getattr(self, f.name) is not None]

    def is_empty(self) -> bool:
        return not self.present()

    def mirrored(self) -> "LandmarkSnapshot":
        """Swap every left/right pair and reflect x, as if the frame were flipped."""
        values: Dict[str, Optional[Point]] = {}
        for f in fields(self):
            name = f.name
            if name.startswith("left_"):
                source = "right_" + name[len("left_"):]
            elif name.startswith("right_"):
                source = "left_" + name[len("right_"):]
            else:
                source = name
            point = getattr(self, source)
            values[name] = point.mirrored() if point is not None else None
        return replace(self, **values)

    def to_dict(self) -> dict[str, Optional[dict[str, float]]]:
        return {f.name: (p.to_dict() if (p := getattr(self, f.name)) is not None else None) for f in fields(self)}

    @classmethod
    def from_mapping(
        cls,
        payload: Mapping[str, Any],
        *,
        visibility_threshold: Optional[float] = None,
    ) -> "LandmarkSnapshot":
        """Build a snapshot from `{slot: point}`; accepts snake_case or camelCase slot names.

        Unknown keys are ignored so a caller can pass a richer landmark record.
        """
        if not isinstance(payload, Mapping):
            raise ValidationError(f"landmarks must be a mapping of slot names; received {type(payload).__name__}.")
        values: Dict[str, Optional[Point]] = {}
        for key, raw in payload.items():
            slot = _slot_name(key)
            if slot not in SLOT_NAMES:
                continue
            values[slot] = _coerce_point(raw, field=slot, visibility_threshold=visibility_threshold, strict=True)
        return cls(**values)

    @classmethod
    def from_pose_landmarks(
        cls,
        landmarks: Sequence[Any],
        *,
        visibility_threshold: Optional[float] = None,
    ) -> "LandmarkSnapshot":
        """Build a snapshot from the flat 33-point list of the MediaPipe pose model.

        Accepts NormalizedLandmark-like objects, mappings, or an (N, 2-4) array.
        Points past the end of the list, or with non-finite coordinates, are absent.
        """
        if isinstance(landmarks, np.ndarray):
            rows: Sequence[Any] = list(landmarks.reshape(landmarks.shape[0], -1)) if landmarks.ndim > 1 else []
        else:
            rows = list(landmarks or [])
        values: Dict[str, Optional[Point]] = {}
        for slot, index in POSE_LANDMARK_INDICES.items():
            if index >= len(rows):
                continue
            values[slot] = _coerce_point(
                rows[index], field=slot, visibility_threshold=visibility_threshold, strict=False
            )
        return cls(**values)


def snapshot_from_payload(payload: Any, *, visibility_threshold: Optional[float] = None) -> LandmarkSnapshot:
    """Dispatch a decoded JSON payload to the matching constructor.

    A mapping is treated as named slots; a sequence as the pose model's flat list.
    """
    if isinstance(payload, LandmarkSnapshot):
        return payload
    if isinstance(payload, Mapping):
        if "landmarks" in payload:
            return snapshot_from_payload(payload["landmarks"], visibility_threshold=visibility_threshold)
        return LandmarkSnapshot.from_mapping(payload, visibility_threshold=visibility_threshold)
    if isinstance(payload, (list, tuple, np.ndarray)):
        return LandmarkSnapshot.from_pose_landmarks(payload, visibility_threshold=visibility_threshold)
    raise ValidationError(f"Unsupported landmark payload: {type(payload).__name__}.")


__all__ = [
    "BODY_SLOTS",
    "HAND_SLOTS",
    "SLOT_NAMES",
    "Point",
    "LandmarkSnapshot",
    "snapshot_from_payload",
]
