from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence

import pandas as pd

from .config import AppConfig, get_config
from .models import ValidationError
from .rula.config import RULA_LOGGER as logger
from .rula.config import RulaCalibration, get_calibration, load_calibration_from_file
from .rula.engine import RulaEngine, RulaScoreResult
from .rula.feedback import RISK_LEVELS
from .rula.landmarks import LandmarkSnapshot, snapshot_from_payload

FRAME_COLUMNS = [
    "frame",
    "upper_arm",
    "lower_arm",
    "wrist",
    "neck",
    "trunk",
    "final_score",
    "risk",
    "camera_side",
    "alert",
]

TREND_IMPROVING = "improving"
TREND_DECLINING = "declining"
TREND_NEUTRAL = "neutral"

_TREND_SPAN = 5
_TREND_MARGIN = 0.5


def should_alert(result: RulaScoreResult, alert_risks: Sequence[str] | None = None) -> bool:
    """True when the result's risk tier warrants an on-screen/audio alert.

    Debouncing repeated alerts across frames is left to the caller.
    """
    risks = tuple(alert_risks) if alert_risks is not None else get_config().alert_risks
    return result.risk in risks


def build_engine(
    calibration: str | RulaCalibration | None = None,
    *,
    calibration_file: Path | str | None = None,
    config: AppConfig | None = None,
) -> RulaEngine:
    """Resolve the engine from explicit arguments, then the app config."""
    cfg = config or get_config()
    path = calibration_file or cfg.calibration_file
    if path:
        base = calibration if calibration is not None else cfg.calibration
        return RulaEngine(load_calibration_from_file(path, base=base))
    return RulaEngine(get_calibration(calibration if calibration is not None else cfg.calibration))


def _frame_payload(raw: Any) -> Any:
    if isinstance(raw, Mapping) and "landmarks" in raw:
        return raw["landmarks"]
    return raw


def load_frames(path: Path | str) -> list[Any]:
    """Read landmark frames from JSON (`[...]` or `{"frames": [...]}`) or JSON lines."""
    source = Path(path)
    if not source.exists():
        raise ValidationError(f"Frames file not found: {source}")
    if not source.is_file():
        raise ValidationError(f"Expected a frames file, but got a directory: {source}")
    try:
        text = source.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ValidationError(f"{source} is not UTF-8 text.") from exc
    if source.suffix.lower() in {".jsonl", ".ndjson"}:
        frames: list[Any] = []
        for line_no, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                frames.append(json.loads(line))
            except json.JSONDecodeError as exc:
                raise ValidationError(f"{source}:{line_no} is not valid JSON: {exc.msg}") from exc
        return frames
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"{source} is not valid JSON: {exc.msg}") from exc
    if isinstance(payload, Mapping) and isinstance(payload.get("frames"), list):
        return list(payload["frames"])
    if isinstance(payload, list):
        return payload
    raise ValidationError(f"{source} must hold a list of frames or a {{'frames': [...]}} object.")


def score_frames(
    frames: Iterable[Any],
    engine: RulaEngine | None = None,
    *,
    visibility_threshold: float | None = None,
    alert_risks: Sequence[str] | None = None,
) -> pd.DataFrame:
    """Score every frame independently and return one row per frame."""
    engine = engine or build_engine()
    cfg = get_config()
    threshold = cfg.visibility_threshold if visibility_threshold is None else visibility_threshold
    risks = tuple(alert_risks) if alert_risks is not None else cfg.alert_risks

    records: list[dict[str, object]] = []
    for idx, raw in enumerate(frames):
        if isinstance(raw, LandmarkSnapshot):
            snapshot = raw
        else:
            try:
                snapshot = snapshot_from_payload(_frame_payload(raw), visibility_threshold=threshold)
            except ValidationError as exc:
                raise ValidationError(f"frame {idx}: {exc}") from exc
        result = engine.evaluate(snapshot)
        record: dict[str, object] = {"frame": idx}
        record.update(result.joint_scores)
        record.update(
            {
                "final_score": result.final_score,
                "risk": result.risk,
                "camera_side": result.camera_side,
                "alert": result.risk in risks,
            }
        )
        records.append(record)

    logger.debug("Scored %d frames with calibration '%s'", len(records), engine.calibration.name)
    return pd.DataFrame.from_records(records, columns=FRAME_COLUMNS)


@dataclass(frozen=True)
class PostureSummary:
    """Recap over the most recent frames of a session."""

    frames: int
    average_score: Optional[float]
    worst_score: Optional[int]
    trend: str
    risk_counts: dict[str, int] = field(default_factory=dict)
    alerts: int = 0

    @property
    def recap(self) -> str:
        if not self.frames:
            return "No frames scored."
        risk_text = ", ".join(f"{level}={self.risk_counts.get(level, 0)}" for level in RISK_LEVELS)
        return (
            f"{self.frames} frames, avg score {self.average_score:.1f}/7, "
            f"worst {self.worst_score}, trend {self.trend} ({risk_text}); {self.alerts} alert frames."
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "frames": self.frames,
            "average_score": self.average_score,
            "worst_score": self.worst_score,
            "trend": self.trend,
            "risk_counts": dict(self.risk_counts),
            "alerts": self.alerts,
        }


def score_trend(scores: Sequence[float]) -> str:
    """Compare the last five scores with the five before them (lower is better)."""
    if len(scores) < _TREND_SPAN:
        return TREND_NEUTRAL
    recent = list(scores[-_TREND_SPAN:])
    older = list(scores[-2 * _TREND_SPAN : -_TREND_SPAN])
    if not older:
        return TREND_NEUTRAL
    recent_avg = sum(recent) / len(recent)
    older_avg = sum(older) / len(older)
    if recent_avg < older_avg - _TREND_MARGIN:
        return TREND_IMPROVING
    if recent_avg > older_avg + _TREND_MARGIN:
        return TREND_DECLINING
    return TREND_NEUTRAL


def summarize_scores(df: pd.DataFrame, window: int | None = None) -> PostureSummary:
    """Summarise the last `window` rows of a `score_frames` table."""
    if df is None or df.empty:
        return PostureSummary(frames=0, average_score=None, worst_score=None, trend=TREND_NEUTRAL)
    size = window if window is not None else get_config().history_window
    recent = df.tail(max(1, int(size)))
    scores = [float(value) for value in recent["final_score"].tolist()]
    counts = recent["risk"].value_counts().to_dict()
    return PostureSummary(
        frames=int(len(recent)),
        average_score=float(recent["final_score"].mean()),
        worst_score=int(recent["final_score"].max()),
        trend=score_trend(scores),
        risk_counts={level: int(counts.get(level, 0)) for level in RISK_LEVELS},
        alerts=int(recent["alert"].sum()) if "alert" in recent else 0,
    )


__all__ = [
    "FRAME_COLUMNS",
    "PostureSummary",
    "build_engine",
    "load_frames",
    "score_frames",
    "score_trend",
    "should_alert",
    "summarize_scores",
]
