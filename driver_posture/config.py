from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping, Optional

from .env import get_env
from .models import ValidationError, coerce_number, parse_names

try:  # pragma: no cover - Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - Python <3.11
    try:
        import tomli as tomllib  # type: ignore
    except ModuleNotFoundError:
        tomllib = None  # type: ignore

DEFAULT_CALIBRATION = "driving"
DEFAULT_VISIBILITY_THRESHOLD = 0.5
DEFAULT_ALERT_RISKS: tuple[str, ...] = ("high", "very-high")
DEFAULT_HISTORY_WINDOW = 20


@dataclass(frozen=True)
class AppConfig:
    calibration: str = DEFAULT_CALIBRATION
    calibration_file: Optional[Path] = None
    visibility_threshold: float = DEFAULT_VISIBILITY_THRESHOLD
    alert_risks: tuple[str, ...] = DEFAULT_ALERT_RISKS
    history_window: int = DEFAULT_HISTORY_WINDOW


def _config_path() -> Path | None:
    """Resolve the TOML configuration file, if present."""
    env_override = get_env("CONFIG")
    if env_override:
        path = Path(env_override).expanduser()
        return path if path.exists() else None

    default_path = Path("config/driver_posture.toml")
    if default_path.exists():
        return default_path
    return None


def _load_toml(path: Path) -> Mapping[str, Any]:
    if tomllib is None:
        raise RuntimeError("TOML configuration requires Python 3.11+ or the 'tomli' package.")
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _coerce_threshold(raw: Any, default: float) -> float:
    if raw is None or raw == "":
        return default
    try:
        return coerce_number(raw, field="visibility_threshold", minimum=0.0, maximum=1.0)
    except ValidationError:
        return default


def _coerce_window(raw: Any, default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = coerce_number(raw, field="history_window", minimum=1)
    except ValidationError:
        return default
    return int(value)


def _coerce_alert_risks(raw: Any) -> tuple[str, ...]:
    try:
        names = parse_names(raw, field="alert_risks")
    except ValidationError:
        return DEFAULT_ALERT_RISKS
    return tuple(names) or DEFAULT_ALERT_RISKS


def _coerce_path(raw: Any) -> Optional[Path]:
    if not raw:
        return None
    return Path(str(raw)).expanduser()


def _build_config(raw: Mapping[str, Any]) -> AppConfig:
    """Merge a TOML mapping (root or [driver_posture] table) with env overrides."""
    body = raw.get("driver_posture", raw)
    if not isinstance(body, Mapping):
        body = {}
    calibration = get_env("CALIBRATION") or body.get("calibration") or DEFAULT_CALIBRATION
    return AppConfig(
        calibration=str(calibration).strip().lower(),
        calibration_file=_coerce_path(get_env("CALIBRATION_FILE") or body.get("calibration_file")),
        visibility_threshold=_coerce_threshold(
            get_env("VISIBILITY_THRESHOLD", body.get("visibility_threshold")), DEFAULT_VISIBILITY_THRESHOLD
        ),
        alert_risks=_coerce_alert_risks(get_env("ALERT_RISKS", body.get("alert_risks"))),
        history_window=_coerce_window(get_env("HISTORY_WINDOW", body.get("history_window")), DEFAULT_HISTORY_WINDOW),
    )


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load configuration once, falling back to built-in defaults."""
    path = _config_path()
    data = _load_toml(path) if path else {}
    return _build_config(data)


def as_dict() -> dict[str, Any]:
    """Return the effective configuration for debug/CLI display."""
    config = get_config()
    return {
        "calibration": config.calibration,
        "calibration_file": str(config.calibration_file) if config.calibration_file else None,
        "visibility_threshold": config.visibility_threshold,
        "alert_risks": list(config.alert_risks),
        "history_window": config.history_window,
        "source": str(_config_path() or "defaults"),
    }
