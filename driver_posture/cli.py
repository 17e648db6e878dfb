from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer

from . import __version__
from .config import as_dict as config_as_dict
from .config import get_config
from .models import ValidationError
from .rula.config import (
    PRESETS,
    available_calibrations,
    describe_calibration,
    validate_mediapipe_indices,
)
from .rula.landmarks import snapshot_from_payload
from .services import build_engine, load_frames, score_frames, should_alert, summarize_scores

app = typer.Typer(help="Score driver posture (RULA) from pose landmarks.")

logger = logging.getLogger("driver_posture.cli")


def _fail(message: str, *, code: int = 1) -> None:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=code)


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        _fail(f"File not found: {path}")
    except IsADirectoryError:
        _fail(f"Expected a JSON file, but got a directory: {path}")
    except UnicodeDecodeError:
        _fail(f"{path} is not UTF-8 text.")
    except json.JSONDecodeError as exc:
        _fail(f"{path} is not valid JSON: {exc.msg}")


def _engine_or_fail(calibration: Optional[str], calibration_file: Optional[Path]):
    try:
        return build_engine(calibration, calibration_file=calibration_file)
    except (ValidationError, ValueError, FileNotFoundError, ImportError) as exc:
        _fail(str(exc))


@app.command()
def score(
    landmarks: Path = typer.Argument(..., help="JSON file with one frame of landmarks."),
    calibration: Optional[str] = typer.Option(
        None,
        "--calibration",
        "-c",
        help="Calibration preset (defaults to config/DRIVER_POSTURE_CALIBRATION).",
    ),
    calibration_file: Optional[Path] = typer.Option(
        None,
        "--calibration-file",
        help="TOML/JSON calibration overriding bands of the selected preset.",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
    trace: bool = typer.Option(False, "--trace", help="Include per-joint measurements."),
) -> None:
    """
    Score a single frame of landmarks.

    Example:
        driver-posture score frame.json --calibration generic --trace
    """
    payload = _read_json(landmarks)
    engine = _engine_or_fail(calibration, calibration_file)
    try:
        snapshot = snapshot_from_payload(payload, visibility_threshold=get_config().visibility_threshold)
    except ValidationError as exc:
        _fail(str(exc))

    result, result_trace = engine.evaluate_with_trace(snapshot)
    if as_json:
        body: dict[str, Any] = result.to_dict()
        if trace:
            body["trace"] = result_trace.to_dict()
        typer.echo(json.dumps(body, indent=2))
        return

    typer.echo(f"RULA score {result.final_score}/7 ({result.risk}), camera side: {result.camera_side}")
    typer.echo(
        "Joints: "
        + ", ".join(f"{joint.replace('_', ' ')}={value}" for joint, value in result.joint_scores.items())
    )
    if trace:
        for entry in result_trace.joints:
            measured = "neutral default" if entry.measurement is None else f"{entry.measurement:.2f}"
            typer.echo(f"  {entry.joint}: {measured}")
        typer.echo(f"  table A={result_trace.score_a}, table B={result_trace.score_b}")
    for text in result.recommendations:
        typer.echo(f" • {text}")
    if should_alert(result):
        typer.secho("Posture alert: correction needed.", fg=typer.colors.YELLOW)


@app.command()
def batch(
    frames_file: Path = typer.Argument(..., help="JSON/JSON-lines file with one landmark frame per entry."),
    calibration: Optional[str] = typer.Option(None, "--calibration", "-c", help="Calibration preset."),
    calibration_file: Optional[Path] = typer.Option(
        None,
        "--calibration-file",
        help="TOML/JSON calibration overriding bands of the selected preset.",
    ),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the per-frame table to CSV."),
    window: Optional[int] = typer.Option(
        None,
        "--window",
        "-w",
        min=1,
        help="Frames included in the summary (defaults to config history_window).",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print every frame."),
) -> None:
    """
    Score a sequence of frames and print a session recap.
    """
    engine = _engine_or_fail(calibration, calibration_file)
    try:
        frames = load_frames(frames_file)
        df = score_frames(frames, engine)
    except ValidationError as exc:
        _fail(str(exc))
    logger.info("Scored %d frames from %s", len(df), frames_file)

    if verbose:
        for row in df.itertuples(index=False):
            typer.echo(f"frame {row.frame}: score {row.final_score} ({row.risk}) camera={row.camera_side}")

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(output, index=False)
        typer.echo(f"Wrote {len(df)} rows to {output}")

    summary = summarize_scores(df, window)
    typer.echo(f"Calibration: {engine.calibration.name}")
    typer.echo(summary.recap)


@app.command("calibrations")
def calibrations_show(
    detail: bool = typer.Option(False, "--detail", "-d", help="Print every band of each preset."),
) -> None:
    """
    List the calibration presets.
    """
    for name in available_calibrations():
        preset = PRESETS[name]
        if detail:
            for line in describe_calibration(preset):
                typer.echo(line)
        else:
            typer.echo(f"{name}: {preset.description}")


@app.command("config")
def config_show() -> None:
    """
    Show the effective configuration (calibration, thresholds, alert tiers).
    """
    config = config_as_dict()
    typer.echo(f"driver-posture {__version__}")
    typer.echo(f"Config source: {config.get('source')}")
    typer.echo(f"Calibration: {config.get('calibration')}")
    if config.get("calibration_file"):
        typer.echo(f"Calibration file: {config.get('calibration_file')}")
    typer.echo(f"Visibility threshold: {config.get('visibility_threshold')}")
    typer.echo("Alert risks: " + ", ".join(config.get("alert_risks", [])))
    typer.echo(f"History window: {config.get('history_window')}")
    validate_mediapipe_indices()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
