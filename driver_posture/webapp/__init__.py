from __future__ import annotations

import logging
import os
from typing import Any

from flask import Flask, jsonify, request

from ..config import get_config
from ..models import ValidationError
from ..rula.config import PRESETS, RULA_LOGGER as logger, available_calibrations
from ..rula.landmarks import snapshot_from_payload
from ..services import build_engine, should_alert


def _error(message: str, status: int = 400):
    return jsonify({"error": message}), status


def create_app() -> Flask:
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    app = Flask(__name__)

    @app.get("/healthz")
    def healthz():
        return jsonify({"status": "ok"})

    @app.get("/api/rula/calibrations")
    def list_calibrations():
        return jsonify(
            [{"name": name, "description": PRESETS[name].description} for name in available_calibrations()]
        )

    @app.post("/api/rula/score")
    def score_frame():
        payload: Any = request.get_json(silent=True)
        if not isinstance(payload, dict) or "landmarks" not in payload:
            return _error("Request body must be a JSON object with a 'landmarks' field.")

        try:
            engine = build_engine(payload.get("calibration"))
            snapshot = snapshot_from_payload(
                payload["landmarks"], visibility_threshold=get_config().visibility_threshold
            )
        except (ValidationError, ValueError, FileNotFoundError, ImportError) as exc:
            logger.info("Rejected score request: %s", exc)
            return _error(str(exc))

        result, trace = engine.evaluate_with_trace(snapshot)
        body: dict[str, Any] = result.to_dict()
        body["alert"] = should_alert(result)
        if payload.get("trace"):
            body["trace"] = trace.to_dict()
        return jsonify(body)

    return app
