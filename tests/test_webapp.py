from __future__ import annotations

import pytest

from driver_posture.rula.feedback import AFFIRMATIVE_TEXT
from driver_posture.webapp import create_app


@pytest.fixture
def client():
    app = create_app()
    app.config.update(TESTING=True)
    return app.test_client()


def _landmarks(snapshot) -> dict:
    return {name: point for name, point in snapshot.to_dict().items() if point is not None}


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}


def test_list_calibrations(client):
    resp = client.get("/api/rula/calibrations")
    assert resp.status_code == 200
    assert [entry["name"] for entry in resp.get_json()] == ["driving", "frontal", "generic"]


def test_score_good_posture(client, good_posture):
    resp = client.post("/api/rula/score", json={"landmarks": _landmarks(good_posture)})

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["final_score"] == 1
    assert body["risk"] == "low"
    assert body["recommendations"] == [AFFIRMATIVE_TEXT]
    assert body["alert"] is False
    assert "trace" not in body


def test_score_with_trace_and_calibration(client, slouched_posture):
    resp = client.post(
        "/api/rula/score",
        json={"landmarks": _landmarks(slouched_posture), "calibration": "driving", "trace": True},
    )

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["neck"] == 4
    assert body["trace"]["score_b"] == 5
    assert body["trace"]["joints"]["neck"]["measurement"] == pytest.approx(0.8)


def test_score_accepts_flat_pose_list(client):
    rows = [[0.5, 0.5, 0.0, 1.0]] * 33
    resp = client.post("/api/rula/score", json={"landmarks": rows})
    assert resp.status_code == 200
    assert 1 <= resp.get_json()["final_score"] <= 7


@pytest.mark.parametrize(
    "payload",
    [
        None,
        {"frames": []},
        {"landmarks": {"left_hip": {"x": "a", "y": 0.5}}},
        {"landmarks": "nose"},
        {"landmarks": {}, "calibration": "racing"},
        {"landmarks": {}, "calibration": 5},
    ],
)
def test_score_rejects_bad_requests(client, payload):
    resp = client.post("/api/rula/score", json=payload) if payload is not None else client.post(
        "/api/rula/score", data="not json", content_type="application/json"
    )
    assert resp.status_code == 400
    assert "error" in resp.get_json()


def test_score_with_missing_calibration_file_is_a_bad_request(client, tmp_path, monkeypatch):
    monkeypatch.setenv("DRIVER_POSTURE_CALIBRATION_FILE", str(tmp_path / "gone.toml"))

    resp = client.post("/api/rula/score", json={"landmarks": {}})

    assert resp.status_code == 400
    assert "gone.toml" in resp.get_json()["error"]
