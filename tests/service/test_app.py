"""Tests for the FastAPI service mode."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from driftguard.config import DriftConfig
from driftguard.models import Finding
from driftguard.service.app import create_app
from driftguard.synthesizer import CheckOutcome, RunReport, SkippedFile


class _StubRunner:
    def __init__(self) -> None:
        self.calls: list[dict[str, object]] = []

    def __call__(self, path: str, **kwargs: object) -> CheckOutcome:
        self.calls.append({"path": path, **kwargs})
        if path == "missing":
            raise FileNotFoundError("Repository path not found: missing")
        if path == "no-git":
            raise RuntimeError("git rev-parse HEAD failed: not a git repository")
        report = RunReport(
            findings=[
                Finding(
                    source="docs-drift",
                    type="endpoint-missing-doc",
                    severity="error",
                    explanation="Endpoint GET /health is not documented.",
                    file="src/app.js",
                )
            ],
            skipped=[SkippedFile("src/blob.js", "file appears to be binary")],
            base_sha="b1",
            head_sha="h1",
        )
        return CheckOutcome(config=DriftConfig(root=Path(path)), report=report, failed=True)


@pytest.fixture
def runner() -> _StubRunner:
    return _StubRunner()


@pytest.fixture
def client(runner: _StubRunner) -> TestClient:
    return TestClient(create_app(runner))


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_check_endpoint_runs_the_check(client: TestClient, runner: _StubRunner, tmp_path: Path) -> None:
    response = client.post("/check", json={"path": str(tmp_path), "base": "b1", "fail_on_error": True})

    assert response.status_code == 200
    body = response.json()
    assert body["failed"] is True
    assert (body["base_sha"], body["head_sha"]) == ("b1", "h1")
    assert body["findings"][0]["type"] == "endpoint-missing-doc"
    assert body["findings"][0]["deterministic"] is True
    assert body["skipped"] == [{"file": "src/blob.js", "reason": "file appears to be binary"}]
    assert runner.calls == [
        {
            "path": str(tmp_path),
            "config_path": ".drift.config.yml",
            "base": "b1",
            "head": None,
            "llm_api_key": None,
            "fail_on_error": True,
        }
    ]


def test_check_endpoint_maps_errors_to_status_codes(client: TestClient) -> None:
    missing = client.post("/check", json={"path": "missing"})
    assert missing.status_code == 404
    assert missing.json() == {"detail": "Repository path not found: missing"}

    no_git = client.post("/check", json={"path": "no-git"})
    assert no_git.status_code == 400
    assert "not a git repository" in no_git.json()["detail"]


def test_check_endpoint_validates_the_payload(client: TestClient) -> None:
    response = client.post("/check", json={"base": "b1"})
    assert response.status_code == 422
