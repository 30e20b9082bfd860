"""
Tests for the status and runtime settings API.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from models.config import Config
from pipeline.engine import PipelineEngine, create_context
from web.app import create_app
from web.routes import api


class NullBackend:
    def configure(self, thresholds):
        pass

    def infer(self, image, thresholds):
        return []


@pytest.fixture
def engine(valid_config, fallback_dir, uploader):
    valid_config["delivery"]["fallback_dir"] = fallback_dir
    ctx = create_context(Config.from_dict(valid_config), backend=NullBackend(), uploader=uploader)
    engine = PipelineEngine(None, ctx)
    yield engine
    engine.stop()


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine))


class TestStatus:
    def test_status_fields(self, client):
        response = client.get("/api/status")

        assert response.status_code == 200
        data = response.json()
        assert data["is_configured"] is False
        assert data["is_running"] is False
        assert data["minutes_running"] == 0
        assert data["pending_backlog"] == 0
        assert data["counters"]["frames_processed"] == 0
        assert "timestamp" in data

    def test_status_reflects_counters_and_backlog(self, client, engine):
        engine.ctx.counters.increment("images_delivered", 3)
        engine.ctx.delivery.store.save("detection_x.json", b"{}")

        data = client.get("/api/status").json()

        assert data["counters"]["images_delivered"] == 3
        assert data["pending_backlog"] == 1

    def test_no_engine_is_503(self):
        app = FastAPI()
        app.include_router(api.router, prefix="/api")

        response = TestClient(app).get("/api/status")

        assert response.status_code == 503


class TestThresholds:
    def test_list(self, client):
        data = client.get("/api/thresholds").json()

        assert data["container"] == {"iou": 0.45, "confidence": 0.25}
        assert "person" in data

    def test_update_one_value(self, client, engine):
        response = client.put("/api/thresholds/Container", json={"confidence": 0.6})

        assert response.status_code == 200
        assert response.json() == {"iou": 0.45, "confidence": 0.6}
        assert engine.ctx.thresholds.threshold_for("container").confidence == 0.6

    def test_update_by_spelling_variant(self, client, engine):
        response = client.put("/api/thresholds/license-plate", json={"confidence": 0.1})

        assert response.status_code == 200
        assert response.json()["confidence"] == 0.1
        assert engine.ctx.thresholds.get_current()["license plate"].confidence == 0.1

    def test_empty_update_rejected(self, client):
        assert client.put("/api/thresholds/container", json={}).status_code == 400

    def test_out_of_range_rejected(self, client, engine):
        response = client.put("/api/thresholds/container", json={"iou": 1.5})

        assert response.status_code == 422
        assert engine.ctx.thresholds.threshold_for("container").iou == 0.45


class TestTargets:
    def test_list(self, client):
        data = client.get("/api/targets").json()

        assert [t["name"] for t in data] == ["container", "mobile toilet", "scaffolding"]
        assert all(t["enabled"] for t in data)

    def test_disable(self, client, engine):
        response = client.put("/api/targets/scaffolding", json={"enabled": False})

        assert response.status_code == 200
        assert {"name": "scaffolding", "enabled": False} in response.json()
        assert "scaffolding" not in engine.ctx.targets.enabled_labels()


class TestDrain:
    def test_manual_drain(self, client, engine, uploader):
        engine.ctx.delivery.store.save("detection_x.jpg", b"\xff\xd8")
        engine.ctx.delivery.store.save("detection_x.json", b"{}")

        response = client.post("/api/drain")

        assert response.json() == {"attempted": 2, "delivered": 2, "failed": 0, "pending_backlog": 0}
        assert set(uploader.blobs) == {"detection_x.jpg", "detection_x.json"}

    def test_drain_failure_keeps_files(self, client, engine, uploader):
        uploader.fail = True
        engine.ctx.delivery.store.save("detection_x.jpg", b"\xff\xd8")

        data = client.post("/api/drain").json()

        assert data["failed"] == 1
        assert data["pending_backlog"] == 1
