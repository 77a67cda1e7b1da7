"""Unit tests for the management API."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from hookdeploy.api import create_app
from hookdeploy.config import Settings
from hookdeploy.state_store import AppConfigStore
from hookdeploy.worker import Worker


@pytest.fixture
def pipeline() -> MagicMock:
    return MagicMock()


@pytest.fixture
def worker(make_app, pipeline):
    """Worker with two apps, a mocked pipeline and an in-memory store."""
    store = AppConfigStore(":memory:")
    apps = {
        "svc": make_app("svc", cwd="/srv/svc"),
        "svc-beta": make_app("svc-beta", branches=["beta"], tests={"command": "npm test"}),
    }
    store.seed(apps.values())
    return Worker(Settings(), apps, pipeline, store=store)


def _client(worker, tmp_path, **settings) -> TestClient:
    app = create_app(Settings(data_dir=str(tmp_path), **settings), worker=worker)
    return TestClient(app)


@pytest.fixture
def client(worker, tmp_path):
    with _client(worker, tmp_path) as client:
        yield client


@pytest.mark.unit
class TestAuth:
    """Tests for basic auth on the management API."""

    def test_open_without_password(self, client) -> None:
        assert client.get("/api/v1/apps").status_code == 200

    def test_rejects_missing_credentials(self, worker, tmp_path) -> None:
        with _client(worker, tmp_path, auth_password="pw") as client:
            response = client.get("/api/v1/apps")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Basic"

    def test_rejects_wrong_password(self, worker, tmp_path) -> None:
        with _client(worker, tmp_path, auth_password="pw") as client:
            response = client.get("/api/v1/status", auth=("admin", "nope"))

        assert response.status_code == 401

    def test_accepts_credentials(self, worker, tmp_path) -> None:
        with _client(worker, tmp_path, auth_password="pw") as client:
            response = client.get("/api/v1/status", auth=("admin", "pw"))

        assert response.status_code == 200

    def test_webhooks_stay_open(self, worker, tmp_path) -> None:
        with _client(worker, tmp_path, auth_password="pw") as client:
            response = client.post("/svc", content=b"{}")

        assert response.status_code == 200


@pytest.mark.unit
class TestApps:
    """Tests for the app config endpoints."""

    def test_list(self, client) -> None:
        response = client.get("/api/v1/apps")

        data = response.json()["data"]
        assert [app["name"] for app in data] == ["svc", "svc-beta"]
        assert data[0]["config"]["secret"] == "********"

    def test_get(self, client) -> None:
        response = client.get("/api/v1/apps/svc-beta")

        assert response.status_code == 200
        assert response.json()["data"]["config"]["branches"] == ["beta"]

    def test_get_unknown(self, client) -> None:
        response = client.get("/api/v1/apps/ghost")

        assert response.status_code == 404
        assert response.json() == {"data": None, "error": "App config 'ghost' not found"}

    def test_put_replaces_config(self, client, worker) -> None:
        response = client.put(
            "/api/v1/apps/svc", json={"service": "gitlab", "secret": "tok", "nopm2": True}
        )

        assert response.status_code == 200
        config = response.json()["data"]["config"]
        assert config["provider"] == "gitlab"
        assert config["skip_reload"] is True
        assert config["cwd"] is None
        assert worker.apps["svc"].secret == "tok"
        assert worker.store.get("svc").provider == "gitlab"

    def test_put_new_app(self, client, worker) -> None:
        client.put("/api/v1/apps/web", json={"cwd": "/srv/web"})

        assert list(worker.apps) == ["svc", "svc-beta", "web"]
        assert worker.store.get("web").cwd == "/srv/web"

    def test_put_invalid(self, client, worker) -> None:
        response = client.put("/api/v1/apps/svc", json={"debug": []})

        assert response.status_code == 422
        assert worker.apps["svc"].cwd == "/srv/svc"

    def test_reload_from_store(self, client, worker, make_app) -> None:
        worker.store.update({"name": "web"}, make_app("web"), upsert=True)

        response = client.post("/api/v1/apps/reload")

        assert response.json()["data"] == {"message": "Loaded 3 app(s)"}
        assert "web" in worker.apps


@pytest.mark.unit
class TestTrigger:
    """Tests for manual triggers."""

    def test_dry_run_by_default(self, client, worker, pipeline) -> None:
        response = client.post("/api/v1/apps/svc/trigger", params={"commit": "abc123"})

        assert response.json()["data"] == {
            "queued": True,
            "target": "svc",
            "commit": "abc123",
            "dry_run": True,
        }
        assert worker.wait_until_idle(timeout=5)
        request = pipeline.run.call_args.args[0]
        assert request.options.dry_run is True
        assert request.options.notify is False

    def test_deploy_and_notify(self, client, worker, pipeline) -> None:
        response = client.post(
            "/api/v1/apps/svc/trigger", params={"deploy": "true", "notify": "true"}
        )

        assert response.json()["data"]["dry_run"] is False
        assert worker.wait_until_idle(timeout=5)
        request = pipeline.run.call_args.args[0]
        assert request.options.deploy is True
        assert request.options.notify is True

    def test_unknown_app(self, client, pipeline) -> None:
        response = client.post("/api/v1/apps/ghost/trigger")

        assert response.status_code == 404
        pipeline.run.assert_not_called()


@pytest.mark.unit
class TestStatus:
    """Tests for GET /status."""

    def test_idle(self, client) -> None:
        response = client.get("/api/v1/status")

        assert response.json()["data"] == {
            "queue_size": 0,
            "active": False,
            "current_target": None,
            "apps": 2,
        }
