"""Integration tests: signed webhook in, deployment and Slack report out."""

import json
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from hookdeploy.adapters import HookRunner, ProcessInfo
from hookdeploy.api import create_app
from hookdeploy.config import Settings
from hookdeploy.notifier import Notifier, SlackTransport
from hookdeploy.pipeline import DeployPipeline
from hookdeploy.state_store import AppConfigStore
from hookdeploy.worker import Worker

SECRET = "s3cret"


@pytest.fixture
def app_dir(tmp_path):
    path = tmp_path / "svc"
    path.mkdir()
    return path


@pytest.fixture
def slack_messages():
    return []


@pytest.fixture
def transport(slack_messages):
    """SlackTransport posting into a mock HTTP transport."""

    def handler(request: httpx.Request) -> httpx.Response:
        slack_messages.append(json.loads(request.content))
        return httpx.Response(200, text="ok")

    transport = SlackTransport("https://hooks.example.com/T/B/X", default_channel="#deploys")
    transport._client = httpx.Client(transport=httpx.MockTransport(handler))
    yield transport
    transport.close()


@pytest.fixture
def supervisor(app_dir):
    supervisor = MagicMock()
    supervisor.describe.return_value = [
        ProcessInfo(name="svc", cwd=str(app_dir), versioning={"url": "https://x/acme/svc.git"})
    ]
    return supervisor


@pytest.fixture
def vcs():
    return MagicMock()


@pytest.fixture
def worker(transport, supervisor, vcs, make_app):
    apps = {
        "svc": make_app(
            "svc",
            prehook="echo pre >> hooks.log",
            posthook="echo post >> hooks.log",
        ),
        "svc-beta": make_app("svc-beta", branches=["beta"], cwd="/srv/svc-beta"),
    }
    store = AppConfigStore(":memory:")
    store.seed(apps.values())
    pipeline = DeployPipeline(
        supervisor=supervisor,
        vcs=vcs,
        test_engine=MagicMock(),
        hooks=HookRunner(),
        notifier=Notifier(transport),
    )
    return Worker(Settings(), apps, pipeline, store=store)


@pytest.fixture
def client(worker, tmp_path):
    app = create_app(Settings(data_dir=str(tmp_path)), worker=worker)
    with TestClient(app) as client:
        yield client


def _push(signer, ref="refs/heads/master", commit="abc123", secret=SECRET):
    body = json.dumps(
        {
            "ref": ref,
            "after": commit,
            "head_commit": {"id": commit},
            "repository": {"clone_url": "https://github.com/acme/svc.git"},
        }
    ).encode()
    headers = {
        "Content-Type": "application/json",
        "X-GitHub-Event": "push",
        "X-Hub-Signature": signer(secret, body),
    }
    return body, headers


@pytest.mark.integration
class TestWebhookDeploy:
    """A push notification drives the whole deployment."""

    def test_push_deploys_and_reports(
        self, client, worker, signer, supervisor, vcs, app_dir, slack_messages
    ) -> None:
        body, headers = _push(signer)

        response = client.post("/svc", content=body, headers=headers)
        assert worker.wait_until_idle(timeout=10)

        assert response.text == "OK"
        vcs.update.assert_called_once_with(str(app_dir))
        supervisor.graceful_reload.assert_called_once_with("svc")
        assert (app_dir / "hooks.log").read_text().split() == ["pre", "post"]

        (message,) = slack_messages
        assert message["text"] == "Report for app *svc* :"
        assert message["channel"] == "#deploys"
        titles = [a.get("title") for a in message["attachments"]]
        assert "Pulled app svc to the latest commit, abc123" in titles

    def test_branch_routes_to_variant(self, client, worker, signer, supervisor, vcs) -> None:
        body, headers = _push(signer, ref="refs/heads/beta", commit="def456")

        client.post("/svc", content=body, headers=headers)
        assert worker.wait_until_idle(timeout=10)

        vcs.update.assert_called_once_with("/srv/svc-beta")
        supervisor.describe.assert_not_called()
        supervisor.graceful_reload.assert_called_once_with("svc-beta")

    def test_bad_signature_is_dropped(
        self, client, worker, signer, supervisor, vcs, slack_messages
    ) -> None:
        body, headers = _push(signer, secret="wrong")

        response = client.post("/svc", content=body, headers=headers)
        assert worker.wait_until_idle(timeout=10)

        assert response.status_code == 200
        assert response.text == "OK"
        vcs.update.assert_not_called()
        supervisor.graceful_reload.assert_not_called()
        assert slack_messages == []
        assert worker.status().active is False

    def test_failed_pre_hook_skips_reload(
        self, client, worker, signer, supervisor, slack_messages
    ) -> None:
        client.put("/api/v1/apps/svc", json={"secret": SECRET, "prehook": "exit 3"})
        body, headers = _push(signer)

        client.post("/svc", content=body, headers=headers)
        assert worker.wait_until_idle(timeout=10)

        supervisor.graceful_reload.assert_not_called()
        (message,) = slack_messages
        assert message["text"] == "Report for app *svc* :"

    def test_manual_dry_run(self, client, worker, vcs, slack_messages) -> None:
        response = client.post("/api/v1/apps/svc/trigger", params={"commit": "abc123"})
        assert worker.wait_until_idle(timeout=10)

        assert response.json()["data"]["dry_run"] is True
        vcs.update.assert_not_called()
        assert slack_messages == []
