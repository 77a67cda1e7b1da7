"""Unit tests for the Request Authenticator."""

import json
from unittest.mock import MagicMock

import pytest

from hookdeploy.auth import (
    AuthenticationError,
    Authenticator,
    VersioningInfo,
    WebhookRequest,
    branch_from_ref,
)
from hookdeploy.auth.authenticator import ip_matches
from hookdeploy.config import Provider


@pytest.fixture
def authenticator() -> Authenticator:
    return Authenticator()


def _json_request(payload, headers=None, client_ip="127.0.0.1") -> WebhookRequest:
    return WebhookRequest.create(json.dumps(payload), headers or {}, client_ip)


@pytest.mark.unit
class TestBranchFromRef:
    """Tests for ref parsing."""

    def test_heads_ref(self) -> None:
        assert branch_from_ref("refs/heads/feature-x") == "feature-x"

    def test_takes_third_segment_only(self) -> None:
        assert branch_from_ref("refs/heads/feature/login") == "feature"

    def test_short_or_missing_ref(self) -> None:
        assert branch_from_ref("master") is None
        assert branch_from_ref(None) is None


@pytest.mark.unit
class TestIpMatches:
    """Tests for source IP matching."""

    def test_cidr(self) -> None:
        assert ip_matches("10.0.0.7", "10.0.0.0/24")
        assert not ip_matches("10.0.1.7", "10.0.0.0/24")

    def test_substring(self) -> None:
        assert ip_matches("192.168.1.20", "192.168.1.")
        assert not ip_matches("192.168.2.20", "192.168.1.")

    def test_invalid_ip_never_matches_cidr(self) -> None:
        assert not ip_matches("not-an-ip", "10.0.0.0/24")


@pytest.mark.unit
class TestGithubStrategy:
    """Tests for HMAC signed GitHub hooks."""

    def test_valid_signature(self, authenticator, make_app, push_request) -> None:
        """A correctly signed push yields its versioning info."""
        app = make_app(secret="s3cret")
        git = authenticator.authenticate(app, push_request(ref="refs/heads/feature-x"))

        assert git == VersioningInfo(
            head="abc123",
            branch="feature-x",
            tree="tree456",
            compare_url="https://github.com/acme/svc/compare/000...abc123",
            remote_url="https://github.com/acme/svc.git",
        )

    def test_wrong_secret_rejected(self, authenticator, make_app, push_request) -> None:
        app = make_app(secret="other")

        with pytest.raises(AuthenticationError, match="bad signature"):
            authenticator.authenticate(app, push_request(secret="s3cret"))

    @pytest.mark.parametrize("position", [5, 20, 44])
    def test_single_byte_corruption_rejected(
        self, authenticator, make_app, push_request, position: int
    ) -> None:
        """Changing any one character of the signature is rejected."""
        request = push_request()
        signature = request.header("x-hub-signature")
        flipped = "0" if signature[position] != "0" else "1"
        corrupted = signature[:position] + flipped + signature[position + 1 :]
        headers = {**request.headers, "x-hub-signature": corrupted}
        tampered = WebhookRequest(request.body, headers, request.client_ip)

        with pytest.raises(AuthenticationError):
            authenticator.authenticate(make_app(), tampered)

    def test_missing_headers_rejected(self, authenticator, make_app) -> None:
        request = _json_request({"ref": "refs/heads/master"})

        with pytest.raises(AuthenticationError, match="no headers found") as exc_info:
            authenticator.authenticate(make_app(), request)
        assert exc_info.value.provider == "github"

    def test_form_encoded_payload(self, authenticator, make_app, signer) -> None:
        """Form posts carry the JSON in the payload field."""
        body = b"payload=%7B%22ref%22%3A%22refs%2Fheads%2Fmaster%22%2C%22after%22%3A%22f00%22%7D"
        request = WebhookRequest.create(
            body,
            {
                "Content-Type": "application/x-www-form-urlencoded",
                "X-GitHub-Event": "push",
                "X-Hub-Signature": signer("s3cret", body),
            },
        )

        git = authenticator.authenticate(make_app(), request)

        assert git.branch == "master"
        assert git.head == "f00"

    def test_malformed_body_rejected(self, authenticator, make_app, signer) -> None:
        body = b"not json"
        request = WebhookRequest.create(
            body, {"X-GitHub-Event": "push", "X-Hub-Signature": signer("s3cret", body)}
        )

        with pytest.raises(AuthenticationError, match="Malformed payload"):
            authenticator.authenticate(make_app(), request)


    @pytest.mark.parametrize(
        "payload",
        [
            {"ref": 5, "head_commit": "x"},
            {"ref": "refs/heads/master", "head_commit": "x"},
            {"ref": ["refs", "heads"]},
            {"ref": "refs/heads/master", "repository": 7},
        ],
    )
    def test_wrongly_typed_fields_rejected(
        self, authenticator, make_app, signer, payload
    ) -> None:
        body = json.dumps(payload).encode()
        request = WebhookRequest.create(
            body, {"X-GitHub-Event": "push", "X-Hub-Signature": signer("s3cret", body)}
        )

        with pytest.raises(AuthenticationError, match="Malformed payload"):
            authenticator.authenticate(make_app(), request)
        with pytest.raises(AuthenticationError, match="Malformed payload"):
            authenticator.parse(Provider.GITHUB, request)


@pytest.mark.unit
class TestGitlabStrategy:
    """Tests for token header GitLab hooks."""

    PAYLOAD = {
        "ref": "refs/heads/beta",
        "before": "111",
        "after": "222",
        "checkout_sha": "222",
        "project": {"web_url": "https://gitlab.com/acme/svc"},
        "repository": {"git_http_url": "https://gitlab.com/acme/svc.git"},
    }

    def test_matching_token(self, authenticator, make_app) -> None:
        app = make_app(provider="gitlab", secret="tok")
        request = _json_request(self.PAYLOAD, {"X-Gitlab-Token": "tok"})

        git = authenticator.authenticate(app, request)

        assert git.head == "222"
        assert git.branch == "beta"
        assert git.compare_url == "https://gitlab.com/acme/svc/compare/111...222"
        assert git.remote_url == "https://gitlab.com/acme/svc.git"

    def test_wrong_token(self, authenticator, make_app) -> None:
        app = make_app(provider="gitlab", secret="tok")
        request = _json_request(self.PAYLOAD, {"X-Gitlab-Token": "nope"})

        with pytest.raises(AuthenticationError, match="not matching secret"):
            authenticator.authenticate(app, request)

    def test_missing_token(self, authenticator, make_app) -> None:
        app = make_app(provider="gitlab", secret="tok")

        with pytest.raises(AuthenticationError, match="no headers found"):
            authenticator.authenticate(app, _json_request(self.PAYLOAD))


@pytest.mark.unit
class TestJenkinsStrategy:
    """Tests for IP allow-listed Jenkins hooks."""

    def _payload(self, status="SUCCESS", branch="origin/master"):
        return {
            "build": {
                "status": status,
                "scm": {"commit": "c0ffee", "branch": branch, "url": "https://git/acme/svc"},
            }
        }

    def test_allowed_ip_and_successful_build(self, authenticator, make_app) -> None:
        app = make_app(provider="jenkins", secret="10.1.0.0/16")
        request = _json_request(self._payload(), client_ip="10.1.2.3")

        git = authenticator.authenticate(app, request)

        assert git.head == "c0ffee"
        assert git.branch == "master"
        assert git.remote_url == "https://git/acme/svc"

    def test_other_ip_rejected(self, authenticator, make_app) -> None:
        app = make_app(provider="jenkins", secret="10.1.0.0/16")
        request = _json_request(self._payload(), client_ip="10.2.0.1")

        with pytest.raises(AuthenticationError, match="ip configured was"):
            authenticator.authenticate(app, request)

    def test_failed_build_rejected(self, authenticator, make_app) -> None:
        app = make_app(provider="jenkins", secret="10.1.")
        request = _json_request(self._payload(status="FAILURE"), client_ip="10.1.2.3")

        with pytest.raises(AuthenticationError, match="failure build"):
            authenticator.authenticate(app, request)

    def test_branch_filter(self, authenticator, make_app) -> None:
        app = make_app(provider="jenkins", secret="10.1.", branch="release")
        request = _json_request(self._payload(branch="origin/master"), client_ip="10.1.2.3")

        with pytest.raises(AuthenticationError, match="branch"):
            authenticator.authenticate(app, request)

    def test_ipv4_mapped_address(self, authenticator, make_app) -> None:
        app = make_app(provider="jenkins", secret="10.1.0.0/16")
        request = _json_request(self._payload(), client_ip="::ffff:10.1.2.3")

        assert authenticator.authenticate(app, request).head == "c0ffee"


@pytest.mark.unit
class TestDroneStrategy:
    """Tests for Drone CI hooks."""

    PAYLOAD = {
        "build": {
            "status": "success",
            "branch": "master",
            "commit": "d00d",
            "link_url": "https://github.com/acme/svc/compare/a...b",
        },
        "repo": {"clone_url": "https://github.com/acme/svc.git"},
    }

    def test_matching_authorization(self, authenticator, make_app) -> None:
        app = make_app(provider="droneci", secret="drone-secret")
        request = _json_request(self.PAYLOAD, {"Authorization": "drone-secret"})

        git = authenticator.authenticate(app, request)

        assert git.head == "d00d"
        assert git.branch == "master"
        assert git.compare_url == "https://github.com/acme/svc/compare/a...b"

    def test_wrong_authorization(self, authenticator, make_app) -> None:
        app = make_app(provider="droneci", secret="drone-secret")
        request = _json_request(self.PAYLOAD, {"Authorization": "guess"})

        with pytest.raises(AuthenticationError, match="incorrect secret"):
            authenticator.authenticate(app, request)


@pytest.mark.unit
class TestBitbucketStrategy:
    """Tests for CIDR restricted Bitbucket hooks."""

    PAYLOAD = {
        "push": {
            "changes": [
                {
                    "new": {"name": "master", "target": {"hash": "bb01"}},
                    "links": {"html": {"href": "https://bitbucket.org/acme/svc/branches/compare"}},
                }
            ]
        },
        "repository": {"links": {"html": {"href": "https://bitbucket.org/acme/svc"}}},
    }

    def test_default_range(self, authenticator, make_app) -> None:
        app = make_app(provider="bitbucket", secret="")
        request = _json_request(self.PAYLOAD, client_ip="104.192.143.10")

        git = authenticator.authenticate(app, request)

        assert git.head == "bb01"
        assert git.branch == "master"
        assert git.remote_url == "https://bitbucket.org/acme/svc"

    def test_outside_range(self, authenticator, make_app) -> None:
        app = make_app(provider="bitbucket", secret="")
        request = _json_request(self.PAYLOAD, client_ip="8.8.8.8")

        with pytest.raises(AuthenticationError, match="ip configured was"):
            authenticator.authenticate(app, request)

    def test_requires_push(self, authenticator, make_app) -> None:
        app = make_app(provider="bitbucket", secret="")
        request = _json_request({"repository": {}}, client_ip="104.192.143.10")

        with pytest.raises(AuthenticationError, match="without 'push' data"):
            authenticator.authenticate(app, request)


    @pytest.mark.parametrize(
        "payload",
        [
            {"push": "yes"},
            {"push": {"changes": [5]}},
            {"push": {"changes": [{"new": "master"}]}},
            {"push": {"changes": "abc"}},
        ],
    )
    def test_wrongly_typed_fields_rejected(self, authenticator, make_app, payload) -> None:
        app = make_app(provider="bitbucket", secret="")
        request = _json_request(payload, client_ip="104.192.143.5")

        with pytest.raises(AuthenticationError, match="Malformed payload"):
            authenticator.authenticate(app, request)


@pytest.mark.unit
class TestAuthenticatorDispatch:
    """Tests for table-driven strategy dispatch."""

    def test_registered_strategy_is_used(self, make_app) -> None:
        """A new provider is a table entry."""
        strategy = MagicMock()
        strategy.provider = Provider.GITLAB
        strategy.parse.return_value = VersioningInfo(head="x", branch="y")
        authenticator = Authenticator({Provider.GITLAB: strategy})
        request = WebhookRequest.create(b"{}")

        git = authenticator.authenticate(make_app(provider="gitlab"), request)

        strategy.verify.assert_called_once()
        assert git.head == "x"

    def test_unknown_provider_falls_back_to_github(self, authenticator) -> None:
        assert authenticator.strategy_for(Provider.DRONECI).provider == Provider.DRONECI
        empty = Authenticator({Provider.GITHUB: authenticator.strategy_for(Provider.GITHUB)})
        assert empty.strategy_for(Provider.JENKINS).provider == Provider.GITHUB

    def test_verify_failure_skips_parse(self, make_app) -> None:
        strategy = MagicMock()
        strategy.provider = Provider.GITHUB
        strategy.verify.side_effect = AuthenticationError("github", "nope")
        authenticator = Authenticator({Provider.GITHUB: strategy})

        with pytest.raises(AuthenticationError):
            authenticator.authenticate(make_app(), WebhookRequest.create(b"{}"))
        strategy.parse.assert_not_called()
