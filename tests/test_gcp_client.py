"""Tests for the Secret Manager client wrapper, with the SDK mocked out."""
import logging
from types import SimpleNamespace
from unittest import mock

import pytest
from google.api_core import exceptions as gcp_exceptions

from agent_connecttoolkit.secrets.domains import gcp_client
from agent_connecttoolkit.secrets.domains.config_loader import ConfigError
from agent_connecttoolkit.secrets.domains.errors import CredentialMalformedError, SecretBackendError
from agent_connecttoolkit.secrets.domains.gcp_client import GCPSecretClient, to_summary
from agent_connecttoolkit.secrets.domains.models import ACCESS_DENIED, SecretSummary


def make_secret(secret_id, annotations=None, labels=None):
    return SimpleNamespace(
        name=f"projects/test-project/secrets/{secret_id}",
        annotations=annotations or {},
        labels=labels or {},
        create_time="2024-01-01T00:00:00Z",
    )


def make_version(payload: bytes):
    return SimpleNamespace(payload=SimpleNamespace(data=payload))


@pytest.fixture
def sdk():
    """Mocked SecretManagerServiceClient instance."""
    return mock.Mock()


@pytest.fixture
def client(sdk):
    wrapper = GCPSecretClient(project_id="test-project")
    wrapper._client = sdk
    return wrapper


class TestToSummary:
    """Test mapping Secret resources to SecretSummary."""

    def test_uses_annotations(self):
        """Test display name and username come from annotations."""
        secret = make_secret("web01-da", {"display-name": "Domain Admin - web01", "username": "CORP\\admin"})
        assert to_summary(secret) == SecretSummary("web01-da", "Domain Admin - web01", "CORP\\admin")

    def test_fallbacks(self):
        """Test name falls back to the id and username to the label."""
        secret = make_secret("db1-root", labels={"username": "root"})
        assert to_summary(secret) == SecretSummary("db1-root", "db1-root", "root")

    def test_missing_username(self):
        """Test a secret with no username gets an empty string."""
        assert to_summary(make_secret("x")).username == ""


class TestSearch:
    """Test GCPSecretClient.search()."""

    def test_matches_id_name_and_host(self, client, sdk):
        """Test the term is matched case-insensitively against id, display name and host."""
        sdk.list_secrets.return_value = [
            make_secret("web01-da"),
            make_secret("corp-da", {"display-name": "Domain Admin WEB01"}),
            make_secret("bmc-7", {"host": "web01.corp.local"}),
            make_secret("db1-root", {"display-name": "db1 root"}),
        ]

        results = client.search("Web01")

        assert [s.id for s in results] == ["web01-da", "corp-da", "bmc-7"]
        sdk.list_secrets.assert_called_once_with(request={"parent": "projects/test-project"})

    def test_backend_failure_is_empty(self, client, sdk, caplog):
        """Test an unreachable backend degrades to no candidates with a warning."""
        sdk.list_secrets.side_effect = gcp_exceptions.ServiceUnavailable("down")

        with caplog.at_level(logging.WARNING):
            assert client.search("web01") == []

        assert "Secret search for 'web01' failed" in caplog.text

    def test_no_project(self, sdk, monkeypatch, caplog):
        """Test searching without a project warns and returns nothing."""
        monkeypatch.delenv("GCP_PROJECT", raising=False)
        monkeypatch.setattr(gcp_client, "get_config", mock.Mock(side_effect=ConfigError("missing")))
        wrapper = GCPSecretClient()
        wrapper._client = sdk

        with caplog.at_level(logging.WARNING):
            assert wrapper.search("web01") == []

        sdk.list_secrets.assert_not_called()


class TestLookupById:
    """Test GCPSecretClient.lookup_by_id()."""

    def test_found(self, client, sdk):
        """Test an existing secret returns its summary."""
        sdk.get_secret.return_value = make_secret("web01-da", {"display-name": "Domain Admin"})

        assert client.lookup_by_id("web01-da").name == "Domain Admin"
        sdk.get_secret.assert_called_once_with(request={"name": "projects/test-project/secrets/web01-da"})

    def test_not_found(self, client, sdk):
        """Test a missing secret returns None."""
        sdk.get_secret.side_effect = gcp_exceptions.NotFound("nope")
        assert client.lookup_by_id("nope") is None

    def test_backend_failure(self, client, sdk):
        """Test other failures also return None."""
        sdk.get_secret.side_effect = gcp_exceptions.PermissionDenied("no")
        assert client.lookup_by_id("web01-da") is None


class TestGetCredentialPayload:
    """Test GCPSecretClient.get_credential_payload()."""

    def test_returns_latest_payload(self, client, sdk):
        """Test the latest version is read and decoded."""
        sdk.access_secret_version.return_value = make_version(b'{"username": "root", "password": "pw"}')

        assert client.get_credential_payload("db1-root") == '{"username": "root", "password": "pw"}'
        sdk.access_secret_version.assert_called_once_with(
            request={"name": "projects/test-project/secrets/db1-root/versions/latest"}
        )

    def test_non_utf8_payload_is_malformed(self, client, sdk):
        """Test bytes that aren't UTF-8 are rejected instead of being patched up."""
        sdk.access_secret_version.return_value = make_version(b'{"username": "root", "password": "p\xffw"}')

        with pytest.raises(CredentialMalformedError):
            client.get_credential_payload("db1-root")

    def test_not_found(self, client, sdk):
        """Test a missing secret returns None."""
        sdk.access_secret_version.side_effect = gcp_exceptions.NotFound("nope")
        assert client.get_credential_payload("nope") is None

    @pytest.mark.parametrize("error", [
        gcp_exceptions.PermissionDenied("no access"),
        gcp_exceptions.FailedPrecondition("version is DISABLED"),
    ])
    def test_access_denied(self, client, sdk, error):
        """Test unreadable secrets return the access denied sentinel."""
        sdk.access_secret_version.side_effect = error
        assert client.get_credential_payload("999") is ACCESS_DENIED

    def test_other_failure_raises(self, client, sdk):
        """Test transport failures raise SecretBackendError."""
        sdk.access_secret_version.side_effect = gcp_exceptions.ServiceUnavailable("down")

        with pytest.raises(SecretBackendError):
            client.get_credential_payload("db1-root")

    def test_no_project_raises(self, monkeypatch):
        """Test fetching without a project raises SecretBackendError."""
        monkeypatch.delenv("GCP_PROJECT", raising=False)
        monkeypatch.setattr(gcp_client, "get_config", mock.Mock(side_effect=ConfigError("missing")))

        with pytest.raises(SecretBackendError):
            GCPSecretClient().get_credential_payload("db1-root")


class TestProjectId:
    """Test project id detection."""

    def test_env_overrides_config(self, monkeypatch):
        """Test GCP_PROJECT wins over the config file."""
        monkeypatch.setenv("GCP_PROJECT", "env-project")
        monkeypatch.setattr(gcp_client, "get_config", mock.Mock(return_value={"gcp": {"project_id": "cfg"}}))

        assert GCPSecretClient().project_id == "env-project"

    def test_from_config(self, monkeypatch):
        """Test the config project is used when GCP_PROJECT is unset."""
        monkeypatch.delenv("GCP_PROJECT", raising=False)
        monkeypatch.setattr(gcp_client, "get_config", mock.Mock(return_value={"gcp": {"project_id": "cfg"}}))

        assert GCPSecretClient().project_id == "cfg"

    def test_sdk_client_is_lazy(self):
        """Test the SDK client is only created on first use."""
        with mock.patch.object(gcp_client.secretmanager, "SecretManagerServiceClient") as factory:
            wrapper = GCPSecretClient(project_id="p")
            factory.assert_not_called()
            assert wrapper.client is factory.return_value
            assert wrapper.client is factory.return_value
            factory.assert_called_once_with()

    def test_missing_project_checked_once(self, sdk, monkeypatch, caplog):
        """Test a missing project is looked up once and warned about once."""
        monkeypatch.delenv("GCP_PROJECT", raising=False)
        load = mock.Mock(side_effect=ConfigError("Configuration file not found.\n\n1. Use the default location"))
        monkeypatch.setattr(gcp_client, "get_config", load)
        wrapper = GCPSecretClient()
        wrapper._client = sdk

        with caplog.at_level(logging.WARNING):
            assert wrapper.search("web01") == []
            assert wrapper.search("web01") == []
            assert wrapper.lookup_by_id("web01-da") is None

        load.assert_called_once_with()
        warnings = [r for r in caplog.records if r.levelno >= logging.WARNING]
        assert [r.getMessage() for r in warnings] == [
            "No GCP project configured. Set GCP_PROJECT or gcp.project_id in config"
        ]
