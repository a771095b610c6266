from unittest.mock import MagicMock, patch

import pytest
from azure.core.exceptions import ClientAuthenticationError

from graph_snippets.auth import GraphAuthenticator
from graph_snippets.config import SnippetAppConfig
from graph_snippets.errors import AuthenticationError

SCOPES = ["https://graph.microsoft.com/User.Read"]


def _authenticator(audit_logger, **auth) -> GraphAuthenticator:
    config = SnippetAppConfig(tenant_id="contoso.onmicrosoft.com", auth=auth)
    return GraphAuthenticator(config, audit_logger)


class TestDeviceCode:
    def test_silent_token_for_cached_account(self, audit_logger, audit_store):
        mock_app = MagicMock()
        mock_app.get_accounts.return_value = [{"username": "megan@contoso.com"}]
        mock_app.acquire_token_silent.return_value = {"access_token": "tok-silent"}

        with patch("graph_snippets.auth.msal.PublicClientApplication", return_value=mock_app) as app_cls:
            token = _authenticator(audit_logger, type="device_code", client_id="app-1").acquire_token(SCOPES)

        assert token == "tok-silent"
        mock_app.initiate_device_flow.assert_not_called()
        assert app_cls.call_args.kwargs["authority"] == "https://login.microsoftonline.com/contoso.onmicrosoft.com"
        assert [event.message for event in audit_store.list()] == ["acquired_user_token"]

    def test_device_flow_prompts_user(self, audit_logger, capsys):
        mock_app = MagicMock()
        mock_app.get_accounts.return_value = []
        mock_app.initiate_device_flow.return_value = {
            "user_code": "ABCD1234",
            "message": "To sign in, use a web browser to open https://microsoft.com/devicelogin",
        }
        mock_app.acquire_token_by_device_flow.return_value = {"access_token": "tok-device"}

        with patch("graph_snippets.auth.msal.PublicClientApplication", return_value=mock_app):
            token = _authenticator(audit_logger, type="device_code", client_id="app-1").acquire_token(SCOPES)

        assert token == "tok-device"
        mock_app.initiate_device_flow.assert_called_once_with(scopes=SCOPES)
        assert "devicelogin" in capsys.readouterr().err

    def test_msal_app_is_reused(self, audit_logger):
        mock_app = MagicMock()
        mock_app.get_accounts.return_value = [{"username": "megan@contoso.com"}]
        mock_app.acquire_token_silent.return_value = {"access_token": "tok"}

        with patch("graph_snippets.auth.msal.PublicClientApplication", return_value=mock_app) as app_cls:
            authenticator = _authenticator(audit_logger, type="device_code", client_id="app-1")
            authenticator.acquire_token(SCOPES)
            authenticator.acquire_token(SCOPES)

        app_cls.assert_called_once()

    def test_device_flow_cannot_start(self, audit_logger):
        mock_app = MagicMock()
        mock_app.get_accounts.return_value = []
        mock_app.initiate_device_flow.return_value = {"error": "invalid_client"}

        with patch("graph_snippets.auth.msal.PublicClientApplication", return_value=mock_app):
            with pytest.raises(AuthenticationError, match="device code flow"):
                _authenticator(audit_logger, type="device_code", client_id="app-1").acquire_token(SCOPES)

    def test_token_error_is_reported(self, audit_logger):
        mock_app = MagicMock()
        mock_app.get_accounts.return_value = []
        mock_app.initiate_device_flow.return_value = {"user_code": "X", "message": "sign in"}
        mock_app.acquire_token_by_device_flow.return_value = {
            "error": "authorization_declined",
            "error_description": "The user declined",
        }

        with patch("graph_snippets.auth.msal.PublicClientApplication", return_value=mock_app):
            with pytest.raises(AuthenticationError, match="authorization_declined"):
                _authenticator(audit_logger, type="device_code", client_id="app-1").acquire_token(SCOPES)


class TestInteractiveBrowser:
    def test_token_from_credential(self, audit_logger):
        credential = MagicMock()
        credential.get_token.return_value = MagicMock(token="tok-browser")

        with patch("graph_snippets.auth.InteractiveBrowserCredential", return_value=credential) as credential_cls:
            token = _authenticator(
                audit_logger,
                type="interactive_browser",
                client_id="app-2",
                redirect_uri="http://localhost:8400",
            ).acquire_token(SCOPES)

        assert token == "tok-browser"
        credential.get_token.assert_called_once_with(*SCOPES)
        credential_cls.assert_called_once_with(
            tenant_id="contoso.onmicrosoft.com",
            client_id="app-2",
            redirect_uri="http://localhost:8400",
        )

    def test_sign_in_failure(self, audit_logger):
        credential = MagicMock()
        credential.get_token.side_effect = ClientAuthenticationError(message="User cancelled")

        with patch("graph_snippets.auth.InteractiveBrowserCredential", return_value=credential):
            with pytest.raises(AuthenticationError, match="User cancelled"):
                _authenticator(audit_logger, type="interactive_browser", client_id="app-2").acquire_token(SCOPES)


class TestAccessToken:
    def test_token_from_environment(self, audit_logger, monkeypatch):
        monkeypatch.setenv("GRAPH_ACCESS_TOKEN", "tok-env")
        authenticator = _authenticator(audit_logger, type="access_token", token={"env": "GRAPH_ACCESS_TOKEN"})
        assert authenticator.acquire_token(SCOPES) == "tok-env"

    def test_missing_environment(self, audit_logger, monkeypatch):
        monkeypatch.delenv("GRAPH_ACCESS_TOKEN", raising=False)
        authenticator = _authenticator(audit_logger, type="access_token", token={"env": "GRAPH_ACCESS_TOKEN"})
        with pytest.raises(AuthenticationError, match="GRAPH_ACCESS_TOKEN"):
            authenticator.acquire_token(SCOPES)
