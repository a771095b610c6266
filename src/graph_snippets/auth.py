from __future__ import annotations

import json
import logging
import sys
from threading import Lock
from typing import Any, Iterable, List, Optional

import msal
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import InteractiveBrowserCredential

from .audit import JsonAuditLogger
from .config import AccessTokenAuth, DeviceCodeAuth, InteractiveBrowserAuth, SnippetAppConfig
from .errors import AuthenticationError

logger = logging.getLogger(__name__)


class GraphAuthenticator:
    """Acquires delegated tokens for the signed-in user.

    Snippets target ``/me`` so every flow here is a user flow: MSAL device code,
    the azure-identity interactive browser credential, or a pre-acquired access
    token. MSAL and azure-identity keep their token caches in memory on the
    instances held by this object, so one authenticator should be reused for
    the lifetime of a client. Calls are serialized so concurrent snippets never
    start two sign-in prompts.
    """

    def __init__(self, config: SnippetAppConfig, audit_logger: JsonAuditLogger):
        self.config = config
        self.audit = audit_logger
        self._lock = Lock()
        self._msal_app: Optional[msal.PublicClientApplication] = None
        self._credential: Optional[InteractiveBrowserCredential] = None

    def acquire_token(self, scopes: Iterable[str]) -> str:
        scopes = list(scopes)
        with self._lock:
            return self._acquire(scopes)

    def _acquire(self, scopes: List[str]) -> str:
        auth_config = self.config.auth

        if isinstance(auth_config, DeviceCodeAuth):
            app = self._get_msal_app(auth_config)
            result = None
            accounts = app.get_accounts()
            if accounts:
                result = app.acquire_token_silent(scopes, account=accounts[0])
            if not result:
                result = self._run_device_flow(app, scopes)
            token = self._extract_token(result)
            self.audit.info("acquired_user_token", auth_type="device_code")
            return token

        if isinstance(auth_config, InteractiveBrowserAuth):
            credential = self._get_credential(auth_config)
            try:
                result = credential.get_token(*scopes)
            except ClientAuthenticationError as exc:
                raise AuthenticationError(f"Interactive sign-in failed: {exc.message}") from exc
            self.audit.info("acquired_user_token", auth_type="interactive_browser")
            return result.token

        if isinstance(auth_config, AccessTokenAuth):
            try:
                return auth_config.token.resolve()
            except ValueError as exc:
                raise AuthenticationError(str(exc)) from exc

        raise AuthenticationError("Unsupported authentication configuration")

    def _get_msal_app(self, auth_config: DeviceCodeAuth) -> msal.PublicClientApplication:
        if self._msal_app is None:
            self._msal_app = msal.PublicClientApplication(
                client_id=auth_config.client_id,
                authority=f"{auth_config.authority_host}/{self.config.tenant_id}",
                token_cache=msal.TokenCache(),
            )
        return self._msal_app

    def _get_credential(self, auth_config: InteractiveBrowserAuth) -> InteractiveBrowserCredential:
        if self._credential is None:
            kwargs: dict = {"tenant_id": self.config.tenant_id, "client_id": auth_config.client_id}
            if auth_config.redirect_uri:
                kwargs["redirect_uri"] = auth_config.redirect_uri
            self._credential = InteractiveBrowserCredential(**kwargs)
        return self._credential

    def _run_device_flow(self, app: msal.PublicClientApplication, scopes: List[str]) -> dict:
        flow = app.initiate_device_flow(scopes=scopes)
        if "user_code" not in flow:
            raise AuthenticationError(f"Could not start device code flow: {json.dumps(flow)}")
        # The prompt has to reach a human even when stdout is piped to JSON tooling.
        print(flow["message"], file=sys.stderr, flush=True)
        return app.acquire_token_by_device_flow(flow)

    @staticmethod
    def _extract_token(result: Any) -> str:
        if not result or "access_token" not in result:
            error = (result or {}).get("error", "unknown_error")
            description = (result or {}).get("error_description", "")
            raise AuthenticationError(f"Token acquisition failed: {error} {description}".strip())
        return result["access_token"]
