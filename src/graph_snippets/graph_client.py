from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, Optional, Tuple

import httpx

from .audit import JsonAuditLogger
from .auth import GraphAuthenticator
from .config import SnippetAppConfig
from .errors import ClientProtocolError, ServiceError, TransportError

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = (429, 503, 504)


class GraphClient:
    """Async Microsoft Graph client scoped to the signed-in user.

    The client is safe to share between concurrent snippet invocations: it holds
    no per-request state besides the pooled ``httpx.AsyncClient``.
    """

    def __init__(
        self,
        config: SnippetAppConfig,
        authenticator: GraphAuthenticator,
        audit_logger: JsonAuditLogger,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.authenticator = authenticator
        self.audit = audit_logger
        self.timeout = config.timeout
        self.max_retries = config.max_retries
        self.session = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    @property
    def base_url(self) -> str:
        return f"{self.config.graph_base_url}/{self.config.api_version}"

    async def __aenter__(self) -> "GraphClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.session.aclose()

    def me(self) -> "UserRequestBuilder":
        return UserRequestBuilder(self, "/me")

    async def _auth_header(self, scopes: Iterable[str]) -> Dict[str, str]:
        token = await asyncio.to_thread(self.authenticator.acquire_token, scopes)
        return {"Authorization": f"Bearer {token}"}

    async def request(
        self,
        method: str,
        url: str,
        scopes: Optional[Iterable[str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        scopes = scopes or self.config.qualified_scopes()
        headers = kwargs.pop("headers", {})
        headers.update(await self._auth_header(scopes))
        backoff = 1.0
        attempt = 0

        while True:
            attempt += 1
            try:
                response = await self.session.request(method, url, headers=headers, **kwargs)
            except httpx.TransportError as exc:
                self.audit.error("graph_transport_error", url=url, error=repr(exc))
                raise TransportError(f"{method} {url} failed: {exc}") from exc

            if response.status_code in RETRYABLE_STATUSES and attempt <= self.max_retries:
                retry_after = self._get_retry_after_seconds(response)
                if retry_after is None:
                    retry_after = backoff
                self.audit.warning(
                    "graph_throttled",
                    status=response.status_code,
                    retry_after=retry_after,
                    attempt=attempt,
                    url=url,
                )
                await asyncio.sleep(retry_after)
                backoff = min(backoff * 2, 30)
                continue

            if response.status_code >= 400:
                self.audit.error(
                    "graph_request_failed",
                    status=response.status_code,
                    url=url,
                    body=response.text,
                )
                raise self._error_for(response)

            self.audit.info("graph_request_succeeded", status=response.status_code, url=url)
            return response

    def _get_retry_after_seconds(self, response: httpx.Response) -> Optional[float]:
        retry_after = response.headers.get("Retry-After")
        if retry_after is None:
            return None
        try:
            return float(retry_after)
        except ValueError:
            return None

    @staticmethod
    def _error_for(response: httpx.Response) -> Exception:
        code: Optional[str] = None
        message = response.reason_phrase or f"HTTP {response.status_code}"
        try:
            body = response.json()
        except ValueError:
            body = {}
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            code = error.get("code") or code
            message = error.get("message") or message

        error_cls = ServiceError if response.status_code >= 500 else ClientProtocolError
        return error_cls(
            message,
            status_code=response.status_code,
            code=code,
            url=str(response.request.url),
        )

    async def get(self, path: str, params: Optional[Dict[str, str]] = None, **kwargs: Any) -> httpx.Response:
        url = f"{self.base_url}{path}"
        return await self.request("GET", url, params=params, **kwargs)


class GraphRequestBuilder:
    """Immutable description of one GET against a Graph resource path."""

    def __init__(self, client: GraphClient, path: str, select: Tuple[str, ...] = ()):
        self.client = client
        self.path = path
        self.selected = select

    def _child(self, segment: str) -> "GraphRequestBuilder":
        return GraphRequestBuilder(self.client, f"{self.path}/{segment}")

    def select(self, *fields: str) -> "GraphRequestBuilder":
        names = tuple(
            name.strip() for item in fields for name in item.split(",") if name.strip()
        )
        return type(self)(self.client, self.path, self.selected + names)

    def query_params(self) -> Dict[str, str]:
        # Graph rejects "select=" without the OData "$" prefix with a 400.
        if self.selected:
            return {"$select": ",".join(self.selected)}
        return {}

    async def get(self) -> Dict[str, Any]:
        response = await self.client.get(self.path, params=self.query_params() or None)
        try:
            return response.json()
        except ValueError as exc:
            raise ClientProtocolError(
                f"Response from {self.path} is not a JSON document",
                status_code=response.status_code,
                code="invalidResponse",
                url=str(response.request.url),
            ) from exc


class UserRequestBuilder(GraphRequestBuilder):
    def manager(self) -> GraphRequestBuilder:
        return self._child("manager")

    def direct_reports(self) -> GraphRequestBuilder:
        return self._child("directReports")

    def member_of(self) -> GraphRequestBuilder:
        return self._child("memberOf")

    def photo(self) -> GraphRequestBuilder:
        return self._child("photo")
