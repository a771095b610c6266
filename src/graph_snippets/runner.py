from __future__ import annotations

import asyncio
import logging
import uuid
from typing import List, Optional, Sequence

import httpx

from .audit import JsonAuditLogger
from .auth import GraphAuthenticator
from .config import SnippetAppConfig
from .graph_client import GraphClient
from .invoker import SnippetInvoker, SnippetOutcome
from .registry import SnippetRegistry, default_registry
from .snippets import SnippetCategory, SnippetDescriptor

logger = logging.getLogger(__name__)


class SnippetRunner:
    """Wires configuration, authentication and the Graph client around the invoker.

    Drivers (CLI, web page) hand it snippet ids; it resolves them, opens one
    Graph client per run and returns the outcomes in the order requested.
    """

    def __init__(
        self,
        config: SnippetAppConfig,
        registry: Optional[SnippetRegistry] = None,
        audit_logger: Optional[JsonAuditLogger] = None,
        authenticator: Optional[GraphAuthenticator] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.registry = registry or default_registry()
        self.audit = audit_logger or JsonAuditLogger()
        self.authenticator = authenticator or GraphAuthenticator(config, self.audit)
        self.invoker = SnippetInvoker(self.registry, audit_logger=self.audit)
        self._transport = transport

    def create_client(self) -> GraphClient:
        return GraphClient(
            config=self.config,
            authenticator=self.authenticator,
            audit_logger=self.audit,
            transport=self._transport,
        )

    def descriptors_for(self, category: SnippetCategory) -> Sequence[SnippetDescriptor]:
        return self.registry.list_by_category(category)

    async def run(
        self,
        snippet_ids: Sequence[str],
        correlation_id: Optional[str] = None,
    ) -> List[SnippetOutcome]:
        descriptors = [self.registry.get(snippet_id) for snippet_id in snippet_ids]
        correlation_id = correlation_id or str(uuid.uuid4())
        self.audit.info("run_started", correlation_id=correlation_id, snippets=list(snippet_ids))
        async with self.create_client() as client:
            outcomes = await self.invoker.invoke_all(descriptors, client, correlation_id=correlation_id)
        self.audit.info(
            "run_completed",
            correlation_id=correlation_id,
            failed=[outcome.snippet_id for outcome in outcomes if not outcome.succeeded],
        )
        return outcomes

    def run_sync(
        self,
        snippet_ids: Sequence[str],
        correlation_id: Optional[str] = None,
    ) -> List[SnippetOutcome]:
        return asyncio.run(self.run(snippet_ids, correlation_id=correlation_id))
