from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Generator, List, Optional, Protocol, Sequence

from .audit import JsonAuditLogger
from .errors import SnippetCancelledError, SnippetError, SnippetExecutionError
from .graph_client import GraphClient
from .registry import SnippetRegistry, default_registry
from .snippets import SnippetAction, SnippetDescriptor

logger = logging.getLogger(__name__)


class SnippetCallback(Protocol):
    def success(self, payload: Dict[str, Any]) -> None:
        ...

    def failure(self, error: SnippetError) -> None:
        ...


@dataclass(frozen=True)
class SnippetOutcome:
    snippet_id: str
    correlation_id: str
    payload: Optional[Dict[str, Any]] = None
    error: Optional[SnippetError] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "snippet_id": self.snippet_id,
            "correlation_id": self.correlation_id,
            "status": "succeeded" if self.succeeded else "failed",
        }
        if self.error is not None:
            result["error"] = self.error.to_dict()
        else:
            result["payload"] = self.payload
        return result


class SnippetInvocation:
    """Handle on one running snippet.

    Awaiting the invocation yields its :class:`SnippetOutcome`. Cancelling only
    detaches the callback: the request already on the wire is allowed to finish.
    """

    def __init__(self, descriptor: SnippetDescriptor, correlation_id: str):
        self.descriptor = descriptor
        self.correlation_id = correlation_id
        self.cancelled = False
        self._task: Optional["asyncio.Task[SnippetOutcome]"] = None

    def cancel(self) -> None:
        self.cancelled = True

    def done(self) -> bool:
        return self._task is not None and self._task.done()

    async def result(self) -> SnippetOutcome:
        if self._task is None:
            raise RuntimeError(f"Snippet {self.descriptor.id} has not been scheduled")
        # Cancelling an awaiter must not abort the request on the wire.
        return await asyncio.shield(self._task)

    def __await__(self) -> Generator[Any, None, SnippetOutcome]:
        return self.result().__await__()


class SnippetInvoker:
    """Runs snippets as independent asyncio tasks and reports one outcome each."""

    def __init__(
        self,
        registry: Optional[SnippetRegistry] = None,
        audit_logger: Optional[JsonAuditLogger] = None,
    ):
        self.registry = registry or default_registry()
        self.audit = audit_logger or JsonAuditLogger()

    def invoke(
        self,
        descriptor: SnippetDescriptor,
        client: GraphClient,
        callback: Optional[SnippetCallback] = None,
        correlation_id: Optional[str] = None,
    ) -> SnippetInvocation:
        action = self.registry.resolve(descriptor)
        loop = asyncio.get_running_loop()
        invocation = SnippetInvocation(descriptor, correlation_id or str(uuid.uuid4()))
        invocation._task = loop.create_task(self._run(invocation, action, client, callback))
        return invocation

    async def invoke_all(
        self,
        descriptors: Sequence[SnippetDescriptor],
        client: GraphClient,
        correlation_id: Optional[str] = None,
    ) -> List[SnippetOutcome]:
        invocations = [
            self.invoke(descriptor, client, correlation_id=correlation_id)
            for descriptor in descriptors
        ]
        return list(await asyncio.gather(*(invocation.result() for invocation in invocations)))

    async def _run(
        self,
        invocation: SnippetInvocation,
        action: SnippetAction,
        client: GraphClient,
        callback: Optional[SnippetCallback],
    ) -> SnippetOutcome:
        snippet_id = invocation.descriptor.id
        correlation_id = invocation.correlation_id
        self.audit.info("snippet_started", snippet_id=snippet_id, correlation_id=correlation_id)

        try:
            payload = await action(client)
        except asyncio.CancelledError:
            error = SnippetCancelledError(f"Snippet {snippet_id} was cancelled before it completed")
            self._deliver(invocation, SnippetOutcome(snippet_id, correlation_id, error=error), callback)
            raise
        except SnippetError as exc:
            outcome = SnippetOutcome(snippet_id, correlation_id, error=exc)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Snippet %s raised an unexpected error", snippet_id)
            error = SnippetExecutionError(f"{type(exc).__name__}: {exc}")
            error.__cause__ = exc
            outcome = SnippetOutcome(snippet_id, correlation_id, error=error)
        else:
            outcome = SnippetOutcome(snippet_id, correlation_id, payload=payload)

        self._deliver(invocation, outcome, callback)
        return outcome

    def _deliver(
        self,
        invocation: SnippetInvocation,
        outcome: SnippetOutcome,
        callback: Optional[SnippetCallback],
    ) -> None:
        fields = {"snippet_id": outcome.snippet_id, "correlation_id": outcome.correlation_id}
        if outcome.error is None:
            self.audit.info("snippet_succeeded", outcome="succeeded", **fields)
        else:
            self.audit.error(
                "snippet_failed",
                outcome="failed",
                error_kind=outcome.error.kind,
                error=outcome.error.to_dict(),
                **fields,
            )

        if callback is None:
            return
        if invocation.cancelled:
            self.audit.info("snippet_callback_discarded", **fields)
            return

        if outcome.error is None:
            callback.success(outcome.payload)
        else:
            callback.failure(outcome.error)
