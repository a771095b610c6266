"""Error taxonomy for snippet lookup and execution."""
from __future__ import annotations

from typing import Any, Dict, Optional


class SnippetError(Exception):
    """Base class for every error a snippet caller can observe."""

    kind = "snippet_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class NotFoundError(SnippetError):
    kind = "not_found"


class AuthenticationError(SnippetError):
    kind = "authentication"


class GraphError(SnippetError):
    """A remote call to Microsoft Graph did not produce a usable document."""

    kind = "graph_error"


class TransportError(GraphError):
    kind = "transport"


class GraphResponseError(GraphError):
    def __init__(
        self,
        message: str,
        status_code: int,
        code: Optional[str] = None,
        url: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.url = url

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload.update({"status_code": self.status_code, "code": self.code, "url": self.url})
        return payload


class ClientProtocolError(GraphResponseError):
    """4xx response or a body that could not be decoded."""

    kind = "client_protocol"


class ServiceError(GraphResponseError):
    kind = "service"


class SnippetExecutionError(SnippetError):
    kind = "unexpected"


class SnippetCancelledError(SnippetError):
    """The snippet task itself was cancelled before the call completed."""

    kind = "cancelled"
