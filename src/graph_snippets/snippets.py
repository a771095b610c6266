"""Snippet catalog: one plain async function per Graph call.

Each entry pairs a :class:`SnippetDescriptor` with the coroutine function that
performs the request. The table is the single source of truth for the registry,
the CLI and the web page.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Tuple

from .graph_client import GraphClient

GRAPH_DOCS = "https://learn.microsoft.com/graph/api"

SnippetAction = Callable[[GraphClient], Awaitable[Dict[str, Any]]]


class SnippetCategory(str, Enum):
    ME = "me"


@dataclass(frozen=True)
class SnippetDescriptor:
    id: str
    category: SnippetCategory
    label: str
    http_request: str
    docs_url: str


async def get_me(graph: GraphClient) -> Dict[str, Any]:
    return await graph.me().get()


async def get_me_responsibilities(graph: GraphClient) -> Dict[str, Any]:
    # "skills" replaces the sample's "tags", which is not a v1.0 user property.
    return await graph.me().select("aboutMe", "responsibilities", "skills").get()


async def get_me_manager(graph: GraphClient) -> Dict[str, Any]:
    return await graph.me().manager().get()


async def get_me_direct_reports(graph: GraphClient) -> Dict[str, Any]:
    return await graph.me().direct_reports().get()


async def get_me_group_membership(graph: GraphClient) -> Dict[str, Any]:
    return await graph.me().member_of().get()


async def get_me_photo(graph: GraphClient) -> Dict[str, Any]:
    # Photo metadata; the binary lives under /me/photo/$value.
    return await graph.me().photo().get()


SNIPPETS: Tuple[Tuple[SnippetDescriptor, SnippetAction], ...] = (
    (
        SnippetDescriptor(
            id="get_me",
            category=SnippetCategory.ME,
            label="Get my profile",
            http_request="GET /me",
            docs_url=f"{GRAPH_DOCS}/user-get",
        ),
        get_me,
    ),
    (
        SnippetDescriptor(
            id="get_me_responsibilities",
            category=SnippetCategory.ME,
            label="Get my responsibilities",
            http_request="GET /me?$select=aboutMe,responsibilities,skills",
            docs_url=f"{GRAPH_DOCS}/resources/user",
        ),
        get_me_responsibilities,
    ),
    (
        SnippetDescriptor(
            id="get_me_manager",
            category=SnippetCategory.ME,
            label="Get my manager",
            http_request="GET /me/manager",
            docs_url=f"{GRAPH_DOCS}/user-list-manager",
        ),
        get_me_manager,
    ),
    (
        SnippetDescriptor(
            id="get_me_direct_reports",
            category=SnippetCategory.ME,
            label="Get my direct reports",
            http_request="GET /me/directReports",
            docs_url=f"{GRAPH_DOCS}/user-list-directreports",
        ),
        get_me_direct_reports,
    ),
    (
        SnippetDescriptor(
            id="get_me_group_membership",
            category=SnippetCategory.ME,
            label="Get my group membership",
            http_request="GET /me/memberOf",
            docs_url=f"{GRAPH_DOCS}/user-list-memberof",
        ),
        get_me_group_membership,
    ),
    (
        SnippetDescriptor(
            id="get_me_photo",
            category=SnippetCategory.ME,
            label="Get my photo",
            http_request="GET /me/photo",
            docs_url=f"{GRAPH_DOCS}/profilephoto-get",
        ),
        get_me_photo,
    ),
)
