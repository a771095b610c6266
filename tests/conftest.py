import logging

import pytest

from graph_snippets.audit import InMemoryAuditStore, JsonAuditLogger
from graph_snippets.config import SnippetAppConfig

from tests.utils_graph import FakeGraph, StaticTokenProvider


@pytest.fixture(autouse=True)
def quiet_audit_logger():
    # JsonAuditLogger only attaches its stdout handler to a bare logger.
    audit_logger = logging.getLogger("graph_snippets")
    handler = logging.NullHandler()
    audit_logger.addHandler(handler)
    yield
    audit_logger.removeHandler(handler)


@pytest.fixture
def config() -> SnippetAppConfig:
    return SnippetAppConfig(
        auth={"type": "access_token", "token": {"value": "token-123"}},
        max_retries=2,
    )


@pytest.fixture
def audit_store() -> InMemoryAuditStore:
    return InMemoryAuditStore()


@pytest.fixture
def audit_logger(audit_store: InMemoryAuditStore) -> JsonAuditLogger:
    return JsonAuditLogger(store=audit_store)


@pytest.fixture
def token_provider() -> StaticTokenProvider:
    return StaticTokenProvider()


@pytest.fixture
def fake_graph() -> FakeGraph:
    return FakeGraph()
