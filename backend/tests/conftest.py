"""Pytest configuration and fixtures."""

from typing import Any, AsyncGenerator, Callable

import pytest
from httpx import ASGITransport, AsyncClient

from flowdiff.api import diff as diff_api
from flowdiff.config import get_settings
from flowdiff.main import app
from flowdiff.models import WorkflowDiffRequest, WorkflowGraph
from flowdiff.services import NodeTypeRegistry, WorkflowDiffEngine, get_default_registry

WEBHOOK = "n8n-nodes-base.webhook"
HTTP_REQUEST = "n8n-nodes-base.httpRequest"
SET = "n8n-nodes-base.set"
IF = "n8n-nodes-base.if"
SWITCH = "n8n-nodes-base.switch"
STICKY_NOTE = "n8n-nodes-base.stickyNote"


@pytest.fixture(autouse=True)
def clear_cached_settings():
    """Settings and the default registry are read from the environment once."""
    get_settings.cache_clear()
    get_default_registry.cache_clear()
    diff_api.get_engine.cache_clear()
    yield
    get_settings.cache_clear()
    get_default_registry.cache_clear()
    diff_api.get_engine.cache_clear()


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


@pytest.fixture
def engine() -> WorkflowDiffEngine:
    return WorkflowDiffEngine(NodeTypeRegistry())


@pytest.fixture
def build_workflow() -> Callable[..., WorkflowGraph]:
    """Build a workflow from (id, name, type) triples and a wire-format connection map."""

    def _build(
        nodes: list[tuple[str, str, str]],
        connections: dict[str, Any] | None = None,
        **extra: Any,
    ) -> WorkflowGraph:
        return WorkflowGraph.model_validate(
            {
                "id": "wf-1",
                "name": "Test Workflow",
                "nodes": [
                    {
                        "id": node_id,
                        "name": name,
                        "type": node_type,
                        "typeVersion": 1,
                        "position": [index * 200, 0],
                        "parameters": {},
                    }
                    for index, (node_id, name, node_type) in enumerate(nodes)
                ],
                "connections": connections or {},
                **extra,
            }
        )

    return _build


@pytest.fixture
def diff_request() -> Callable[..., WorkflowDiffRequest]:
    """Build a diff request from raw operation payloads."""

    def _build(operations: list[Any], **flags: Any) -> WorkflowDiffRequest:
        return WorkflowDiffRequest.model_validate({"operations": operations, **flags})

    return _build


@pytest.fixture
def webhook_http(build_workflow) -> WorkflowGraph:
    """Webhook -> HTTP Request."""
    return build_workflow(
        [("w1", "Webhook", WEBHOOK), ("h1", "HTTP Request", HTTP_REQUEST)],
        {"Webhook": {"main": [[{"node": "HTTP Request", "type": "main", "index": 0}]]}},
    )


@pytest.fixture
def branching(build_workflow) -> WorkflowGraph:
    """Webhook -> IF, with IF true -> True Path and IF false -> False Path."""
    return build_workflow(
        [
            ("w1", "Webhook", WEBHOOK),
            ("i1", "IF", IF),
            ("t1", "True Path", SET),
            ("f1", "False Path", SET),
        ],
        {
            "Webhook": {"main": [[{"node": "IF", "type": "main", "index": 0}]]},
            "IF": {
                "main": [
                    [{"node": "True Path", "type": "main", "index": 0}],
                    [{"node": "False Path", "type": "main", "index": 0}],
                ]
            },
        },
    )
