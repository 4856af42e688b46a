"""Pytest configuration and fixtures."""

import os
import tempfile
from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from pydantic import TypeAdapter

from flowdiff.db.database import close_database, init_database
from flowdiff.errors import NotFoundError, UpstreamError
from flowdiff.main import app
from flowdiff.models import DiffOperation, DiffRequest, Workflow
from flowdiff.platform.client import PlatformClient, set_platform_client

WEBHOOK = "n8n-nodes-base.webhook"
HTTP_REQUEST = "n8n-nodes-base.httpRequest"
SET = "n8n-nodes-base.set"
MERGE = "n8n-nodes-base.merge"
IF = "n8n-nodes-base.if"
SWITCH = "n8n-nodes-base.switch"
STICKY = "n8n-nodes-base.stickyNote"

_operation_adapter = TypeAdapter(DiffOperation)


def parse_op(data: dict[str, Any]) -> DiffOperation:
    """Build a typed operation from its JSON form."""
    return _operation_adapter.validate_python(data)


def diff_request(operations: list[dict[str, Any]], workflow_id: str = "wf-1", **flags: Any) -> DiffRequest:
    return DiffRequest.model_validate({"id": workflow_id, "operations": operations, **flags})


class FakePlatformClient(PlatformClient):
    """In-memory platform that records pushes and can be told to fail."""

    def __init__(self) -> None:
        self.workflows: dict[str, Workflow] = {}
        self.updates: list[tuple[str, Workflow]] = []
        self.activated: list[str] = []
        self.deactivated: list[str] = []
        self.fail_get = False
        self.fail_update = False

    def add(self, workflow: Workflow) -> None:
        self.workflows[workflow.id] = workflow.model_copy(deep=True)

    async def get_workflow(self, workflow_id: str) -> Workflow:
        if self.fail_get:
            raise UpstreamError("platform unavailable", status_code=503, code="http_503")
        if workflow_id not in self.workflows:
            raise NotFoundError(f"Workflow not found on platform: {workflow_id}")
        return self.workflows[workflow_id].model_copy(deep=True)

    async def update_workflow(self, workflow_id: str, workflow: Workflow) -> Workflow:
        if self.fail_update:
            raise UpstreamError("platform rejected update", status_code=500, code="http_500")
        stored = workflow.model_copy(deep=True, update={"id": workflow_id})
        self.workflows[workflow_id] = stored
        self.updates.append((workflow_id, stored))
        return stored.model_copy(deep=True)

    async def activate_workflow(self, workflow_id: str) -> Workflow:
        self.activated.append(workflow_id)
        self.workflows[workflow_id].active = True
        return self.workflows[workflow_id].model_copy(deep=True)

    async def deactivate_workflow(self, workflow_id: str) -> Workflow:
        self.deactivated.append(workflow_id)
        self.workflows[workflow_id].active = False
        return self.workflows[workflow_id].model_copy(deep=True)


def build_workflow(
    nodes: list[tuple[str, str]],
    edges: list[tuple[str, str]] | None = None,
    workflow_id: str = "wf-1",
    name: str = "Test Workflow",
    **extra: Any,
) -> Workflow:
    """Build a workflow from ``(name, type)`` pairs and ``(source, target)`` main edges."""
    connections: dict[str, Any] = {}
    for source, target in edges or []:
        branches = connections.setdefault(source, {}).setdefault("main", [[]])
        branches[0].append({"node": target, "type": "main", "index": 0})

    return Workflow.model_validate(
        {
            "id": workflow_id,
            "name": name,
            "nodes": [
                {
                    "id": f"id-{node_name.lower().replace(' ', '-')}",
                    "name": node_name,
                    "type": node_type,
                    "typeVersion": 1,
                    "position": [i * 200, 300],
                    "parameters": {},
                }
                for i, (node_name, node_type) in enumerate(nodes)
            ],
            "connections": connections,
            "settings": {"executionOrder": "v1"},
            **extra,
        }
    )


@pytest.fixture
def workflow_factory() -> Callable[..., Workflow]:
    return build_workflow


@pytest.fixture
def simple_workflow() -> Workflow:
    """Webhook -> HTTP Request."""
    return build_workflow(
        [("Webhook", WEBHOOK), ("HTTP Request", HTTP_REQUEST)],
        [("Webhook", "HTTP Request")],
    )


@pytest.fixture
def fan_in_workflow() -> Workflow:
    """Webhook -> Set1 -> Merge, Webhook -> Set2 -> Merge."""
    return build_workflow(
        [("Webhook", WEBHOOK), ("Set1", SET), ("Set2", SET), ("Merge", MERGE)],
        [("Webhook", "Set1"), ("Webhook", "Set2"), ("Set1", "Merge"), ("Set2", "Merge")],
    )


@pytest.fixture(autouse=True)
async def setup_test_db():
    """Set up a test database for each test."""
    # Create a temporary database file
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    await init_database(db_path)

    yield

    # Clean up
    await close_database()
    os.unlink(db_path)


@pytest.fixture
def platform() -> FakePlatformClient:
    return FakePlatformClient()


@pytest.fixture
async def client(platform: FakePlatformClient) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client wired to the fake platform."""
    set_platform_client(platform)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    set_platform_client(None)
