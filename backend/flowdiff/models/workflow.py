"""Pydantic models for workflow graphs (nodes, connections, settings)."""

from typing import Any

from pydantic import BaseModel, field_validator
from pydantic import Field as PydanticField

MAIN_OUTPUT = "main"


class ConnectionTarget(BaseModel):
    """One end of a directed edge: the target node name, its input port and index."""

    node: str
    type: str = MAIN_OUTPUT
    index: int = 0


# source node name -> output port -> output index -> targets
Connections = dict[str, dict[str, list[list[ConnectionTarget]]]]


class Node(BaseModel):
    """A single processing step in a workflow.

    Unknown platform fields (notes, retry settings, webhookId, ...) are kept
    as extras so a fetched node round-trips unchanged.
    """

    id: str
    name: str
    type: str
    type_version: float = PydanticField(default=1, alias="typeVersion")
    position: list[float] = PydanticField(default_factory=lambda: [0, 0])
    parameters: dict[str, Any] = PydanticField(default_factory=dict)
    credentials: dict[str, Any] | None = None
    disabled: bool | None = None

    model_config = {"populate_by_name": True, "extra": "allow"}


class Workflow(BaseModel):
    """A transient in-memory copy of a workflow owned by the external platform."""

    id: str | None = None
    name: str = ""
    active: bool = False
    nodes: list[Node] = PydanticField(default_factory=list)
    connections: Connections = PydanticField(default_factory=dict)
    settings: dict[str, Any] = PydanticField(default_factory=dict)
    tags: list[str] = PydanticField(default_factory=list)

    model_config = {"populate_by_name": True, "extra": "allow"}

    @field_validator("tags", mode="before")
    @classmethod
    def _tag_names(cls, value: Any) -> Any:
        # The platform returns tags as {"id": ..., "name": ...} objects
        if isinstance(value, list):
            return [t.get("name", "") if isinstance(t, dict) else t for t in value]
        return value

    def to_snapshot(self) -> dict[str, Any]:
        """Serialize to the platform's JSON shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def node_names(self) -> set[str]:
        return {node.name for node in self.nodes}


class WorkflowSummary(BaseModel):
    """Short description of a workflow returned after a push."""

    id: str | None
    name: str
    active: bool
    node_count: int = PydanticField(alias="nodeCount")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_workflow(cls, workflow: Workflow) -> "WorkflowSummary":
        return cls(
            id=workflow.id,
            name=workflow.name,
            active=workflow.active,
            node_count=len(workflow.nodes),
        )
