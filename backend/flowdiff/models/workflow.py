"""Pydantic models for the workflow graph (nodes plus typed connections).

Connections address nodes by *name*, never by id:

    connections[source_name][edge_type][output_index] -> [ConnectionTarget, ...]

The position of a slot inside an edge type's list is meaningful (IF true/false
branches, Switch cases), so slots are never reordered or collapsed.
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator
from pydantic import Field as PydanticField

# =============================================================================
# Edge types
# =============================================================================


class EdgeType:
    """Known connection categories. The set is open: any string is accepted."""

    MAIN = "main"
    ERROR = "error"
    AI_TOOL = "ai_tool"
    AI_LANGUAGE_MODEL = "ai_languageModel"
    AI_MEMORY = "ai_memory"
    AI_EMBEDDING = "ai_embedding"
    AI_VECTOR_STORE = "ai_vectorStore"


# =============================================================================
# Name normalization
# =============================================================================

_WHITESPACE = re.compile(r"\s+")


def normalize_node_name(name: str) -> str:
    """Normalize a node name for lookups and collision checks.

    Callers frequently send names with escaped quotes or irregular spacing
    (e.g. ``Don\\'t Stop`` or ``"HTTP  Request "``); these resolve to the same
    node as their clean form.
    """
    return _WHITESPACE.sub(
        " ",
        name.strip()
        .replace("\\\\", "\\")
        .replace("\\'", "'")
        .replace('\\"', '"'),
    )


# =============================================================================
# Connections
# =============================================================================


class ConnectionTarget(BaseModel):
    """A reference to the input of a target node (a TargetRef)."""

    node: str
    type: str = EdgeType.MAIN
    index: int = 0


def _none_to_empty_slot(value: Any) -> Any:
    return [] if value is None else value


OutputSlot = Annotated[list[ConnectionTarget], BeforeValidator(_none_to_empty_slot)]
Connections = dict[str, dict[str, list[OutputSlot]]]


@dataclass(frozen=True)
class Edge:
    """Flattened view of one connection entry."""

    source: str
    edge_type: str
    output_index: int
    target: ConnectionTarget


# =============================================================================
# Nodes and graph
# =============================================================================


class WorkflowNode(BaseModel):
    """A node in the workflow. ``id`` is stable; ``name`` is the connection key."""

    id: str
    name: str
    type: str
    type_version: int | float = PydanticField(default=1, alias="typeVersion")
    position: list[int | float] = PydanticField(default_factory=lambda: [0, 0])
    parameters: dict[str, Any] = PydanticField(default_factory=dict)
    credentials: dict[str, Any] | None = None
    disabled: bool | None = None
    notes: str | None = None
    notes_in_flow: bool | None = PydanticField(default=None, alias="notesInFlow")
    continue_on_fail: bool | None = PydanticField(default=None, alias="continueOnFail")
    on_error: str | None = PydanticField(default=None, alias="onError")
    retry_on_fail: bool | None = PydanticField(default=None, alias="retryOnFail")
    max_tries: int | None = PydanticField(default=None, alias="maxTries")
    wait_between_tries: int | None = PydanticField(default=None, alias="waitBetweenTries")
    always_output_data: bool | None = PydanticField(default=None, alias="alwaysOutputData")
    execute_once: bool | None = PydanticField(default=None, alias="executeOnce")
    webhook_id: str | None = PydanticField(default=None, alias="webhookId")

    model_config = {"populate_by_name": True, "extra": "allow"}

    def to_payload(self) -> dict[str, Any]:
        """Serialize using the wire (camelCase) field names."""
        return self.model_dump(by_alias=True, exclude_none=True)


def _tag_names(value: Any) -> Any:
    # Tags fetched from the API arrive as {"id": ..., "name": ...} objects.
    if isinstance(value, list):
        return [t.get("name", "") if isinstance(t, dict) else t for t in value]
    return value


class WorkflowGraph(BaseModel):
    """A workflow document: nodes plus name-addressed connections."""

    id: str | None = None
    name: str = ""
    nodes: list[WorkflowNode] = PydanticField(default_factory=list)
    connections: Connections = PydanticField(default_factory=dict)
    settings: dict[str, Any] = PydanticField(default_factory=dict)
    tags: Annotated[list[str], BeforeValidator(_tag_names)] = PydanticField(
        default_factory=list
    )
    active: bool | None = None

    model_config = {"populate_by_name": True, "extra": "allow"}

    def to_payload(self) -> dict[str, Any]:
        """Serialize using the wire (camelCase) field names."""
        return self.model_dump(by_alias=True, exclude_none=True)

    # -------------------------------------------------------------------------
    # Node lookups
    # -------------------------------------------------------------------------

    def find_node_by_id(self, node_id: str) -> WorkflowNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def find_node_by_name(self, name: str) -> WorkflowNode | None:
        """Find a node by exact name, falling back to the normalized name."""
        for node in self.nodes:
            if node.name == name:
                return node
        normalized = normalize_node_name(name)
        for node in self.nodes:
            if normalize_node_name(node.name) == normalized:
                return node
        return None

    def find_node(
        self, node_id: str | None = None, node_name: str | None = None
    ) -> WorkflowNode | None:
        """Resolve a node reference given by id and/or name.

        Tries the id first, then the name. When only an id is given and no node
        has that id, the value is retried as a name, since callers often pass
        names in id fields.
        """
        if node_id:
            node = self.find_node_by_id(node_id)
            if node:
                return node
        if node_name:
            node = self.find_node_by_name(node_name)
            if node:
                return node
        if node_id and not node_name:
            return self.find_node_by_name(node_id)
        return None

    def node_names(self) -> set[str]:
        return {node.name for node in self.nodes}

    # -------------------------------------------------------------------------
    # Edge lookups
    # -------------------------------------------------------------------------

    def iter_edges(self) -> Iterator[Edge]:
        """Yield every connection entry in the graph."""
        for source, outputs in self.connections.items():
            for edge_type, slots in outputs.items():
                for output_index, slot in enumerate(slots):
                    for target in slot:
                        yield Edge(source, edge_type, output_index, target)

    def outgoing_edges(self, source_name: str) -> list[Edge]:
        outputs = self.connections.get(source_name, {})
        return [
            Edge(source_name, edge_type, output_index, target)
            for edge_type, slots in outputs.items()
            for output_index, slot in enumerate(slots)
            for target in slot
        ]

    def incoming_edges(self, target_name: str) -> list[Edge]:
        return [edge for edge in self.iter_edges() if edge.target.node == target_name]

    def connection_count(self) -> int:
        return sum(1 for _ in self.iter_edges())
