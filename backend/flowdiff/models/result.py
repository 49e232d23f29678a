"""Pydantic models for diff results and structural reports."""

from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import Field as PydanticField

from flowdiff.models.workflow import WorkflowGraph

BATCH_LEVEL_INDEX = -1


class ErrorKind(str, Enum):
    """Where a diff error came from."""

    VALIDATION = "validation"  # One operation's precondition failed
    STRUCTURAL = "structural"  # Whole-graph check failed after the batch
    INTERNAL = "internal"  # Unexpected fault unrelated to input validity


class DiffError(BaseModel):
    """An error (or warning) tied to an operation index.

    Structural and internal errors are batch-level and use index -1.
    """

    operation_index: int = PydanticField(alias="operationIndex")
    message: str
    kind: ErrorKind = ErrorKind.VALIDATION
    details: Any | None = None

    model_config = {"populate_by_name": True}


class NodeRename(BaseModel):
    """A rename committed during a batch."""

    node_id: str = PydanticField(alias="nodeId")
    old_name: str = PydanticField(alias="oldName")
    new_name: str = PydanticField(alias="newName")

    model_config = {"populate_by_name": True}


class StaleConnection(BaseModel):
    """A connection entry that referenced a node which no longer exists."""

    from_node: str = PydanticField(alias="from")
    to_node: str = PydanticField(alias="to")

    model_config = {"populate_by_name": True}


class ApplyResult(BaseModel):
    """Outcome of applying a diff request to a workflow."""

    success: bool
    workflow: WorkflowGraph | None = None
    errors: list[DiffError] | None = None
    warnings: list[DiffError] | None = None
    message: str = ""
    operations_applied: int = PydanticField(default=0, alias="operationsApplied")
    applied: list[int] | None = None
    failed: list[int] | None = None
    renames: list[NodeRename] | None = None
    stale_connections_removed: list[StaleConnection] | None = PydanticField(
        default=None, alias="staleConnectionsRemoved"
    )
    should_activate: bool | None = PydanticField(default=None, alias="shouldActivate")
    should_deactivate: bool | None = PydanticField(default=None, alias="shouldDeactivate")

    model_config = {"populate_by_name": True}

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# =============================================================================
# Structural validation
# =============================================================================


class StructuralIssueCode(str, Enum):
    NO_CONNECTIONS = "no_connections"
    DUPLICATE_NAME = "duplicate_name"
    UNKNOWN_SOURCE = "unknown_source"
    UNKNOWN_TARGET = "unknown_target"
    DISCONNECTED_NODE = "disconnected_node"
    NO_EXECUTABLE_NODES = "no_executable_nodes"
    SWITCH_BRANCH_MISMATCH = "switch_branch_mismatch"
    SWITCH_UNCONNECTED_OUTPUT = "switch_unconnected_output"


class StructuralIssue(BaseModel):
    """One whole-graph invariant violation."""

    code: StructuralIssueCode
    message: str
    nodes: list[str] = []


class StructuralReport(BaseModel):
    """Result of validating the structure of a whole workflow graph."""

    valid: bool
    issues: list[StructuralIssue] = []
    warnings: list[str] = []

    def summary(self) -> str:
        return "; ".join(issue.message for issue in self.issues)
