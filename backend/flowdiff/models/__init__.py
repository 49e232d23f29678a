"""Pydantic models for the workflow diff engine."""

from flowdiff.models.operations import (
    OPERATION_MODELS,
    ActivateWorkflowOperation,
    AddConnectionOperation,
    AddNodeOperation,
    AddTagOperation,
    CleanStaleConnectionsOperation,
    DeactivateWorkflowOperation,
    DiffOperation,
    DisableNodeOperation,
    EnableNodeOperation,
    MalformedOperation,
    MoveNodeOperation,
    NewNode,
    RemoveConnectionOperation,
    RemoveNodeOperation,
    RemoveTagOperation,
    ReplaceConnectionsOperation,
    RewireConnectionOperation,
    UpdateNameOperation,
    UpdateNodeOperation,
    UpdateSettingsOperation,
    WorkflowDiffRequest,
    parse_operation,
)
from flowdiff.models.result import (
    BATCH_LEVEL_INDEX,
    ApplyResult,
    DiffError,
    ErrorKind,
    NodeRename,
    StaleConnection,
    StructuralIssue,
    StructuralIssueCode,
    StructuralReport,
)
from flowdiff.models.workflow import (
    ConnectionTarget,
    Connections,
    Edge,
    EdgeType,
    WorkflowGraph,
    WorkflowNode,
    normalize_node_name,
)

__all__ = [
    # Graph
    "WorkflowGraph",
    "WorkflowNode",
    "ConnectionTarget",
    "Connections",
    "Edge",
    "EdgeType",
    "normalize_node_name",
    # Operations
    "DiffOperation",
    "WorkflowDiffRequest",
    "NewNode",
    "AddNodeOperation",
    "RemoveNodeOperation",
    "UpdateNodeOperation",
    "MoveNodeOperation",
    "EnableNodeOperation",
    "DisableNodeOperation",
    "AddConnectionOperation",
    "RemoveConnectionOperation",
    "RewireConnectionOperation",
    "ReplaceConnectionsOperation",
    "CleanStaleConnectionsOperation",
    "UpdateSettingsOperation",
    "UpdateNameOperation",
    "AddTagOperation",
    "RemoveTagOperation",
    "ActivateWorkflowOperation",
    "DeactivateWorkflowOperation",
    "MalformedOperation",
    "OPERATION_MODELS",
    "parse_operation",
    # Results
    "ApplyResult",
    "DiffError",
    "ErrorKind",
    "BATCH_LEVEL_INDEX",
    "NodeRename",
    "StaleConnection",
    "StructuralIssue",
    "StructuralIssueCode",
    "StructuralReport",
]
