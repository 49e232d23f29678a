"""Services for the workflow diff engine."""

from flowdiff.services.connection_rewriter import rename_connection_references
from flowdiff.services.diff_engine import (
    WorkflowDiffEngine,
    applied_operation_types,
    apply_diff,
)
from flowdiff.services.name_guard import check_new_name, check_rename, find_name_collision
from flowdiff.services.node_classification import (
    NodeCapability,
    NodeClassifier,
    NodeTypeRegistry,
    get_default_registry,
    normalize_node_type,
)
from flowdiff.services.structural_validator import StructuralValidator

__all__ = [
    "WorkflowDiffEngine",
    "apply_diff",
    "applied_operation_types",
    "rename_connection_references",
    "check_rename",
    "check_new_name",
    "find_name_collision",
    "NodeCapability",
    "NodeClassifier",
    "NodeTypeRegistry",
    "get_default_registry",
    "normalize_node_type",
    "StructuralValidator",
]
