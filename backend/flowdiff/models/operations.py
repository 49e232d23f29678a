"""Pydantic models for workflow diff operations.

A diff request carries an ordered batch of operations. Each operation is one
variant of a closed union discriminated by its ``type`` field, e.g.:

    {"type": "updateNode", "nodeName": "HTTP Request", "updates": {"name": "API Call"}}
    {"type": "addConnection", "source": "IF", "target": "Notify", "branch": "false"}

Entries that cannot be parsed into any variant are kept as
``MalformedOperation`` so the engine can reject them at their own index
instead of failing the whole request.
"""

from typing import Annotated, Any, Literal, Union, get_args

from pydantic import BaseModel, TypeAdapter, ValidationError, WrapValidator
from pydantic import Field as PydanticField

from flowdiff.models.workflow import Connections, EdgeType

# =============================================================================
# Shared pieces
# =============================================================================


class NewNode(BaseModel):
    """Node payload for addNode. ``id`` is generated when omitted."""

    name: str
    type: str
    position: list[int | float]
    id: str | None = None
    type_version: int | float | None = PydanticField(default=None, alias="typeVersion")
    parameters: dict[str, Any] | None = None

    model_config = {"populate_by_name": True, "extra": "allow"}


class _NodeTargeted(BaseModel):
    """Mixin for operations that address one node by id or name."""

    node_id: str | None = PydanticField(default=None, alias="nodeId")
    node_name: str | None = PydanticField(default=None, alias="nodeName")

    @property
    def node_ref(self) -> str:
        return self.node_id or self.node_name or ""


# =============================================================================
# Node operations
# =============================================================================


class AddNodeOperation(BaseModel):
    type: Literal["addNode"] = "addNode"
    description: str | None = None
    node: NewNode

    model_config = {"populate_by_name": True}


class RemoveNodeOperation(_NodeTargeted):
    type: Literal["removeNode"] = "removeNode"
    description: str | None = None

    model_config = {"populate_by_name": True}


class UpdateNodeOperation(_NodeTargeted):
    """Set node properties by dotted path, e.g. ``{"parameters.url": "..."}``."""

    type: Literal["updateNode"] = "updateNode"
    description: str | None = None
    updates: dict[str, Any]

    model_config = {"populate_by_name": True}


class MoveNodeOperation(_NodeTargeted):
    type: Literal["moveNode"] = "moveNode"
    description: str | None = None
    position: list[int | float]

    model_config = {"populate_by_name": True}


class EnableNodeOperation(_NodeTargeted):
    type: Literal["enableNode"] = "enableNode"
    description: str | None = None

    model_config = {"populate_by_name": True}


class DisableNodeOperation(_NodeTargeted):
    type: Literal["disableNode"] = "disableNode"
    description: str | None = None

    model_config = {"populate_by_name": True}


# =============================================================================
# Connection operations
# =============================================================================


class AddConnectionOperation(BaseModel):
    """Connect ``source`` to ``target``.

    The output slot is ``sourceIndex`` when given, otherwise derived from
    ``branch`` ("true"/"false" on IF nodes) or ``case`` (Switch outputs).
    """

    type: Literal["addConnection"] = "addConnection"
    description: str | None = None
    source: str
    target: str
    source_output: str = PydanticField(default=EdgeType.MAIN, alias="sourceOutput")
    target_input: str | None = PydanticField(default=None, alias="targetInput")
    source_index: int | None = PydanticField(default=None, alias="sourceIndex", ge=0)
    target_index: int = PydanticField(default=0, alias="targetIndex", ge=0)
    branch: Literal["true", "false"] | None = None
    case: int | None = PydanticField(default=None, ge=0)

    model_config = {"populate_by_name": True}


class RemoveConnectionOperation(BaseModel):
    type: Literal["removeConnection"] = "removeConnection"
    description: str | None = None
    source: str
    target: str
    source_output: str = PydanticField(default=EdgeType.MAIN, alias="sourceOutput")
    target_input: str | None = PydanticField(default=None, alias="targetInput")
    ignore_errors: bool = PydanticField(default=False, alias="ignoreErrors")

    model_config = {"populate_by_name": True}


class RewireConnectionOperation(BaseModel):
    """Move the connection ``source -> from`` to ``source -> to`` in the same slot."""

    type: Literal["rewireConnection"] = "rewireConnection"
    description: str | None = None
    source: str
    from_node: str = PydanticField(alias="from")
    to_node: str = PydanticField(alias="to")
    source_output: str = PydanticField(default=EdgeType.MAIN, alias="sourceOutput")
    target_input: str | None = PydanticField(default=None, alias="targetInput")
    source_index: int | None = PydanticField(default=None, alias="sourceIndex", ge=0)
    branch: Literal["true", "false"] | None = None
    case: int | None = PydanticField(default=None, ge=0)

    model_config = {"populate_by_name": True}


class ReplaceConnectionsOperation(BaseModel):
    type: Literal["replaceConnections"] = "replaceConnections"
    description: str | None = None
    connections: Connections

    model_config = {"populate_by_name": True}


class CleanStaleConnectionsOperation(BaseModel):
    type: Literal["cleanStaleConnections"] = "cleanStaleConnections"
    description: str | None = None
    dry_run: bool = PydanticField(default=False, alias="dryRun")

    model_config = {"populate_by_name": True}


# =============================================================================
# Workflow metadata operations
# =============================================================================


class UpdateSettingsOperation(BaseModel):
    type: Literal["updateSettings"] = "updateSettings"
    description: str | None = None
    settings: dict[str, Any]


class UpdateNameOperation(BaseModel):
    type: Literal["updateName"] = "updateName"
    description: str | None = None
    name: str


class AddTagOperation(BaseModel):
    type: Literal["addTag"] = "addTag"
    description: str | None = None
    tag: str


class RemoveTagOperation(BaseModel):
    type: Literal["removeTag"] = "removeTag"
    description: str | None = None
    tag: str


class ActivateWorkflowOperation(BaseModel):
    type: Literal["activateWorkflow"] = "activateWorkflow"
    description: str | None = None


class DeactivateWorkflowOperation(BaseModel):
    type: Literal["deactivateWorkflow"] = "deactivateWorkflow"
    description: str | None = None


DiffOperation = Annotated[
    Union[
        AddNodeOperation,
        RemoveNodeOperation,
        UpdateNodeOperation,
        MoveNodeOperation,
        EnableNodeOperation,
        DisableNodeOperation,
        AddConnectionOperation,
        RemoveConnectionOperation,
        RewireConnectionOperation,
        ReplaceConnectionsOperation,
        CleanStaleConnectionsOperation,
        UpdateSettingsOperation,
        UpdateNameOperation,
        AddTagOperation,
        RemoveTagOperation,
        ActivateWorkflowOperation,
        DeactivateWorkflowOperation,
    ],
    PydanticField(discriminator="type"),
]

OPERATION_MODELS: dict[str, type[BaseModel]] = {
    model.model_fields["type"].default: model
    for model in get_args(get_args(DiffOperation)[0])
}


# =============================================================================
# Malformed entries
# =============================================================================


class MalformedOperation(BaseModel):
    """An operation payload that did not parse into any known variant."""

    type: Literal["malformed"] = "malformed"
    raw: Any = None
    reason: str


def _describe_errors(error: ValidationError) -> str:
    parts = []
    for item in error.errors()[:3]:
        loc = ".".join(str(x) for x in item["loc"])
        parts.append(f"{loc}: {item['msg']}" if loc else item["msg"])
    return "; ".join(parts)


def _malformed_reason(raw: Any) -> str:
    """Explain why a raw payload is not a valid operation."""
    if not isinstance(raw, dict):
        return f"Operation must be an object, got {type(raw).__name__}"

    op_type = raw.get("type")
    if not op_type:
        return "Missing required field 'type'"
    model = OPERATION_MODELS.get(op_type)
    if model is None:
        return f"Unknown operation type: {op_type}"

    if op_type == "updateNode" and "updates" not in raw:
        if "changes" in raw:
            return (
                "Invalid parameter 'changes'. The updateNode operation requires "
                "'updates' (not 'changes'). Example: {type: \"updateNode\", "
                'nodeId: "abc", updates: {name: "New Name", "parameters.url": '
                '"https://example.com"}}'
            )
        return (
            "Missing required parameter 'updates'. The updateNode operation "
            "requires an 'updates' object containing properties to modify. "
            'Example: {type: "updateNode", nodeId: "abc", updates: {name: "New Name"}}'
        )

    if op_type in ("addConnection", "removeConnection"):
        wrong = [key for key in ("sourceNodeId", "targetNodeId") if key in raw]
        if wrong:
            return (
                f"Invalid parameter(s): {', '.join(wrong)}. Use 'source' and "
                f"'target' instead. Example: {{type: \"{op_type}\", source: "
                '"Node Name", target: "Target Name"}'
            )

    try:
        model.model_validate(raw)
    except ValidationError as e:
        return f"Invalid {op_type} operation: {_describe_errors(e)}"
    return f"Invalid {op_type} operation"


def _lenient_operation(value: Any, handler: Any) -> Any:
    if isinstance(value, dict) and value.get("type") == "malformed":
        return MalformedOperation(raw=value, reason="Unknown operation type: malformed")
    try:
        return handler(value)
    except ValidationError:
        return MalformedOperation(raw=value, reason=_malformed_reason(value))


OperationEntry = Annotated[
    Union[DiffOperation, MalformedOperation], WrapValidator(_lenient_operation)
]

_OPERATION_ADAPTER: TypeAdapter[Any] = TypeAdapter(OperationEntry)


def parse_operation(raw: Any) -> Any:
    """Parse one raw payload into an operation or a ``MalformedOperation``."""
    return _OPERATION_ADAPTER.validate_python(raw)


# =============================================================================
# Request
# =============================================================================


class WorkflowDiffRequest(BaseModel):
    """An ordered batch of operations to apply to one workflow."""

    id: str = ""
    operations: list[OperationEntry]
    validate_only: bool = PydanticField(default=False, alias="validateOnly")
    continue_on_error: bool = PydanticField(default=False, alias="continueOnError")

    model_config = {"populate_by_name": True}
