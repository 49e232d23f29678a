"""WorkflowDiffEngine - applies a batch of diff operations to a workflow graph.

The engine is a pure transformation: it works on a deep copy of the input
workflow, keeps all per-batch state in a ``_BatchContext`` that dies with the
call, and never performs I/O. Concurrent callers need no locking as long as
each passes its own workflow snapshot.

Operations run strictly in request order. Each one is validated against the
current working graph (which already reflects earlier operations, including
renames) and then applied. A rename rewrites every connection reference to
the old name before the next operation runs. Once every operation has been
processed, the whole graph is checked by the ``StructuralValidator``.
"""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, assert_never

from pydantic import ValidationError

from flowdiff.errors import InternalFault, OperationValidationError
from flowdiff.models.operations import (
    ActivateWorkflowOperation,
    AddConnectionOperation,
    AddNodeOperation,
    AddTagOperation,
    CleanStaleConnectionsOperation,
    DeactivateWorkflowOperation,
    DisableNodeOperation,
    EnableNodeOperation,
    MalformedOperation,
    MoveNodeOperation,
    RemoveConnectionOperation,
    RemoveNodeOperation,
    RemoveTagOperation,
    ReplaceConnectionsOperation,
    RewireConnectionOperation,
    UpdateNameOperation,
    UpdateNodeOperation,
    UpdateSettingsOperation,
    WorkflowDiffRequest,
)
from flowdiff.models.result import (
    BATCH_LEVEL_INDEX,
    ApplyResult,
    DiffError,
    ErrorKind,
    NodeRename,
    StaleConnection,
)
from flowdiff.models.workflow import (
    ConnectionTarget,
    WorkflowGraph,
    WorkflowNode,
)
from flowdiff.services.connection_rewriter import rename_connection_references
from flowdiff.services.name_guard import check_new_name, check_rename
from flowdiff.services.node_classification import (
    NodeClassifier,
    get_default_registry,
    normalize_node_type,
)
from flowdiff.services.structural_validator import StructuralValidator

logger = logging.getLogger(__name__)

IF_NODE_TYPE = "nodes-base.if"
SWITCH_NODE_TYPE = "nodes-base.switch"

_NODE_TIP = "Tip: Use node ID for names with special characters (apostrophes, quotes)."


@dataclass
class _BatchContext:
    """Mutable state for one apply_diff call."""

    workflow: WorkflowGraph
    # RenameMap: node id -> first old name / latest new name within the batch
    renames: dict[str, NodeRename] = field(default_factory=dict)
    warnings: list[DiffError] = field(default_factory=list)
    stale_removed: list[StaleConnection] = field(default_factory=list)
    should_activate: bool = False
    should_deactivate: bool = False
    operation_index: int = BATCH_LEVEL_INDEX

    def snapshot(self) -> _BatchContext:
        return _BatchContext(
            workflow=_clone(self.workflow),
            renames=dict(self.renames),
            warnings=list(self.warnings),
            stale_removed=list(self.stale_removed),
            should_activate=self.should_activate,
            should_deactivate=self.should_deactivate,
            operation_index=self.operation_index,
        )

    def warn(self, message: str) -> None:
        self.warnings.append(DiffError(operation_index=self.operation_index, message=message))


def _clone(workflow: WorkflowGraph) -> WorkflowGraph:
    try:
        return workflow.model_copy(deep=True)
    except Exception as e:
        raise InternalFault(f"Failed to copy workflow: {e}") from e


def _operation_details(operation: Any) -> Any:
    if isinstance(operation, MalformedOperation):
        return operation.raw
    return operation.model_dump(by_alias=True, exclude_none=True, mode="json")


def _available_nodes(workflow: WorkflowGraph) -> str:
    return ", ".join(f'"{node.name}" (id: {node.id[:8]}...)' for node in workflow.nodes)


def _wire_path(path: str) -> str:
    """Translate a leading model field name (``type_version``) to its wire alias."""
    head, dot, rest = path.partition(".")
    model_field = WorkflowNode.model_fields.get(head)
    if model_field is not None and model_field.alias:
        head = model_field.alias
    return head + dot + rest


def _set_path(target: dict[str, Any], path: str, value: Any) -> None:
    """Set ``value`` at a dotted ``path``, creating intermediate objects."""
    keys = path.split(".")
    current = target
    for key in keys[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]
    current[keys[-1]] = value


def _trim_trailing_empty(slots: list[list[ConnectionTarget]]) -> None:
    while slots and not slots[-1]:
        slots.pop()


def _prune_source(workflow: WorkflowGraph, source: str) -> None:
    """Drop empty edge types of ``source`` and the source itself if empty."""
    outputs = workflow.connections.get(source)
    if outputs is None:
        return
    for edge_type in list(outputs):
        _trim_trailing_empty(outputs[edge_type])
        if not outputs[edge_type]:
            del outputs[edge_type]
    if not outputs:
        del workflow.connections[source]


class WorkflowDiffEngine:
    """Applies ordered batches of diff operations to workflow graphs.

    Example:
        engine = WorkflowDiffEngine(NodeTypeRegistry())
        result = engine.apply_diff(workflow, request)
        if not result.success:
            for error in result.errors or []:
                print(f"Operation {error.operation_index}: {error.message}")
    """

    def __init__(self, classifier: NodeClassifier | None = None) -> None:
        self._classifier = classifier or get_default_registry()
        self._structure = StructuralValidator(self._classifier)

    @property
    def classifier(self) -> NodeClassifier:
        return self._classifier

    def apply_diff(self, workflow: WorkflowGraph, request: WorkflowDiffRequest) -> ApplyResult:
        """Apply ``request`` to ``workflow`` and return the outcome.

        Never raises for invalid operations or an invalid final structure;
        those are reported in ``ApplyResult.errors``. The input workflow is
        never modified.
        """
        try:
            return self._run(workflow, request)
        except Exception as e:
            logger.exception(f"Failed to apply diff to workflow {request.id or workflow.id}: {e}")
            return ApplyResult(
                success=False,
                message="Diff engine error; no changes were applied",
                errors=[
                    DiffError(
                        operation_index=BATCH_LEVEL_INDEX,
                        message=f"Diff engine error: {e}",
                        kind=ErrorKind.INTERNAL,
                    )
                ],
            )

    def _run(self, workflow: WorkflowGraph, request: WorkflowDiffRequest) -> ApplyResult:
        ctx = _BatchContext(workflow=_clone(workflow))
        errors: list[DiffError] = []
        applied: list[int] = []
        failed: list[int] = []

        for index, operation in enumerate(request.operations):
            ctx.operation_index = index
            try:
                self._validate(ctx.workflow, operation)
            except OperationValidationError as e:
                error = DiffError(
                    operation_index=index,
                    message=e.message,
                    details=_operation_details(operation),
                )
                if not request.continue_on_error:
                    logger.info(f"Diff rejected at operation {index} ({operation.type}): {e.message}")
                    return ApplyResult(
                        success=False,
                        message=f"Operation {index} ({operation.type}) failed validation",
                        errors=[error],
                        failed=[index],
                    )
                errors.append(error)
                failed.append(index)
                continue

            checkpoint = ctx.snapshot() if request.continue_on_error else None
            try:
                self._apply(ctx, operation)
            except Exception as e:
                logger.exception(f"Failed to apply operation {index} ({operation.type}): {e}")
                error = DiffError(
                    operation_index=index,
                    message=f"Failed to apply operation: {e}",
                    kind=ErrorKind.INTERNAL,
                    details=_operation_details(operation),
                )
                if checkpoint is None:
                    return ApplyResult(
                        success=False,
                        message=f"Operation {index} ({operation.type}) failed to apply",
                        errors=[error],
                        failed=[index],
                    )
                ctx = checkpoint
                errors.append(error)
                failed.append(index)
                continue
            applied.append(index)

        if request.continue_on_error and request.operations and not applied:
            return ApplyResult(
                success=False,
                message=f"No operations were applied, {len(failed)} failed (continueOnError mode)",
                errors=errors or None,
                applied=[],
                failed=failed,
            )

        report = self._structure.validate(ctx.workflow)
        warnings = ctx.warnings + [
            DiffError(operation_index=BATCH_LEVEL_INDEX, message=warning)
            for warning in report.warnings
        ]
        if not report.valid:
            logger.info(f"Diff rejected by structural validation: {report.summary()}")
            structural = DiffError(
                operation_index=BATCH_LEVEL_INDEX,
                message=f"Workflow structure is invalid after applying operations: {report.summary()}",
                kind=ErrorKind.STRUCTURAL,
                details=[issue.model_dump(mode="json") for issue in report.issues],
            )
            return ApplyResult(
                success=False,
                message="The resulting workflow failed structural validation; no changes were applied",
                errors=errors + [structural],
                warnings=warnings or None,
                failed=failed or None,
            )

        node_ids = {node.id for node in ctx.workflow.nodes}
        renames = [
            rename
            for rename in ctx.renames.values()
            if rename.old_name != rename.new_name and rename.node_id in node_ids
        ]

        if request.validate_only:
            message = "Validation successful. Operations are valid but not applied."
        elif request.continue_on_error:
            message = f"Applied {len(applied)} operations, {len(failed)} failed (continueOnError mode)"
        else:
            message = f"Successfully applied {len(applied)} operations"
        logger.info(
            f"Diff for workflow {request.id or workflow.id}: {len(applied)} applied, "
            f"{len(failed)} failed, {len(renames)} renamed"
        )

        return ApplyResult(
            success=True,
            workflow=None if request.validate_only else ctx.workflow,
            errors=errors or None,
            warnings=warnings or None,
            message=message,
            operations_applied=len(applied),
            applied=applied,
            failed=failed or None,
            renames=renames or None,
            stale_connections_removed=ctx.stale_removed or None,
            should_activate=ctx.should_activate or None,
            should_deactivate=ctx.should_deactivate or None,
        )

    # =========================================================================
    # Dispatch
    # =========================================================================

    def _validate(self, workflow: WorkflowGraph, operation: Any) -> None:
        """Raise ``OperationValidationError`` if ``operation`` cannot apply."""
        if isinstance(operation, MalformedOperation):
            raise OperationValidationError(operation.reason)
        elif isinstance(operation, AddNodeOperation):
            self._validate_add_node(workflow, operation)
        elif isinstance(
            operation,
            RemoveNodeOperation | MoveNodeOperation | EnableNodeOperation | DisableNodeOperation,
        ):
            self._require_node(workflow, operation.node_id, operation.node_name, operation.type)
        elif isinstance(operation, UpdateNodeOperation):
            self._validate_update_node(workflow, operation)
        elif isinstance(operation, AddConnectionOperation):
            self._validate_add_connection(workflow, operation)
        elif isinstance(operation, RemoveConnectionOperation):
            self._validate_remove_connection(workflow, operation)
        elif isinstance(operation, RewireConnectionOperation):
            self._validate_rewire_connection(workflow, operation)
        elif isinstance(operation, ReplaceConnectionsOperation):
            self._validate_replace_connections(workflow, operation)
        elif isinstance(operation, UpdateNameOperation):
            if not operation.name.strip():
                raise OperationValidationError("Workflow name must not be empty")
        elif isinstance(operation, ActivateWorkflowOperation):
            self._validate_activate(workflow)
        elif isinstance(
            operation,
            CleanStaleConnectionsOperation
            | UpdateSettingsOperation
            | AddTagOperation
            | RemoveTagOperation
            | DeactivateWorkflowOperation,
        ):
            pass
        else:
            assert_never(operation)

    def _apply(self, ctx: _BatchContext, operation: Any) -> None:
        workflow = ctx.workflow
        if isinstance(operation, MalformedOperation):
            raise InternalFault("Malformed operations cannot be applied")
        elif isinstance(operation, AddNodeOperation):
            self._apply_add_node(workflow, operation)
        elif isinstance(operation, RemoveNodeOperation):
            self._apply_remove_node(workflow, operation)
        elif isinstance(operation, UpdateNodeOperation):
            self._apply_update_node(ctx, operation)
        elif isinstance(operation, MoveNodeOperation):
            node = self._require_node(workflow, operation.node_id, operation.node_name, operation.type)
            node.position = list(operation.position)
        elif isinstance(operation, EnableNodeOperation):
            node = self._require_node(workflow, operation.node_id, operation.node_name, operation.type)
            node.disabled = False
        elif isinstance(operation, DisableNodeOperation):
            node = self._require_node(workflow, operation.node_id, operation.node_name, operation.type)
            node.disabled = True
        elif isinstance(operation, AddConnectionOperation):
            self._apply_add_connection(ctx, operation)
        elif isinstance(operation, RemoveConnectionOperation):
            self._apply_remove_connection(workflow, operation)
        elif isinstance(operation, RewireConnectionOperation):
            self._apply_rewire_connection(ctx, operation)
        elif isinstance(operation, ReplaceConnectionsOperation):
            workflow.connections = copy.deepcopy(operation.connections)
        elif isinstance(operation, CleanStaleConnectionsOperation):
            self._apply_clean_stale_connections(ctx, operation)
        elif isinstance(operation, UpdateSettingsOperation):
            workflow.settings.update(operation.settings)
        elif isinstance(operation, UpdateNameOperation):
            workflow.name = operation.name
        elif isinstance(operation, AddTagOperation):
            if operation.tag not in workflow.tags:
                workflow.tags.append(operation.tag)
        elif isinstance(operation, RemoveTagOperation):
            if operation.tag in workflow.tags:
                workflow.tags.remove(operation.tag)
        elif isinstance(operation, ActivateWorkflowOperation):
            ctx.should_activate = True
        elif isinstance(operation, DeactivateWorkflowOperation):
            ctx.should_deactivate = True
        else:
            assert_never(operation)

    # =========================================================================
    # Node lookups
    # =========================================================================

    def _require_node(
        self,
        workflow: WorkflowGraph,
        node_id: str | None,
        node_name: str | None,
        operation_type: str,
    ) -> WorkflowNode:
        node = workflow.find_node(node_id, node_name)
        if node is None:
            raise OperationValidationError(
                f'Node not found for {operation_type}: "{node_id or node_name or ""}". '
                f"Available nodes: {_available_nodes(workflow)}. {_NODE_TIP}"
            )
        return node

    def _require_endpoint(self, workflow: WorkflowGraph, reference: str, role: str) -> WorkflowNode:
        node = workflow.find_node(reference, reference)
        if node is None:
            raise OperationValidationError(
                f'{role} node not found: "{reference}". '
                f"Available nodes: {_available_nodes(workflow)}. {_NODE_TIP}"
            )
        return node

    # =========================================================================
    # Node operations
    # =========================================================================

    def _validate_add_node(self, workflow: WorkflowGraph, operation: AddNodeOperation) -> None:
        new_node = operation.node
        error = check_new_name(workflow, new_node.name)
        if error:
            raise OperationValidationError(error)
        if "." not in new_node.type:
            raise OperationValidationError(
                f'Invalid node type "{new_node.type}". Must include package prefix '
                '(e.g., "n8n-nodes-base.webhook")'
            )
        if new_node.type.startswith("nodes-base."):
            raise OperationValidationError(
                f'Invalid node type "{new_node.type}". Use '
                f'"n8n-nodes-base.{new_node.type[len("nodes-base."):]}" instead'
            )
        if new_node.id:
            existing = workflow.find_node_by_id(new_node.id)
            if existing is not None:
                raise OperationValidationError(
                    f'Node id "{new_node.id}" is already used by node "{existing.name}"'
                )

    def _apply_add_node(self, workflow: WorkflowGraph, operation: AddNodeOperation) -> None:
        payload = operation.node.model_dump(by_alias=True, exclude_none=True)
        payload["id"] = operation.node.id or str(uuid.uuid4())
        payload.setdefault("typeVersion", 1)
        payload.setdefault("parameters", {})
        workflow.nodes.append(WorkflowNode.model_validate(payload))

    def _apply_remove_node(self, workflow: WorkflowGraph, operation: RemoveNodeOperation) -> None:
        node = self._require_node(workflow, operation.node_id, operation.node_name, operation.type)
        if workflow.outgoing_edges(node.name) or workflow.incoming_edges(node.name):
            logger.warning(f'Removing node "{node.name}" will break existing connections')

        workflow.nodes = [n for n in workflow.nodes if n.id != node.id]
        workflow.connections.pop(node.name, None)
        for source in list(workflow.connections):
            touched = False
            for slots in workflow.connections[source].values():
                for output_index, slot in enumerate(slots):
                    kept = [target for target in slot if target.node != node.name]
                    if len(kept) != len(slot):
                        slots[output_index] = kept
                        touched = True
            if touched:
                _prune_source(workflow, source)

    def _updated_node(self, node: WorkflowNode, updates: dict[str, Any]) -> WorkflowNode:
        payload = copy.deepcopy(node.to_payload())
        for path, value in updates.items():
            _set_path(payload, _wire_path(path), value)
        return WorkflowNode.model_validate(payload)

    def _validate_update_node(self, workflow: WorkflowGraph, operation: UpdateNodeOperation) -> None:
        node = self._require_node(workflow, operation.node_id, operation.node_name, operation.type)
        updates = operation.updates

        if "id" in updates and updates["id"] != node.id:
            raise OperationValidationError(
                f'Cannot change the id of node "{node.name}"; node ids are immutable'
            )
        if "name" in updates:
            new_name = updates["name"]
            if not isinstance(new_name, str):
                raise OperationValidationError(
                    f'Invalid name for node "{node.name}": expected a string'
                )
            error = check_rename(workflow, node, new_name)
            if error:
                raise OperationValidationError(error)

        try:
            self._updated_node(node, updates)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(x) for x in item['loc'])}: {item['msg']}" for item in e.errors()[:3]
            )
            raise OperationValidationError(f'Invalid updates for node "{node.name}": {problems}')

    def _apply_update_node(self, ctx: _BatchContext, operation: UpdateNodeOperation) -> None:
        workflow = ctx.workflow
        node = self._require_node(workflow, operation.node_id, operation.node_name, operation.type)
        updated = self._updated_node(node, operation.updates)
        position = next(i for i, n in enumerate(workflow.nodes) if n.id == node.id)
        workflow.nodes[position] = updated

        old_name, new_name = node.name, updated.name
        if old_name == new_name:
            return

        if workflow.incoming_edges(new_name) or new_name in workflow.connections:
            ctx.warn(
                f'Renaming "{old_name}" to "{new_name}" attaches connections that already '
                f'referenced the missing node "{new_name}"'
            )
        workflow.connections, changed = rename_connection_references(
            workflow.connections, old_name, new_name
        )
        previous = ctx.renames.get(node.id)
        ctx.renames[node.id] = NodeRename(
            node_id=node.id,
            old_name=previous.old_name if previous else old_name,
            new_name=new_name,
        )
        logger.debug(
            f'Tracking rename: "{old_name}" -> "{new_name}" '
            f"({changed} connection references updated)"
        )

    # =========================================================================
    # Connection operations
    # =========================================================================

    def _resolve_slot(
        self,
        source: WorkflowNode,
        operation: AddConnectionOperation | RewireConnectionOperation,
        ctx: _BatchContext | None = None,
    ) -> int:
        """Resolve the output slot from sourceIndex, branch or case.

        Pass ``ctx`` to collect warnings about raw indexes on IF/Switch nodes.
        """
        if operation.source_index is not None:
            source_type = normalize_node_type(source.type)
            if ctx is not None and operation.branch is None and operation.case is None:
                if source_type == IF_NODE_TYPE:
                    ctx.warn(
                        f'Connection from If node "{source.name}" uses '
                        f"sourceIndex={operation.source_index}. Consider using "
                        'branch="true" or branch="false" for better clarity. '
                        "If node outputs: main[0]=TRUE branch, main[1]=FALSE branch."
                    )
                elif source_type == SWITCH_NODE_TYPE:
                    ctx.warn(
                        f'Connection from Switch node "{source.name}" uses '
                        f"sourceIndex={operation.source_index}. Consider using case=N "
                        "for better clarity (case=0 for first output, case=1 for second, etc.)."
                    )
            return operation.source_index
        if operation.case is not None:
            return operation.case
        if operation.branch is not None:
            return 0 if operation.branch == "true" else 1
        return 0

    def _validate_add_connection(
        self, workflow: WorkflowGraph, operation: AddConnectionOperation
    ) -> None:
        source = self._require_endpoint(workflow, operation.source, "Source")
        target = self._require_endpoint(workflow, operation.target, "Target")
        output_index = self._resolve_slot(source, operation)

        slots = workflow.connections.get(source.name, {}).get(operation.source_output, [])
        if output_index < len(slots) and any(t.node == target.name for t in slots[output_index]):
            raise OperationValidationError(
                f'Connection already exists from "{source.name}" to "{target.name}" '
                f'on output "{operation.source_output}" at index {output_index}'
            )

    def _apply_add_connection(self, ctx: _BatchContext, operation: AddConnectionOperation) -> None:
        workflow = ctx.workflow
        source = self._require_endpoint(workflow, operation.source, "Source")
        target = self._require_endpoint(workflow, operation.target, "Target")
        output_index = self._resolve_slot(source, operation, ctx)

        slots = workflow.connections.setdefault(source.name, {}).setdefault(
            operation.source_output, []
        )
        while len(slots) <= output_index:
            slots.append([])
        slots[output_index].append(
            ConnectionTarget(
                node=target.name,
                type=operation.target_input or operation.source_output,
                index=operation.target_index,
            )
        )

    def _validate_remove_connection(
        self, workflow: WorkflowGraph, operation: RemoveConnectionOperation
    ) -> None:
        if operation.ignore_errors:
            return
        source = self._require_endpoint(workflow, operation.source, "Source")
        target = self._require_endpoint(workflow, operation.target, "Target")

        slots = workflow.connections.get(source.name, {}).get(operation.source_output)
        if not slots:
            raise OperationValidationError(
                f'No connections found from "{source.name}" on output "{operation.source_output}"'
            )
        if not any(t.node == target.name for slot in slots for t in slot):
            raise OperationValidationError(
                f'No connection exists from "{source.name}" to "{target.name}"'
            )

    def _apply_remove_connection(
        self, workflow: WorkflowGraph, operation: RemoveConnectionOperation
    ) -> None:
        source = workflow.find_node(operation.source, operation.source)
        target = workflow.find_node(operation.target, operation.target)
        if source is None or target is None:
            return

        slots = workflow.connections.get(source.name, {}).get(operation.source_output)
        if not slots:
            return
        for output_index, slot in enumerate(slots):
            slots[output_index] = [
                t
                for t in slot
                if not (
                    t.node == target.name
                    and (operation.target_input is None or t.type == operation.target_input)
                )
            ]
        _prune_source(workflow, source.name)

    def _validate_rewire_connection(
        self, workflow: WorkflowGraph, operation: RewireConnectionOperation
    ) -> None:
        source = self._require_endpoint(workflow, operation.source, "Source")
        from_node = self._require_endpoint(workflow, operation.from_node, '"From"')
        to_node = self._require_endpoint(workflow, operation.to_node, '"To"')
        if from_node.id == to_node.id:
            raise OperationValidationError(
                f'Cannot rewire connection from "{source.name}": "from" and "to" '
                f'are the same node ("{from_node.name}")'
            )

        output_index = self._resolve_slot(source, operation)
        output = operation.source_output
        slots = workflow.connections.get(source.name, {}).get(output)
        if not slots:
            raise OperationValidationError(
                f'No connections found from "{source.name}" on output "{output}"'
            )
        if output_index >= len(slots) or not slots[output_index]:
            raise OperationValidationError(
                f'No connections found from "{source.name}" on output "{output}" '
                f"at index {output_index}"
            )
        if not any(t.node == from_node.name for t in slots[output_index]):
            raise OperationValidationError(
                f'No connection exists from "{source.name}" to "{from_node.name}" '
                f'on output "{output}" at index {output_index}'
            )

    def _apply_rewire_connection(
        self, ctx: _BatchContext, operation: RewireConnectionOperation
    ) -> None:
        workflow = ctx.workflow
        source = self._require_endpoint(workflow, operation.source, "Source")
        from_node = self._require_endpoint(workflow, operation.from_node, '"From"')
        to_node = self._require_endpoint(workflow, operation.to_node, '"To"')
        output_index = self._resolve_slot(source, operation, ctx)

        slot = workflow.connections[source.name][operation.source_output][output_index]
        already_connected = any(t.node == to_node.name for t in slot)
        rewired: list[ConnectionTarget] = []
        for t in slot:
            if t.node != from_node.name:
                rewired.append(t)
            elif not already_connected:
                rewired.append(
                    ConnectionTarget(
                        node=to_node.name,
                        type=operation.target_input or t.type,
                        index=t.index,
                    )
                )
                already_connected = True
        workflow.connections[source.name][operation.source_output][output_index] = rewired

    def _validate_replace_connections(
        self, workflow: WorkflowGraph, operation: ReplaceConnectionsOperation
    ) -> None:
        names = workflow.node_names()
        for source, outputs in operation.connections.items():
            if source not in names:
                raise OperationValidationError(f"Source node not found in connections: {source}")
            for slots in outputs.values():
                for slot in slots:
                    for target in slot:
                        if target.node not in names:
                            raise OperationValidationError(
                                f"Target node not found in connections: {target.node}"
                            )

    def _apply_clean_stale_connections(
        self, ctx: _BatchContext, operation: CleanStaleConnectionsOperation
    ) -> None:
        workflow = ctx.workflow
        names = workflow.node_names()
        stale = [
            StaleConnection(from_node=edge.source, to_node=edge.target.node)
            for edge in workflow.iter_edges()
            if edge.source not in names or edge.target.node not in names
        ]

        if operation.dry_run:
            if stale:
                listed = ", ".join(f"{s.from_node} -> {s.to_node}" for s in stale)
                ctx.warn(f"[DryRun] Would remove {len(stale)} stale connections: {listed}")
            logger.info(f"[DryRun] Would remove {len(stale)} stale connections")
            return

        for source in list(workflow.connections):
            if source not in names:
                del workflow.connections[source]
                continue
            for slots in workflow.connections[source].values():
                for output_index, slot in enumerate(slots):
                    slots[output_index] = [t for t in slot if t.node in names]
            _prune_source(workflow, source)

        for entry in stale:
            logger.debug(f"Removed stale connection {entry.from_node} -> {entry.to_node}")
        ctx.stale_removed.extend(stale)
        logger.info(f"Removed {len(stale)} stale connections")

    # =========================================================================
    # Workflow operations
    # =========================================================================

    def _validate_activate(self, workflow: WorkflowGraph) -> None:
        if not any(
            not node.disabled and self._classifier.is_trigger_class(node)
            for node in workflow.nodes
        ):
            raise OperationValidationError(
                "Cannot activate workflow: No activatable trigger nodes found. Workflows "
                "must have at least one enabled trigger node (webhook, schedule, "
                "executeWorkflowTrigger, etc.)."
            )


def apply_diff(
    workflow: WorkflowGraph,
    request: WorkflowDiffRequest,
    classifier: NodeClassifier | None = None,
) -> ApplyResult:
    """Apply ``request`` to ``workflow`` with a fresh engine."""
    return WorkflowDiffEngine(classifier).apply_diff(workflow, request)


def applied_operation_types(request: WorkflowDiffRequest, result: ApplyResult) -> list[str]:
    """Distinct operation types that were applied, for audit collectors."""
    if not result.success or not result.applied:
        return []
    return sorted({request.operations[i].type for i in result.applied})
