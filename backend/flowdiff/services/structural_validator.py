"""Post-apply structural validator.

Checks whole-graph invariants on a candidate workflow, in order:

1. More than one executable node but zero connections -> stop there.
2. Node names are unique.
3. Every connection source and target resolves to an existing node.
4. Every executable node takes part in at least one connection, unless it
   is trigger-class (a trigger may stand alone as a pure source).

Then two checks that only ever add issues:

5. A non-empty graph holds at least one executable node.
6. A Switch node in rules mode has one wired `main` output per rule.

Example:
    validator = StructuralValidator(registry)
    report = validator.validate(workflow)
    if not report.valid:
        for issue in report.issues:
            print(f"{issue.code.value}: {issue.message}")
"""

import logging
from collections import Counter

from flowdiff.errors import StructuralValidationError
from flowdiff.models.result import StructuralIssue, StructuralIssueCode, StructuralReport
from flowdiff.models.workflow import WorkflowGraph, normalize_node_name
from flowdiff.services.node_classification import NodeClassifier, normalize_node_type

logger = logging.getLogger(__name__)

SWITCH_NODE_TYPE = "nodes-base.switch"


class StructuralValidator:
    """Validates the structure of a whole workflow graph."""

    def __init__(self, classifier: NodeClassifier) -> None:
        self._classifier = classifier

    def validate(self, workflow: WorkflowGraph) -> StructuralReport:
        """Run every structural check and collect the issues found."""
        executable = [
            node for node in workflow.nodes if not self._classifier.is_annotation_node(node)
        ]

        if len(executable) > 1 and workflow.connection_count() == 0:
            names = [node.name for node in executable]
            return StructuralReport(
                valid=False,
                issues=[
                    StructuralIssue(
                        code=StructuralIssueCode.NO_CONNECTIONS,
                        message=(
                            f"Workflow has no connections: {len(executable)} executable "
                            "nodes are present but none are connected. Add a connection "
                            f"using: {{type: 'addConnection', source: '{names[0]}', "
                            f"target: '{names[1]}'}}"
                        ),
                        nodes=names,
                    )
                ],
            )

        issues: list[StructuralIssue] = []
        issues.extend(self._check_unique_names(workflow))
        issues.extend(self._check_references(workflow))
        if workflow.connection_count() > 0 or len(executable) > 1:
            issues.extend(self._check_connectivity(workflow))
        if workflow.nodes and not executable:
            issues.append(
                StructuralIssue(
                    code=StructuralIssueCode.NO_EXECUTABLE_NODES,
                    message=(
                        "Workflow must have at least one executable node. "
                        "Sticky notes alone cannot form a valid workflow."
                    ),
                    nodes=[node.name for node in workflow.nodes],
                )
            )
        issues.extend(self._check_switch_outputs(workflow))

        warnings = self._collect_warnings(workflow)
        if issues:
            logger.debug(f"Structural validation found {len(issues)} issue(s)")
        return StructuralReport(valid=not issues, issues=issues, warnings=warnings)

    def require_valid(self, workflow: WorkflowGraph) -> StructuralReport:
        """Like ``validate`` but raises ``StructuralValidationError`` on failure."""
        report = self.validate(workflow)
        if not report.valid:
            raise StructuralValidationError(report)
        return report

    def _check_unique_names(self, workflow: WorkflowGraph) -> list[StructuralIssue]:
        counts = Counter(normalize_node_name(node.name) for node in workflow.nodes)
        duplicates = [name for name, count in counts.items() if count > 1]
        return [
            StructuralIssue(
                code=StructuralIssueCode.DUPLICATE_NAME,
                message=f'Duplicate node name "{name}" is used by {counts[name]} nodes',
                nodes=[name],
            )
            for name in duplicates
        ]

    def _check_references(self, workflow: WorkflowGraph) -> list[StructuralIssue]:
        names = workflow.node_names()
        issues = []
        for source in workflow.connections:
            if source not in names:
                issues.append(
                    StructuralIssue(
                        code=StructuralIssueCode.UNKNOWN_SOURCE,
                        message=f'Connection source "{source}" does not match any node',
                        nodes=[source],
                    )
                )
        unknown_targets: dict[str, set[str]] = {}
        for edge in workflow.iter_edges():
            if edge.target.node not in names:
                unknown_targets.setdefault(edge.target.node, set()).add(edge.source)
        for target, sources in unknown_targets.items():
            source_list = ", ".join(f'"{source}"' for source in sorted(sources))
            issues.append(
                StructuralIssue(
                    code=StructuralIssueCode.UNKNOWN_TARGET,
                    message=f'Connection from {source_list} targets unknown node "{target}"',
                    nodes=[target],
                )
            )
        return issues

    def _check_connectivity(self, workflow: WorkflowGraph) -> list[StructuralIssue]:
        connected: set[str] = set()
        for edge in workflow.iter_edges():
            connected.add(edge.source)
            connected.add(edge.target.node)

        disconnected = [
            node
            for node in workflow.nodes
            if not self._classifier.is_annotation_node(node)
            and not self._classifier.is_trigger_class(node)
            and node.name not in connected
        ]
        if not disconnected:
            return []

        listed = ", ".join(f'"{node.name}" ({node.type})' for node in disconnected)
        suggested_source = next(
            (node.name for node in workflow.nodes if node.name in connected),
            workflow.nodes[0].name,
        )
        return [
            StructuralIssue(
                code=StructuralIssueCode.DISCONNECTED_NODE,
                message=(
                    f"Disconnected nodes detected: {listed}. Each node must have at "
                    "least one connection. Add a connection: {type: 'addConnection', "
                    f"source: '{suggested_source}', target: '{disconnected[0].name}'}}"
                ),
                nodes=[node.name for node in disconnected],
            )
        ]

    def _check_switch_outputs(self, workflow: WorkflowGraph) -> list[StructuralIssue]:
        issues = []
        for node in workflow.nodes:
            if normalize_node_type(node.type) != SWITCH_NODE_TYPE:
                continue
            if node.parameters.get("mode", "rules") != "rules":
                continue
            rules = _switch_rules(node.parameters)
            outputs = workflow.connections.get(node.name, {})
            if not rules or "main" not in outputs:
                continue

            branches = outputs["main"]
            if len(branches) != len(rules):
                labels = ", ".join(_rule_label(rules, i) for i in range(len(rules)))
                indexes = ", ".join(str(i) for i in range(len(rules)))
                issues.append(
                    StructuralIssue(
                        code=StructuralIssueCode.SWITCH_BRANCH_MISMATCH,
                        message=(
                            f'Switch node "{node.name}" has {len(rules)} rules [{labels}] '
                            f"but {len(branches)} output branches in connections. Each rule "
                            f"needs its own output branch: connect with case {indexes}"
                        ),
                        nodes=[node.name],
                    )
                )

            empty = [i for i, slot in enumerate(branches) if not slot and i < len(rules)]
            if empty:
                labels = ", ".join(_rule_label(rules, i) for i in empty)
                issues.append(
                    StructuralIssue(
                        code=StructuralIssueCode.SWITCH_UNCONNECTED_OUTPUT,
                        message=(
                            f'Switch node "{node.name}" has unconnected outputs: {labels}. '
                            f"Add connections with case {' or '.join(str(i) for i in empty)}"
                        ),
                        nodes=[node.name],
                    )
                )
        return issues

    def _collect_warnings(self, workflow: WorkflowGraph) -> list[str]:
        has_incoming = {edge.target.node for edge in workflow.iter_edges()}
        warnings = []
        for node in workflow.nodes:
            if node.disabled or not self._classifier.requires_incoming_connection(node):
                continue
            if workflow.outgoing_edges(node.name) and node.name not in has_incoming:
                warnings.append(
                    f'Node "{node.name}" has outgoing connections but no incoming '
                    "connection, so it will never run"
                )
        return warnings


def _switch_rules(parameters: dict) -> list:
    rules = parameters.get("rules")
    if not isinstance(rules, dict):
        return []
    values = rules.get("rules")
    return values if isinstance(values, list) else []


def _rule_label(rules: list, index: int) -> str:
    rule = rules[index]
    if isinstance(rule, dict) and rule.get("outputKey"):
        return f'"{rule["outputKey"]}" (index {index})'
    return f"Rule {index}"
