"""Name collision guard for node renames and additions.

Node names are connection keys, so two live nodes may never share one.
Comparison uses the normalized form of each name.
"""

from flowdiff.models.workflow import WorkflowGraph, WorkflowNode, normalize_node_name


def _short_id(node_id: str) -> str:
    return f"{node_id[:8]}..."


def find_name_collision(
    workflow: WorkflowGraph, candidate: str, node_id: str | None = None
) -> WorkflowNode | None:
    """Return the node (other than ``node_id``) already holding ``candidate``."""
    normalized = normalize_node_name(candidate)
    for node in workflow.nodes:
        if node.id != node_id and normalize_node_name(node.name) == normalized:
            return node
    return None


def check_rename(workflow: WorkflowGraph, node: WorkflowNode, new_name: str) -> str | None:
    """Validate renaming ``node`` to ``new_name``.

    Returns an error message, or None when the rename is allowed. Renaming a
    node to its own current name is always allowed.
    """
    if not new_name.strip():
        return f'Cannot rename node "{node.name}": the new name must not be empty.'
    if new_name == node.name:
        return None

    collision = find_name_collision(workflow, new_name, node.id)
    if collision is None:
        return None
    return (
        f'Cannot rename node "{node.name}" to "{new_name}": A node with that name '
        f"already exists (id: {_short_id(collision.id)}). "
        "Please choose a different name."
    )


def check_new_name(workflow: WorkflowGraph, name: str) -> str | None:
    """Validate the name of a node about to be added."""
    if not name.strip():
        return "Node name must not be empty."
    collision = find_name_collision(workflow, name)
    if collision is None:
        return None
    return (
        f'Node with name "{name}" already exists '
        f'(normalized name matches existing node "{collision.name}")'
    )
