"""Connection reference rewriter.

After a node is renamed, every place the old name appears in the connection
map must be rewritten before the next operation runs:

1. the top-level source key (moved, not copied), and
2. every ``ConnectionTarget.node`` at any edge type, slot and source.

Both passes run unconditionally, so a self-connection (old name as key and
as target) ends consistent. Edge types are not filtered: main, error and the
AI channels are treated the same. Slot order is preserved.
"""

import logging

from flowdiff.models.workflow import ConnectionTarget, Connections

logger = logging.getLogger(__name__)


def _merge_outputs(
    existing: dict[str, list[list[ConnectionTarget]]],
    incoming: dict[str, list[list[ConnectionTarget]]],
) -> dict[str, list[list[ConnectionTarget]]]:
    """Merge two output maps slot by slot, skipping duplicate targets."""
    merged = {edge_type: [list(slot) for slot in slots] for edge_type, slots in existing.items()}
    for edge_type, slots in incoming.items():
        target_slots = merged.setdefault(edge_type, [])
        for output_index, slot in enumerate(slots):
            while len(target_slots) <= output_index:
                target_slots.append([])
            for target in slot:
                if target not in target_slots[output_index]:
                    target_slots[output_index].append(target)
    return merged


def rename_connection_references(
    connections: Connections, old_name: str, new_name: str
) -> tuple[Connections, int]:
    """Return a copy of ``connections`` with ``old_name`` replaced by ``new_name``.

    Returns:
        Tuple of (rewritten connections, number of references changed).
    """
    if old_name == new_name:
        return connections, 0

    rewritten: Connections = {}
    changed = 0

    # Pass 1: source keys. Rebuilding keeps key order stable.
    for source, outputs in connections.items():
        key = new_name if source == old_name else source
        if source == old_name:
            changed += 1
        if key in rewritten:
            # Stale entry already keyed by the new name
            rewritten[key] = _merge_outputs(rewritten[key], outputs)
        else:
            rewritten[key] = outputs

    # Pass 2: targets, rebuilt so the input map is never mutated.
    result: Connections = {}
    for source, outputs in rewritten.items():
        new_outputs = {}
        for edge_type, slots in outputs.items():
            new_slots = []
            for output_index, slot in enumerate(slots):
                new_slot = []
                for target in slot:
                    if target.node == old_name:
                        target = target.model_copy(update={"node": new_name})
                        changed += 1
                        logger.debug(
                            f"Updated connection {source}[{edge_type}][{output_index}]: "
                            f'"{old_name}" -> "{new_name}"'
                        )
                    new_slot.append(target)
                new_slots.append(new_slot)
            new_outputs[edge_type] = new_slots
        result[source] = new_outputs

    return result, changed
