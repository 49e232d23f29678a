"""Node classification - trigger / annotation capability lookup.

The structural validator and the activateWorkflow check need to know whether
a node starts executions (trigger-class) or is a canvas annotation that never
executes (sticky notes). Each node type carries one explicit capability tag,
resolved from a registry rather than guessed from the type string.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Protocol

from flowdiff.config import get_settings
from flowdiff.models.workflow import WorkflowNode

logger = logging.getLogger(__name__)


class NodeCapability(str, Enum):
    """Closed set of capability tags a node type can carry."""

    TRIGGER = "trigger"  # Starts executions; needs no incoming connection
    ANNOTATION = "annotation"  # Never executes; excluded from connectivity checks
    ACTION = "action"  # Regular executable node


class NodeClassifier(Protocol):
    """Predicates the engine consumes without re-deriving them."""

    def is_annotation_node(self, node: WorkflowNode) -> bool: ...

    def is_trigger_class(self, node: WorkflowNode) -> bool: ...

    def requires_incoming_connection(self, node: WorkflowNode) -> bool: ...


def normalize_node_type(node_type: str) -> str:
    """Convert full package prefixes to their short form.

    ``n8n-nodes-base.webhook`` -> ``nodes-base.webhook``
    ``@n8n/n8n-nodes-langchain.chatTrigger`` -> ``nodes-langchain.chatTrigger``
    """
    if node_type.startswith("n8n-nodes-base."):
        return "nodes-base." + node_type[len("n8n-nodes-base.") :]
    if node_type.startswith("@n8n/n8n-nodes-langchain."):
        return "nodes-langchain." + node_type[len("@n8n/n8n-nodes-langchain.") :]
    return node_type


DEFAULT_CAPABILITIES: dict[str, NodeCapability] = {
    "nodes-base.stickyNote": NodeCapability.ANNOTATION,
    "nodes-base.start": NodeCapability.TRIGGER,
    "nodes-base.manualTrigger": NodeCapability.TRIGGER,
    "nodes-base.scheduleTrigger": NodeCapability.TRIGGER,
    "nodes-base.cron": NodeCapability.TRIGGER,
    "nodes-base.interval": NodeCapability.TRIGGER,
    "nodes-base.webhook": NodeCapability.TRIGGER,
    "nodes-base.formTrigger": NodeCapability.TRIGGER,
    "nodes-base.executeWorkflowTrigger": NodeCapability.TRIGGER,
    "nodes-base.errorTrigger": NodeCapability.TRIGGER,
    "nodes-base.n8nTrigger": NodeCapability.TRIGGER,
    "nodes-base.emailReadImap": NodeCapability.TRIGGER,
    "nodes-base.localFileTrigger": NodeCapability.TRIGGER,
    "nodes-base.rssFeedReadTrigger": NodeCapability.TRIGGER,
    "nodes-base.gmailTrigger": NodeCapability.TRIGGER,
    "nodes-base.githubTrigger": NodeCapability.TRIGGER,
    "nodes-base.slackTrigger": NodeCapability.TRIGGER,
    "nodes-base.telegramTrigger": NodeCapability.TRIGGER,
    "nodes-base.googleSheetsTrigger": NodeCapability.TRIGGER,
    "nodes-langchain.chatTrigger": NodeCapability.TRIGGER,
    "nodes-langchain.mcpTrigger": NodeCapability.TRIGGER,
}


def infer_capability(node_type: str) -> NodeCapability:
    """Guess a capability from the type string.

    Known false positives: ``respondToWebhook``-style names are excluded, but
    any action whose name merely contains "trigger" is classified as a
    trigger. Only used when inference is explicitly enabled.
    """
    lowered = normalize_node_type(node_type).lower()
    if lowered.endswith(".stickynote"):
        return NodeCapability.ANNOTATION
    if "trigger" in lowered:
        return NodeCapability.TRIGGER
    if "webhook" in lowered and "respond" not in lowered:
        return NodeCapability.TRIGGER
    return NodeCapability.ACTION


class NodeTypeRegistry:
    """Resolves each node type to exactly one ``NodeCapability``.

    Resolutions are cached per registry instance, so a type is classified
    once no matter how many validation passes ask about it.

    Example:
        registry = NodeTypeRegistry()
        registry.register("n8n-nodes-base.myPollingTrigger", NodeCapability.TRIGGER)
        registry.is_trigger_class(node)
    """

    def __init__(
        self,
        capabilities: dict[str, NodeCapability] | None = None,
        infer_unknown: bool = False,
    ) -> None:
        self._capabilities: dict[str, NodeCapability] = dict(DEFAULT_CAPABILITIES)
        for node_type, capability in (capabilities or {}).items():
            self._capabilities[normalize_node_type(node_type)] = NodeCapability(capability)
        self._infer_unknown = infer_unknown
        self._resolved: dict[str, NodeCapability] = {}

    @classmethod
    def from_file(cls, path: str | Path, infer_unknown: bool = False) -> NodeTypeRegistry:
        """Load extra capabilities from a JSON object ``{nodeType: capability}``."""
        data = json.loads(Path(path).read_text())
        if not isinstance(data, dict):
            raise ValueError(f"Node type file must contain a JSON object: {path}")
        capabilities = {key: NodeCapability(value) for key, value in data.items()}
        logger.info(f"Loaded {len(capabilities)} node type capabilities from {path}")
        return cls(capabilities, infer_unknown=infer_unknown)

    def register(self, node_type: str, capability: NodeCapability) -> None:
        normalized = normalize_node_type(node_type)
        self._capabilities[normalized] = NodeCapability(capability)
        self._resolved.pop(normalized, None)

    def capability_for(self, node_type: str) -> NodeCapability:
        normalized = normalize_node_type(node_type)
        cached = self._resolved.get(normalized)
        if cached is not None:
            return cached

        capability = self._capabilities.get(normalized)
        if capability is None:
            if self._infer_unknown:
                capability = infer_capability(normalized)
                logger.warning(
                    f"Node type '{node_type}' is not registered; "
                    f"inferred capability '{capability.value}'"
                )
            else:
                capability = NodeCapability.ACTION

        self._resolved[normalized] = capability
        return capability

    def is_annotation_node(self, node: WorkflowNode) -> bool:
        return self.capability_for(node.type) is NodeCapability.ANNOTATION

    def is_trigger_class(self, node: WorkflowNode) -> bool:
        return self.capability_for(node.type) is NodeCapability.TRIGGER

    def requires_incoming_connection(self, node: WorkflowNode) -> bool:
        return self.capability_for(node.type) is NodeCapability.ACTION


@lru_cache(maxsize=1)
def get_default_registry() -> NodeTypeRegistry:
    """Build the registry described by the process settings."""
    settings = get_settings()
    if settings.node_types_file:
        return NodeTypeRegistry.from_file(
            settings.node_types_file,
            infer_unknown=settings.infer_unknown_node_types,
        )
    return NodeTypeRegistry(infer_unknown=settings.infer_unknown_node_types)
