"""Node capability lookups used by the structural validator.

The authoritative node-capability table lives outside this package. The
validator only needs two questions answered about a node type, so it depends
on the small ``NodeCapabilities`` protocol; ``PatternNodeCapabilities`` answers
them from naming conventions and is the default.
"""

from typing import Protocol

STICKY_NOTE_TYPES = frozenset(
    {
        "n8n-nodes-base.stickyNote",
        "nodes-base.stickyNote",
        "@n8n/n8n-nodes-base.stickyNote",
    }
)

# Triggers without "trigger" or "webhook" in their type name
_SPECIFIC_TRIGGERS = frozenset(
    {
        "nodes-base.start",
        "nodes-base.manualTrigger",
        "nodes-base.formTrigger",
    }
)

IF_NODE_TYPE = "n8n-nodes-base.if"
SWITCH_NODE_TYPE = "n8n-nodes-base.switch"


class NodeCapabilities(Protocol):
    """Answers capability questions about node types."""

    def is_trigger_type(self, node_type: str) -> bool: ...

    def is_non_executable_type(self, node_type: str) -> bool: ...


def normalize_node_type(node_type: str) -> str:
    """Collapse package prefixes to the short ``nodes-base.x`` form."""
    if node_type.startswith("n8n-nodes-base."):
        return "nodes-base." + node_type[len("n8n-nodes-base."):]
    if node_type.startswith("@n8n/n8n-nodes-langchain."):
        return "nodes-langchain." + node_type[len("@n8n/n8n-nodes-langchain."):]
    if node_type.startswith("n8n-nodes-langchain."):
        return "nodes-langchain." + node_type[len("n8n-nodes-langchain."):]
    return node_type


class PatternNodeCapabilities:
    """Classifies node types by name pattern."""

    def is_trigger_type(self, node_type: str) -> bool:
        normalized = normalize_node_type(node_type)
        lower = normalized.lower()

        if "trigger" in lower:
            return True
        # respondToWebhook replies to a webhook, it does not start one
        if "webhook" in lower and "respond" not in lower:
            return True
        return normalized in _SPECIFIC_TRIGGERS

    def is_non_executable_type(self, node_type: str) -> bool:
        return node_type in STICKY_NOTE_TYPES


default_capabilities = PatternNodeCapabilities()
