"""Workflow editing, validation, restore and mutation services."""

from flowdiff.services.diff_engine import WorkflowDiffEngine
from flowdiff.services.graph_editor import GraphEditor
from flowdiff.services.node_capabilities import (
    NodeCapabilities,
    PatternNodeCapabilities,
    default_capabilities,
)
from flowdiff.services.restore import RestoreCoordinator
from flowdiff.services.structural_validator import (
    build_recovery_guidance,
    validate_workflow_structure,
)
from flowdiff.services.workflow_mutation import WorkflowMutationService, infer_intent

__all__ = [
    "GraphEditor",
    "WorkflowDiffEngine",
    "NodeCapabilities",
    "PatternNodeCapabilities",
    "default_capabilities",
    "validate_workflow_structure",
    "build_recovery_guidance",
    "RestoreCoordinator",
    "WorkflowMutationService",
    "infer_intent",
]
