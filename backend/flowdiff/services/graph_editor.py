"""GraphEditor - Applies single diff operations to a workflow working copy.

Each operation checks all of its preconditions before touching the graph, so
a failed operation never leaves a half-applied change behind. Failures are
raised as typed errors (``DuplicateNameError``, ``NotFoundError``,
``ValidationError``); the diff engine decides whether they abort the batch.
"""

from __future__ import annotations

import copy
import logging
import re
import uuid
from collections.abc import Iterator
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from flowdiff.errors import DuplicateNameError, NotFoundError, ValidationError
from flowdiff.models.operations import (
    ActivateWorkflowOperation,
    AddConnectionOperation,
    AddNodeOperation,
    AddTagOperation,
    CleanStaleConnectionsOperation,
    DeactivateWorkflowOperation,
    DiffOperation,
    DisableNodeOperation,
    EnableNodeOperation,
    MoveNodeOperation,
    RemoveConnectionOperation,
    RemoveNodeOperation,
    RemoveTagOperation,
    ReplaceConnectionsOperation,
    RewireConnectionOperation,
    UpdateNameOperation,
    UpdateNodeOperation,
    UpdateSettingsOperation,
)
from flowdiff.models.workflow import (
    MAIN_OUTPUT,
    ConnectionTarget,
    Connections,
    Node,
    Workflow,
)
from flowdiff.services.node_capabilities import (
    IF_NODE_TYPE,
    SWITCH_NODE_TYPE,
    NodeCapabilities,
    default_capabilities,
)

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


# =============================================================================
# Pure helpers
# =============================================================================


def normalize_node_name(name: str) -> str:
    """Normalize a node name for comparison.

    Callers often send names with escaped quotes or stray whitespace, so
    ``"Bob\\'s  Node "`` and ``"Bob's Node"`` refer to the same node.
    """
    name = name.strip()
    name = name.replace("\\\\", "\\").replace("\\'", "'").replace('\\"', '"')
    return _WHITESPACE.sub(" ", name)


def set_nested_value(target: dict[str, Any], path: str, value: Any) -> None:
    """Set ``value`` at a dotted ``path``, creating intermediate objects.

    Any intermediate that is missing or not a dict is replaced by an empty
    dict. ``set_nested_value(d, "parameters.options.timeout", 5)`` on an
    empty ``d`` yields ``{"parameters": {"options": {"timeout": 5}}}``.
    """
    keys = path.split(".")
    if any(not key for key in keys):
        raise ValidationError(f'Invalid update path "{path}"')

    current = target
    for key in keys[:-1]:
        child = current.get(key)
        if not isinstance(child, dict):
            child = {}
            current[key] = child
        current = child
    current[keys[-1]] = value


def find_node(
    workflow: Workflow, node_id: str | None = None, node_name: str | None = None
) -> Node | None:
    """Resolve a node by name or id.

    The name wins when both are given. The id is used when no name is given
    or the name matches nothing; a bare id that matches no node id is tried
    as a name as well.
    """
    if node_name:
        wanted = normalize_node_name(node_name)
        for node in workflow.nodes:
            if normalize_node_name(node.name) == wanted:
                return node

    if node_id:
        for node in workflow.nodes:
            if node.id == node_id:
                return node
        if not node_name:
            wanted = normalize_node_name(node_id)
            for node in workflow.nodes:
                if normalize_node_name(node.name) == wanted:
                    return node

    return None


def iter_connections(
    connections: Connections,
) -> Iterator[tuple[str, str, int, ConnectionTarget]]:
    """Yield ``(source_name, output_port, output_index, target)`` for every edge."""
    for source_name, outputs in connections.items():
        for output_name, branches in outputs.items():
            for output_index, targets in enumerate(branches):
                for target in targets or []:
                    yield source_name, output_name, output_index, target


def _prune_empty(connections: Connections, source_name: str, output_name: str) -> None:
    """Trim trailing empty output slots and drop empty ports/sources.

    Only trailing slots are trimmed so output indices of the remaining
    branches stay stable.
    """
    outputs = connections.get(source_name)
    if outputs is None:
        return
    branches = outputs.get(output_name)
    if branches is not None:
        while branches and not branches[-1]:
            branches.pop()
        if not branches:
            del outputs[output_name]
    if not outputs:
        del connections[source_name]


def _available_nodes(workflow: Workflow) -> str:
    return ", ".join(f'"{n.name}" (id: {n.id[:8]}...)' for n in workflow.nodes)


# =============================================================================
# Editor
# =============================================================================


class GraphEditor:
    """Applies diff operations, one at a time, to a mutable workflow copy.

    The editor mutates ``workflow`` in place; callers that need the original
    must pass a copy. Advisory messages raised while applying an operation
    are collected in ``warnings`` and drained with ``pop_warnings``.
    """

    def __init__(
        self,
        workflow: Workflow,
        capabilities: NodeCapabilities = default_capabilities,
    ) -> None:
        self.workflow = workflow
        self._capabilities = capabilities
        self.warnings: list[str] = []
        self.should_activate = False
        self.should_deactivate = False

    def pop_warnings(self) -> list[str]:
        warnings, self.warnings = self.warnings, []
        return warnings

    def apply(self, operation: DiffOperation) -> None:
        """Apply one operation or raise a typed error without mutating."""
        if isinstance(operation, AddNodeOperation):
            self._add_node(operation)
        elif isinstance(operation, RemoveNodeOperation):
            self._remove_node(operation)
        elif isinstance(operation, UpdateNodeOperation):
            self._update_node(operation)
        elif isinstance(operation, MoveNodeOperation):
            node = self._require_node(operation.node_id, operation.node_name, "moveNode")
            node.position = list(operation.position)
        elif isinstance(operation, EnableNodeOperation):
            node = self._require_node(operation.node_id, operation.node_name, "enableNode")
            node.disabled = False
        elif isinstance(operation, DisableNodeOperation):
            node = self._require_node(operation.node_id, operation.node_name, "disableNode")
            node.disabled = True
        elif isinstance(operation, AddConnectionOperation):
            self._add_connection(operation)
        elif isinstance(operation, RemoveConnectionOperation):
            self._remove_connection(operation)
        elif isinstance(operation, RewireConnectionOperation):
            self._rewire_connection(operation)
        elif isinstance(operation, ReplaceConnectionsOperation):
            self._replace_connections(operation)
        elif isinstance(operation, CleanStaleConnectionsOperation):
            self.clean_stale_connections(dry_run=operation.dry_run)
        elif isinstance(operation, UpdateSettingsOperation):
            self.workflow.settings.update(copy.deepcopy(operation.settings))
        elif isinstance(operation, UpdateNameOperation):
            self.workflow.name = operation.name
        elif isinstance(operation, AddTagOperation):
            if operation.tag not in self.workflow.tags:
                self.workflow.tags.append(operation.tag)
        elif isinstance(operation, RemoveTagOperation):
            if operation.tag in self.workflow.tags:
                self.workflow.tags.remove(operation.tag)
        elif isinstance(operation, ActivateWorkflowOperation):
            self._activate()
        elif isinstance(operation, DeactivateWorkflowOperation):
            self.should_activate = False
            self.should_deactivate = True
        else:
            raise ValidationError(f"Unknown operation type: {type(operation).__name__}")

    # ==================== Nodes ====================

    def _require_node(self, node_id: str | None, node_name: str | None, op_type: str) -> Node:
        if not node_id and not node_name:
            raise ValidationError(f"{op_type} requires either 'nodeId' or 'nodeName'")
        node = find_node(self.workflow, node_id, node_name)
        if node is None:
            raise NotFoundError(
                f'Node not found for {op_type}: "{node_name or node_id}". '
                f"Available nodes: {_available_nodes(self.workflow)}. "
                "Tip: Use node ID for names with special characters (apostrophes, quotes)."
            )
        return node

    def _find_by_name(self, name: str, exclude_id: str | None = None) -> Node | None:
        wanted = normalize_node_name(name)
        for node in self.workflow.nodes:
            if node.id != exclude_id and normalize_node_name(node.name) == wanted:
                return node
        return None

    def _add_node(self, operation: AddNodeOperation) -> None:
        spec = operation.node

        duplicate = self._find_by_name(spec.name)
        if duplicate is not None:
            raise DuplicateNameError(
                f'Node with name "{spec.name}" already exists '
                f'(normalized name matches existing node "{duplicate.name}")'
            )

        if spec.type.startswith("nodes-base."):
            raise ValidationError(
                f'Invalid node type "{spec.type}". '
                f'Use "n8n-nodes-base.{spec.type[len("nodes-base."):]}" instead'
            )
        if "." not in spec.type:
            raise ValidationError(
                f'Invalid node type "{spec.type}". '
                'Must include package prefix (e.g., "n8n-nodes-base.webhook")'
            )

        node_id = spec.id or str(uuid.uuid4())
        if any(n.id == node_id for n in self.workflow.nodes):
            raise ValidationError(f'Node id "{node_id}" is already in use')

        data = copy.deepcopy(spec.model_dump(by_alias=True, exclude_none=True))
        data["id"] = node_id
        self.workflow.nodes.append(Node.model_validate(data))

    def _remove_node(self, operation: RemoveNodeOperation) -> None:
        node = self._require_node(operation.node_id, operation.node_name, "removeNode")
        self.workflow.nodes = [n for n in self.workflow.nodes if n.id != node.id]

        connections = self.workflow.connections
        connections.pop(node.name, None)
        for source_name in list(connections):
            for output_name in list(connections[source_name]):
                branches = connections[source_name][output_name]
                connections[source_name][output_name] = [
                    [t for t in targets if t.node != node.name] for targets in branches
                ]
                _prune_empty(connections, source_name, output_name)

    def _update_node(self, operation: UpdateNodeOperation) -> None:
        node = self._require_node(operation.node_id, operation.node_name, "updateNode")
        updates = operation.updates
        if not updates:
            raise ValidationError(
                "updateNode requires a non-empty 'updates' object, e.g. "
                '{"type": "updateNode", "nodeName": "HTTP Request", '
                '"updates": {"parameters.url": "https://example.com"}}'
            )

        if "id" in updates and updates["id"] != node.id:
            raise ValidationError(f'Node id is immutable (node "{node.name}")')

        old_name = node.name
        new_name = updates.get("name")
        renamed = "name" in updates and new_name != old_name
        if renamed:
            if not isinstance(new_name, str) or not new_name.strip():
                raise ValidationError("Node name must be a non-empty string")
            collision = self._find_by_name(new_name, exclude_id=node.id)
            if collision is not None:
                raise DuplicateNameError(
                    f'Cannot rename node "{old_name}" to "{new_name}": a node with that '
                    f"name already exists (id: {collision.id[:8]}...)"
                )

        data = copy.deepcopy(node.model_dump(by_alias=True))
        for path, value in updates.items():
            set_nested_value(data, path, copy.deepcopy(value))

        try:
            updated = Node.model_validate(data)
        except PydanticValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise ValidationError(
                f'Invalid update for node "{old_name}" at "{location}": {first["msg"]}'
            ) from e

        index = next(i for i, n in enumerate(self.workflow.nodes) if n.id == node.id)
        self.workflow.nodes[index] = updated

        if renamed:
            logger.debug(f'Tracking rename: "{old_name}" -> "{new_name}"')
            self._rename_references(old_name, updated.name)

    def _rename_references(self, old_name: str, new_name: str) -> None:
        """Point every connection at ``old_name`` to ``new_name``."""
        renamed: Connections = {}
        for source_name, outputs in self.workflow.connections.items():
            key = new_name if source_name == old_name else source_name
            renamed[key] = outputs
            for branches in outputs.values():
                for targets in branches:
                    for target in targets:
                        if target.node == old_name:
                            target.node = new_name
        self.workflow.connections = renamed

    def _activate(self) -> None:
        triggers = [
            n
            for n in self.workflow.nodes
            if not n.disabled and self._capabilities.is_trigger_type(n.type)
        ]
        if not triggers:
            raise ValidationError(
                "Cannot activate workflow: No activatable trigger nodes found. Workflows "
                "must have at least one enabled trigger node (webhook, schedule, "
                "executeWorkflowTrigger, etc.)."
            )
        self.should_activate = True
        self.should_deactivate = False

    # ==================== Connections ====================

    def _require_endpoint(self, ref: str, role: str) -> Node:
        node = find_node(self.workflow, node_id=ref, node_name=ref)
        if node is None:
            raise NotFoundError(
                f'{role} node not found: "{ref}". '
                f"Available nodes: {_available_nodes(self.workflow)}. "
                "Tip: Use node ID for names with special characters."
            )
        return node

    def _resolve_source_slot(
        self,
        operation: AddConnectionOperation | RewireConnectionOperation,
        source: Node,
    ) -> tuple[str, int]:
        """Work out the output port and index, honouring branch/case shorthands."""
        output = operation.source_output or MAIN_OUTPUT
        index = operation.source_index

        if index is None and operation.branch is not None:
            if source.type == IF_NODE_TYPE:
                index = 0 if operation.branch == "true" else 1
            else:
                self.warnings.append(
                    f'branch="{operation.branch}" ignored: "{source.name}" is not an If node'
                )
        if index is None and operation.case is not None:
            index = operation.case

        if (
            operation.source_index is not None
            and operation.branch is None
            and operation.case is None
        ):
            if source.type == IF_NODE_TYPE:
                self.warnings.append(
                    f'Connection from If node "{source.name}" uses '
                    f"sourceIndex={operation.source_index}. Consider using branch=\"true\" "
                    'or branch="false" for clarity. If node outputs: main[0]=TRUE, main[1]=FALSE.'
                )
            elif source.type == SWITCH_NODE_TYPE:
                self.warnings.append(
                    f'Connection from Switch node "{source.name}" uses '
                    f"sourceIndex={operation.source_index}. Consider using case=N for clarity."
                )

        return output, index or 0

    def _add_connection(self, operation: AddConnectionOperation) -> None:
        source = self._require_endpoint(operation.source, "Source")
        target = self._require_endpoint(operation.target, "Target")
        output, index = self._resolve_source_slot(operation, source)

        branches = self.workflow.connections.get(source.name, {}).get(output, [])
        if index < len(branches) and any(t.node == target.name for t in branches[index]):
            raise ValidationError(
                f'Connection already exists from "{source.name}" to "{target.name}" '
                f'on output "{output}" at index {index}'
            )

        outputs = self.workflow.connections.setdefault(source.name, {})
        branches = outputs.setdefault(output, [])
        while len(branches) <= index:
            branches.append([])
        branches[index].append(
            ConnectionTarget(
                node=target.name,
                type=operation.target_input or output,
                index=operation.target_index or 0,
            )
        )

    def _remove_connection(self, operation: RemoveConnectionOperation) -> None:
        source = find_node(self.workflow, node_id=operation.source, node_name=operation.source)
        target = find_node(self.workflow, node_id=operation.target, node_name=operation.target)
        if source is None or target is None:
            if operation.ignore_errors:
                return
            self._require_endpoint(operation.source, "Source")
            self._require_endpoint(operation.target, "Target")

        output = operation.source_output or MAIN_OUTPUT

        def matches(t: ConnectionTarget) -> bool:
            return t.node == target.name and (
                operation.target_input is None or t.type == operation.target_input
            )

        branches = self.workflow.connections.get(source.name, {}).get(output)
        if not branches or not any(matches(t) for targets in branches for t in targets):
            if operation.ignore_errors:
                return
            raise NotFoundError(
                f'No connection exists from "{source.name}" to "{target.name}" '
                f'on output "{output}"'
            )

        self.workflow.connections[source.name][output] = [
            [t for t in targets if not matches(t)] for targets in branches
        ]
        _prune_empty(self.workflow.connections, source.name, output)

    def _rewire_connection(self, operation: RewireConnectionOperation) -> None:
        source = self._require_endpoint(operation.source, "Source")
        from_node = self._require_endpoint(operation.from_node, '"From"')
        to_node = self._require_endpoint(operation.to_node, '"To"')
        output, index = self._resolve_source_slot(operation, source)

        branches = self.workflow.connections.get(source.name, {}).get(output)
        if not branches or index >= len(branches):
            raise NotFoundError(
                f'No connections found from "{source.name}" on output "{output}" '
                f"at index {index}"
            )
        targets = branches[index]
        position = next(
            (i for i, t in enumerate(targets) if t.node == from_node.name), None
        )
        if position is None:
            raise NotFoundError(
                f'No connection exists from "{source.name}" to "{from_node.name}" '
                f'on output "{output}" at index {index}'
            )

        old = targets[position]
        if any(t.node == to_node.name for t in targets):
            # Already wired to the new target; just drop the old edge
            del targets[position]
        else:
            targets[position] = ConnectionTarget(
                node=to_node.name,
                type=operation.target_input or old.type,
                index=old.index,
            )

    def _replace_connections(self, operation: ReplaceConnectionsOperation) -> None:
        names = self.workflow.node_names()
        for source_name, _output, _index, target in iter_connections(operation.connections):
            if source_name not in names:
                raise NotFoundError(f"Source node not found in connections: {source_name}")
            if target.node not in names:
                raise NotFoundError(f"Target node not found in connections: {target.node}")
        for source_name in operation.connections:
            if source_name not in names:
                raise NotFoundError(f"Source node not found in connections: {source_name}")

        self.workflow.connections = copy.deepcopy(operation.connections)

    def clean_stale_connections(self, dry_run: bool = False) -> list[tuple[str, str]]:
        """Remove edges whose source or target node no longer exists.

        Returns the ``(source, target)`` pairs that were (or, with
        ``dry_run``, would be) removed.
        """
        names = self.workflow.node_names()
        stale = [
            (source_name, target.node)
            for source_name, _output, _index, target in iter_connections(
                self.workflow.connections
            )
            if source_name not in names or target.node not in names
        ]

        if dry_run:
            logger.info(f"[DryRun] Would remove {len(stale)} stale connections")
            if stale:
                listing = ", ".join(f'"{s}" -> "{t}"' for s, t in stale)
                self.warnings.append(
                    f"Dry run: would remove {len(stale)} stale connection(s): {listing}"
                )
            return stale

        connections = self.workflow.connections
        for source_name in list(connections):
            if source_name not in names:
                del connections[source_name]
                continue
            for output_name in list(connections[source_name]):
                connections[source_name][output_name] = [
                    [t for t in targets if t.node in names]
                    for targets in connections[source_name][output_name]
                ]
                _prune_empty(connections, source_name, output_name)

        logger.info(f"Removed {len(stale)} stale connections")
        return stale
