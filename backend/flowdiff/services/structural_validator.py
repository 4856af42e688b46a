"""Whole-graph structural validation.

Runs after a batch of diff operations (and before a restore) to decide
whether the resulting workflow may be pushed to the platform. Every rule
produces a self-contained, actionable message; an empty list means valid.
"""

from typing import Any

from flowdiff.models.workflow import MAIN_OUTPUT, Node, Workflow
from flowdiff.services.graph_editor import iter_connections
from flowdiff.services.node_capabilities import (
    IF_NODE_TYPE,
    SWITCH_NODE_TYPE,
    NodeCapabilities,
    default_capabilities,
)

OPERATOR_DATA_TYPES = ("string", "number", "boolean", "dateTime", "array", "object")
UNARY_OPERATIONS = frozenset({"isEmpty", "isNotEmpty", "true", "false", "isNumeric"})

# Keys every versioned filter "conditions.options" block must carry
_FILTER_OPTION_FIELDS = {
    "version": "2",
    "leftValue": '""',
    "caseSensitive": "true",
    "typeValidation": '"strict"',
}
_FILTER_OPTIONS_EXAMPLE = (
    '{version: 2, leftValue: "", caseSensitive: true, typeValidation: "strict"}'
)


def validate_workflow_structure(
    workflow: Workflow, capabilities: NodeCapabilities = default_capabilities
) -> list[str]:
    """Return every structural problem found in ``workflow``."""
    errors: list[str] = []

    if not workflow.name or not workflow.name.strip():
        errors.append("Workflow name is required")

    if not workflow.nodes:
        errors.append("Workflow must have at least one node")
        return errors

    executable = [n for n in workflow.nodes if not capabilities.is_non_executable_type(n.type)]
    if not executable:
        errors.append(
            "Workflow must have at least one executable node. "
            "Sticky notes alone cannot form a valid workflow."
        )

    errors.extend(_check_references(workflow))
    errors.extend(_check_connectivity(workflow, executable, capabilities))

    for node in workflow.nodes:
        errors.extend(
            f'Node "{node.name}": {problem}' for problem in _check_filter_metadata(node)
        )

    errors.extend(_check_branch_counts(workflow))

    if workflow.active and not any(
        not n.disabled and capabilities.is_trigger_type(n.type) for n in workflow.nodes
    ):
        errors.append(
            "Active workflow has no enabled trigger node. Add a trigger "
            "(webhook, schedule, manual trigger, etc.) or deactivate the workflow."
        )

    return errors


def _check_references(workflow: Workflow) -> list[str]:
    errors = []
    names = workflow.node_names()
    names_by_id = {n.id: n.name for n in workflow.nodes}

    for source_name in workflow.connections:
        if source_name in names:
            continue
        if source_name in names_by_id:
            errors.append(
                f"Referenced node not found: connections use node ID '{source_name}' "
                f"but must use node name '{names_by_id[source_name]}'. Change "
                f"connections['{source_name}'] to connections['{names_by_id[source_name]}']"
            )
        else:
            errors.append(
                f'Referenced node not found: connection source "{source_name}" does not exist'
            )

    for source_name, output, index, target in iter_connections(workflow.connections):
        if target.node in names:
            continue
        where = f"{source_name}.{output}[{index}]"
        if target.node in names_by_id:
            errors.append(
                f"Referenced node not found: connection target uses node ID '{target.node}' "
                f"but must use node name '{names_by_id[target.node]}' (from {where})"
            )
        else:
            errors.append(
                f'Referenced node not found: connection target "{target.node}" '
                f"does not exist (from {where})"
            )

    return errors


def _check_connectivity(
    workflow: Workflow, executable: list[Node], capabilities: NodeCapabilities
) -> list[str]:
    if not executable:
        return []

    if len(executable) == 1:
        node = executable[0]
        if not capabilities.is_trigger_type(node.type):
            return [
                f'Single non-webhook node workflow is invalid. Current node: "{node.name}" '
                f"({node.type}) is not a trigger and cannot run standalone. Add a trigger "
                "node and connect it, or restore the nodes that fed it."
            ]
        return []

    edges = list(iter_connections(workflow.connections))
    if not edges:
        first, second = executable[0].name, executable[1].name
        return [
            "Multi-node workflow has no connections between nodes. Add a connection "
            f"using: {{type: 'addConnection', source: '{first}', target: '{second}'}}"
        ]

    incoming = {target.node for _source, _output, _index, target in edges}
    # Sub-nodes feed their parent through non-main ports (ai_languageModel, ...)
    feeds_sub_port = {
        source for source, output, _index, _target in edges if output != MAIN_OUTPUT
    }

    disconnected = [
        n
        for n in executable
        if not capabilities.is_trigger_type(n.type)
        and n.name not in incoming
        and n.name not in feeds_sub_port
    ]
    if not disconnected:
        return []

    listing = ", ".join(f'"{n.name}" ({n.type})' for n in disconnected)
    suggested_source = next(
        (n.name for n in executable if capabilities.is_trigger_type(n.type)),
        executable[0].name,
    )
    return [
        f"Disconnected node(s) detected: {listing}. Each node needs an incoming "
        "connection from a trigger or upstream node. Add one using: "
        f"{{type: 'addConnection', source: '{suggested_source}', "
        f"target: '{disconnected[0].name}'}} or remove the node."
    ]


def _check_filter_metadata(node: Node) -> list[str]:
    """Versioned If/Switch nodes must carry complete filter metadata."""
    if node.type == IF_NODE_TYPE and node.type_version >= 2.2:
        conditions = node.parameters.get("conditions")
        return _check_conditions(conditions, "conditions", "If v2.2+")

    if node.type == SWITCH_NODE_TYPE and node.type_version >= 3.2:
        errors = []
        for i, rule in enumerate(_switch_rules(node)):
            conditions = rule.get("conditions") if isinstance(rule, dict) else None
            errors.extend(
                _check_conditions(conditions, f"rules.rules[{i}].conditions", "Switch v3.2+")
            )
        return errors

    return []


def _check_conditions(conditions: Any, path: str, label: str) -> list[str]:
    errors = []
    options = conditions.get("options") if isinstance(conditions, dict) else None

    if not isinstance(options, dict):
        errors.append(
            f'Missing required "{path}.options". {label} requires: {_FILTER_OPTIONS_EXAMPLE}'
        )
    else:
        for field, expected in _FILTER_OPTION_FIELDS.items():
            if field not in options:
                errors.append(
                    f'Missing required field "{path}.options.{field}". '
                    f"Expected value: {expected}"
                )

    if isinstance(conditions, dict) and isinstance(conditions.get("conditions"), list):
        for i, condition in enumerate(conditions["conditions"]):
            operator = condition.get("operator") if isinstance(condition, dict) else None
            errors.extend(check_operator(operator, f"{path}.conditions[{i}].operator"))

    return errors


def check_operator(operator: Any, path: str) -> list[str]:
    """Validate the shape of one filter condition operator."""
    if not isinstance(operator, dict):
        return [f"{path}: operator is missing or not an object"]

    errors = []
    data_type = operator.get("type")
    if not data_type:
        errors.append(
            f'{path}: missing required field "type". Must be a data type: '
            + ", ".join(f'"{t}"' for t in OPERATOR_DATA_TYPES)
        )
    elif data_type not in OPERATOR_DATA_TYPES:
        errors.append(
            f'{path}: invalid operator type "{data_type}". Type must be a data type '
            f'({", ".join(OPERATOR_DATA_TYPES)}), not an operation name. '
            'Did you mean to use the "operation" field?'
        )

    operation = operator.get("operation")
    if not operation:
        errors.append(
            f'{path}: missing required field "operation" '
            '(e.g. "equals", "contains", "isNotEmpty")'
        )
    elif operation in UNARY_OPERATIONS:
        if operator.get("singleValue") is not True:
            errors.append(
                f'{path}: unary operator "{operation}" requires "singleValue: true"'
            )
    elif operator.get("singleValue") is True:
        errors.append(
            f'{path}: binary operator "{operation}" should not have "singleValue: true"'
        )

    return errors


def _switch_rules(node: Node) -> list[Any]:
    rules = node.parameters.get("rules")
    if isinstance(rules, dict) and isinstance(rules.get("rules"), list):
        return rules["rules"]
    return []


def _check_branch_counts(workflow: Workflow) -> list[str]:
    errors = []
    for node in workflow.nodes:
        outputs = workflow.connections.get(node.name, {}).get(MAIN_OUTPUT)
        if not outputs:
            continue

        if node.type == IF_NODE_TYPE and len(outputs) > 2:
            errors.append(
                f'Branch count mismatch: If node "{node.name}" has {len(outputs)} output '
                "branches but only supports 2 (main[0]=true, main[1]=false)"
            )
            continue

        if node.type != SWITCH_NODE_TYPE:
            continue
        if node.parameters.get("mode", "rules") != "rules":
            continue
        rules = _switch_rules(node)
        if not rules:
            continue

        expected = len(rules)
        options = node.parameters.get("options")
        if isinstance(options, dict) and options.get("fallbackOutput") == "extra":
            expected += 1

        if len(outputs) != expected:
            errors.append(
                f'Branch count mismatch: Switch node "{node.name}" has {len(rules)} rules '
                f"but {len(outputs)} output branch(es) in connections. Each rule needs its "
                "own output branch; connect with case=0.."
                f"{len(rules) - 1}."
            )

        empty = [i for i, targets in enumerate(outputs) if not targets and i < len(rules)]
        if empty:
            errors.append(
                f'Switch node "{node.name}" has unconnected output branch(es) at index '
                + ", ".join(str(i) for i in empty)
                + ". Add connections using case="
                + " or case=".join(str(i) for i in empty)
                + "."
            )

    return errors


# =============================================================================
# Recovery guidance
# =============================================================================


def _categorize(error: str) -> set[str]:
    lowered = error.lower()
    categories = set()
    if "operator" in lowered or "singlevalue" in lowered:
        categories.add("operator_issues")
    if "connection" in lowered or "referenced" in lowered or "disconnected" in lowered:
        categories.add("connection_issues")
    if "missing required" in lowered:
        categories.add("missing_metadata")
    if "branch" in lowered:
        categories.add("branch_mismatch")
    return categories


def build_recovery_guidance(errors: list[str]) -> list[str]:
    """Turn structural errors into concrete next steps for the caller."""
    categories: set[str] = set()
    for error in errors:
        categories |= _categorize(error)

    steps = []
    if "operator_issues" in categories:
        steps.append(
            "Operator structure issue detected. Each operator needs a data 'type' "
            "and an 'operation'."
        )
        steps.append(
            "Binary operators (equals, contains, greaterThan, etc.) must NOT have "
            "singleValue: true"
        )
        steps.append(
            "Unary operators (isEmpty, isNotEmpty, true, false, isNumeric) REQUIRE "
            "singleValue: true"
        )
    if "connection_issues" in categories:
        steps.append(
            "Connection validation failed. Check all node connections reference "
            "existing nodes by name."
        )
        steps.append(
            "Use the cleanStaleConnections operation to remove connections to "
            "non-existent nodes."
        )
    if "missing_metadata" in categories:
        steps.append(
            "Missing metadata detected. Filter-based nodes (If v2.2+, Switch v3.2+) "
            "need complete conditions.options."
        )
        steps.append(f"Required options: {_FILTER_OPTIONS_EXAMPLE}")
    if "branch_mismatch" in categories:
        steps.append(
            "Branch count mismatch. Add missing branch outputs so every Switch rule "
            "has its own output (e.g., 3 rules = 3 output branches)."
        )

    if not steps:
        steps.append("Review the validation errors listed above")
        steps.append("Fix issues using updateNode or cleanStaleConnections operations")
        steps.append("Retry the update once the workflow validates")

    return steps

