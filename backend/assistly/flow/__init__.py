"""
Flow Module - conversation flow graph

- Flat, id-indexed graph over questions with tolerant link resolution
- Pure ordering helpers (move, minimal-diff, renumber)
- Validation and auto-correction of flow groups
"""

from .graph import (
    FlowGraph,
    LinkKind,
    ResolvedLink,
    move,
    changed_orders,
    renumber,
    validate_option,
    linkable_candidates,
    sort_by_order,
    arrange_for_ordering,
    compute_display_order
)
from .validator import (
    FlowValidator,
    FlowValidationIssue,
    validate_group,
    autocorrect_group
)

__all__ = [
    # Graph
    "FlowGraph",
    "LinkKind",
    "ResolvedLink",
    "move",
    "changed_orders",
    "renumber",
    "validate_option",
    "linkable_candidates",
    "sort_by_order",
    "arrange_for_ordering",
    "compute_display_order",

    # Validator
    "FlowValidator",
    "FlowValidationIssue",
    "validate_group",
    "autocorrect_group"
]
