"""
Flow Graph - flat, id-indexed view over conversation flow questions.

Questions reference each other through `next_question_id` links, so the
graph may contain cycles. It is never materialized as nested objects:
nodes live in one flat collection plus an id -> node index, and links are
resolved by lookup at render/execution time, tolerating misses.

Also home to the pure ordering helpers shared by both authoring surfaces
(list move, minimal-diff order changes, full renumbering).
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from ..core.exceptions import DanglingReferenceError
from ..models.flow import BranchingOption, Question

T = TypeVar("T")


class LinkKind(str, Enum):
    """How an option continues the conversation"""
    TERMINAL = "terminal"        # Flow ends
    LINKED = "linked"            # Explicit next question
    SEQUENTIAL = "sequential"    # Fallback to next active question by order
    DANGLING = "dangling"        # Explicit link to a question that no longer exists


@dataclass
class ResolvedLink:
    """Result of following one branching option"""
    kind: LinkKind
    option: BranchingOption
    target: Optional[Question] = None
    target_id: Optional[str] = None

    @property
    def is_unresolved(self) -> bool:
        return self.kind == LinkKind.DANGLING

    @property
    def label(self) -> str:
        if self.kind == LinkKind.TERMINAL:
            return "Terminal"
        if self.kind == LinkKind.DANGLING:
            return "Unresolved question"
        if self.kind == LinkKind.SEQUENTIAL:
            if self.target is None:
                return "End of flow"
            return "Next question in order"
        target = self.target
        title = target.title or target.question if target else ""
        suffix = "" if target is None or target.is_active else " (inactive)"
        return f"→ {title}{suffix}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "optionText": self.option.text,
            "targetId": self.target_id,
            "label": self.label,
            "unresolved": self.is_unresolved,
        }


# ==================== PURE HELPERS ====================

def move(items: Sequence[T], from_index: int, to_index: int) -> List[T]:
    """
    Return a new list with the item at from_index moved to to_index.

    Out-of-range indexes leave the order unchanged.
    """
    result = list(items)
    if not (0 <= from_index < len(result)) or not (0 <= to_index < len(result)):
        return result
    item = result.pop(from_index)
    result.insert(to_index, item)
    return result


def changed_orders(items: Sequence[Any]) -> List[Tuple[Any, int]]:
    """Items whose `order` differs from their index, paired with the new order"""
    return [(item, index) for index, item in enumerate(items) if item.order != index]


def renumber(items: Sequence[Any]) -> List[Any]:
    """Full renumber: every item gets order == index (items are mutated)"""
    for index, item in enumerate(items):
        item.order = index
    return list(items)


def validate_option(option: BranchingOption, candidate_questions: Iterable[Question]) -> BranchingOption:
    """
    Reject an option whose explicit link is not among the candidates.

    Advisory only: the runtime still has to defend against stale links.
    """
    if option.next_question_id is None:
        return option
    candidate_ids = {q.id for q in candidate_questions if q.id}
    if option.next_question_id not in candidate_ids:
        raise DanglingReferenceError(option.text, option.next_question_id)
    return option


def linkable_candidates(
    current_group_id: Optional[str],
    all_questions: Iterable[Question],
    excluding_id: Optional[str] = None
) -> List[Question]:
    """
    Questions an option may link to.

    Restricted to the current group; a brand-new flow without a group yet
    may link to any question until it acquires one.
    """
    return [
        q for q in all_questions
        if q.id != excluding_id
        and (current_group_id is None or q.workflow_group_id == current_group_id)
    ]


def sort_by_order(questions: Iterable[Question]) -> List[Question]:
    # sorted() is stable, so ties keep their incoming order
    return sorted(questions, key=lambda q: q.order)


def arrange_for_ordering(questions: Iterable[Question]) -> List[Question]:
    """
    Canonical arrangement of a group's non-root questions: active ones by
    order, then inactive ones by order. Renumbering this list keeps the
    active orders a contiguous 0-based run.
    """
    ordered = sort_by_order(q for q in questions if not q.is_root)
    return [q for q in ordered if q.is_active] + [q for q in ordered if not q.is_active]


def compute_display_order(group_id: Optional[str], questions: Iterable[Question]) -> Dict[str, int]:
    """
    1-based "position in flow" for the active non-root questions of a group.

    Inactive questions get no position and do not shift the raw stored order.
    """
    active = [
        q for q in questions
        if q.workflow_group_id == group_id and not q.is_root and q.is_active and q.id
    ]
    return {q.id: position for position, q in enumerate(sort_by_order(active), start=1)}


# ==================== GRAPH ====================

class FlowGraph:
    """
    Read-only graph over a flat collection of questions.

    Lookups never raise on unknown ids; callers get None (or a DANGLING
    link) and decide how to present the miss.
    """

    def __init__(self, questions: Iterable[Question]):
        self.questions: List[Question] = list(questions)
        self.questions_by_id: Dict[str, Question] = {
            q.id: q for q in self.questions if q.id
        }

    def get(self, question_id: Optional[str]) -> Optional[Question]:
        if not question_id:
            return None
        return self.questions_by_id.get(question_id)

    def group_ids(self) -> List[str]:
        seen: List[str] = []
        for q in self.questions:
            if q.workflow_group_id and q.workflow_group_id not in seen:
                seen.append(q.workflow_group_id)
        return seen

    def group_questions(self, group_id: Optional[str]) -> List[Question]:
        return [q for q in self.questions if q.workflow_group_id == group_id]

    def roots(self, group_id: Optional[str]) -> List[Question]:
        return [q for q in self.group_questions(group_id) if q.is_root]

    def root_of(self, group_id: Optional[str]) -> Optional[Question]:
        roots = self.roots(group_id)
        return roots[0] if roots else None

    def non_root_questions(self, group_id: Optional[str]) -> List[Question]:
        return [q for q in self.group_questions(group_id) if not q.is_root]

    def active_count(self, group_id: Optional[str]) -> int:
        return sum(1 for q in self.group_questions(group_id) if q.is_active)

    def next_in_order(self, question: Question) -> Optional[Question]:
        """
        Sequential fallback: the next active non-root question of the same
        group by stored order. From the root, the first one.
        """
        followers = sort_by_order(
            q for q in self.non_root_questions(question.workflow_group_id)
            if q.is_active and q.id != question.id
        )
        if question.is_root:
            return followers[0] if followers else None
        for candidate in followers:
            if candidate.order > question.order:
                return candidate
        return None

    def resolve_option(self, question: Question, option: BranchingOption) -> ResolvedLink:
        """Follow one option of `question`, tolerating stale links"""
        if option.is_terminal:
            return ResolvedLink(kind=LinkKind.TERMINAL, option=option)
        if option.next_question_id:
            target = self.get(option.next_question_id)
            if target is None:
                return ResolvedLink(
                    kind=LinkKind.DANGLING,
                    option=option,
                    target_id=option.next_question_id
                )
            return ResolvedLink(
                kind=LinkKind.LINKED,
                option=option,
                target=target,
                target_id=target.id
            )
        target = self.next_in_order(question)
        return ResolvedLink(
            kind=LinkKind.SEQUENTIAL,
            option=option,
            target=target,
            target_id=target.id if target else None
        )

    def resolve_links(self, question: Question) -> List[ResolvedLink]:
        options = sorted(question.options, key=lambda o: o.order)
        return [self.resolve_option(question, option) for option in options]

    def dangling_links(self) -> List[Tuple[Question, ResolvedLink]]:
        result = []
        for q in self.questions:
            for link in self.resolve_links(q):
                if link.is_unresolved:
                    result.append((q, link))
        return result
