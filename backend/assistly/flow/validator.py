"""
Flow Validator - Validates and auto-corrects conversation flow groups
"""
import logging
from typing import Tuple, List, Dict, Any, Optional, Iterable
from datetime import datetime

from ..models.flow import GroupedWorkflow, Question, QuestionKind, QuestionTypeItem
from .graph import FlowGraph, arrange_for_ordering, renumber

logger = logging.getLogger(__name__)


class FlowValidationIssue:
    """Represents a validation issue"""

    def __init__(
        self,
        code: str,
        message: str,
        question_id: Optional[str] = None,
        severity: str = "error"  # error, warning, info
    ):
        self.code = code
        self.message = message
        self.question_id = question_id
        self.severity = severity
        self.timestamp = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "question_id": self.question_id,
            "severity": self.severity,
            "timestamp": self.timestamp.isoformat()
        }

    def __str__(self) -> str:
        question_info = f" [Question: {self.question_id}]" if self.question_id else ""
        return f"[{self.severity.upper()}] {self.code}: {self.message}{question_info}"


class FlowValidator:
    """
    Validates flow groups as stored by the flow storage service.

    Features:
    - Exactly one root question per group
    - Unique order values among non-root questions
    - Option links that dangle or leave the group
    - Empty prompts and terminal options that still carry a link
    - Auto-correction of orders and terminal links
    """

    CHOICE_CODES = {QuestionKind.SINGLE_CHOICE.value, QuestionKind.MULTIPLE_CHOICE.value}

    @classmethod
    def validate(
        cls,
        entry: GroupedWorkflow,
        all_questions: Optional[Iterable[Question]] = None,
        question_types: Optional[List[QuestionTypeItem]] = None
    ) -> Tuple[bool, List[FlowValidationIssue]]:
        """
        Validate one grouped flow.

        Args:
            entry: Grouped-list entry (group, root question, questions)
            all_questions: Every known question, used to tell cross-group
                links from dangling ones (defaults to the group itself)
            question_types: Optional catalogue to check choice questions

        Returns:
            Tuple of (is_valid, list of issues)
        """
        issues: List[FlowValidationIssue] = []
        group_id = entry.group.id
        questions = entry.all_questions()
        graph = FlowGraph(all_questions if all_questions is not None else questions)

        # 1. Root
        roots = [q for q in questions if q.is_root]
        if not roots:
            issues.append(FlowValidationIssue(
                "MISSING_ROOT",
                f"Flow '{entry.group.title}' has no root question"
            ))
        elif len(roots) > 1:
            issues.append(FlowValidationIssue(
                "MULTIPLE_ROOTS",
                f"Flow '{entry.group.title}' has {len(roots)} root questions",
                roots[1].id
            ))

        # 2. Orders
        issues.extend(cls._validate_orders(questions))

        # 3. Per question
        for question in questions:
            issues.extend(cls._validate_question(question, group_id, graph, question_types))

        is_valid = not any(i.severity == "error" for i in issues)

        if issues:
            logger.warning(f"Flow validation found {len(issues)} issues in group {group_id}")
            for issue in issues:
                if issue.severity == "error":
                    logger.error(str(issue))
                else:
                    logger.warning(str(issue))

        return is_valid, issues

    @classmethod
    def _validate_orders(cls, questions: List[Question]) -> List[FlowValidationIssue]:
        issues = []
        seen: Dict[int, str] = {}
        for q in questions:
            if q.is_root:
                continue
            if q.order in seen:
                issues.append(FlowValidationIssue(
                    "DUPLICATE_ORDER",
                    f"Order {q.order} is used by more than one question",
                    q.id
                ))
            else:
                seen[q.order] = q.id or ""
        return issues

    @classmethod
    def _validate_question(
        cls,
        question: Question,
        group_id: str,
        graph: FlowGraph,
        question_types: Optional[List[QuestionTypeItem]]
    ) -> List[FlowValidationIssue]:
        issues = []

        if not question.question.strip():
            issues.append(FlowValidationIssue(
                "EMPTY_PROMPT",
                "Question has no prompt text",
                question.id
            ))

        if question_types and not question.options:
            kind = next((t.code for t in question_types if t.id == question.question_type_id), None)
            if kind in cls.CHOICE_CODES:
                issues.append(FlowValidationIssue(
                    "CHOICE_WITHOUT_OPTIONS",
                    "Choice question has no options; visitors will be asked for free text",
                    question.id,
                    severity="warning"
                ))

        for option in question.options:
            if option.is_terminal and option.next_question_id:
                issues.append(FlowValidationIssue(
                    "TERMINAL_WITH_LINK",
                    f"Terminal option '{option.text}' also links to a next question",
                    question.id,
                    severity="warning"
                ))
                continue
            if not option.next_question_id:
                continue
            target = graph.get(option.next_question_id)
            if target is None:
                issues.append(FlowValidationIssue(
                    "DANGLING_LINK",
                    f"Option '{option.text}' links to missing question {option.next_question_id}",
                    question.id,
                    severity="warning"
                ))
            elif target.workflow_group_id != group_id:
                issues.append(FlowValidationIssue(
                    "CROSS_GROUP_LINK",
                    f"Option '{option.text}' links outside its flow",
                    question.id,
                    severity="warning"
                ))

        return issues

    @classmethod
    def autocorrect(cls, entry: GroupedWorkflow) -> List[Question]:
        """
        Return the questions whose stored fields need to change.

        - Non-root orders renumbered to a contiguous 0-based run
          (active first, relative order kept)
        - Terminal options lose their next question link
        - Option orders follow their list position
        """
        changed: Dict[str, Question] = {}

        arranged = arrange_for_ordering(entry.questions)
        before = {q.id: q.order for q in arranged}
        for q in renumber(arranged):
            if before[q.id] != q.order and q.id:
                changed[q.id] = q

        for q in entry.all_questions():
            touched = False
            for index, option in enumerate(q.options):
                if option.is_terminal and option.next_question_id:
                    option.next_question_id = None
                    touched = True
                if option.order != index:
                    option.order = index
                    touched = True
            if touched and q.id:
                changed[q.id] = q

        if changed:
            logger.info(f"Auto-corrected {len(changed)} questions in group {entry.group.id}")
        return list(changed.values())


def validate_group(
    entry: GroupedWorkflow,
    all_questions: Optional[Iterable[Question]] = None
) -> Tuple[bool, List[FlowValidationIssue]]:
    """Convenience function to validate a grouped flow"""
    return FlowValidator.validate(entry, all_questions)


def autocorrect_group(entry: GroupedWorkflow) -> List[Question]:
    """Convenience function to auto-correct a grouped flow"""
    return FlowValidator.autocorrect(entry)
