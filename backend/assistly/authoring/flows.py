"""
Flow Authoring Controller

Sequences what an operator does while building a conversation flow:
create a flow, add/save/delete/reorder its questions, toggle them and
manage their attachments. Invariants are enforced here, before anything
reaches the flow storage service. No retries: every remote failure is a
notice and the local cache is left as it was.
"""
import logging
from typing import Optional, List, Dict
from dataclasses import dataclass

from ..core.config import settings
from ..core.exceptions import ApiError, DanglingReferenceError
from ..core.notices import NoticeBoard
from ..flow.graph import (
    FlowGraph, ResolvedLink, move, changed_orders, validate_option,
    linkable_candidates, arrange_for_ordering, compute_display_order
)
from ..flow.validator import FlowValidationIssue, autocorrect_group, validate_group
from ..models.chat import FileUpload
from ..models.flow import BranchingOption, GroupedWorkflow, Question, WorkflowGroup
from ..services.attachments import AttachmentService
from ..services.workflows import WorkflowService
from .results import OperationResult, ok, failed

logger = logging.getLogger(__name__)


@dataclass
class StagedQuestion:
    """A question being edited, plus a file to attach once it is saved"""
    question: Question
    attachment_file: Optional[FileUpload] = None

    @property
    def is_new(self) -> bool:
        return self.question.id is None


def _active_first(questions: List[Question]) -> List[Question]:
    return [q for q in questions if q.is_active] + [q for q in questions if not q.is_active]


class FlowAuthoringController:
    """
    Edit-session controller over the questions of one app.

    `questions` is a cache of the flow storage; it is re-fetched whenever
    an operation's outcome cannot be verified locally.
    """

    def __init__(
        self,
        app_id: str,
        workflows: WorkflowService,
        attachments: AttachmentService,
        notices: Optional[NoticeBoard] = None,
        title_max_length: Optional[int] = None
    ):
        self.app_id = app_id
        self.workflows = workflows
        self.attachments = attachments
        self.notices = notices or NoticeBoard()
        self.title_max_length = title_max_length or settings.TITLE_MAX_LENGTH
        self.questions: List[Question] = []
        self.groups: Dict[str, WorkflowGroup] = {}

    # ==================== CACHE ====================

    @property
    def graph(self) -> FlowGraph:
        return FlowGraph(self.questions)

    async def load(self) -> bool:
        """Fetch every grouped flow of the app into the local cache"""
        try:
            entries = await self.workflows.list_grouped(self.app_id)
        except ApiError as e:
            self.notices.error(e.message or "Failed to load workflows")
            return False

        questions: List[Question] = []
        groups: Dict[str, WorkflowGroup] = {}
        for entry in entries:
            groups[entry.group.id] = entry.group
            for q in entry.all_questions():
                if q.workflow_group_id is None:
                    q.workflow_group_id = entry.group.id
                questions.append(q)

        self.questions = questions
        self.groups = groups
        logger.debug(f"Loaded {len(groups)} flows / {len(questions)} questions for app {self.app_id}")
        return True

    def grouped(self) -> List[GroupedWorkflow]:
        """Rebuild the grouped view from the cache"""
        graph = self.graph
        result = []
        for group_id in graph.group_ids():
            root = graph.root_of(group_id)
            group = self.groups.get(group_id) or WorkflowGroup(
                id=group_id,
                title=root.question[:self.title_max_length] if root else ""
            )
            result.append(GroupedWorkflow(
                group=group,
                root_question=root,
                questions=arrange_for_ordering(graph.non_root_questions(group_id))
            ))
        return result

    def _replace_local(self, question: Question) -> None:
        for index, existing in enumerate(self.questions):
            if existing.id == question.id:
                self.questions[index] = question
                return
        self.questions.append(question)

    # ==================== READ HELPERS ====================

    def display_order(self, group_id: str) -> Dict[str, int]:
        return compute_display_order(group_id, self.questions)

    def link_candidates(self, staged: StagedQuestion) -> List[Question]:
        q = staged.question
        return linkable_candidates(q.workflow_group_id, self.questions, q.id)

    def describe_options(self, question: Question) -> List[ResolvedLink]:
        links = self.graph.resolve_links(question)
        for link in links:
            if link.is_unresolved:
                logger.warning(
                    f"Question {question.id} option '{link.option.text}' "
                    f"points at missing question {link.target_id}"
                )
        return links

    # ==================== STAGING ====================

    def stage_flow(
        self,
        opening_prompt: str,
        title: str = "",
        question_type_id: Optional[int] = None,
        options: Optional[List[BranchingOption]] = None
    ) -> StagedQuestion:
        """
        Stage the root question of a new flow. The group id stays empty;
        the flow storage assigns it on first save.
        """
        return StagedQuestion(Question(
            title=title,
            question=opening_prompt,
            question_type_id=question_type_id,
            options=options or [],
            is_root=True,
            is_active=True,
            order=0,
            workflow_group_id=None
        ))

    def add_question_to_flow(
        self,
        group_id: str,
        prompt: str = "",
        title: str = "",
        question_type_id: Optional[int] = None,
        options: Optional[List[BranchingOption]] = None
    ) -> StagedQuestion:
        """
        Stage a follow-up question at the end of a flow.

        The next order is the count of existing non-root questions rather
        than max(order) + 1, so earlier gaps do not push it further away.
        """
        next_order = len(self.graph.non_root_questions(group_id))
        return StagedQuestion(Question(
            title=title,
            question=prompt,
            question_type_id=question_type_id,
            options=options or [],
            is_root=False,
            is_active=True,
            order=next_order,
            workflow_group_id=group_id
        ))

    def edit_question(self, question_id: str) -> Optional[StagedQuestion]:
        """Stage a copy of an existing question; discarding it discards the edit"""
        question = self.graph.get(question_id)
        if question is None:
            self.notices.warning("Question not found")
            return None
        return StagedQuestion(question.model_copy(deep=True))

    # ==================== MUTATIONS ====================

    async def create_flow(
        self,
        opening_prompt: str,
        title: str = "",
        question_type_id: Optional[int] = None,
        options: Optional[List[BranchingOption]] = None,
        attachment_file: Optional[FileUpload] = None
    ) -> OperationResult:
        staged = self.stage_flow(opening_prompt, title, question_type_id, options)
        staged.attachment_file = attachment_file
        return await self.save_question(staged)

    async def save_question(self, staged: StagedQuestion) -> OperationResult:
        """
        Create or update a staged question.

        The attachment upload is a second, independent step: its failure is
        reported but the saved question is kept.
        """
        question = staged.question.model_copy(deep=True)
        prompt = question.question.strip()
        if not prompt:
            message = "Question text is required"
            self.notices.error(message)
            return failed(message, {"question": message})

        if not question.title.strip():
            question.title = prompt[:self.title_max_length]

        for index, option in enumerate(question.options):
            option.order = index
            if option.is_terminal:
                option.next_question_id = None

        candidates = linkable_candidates(question.workflow_group_id, self.questions, question.id)
        try:
            for option in question.options:
                validate_option(option, candidates)
        except DanglingReferenceError as e:
            self.notices.error(e.message)
            return failed(e.message, e.fields)

        is_new = question.id is None
        try:
            if is_new:
                saved = await self.workflows.create(self.app_id, question)
            else:
                saved = await self.workflows.update(self.app_id, question.id, question.to_payload())
                saved = saved or question
        except ApiError as e:
            self.notices.error(e.message or "Failed to save question")
            return failed(e.message)

        result = ok(saved)

        if staged.attachment_file is not None and saved.id:
            try:
                saved.attachment = await self.attachments.upload(
                    self.app_id, saved.id, staged.attachment_file
                )
            except ApiError as e:
                warning = f"Question saved, but attachment upload failed: {e.message}"
                self.notices.warning(warning)
                result.partial = True
                result.warnings.append(warning)

        if not result.partial:
            self.notices.success("Question created successfully" if is_new else "Question updated successfully")

        if is_new and saved.is_root and saved.workflow_group_id not in self.groups:
            # New flow: its group was assigned remotely
            await self.load()
        else:
            self._replace_local(saved)

        return result

    async def delete_question(self, question_id: str) -> OperationResult:
        """
        Delete a follow-up question, then renumber its remaining siblings
        to a contiguous 0-based run. Renumbering failures are reported but
        do not revert the deletion.
        """
        graph = self.graph
        question = graph.get(question_id)
        if question is None:
            self.notices.warning("Question not found")
            return failed("Question not found")
        if question.is_root:
            message = "The root question starts the flow; delete the whole flow instead"
            self.notices.warning(message)
            return failed(message)

        try:
            await self.workflows.delete(self.app_id, question_id)
        except ApiError as e:
            self.notices.error(e.message or "Failed to delete question")
            return failed(e.message)

        self.questions = [q for q in self.questions if q.id != question_id]
        result = ok()

        siblings = arrange_for_ordering(self.graph.non_root_questions(question.workflow_group_id))
        failures = []
        for sibling, new_order in changed_orders(siblings):
            try:
                await self.workflows.update_order(self.app_id, sibling.id, new_order)
                sibling.order = new_order
            except ApiError as e:
                failures.append(e.message)

        if failures:
            warning = f"Question deleted, but reordering the remaining questions failed: {failures[0]}"
            self.notices.warning(warning)
            result.partial = True
            result.warnings.append(warning)
        else:
            self.notices.success("Question deleted successfully")
        return result

    async def reorder_questions(self, group_id: str, from_index: int, to_index: int) -> OperationResult:
        """
        Move one follow-up question and persist only the orders that changed.

        Indexes refer to the arrangement returned by `grouped()`. On any
        persistence failure the whole cache is re-fetched.
        """
        current = arrange_for_ordering(self.graph.non_root_questions(group_id))
        if not (0 <= from_index < len(current)) or not (0 <= to_index < len(current)):
            return failed("Invalid position")

        moved = _active_first(move(current, from_index, to_index))
        changes = changed_orders(moved)
        if not changes:
            return ok()

        try:
            for question, new_order in changes:
                await self.workflows.update_order(self.app_id, question.id, new_order)
                question.order = new_order
        except ApiError as e:
            self.notices.error(e.message or "Failed to reorder questions")
            await self.load()
            return failed(e.message)

        logger.info(f"Reordered group {group_id}: {len(changes)} orders changed")
        return ok()

    async def set_question_active(self, question_id: str, is_active: bool) -> OperationResult:
        """Toggle a question; the last active question of a flow stays active"""
        graph = self.graph
        question = graph.get(question_id)
        if question is None:
            self.notices.warning("Question not found")
            return failed("Question not found")
        if question.is_active == is_active:
            return ok(question)

        if not is_active and graph.active_count(question.workflow_group_id) <= 1:
            message = "At least one question in a flow must stay active"
            self.notices.warning(message)
            return failed(message)

        try:
            saved = await self.workflows.update(self.app_id, question_id, {"isActive": is_active})
        except ApiError as e:
            self.notices.error(e.message or "Failed to update question")
            return failed(e.message)

        question.is_active = is_active
        if saved is not None:
            self._replace_local(saved)
        return ok(saved or question)

    async def delete_flow(self, group_id: str) -> OperationResult:
        """Delete every question of a flow, follow-ups first, then the root"""
        graph = self.graph
        doomed = graph.non_root_questions(group_id) + graph.roots(group_id)
        if not doomed:
            self.notices.warning("Flow not found")
            return failed("Flow not found")

        try:
            for question in doomed:
                await self.workflows.delete(self.app_id, question.id)
        except ApiError as e:
            self.notices.error(e.message or "Failed to delete flow")
            await self.load()
            return failed(e.message)

        self.questions = [q for q in self.questions if q.workflow_group_id != group_id]
        self.groups.pop(group_id, None)
        self.notices.success("Flow deleted successfully")
        return ok()

    async def remove_attachment(self, question_id: str) -> OperationResult:
        question = self.graph.get(question_id)
        if question is None or question.attachment is None or not question.attachment.has_file:
            return failed("No attachment to remove")
        try:
            await self.attachments.delete(self.app_id, question_id)
        except ApiError as e:
            self.notices.error(e.message or "Failed to remove attachment")
            return failed(e.message)
        question.attachment = None
        return ok(question)

    # ==================== CONSISTENCY ====================

    def _entry(self, group_id: str) -> Optional[GroupedWorkflow]:
        return next((g for g in self.grouped() if g.group.id == group_id), None)

    def validate_flow(self, group_id: str) -> List[FlowValidationIssue]:
        entry = self._entry(group_id)
        if entry is None:
            return []
        _, issues = validate_group(entry, self.questions)
        return issues

    async def autocorrect_flow(self, group_id: str) -> OperationResult:
        """Persist renumbered orders and cleaned terminal options for one flow"""
        entry = self._entry(group_id)
        if entry is None:
            self.notices.warning("Flow not found")
            return failed("Flow not found")

        changed = autocorrect_group(entry)
        try:
            for question in changed:
                await self.workflows.update(self.app_id, question.id, {
                    "order": question.order,
                    "options": [o.model_dump(by_alias=True, exclude_none=True) for o in question.options],
                })
        except ApiError as e:
            self.notices.error(e.message or "Failed to correct flow")
            await self.load()
            return failed(e.message)

        if changed:
            self.notices.success(f"Corrected {len(changed)} questions")
        else:
            self.notices.info("Flow is already consistent")
        return ok()
