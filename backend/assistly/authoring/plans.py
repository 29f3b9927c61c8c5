"""
Plan Attachment Controller

Second authoring surface: attaches existing root flows to service plans
in an explicit order. Reads the same flow storage as the flow editor but
keeps no shared state with it.
"""
import logging
from typing import Optional, List, Dict, Any
from dataclasses import dataclass

from ..core.config import settings
from ..core.exceptions import ApiError
from ..core.notices import NoticeBoard
from ..flow.graph import move, renumber
from ..models.flow import GroupedWorkflow, Question
from ..models.plan import AttachedWorkflow, Plan
from ..services.plans import PlanService
from ..services.workflows import WorkflowService
from .results import OperationResult, ok, failed

logger = logging.getLogger(__name__)


@dataclass
class AttachmentView:
    """An attached flow as shown to the operator, resolved or not"""
    workflow_group_id: Optional[str]
    order: int
    resolved: bool
    title: str
    root_prompt: Optional[str] = None
    is_active: Optional[bool] = None
    question_count: int = 0

    @property
    def position(self) -> int:
        return self.order + 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflowGroupId": self.workflow_group_id,
            "order": self.order,
            "position": self.position,
            "resolved": self.resolved,
            "title": self.title,
            "rootPrompt": self.root_prompt,
            "isActive": self.is_active,
            "questionCount": self.question_count,
        }


class PlanAttachmentController:
    """Edit session over the plans of one app"""

    def __init__(
        self,
        app_id: str,
        plans: PlanService,
        workflows: WorkflowService,
        notices: Optional[NoticeBoard] = None
    ):
        self.app_id = app_id
        self.plan_service = plans
        self.workflows = workflows
        self.notices = notices or NoticeBoard()
        self.plans: List[Plan] = [Plan()]
        self.flows: List[GroupedWorkflow] = []
        self._snapshot: List[Dict[str, Any]] = self._dump()

    def _dump(self) -> List[Dict[str, Any]]:
        return [p.to_payload() for p in self.plans if not p.is_blank]

    # ==================== LOADING ====================

    async def load(self) -> bool:
        """Fetch plans and the flows they can reference"""
        try:
            plans = await self.plan_service.list(self.app_id)
            flows = await self.workflows.list_grouped(self.app_id)
        except ApiError as e:
            self.notices.error(e.message or "Failed to load plans")
            return False

        self.plans = plans or [Plan()]
        self.flows = flows
        self._snapshot = self._dump()
        logger.debug(f"Loaded {len(plans)} plans and {len(flows)} flows for app {self.app_id}")
        return True

    async def reload_flows(self) -> bool:
        try:
            self.flows = await self.workflows.list_grouped(self.app_id)
        except ApiError as e:
            self.notices.error(e.message or "Failed to load workflows")
            return False
        return True

    def resolve(self, group_id: Optional[str]) -> Optional[GroupedWorkflow]:
        """
        Find the flow a plan entry points at. Older entries may hold the
        root question id instead of the group id.
        """
        if not group_id:
            return None
        for entry in self.flows:
            if entry.group.id == group_id:
                return entry
            if entry.root_question is not None and entry.root_question.id == group_id:
                return entry
        return None

    def _plan(self, plan_index: int) -> Optional[Plan]:
        if 0 <= plan_index < len(self.plans):
            return self.plans[plan_index]
        self.notices.warning("Plan not found")
        return None

    # ==================== PLAN ROWS ====================

    def add_plan(self) -> int:
        self.plans.append(Plan())
        return len(self.plans) - 1

    def remove_plan(self, plan_index: int) -> bool:
        if self._plan(plan_index) is None:
            return False
        self.plans.pop(plan_index)
        if not self.plans:
            self.plans.append(Plan())
        return True

    def update_plan(
        self,
        plan_index: int,
        title: Optional[str] = None,
        description: Optional[str] = None
    ) -> bool:
        plan = self._plan(plan_index)
        if plan is None:
            return False
        if title is not None:
            plan.title = title
        if description is not None:
            plan.description = description
        return True

    @property
    def has_unsaved_changes(self) -> bool:
        return self._dump() != self._snapshot

    def validate(self) -> Dict[int, Dict[str, str]]:
        """Per-row errors; a row must have both fields or neither"""
        errors: Dict[int, Dict[str, str]] = {}
        for index, plan in enumerate(self.plans):
            has_title = bool(plan.title.strip())
            has_description = bool(plan.description.strip())
            if has_title and not has_description:
                errors[index] = {"description": "Description is required when a title is provided"}
            elif has_description and not has_title:
                errors[index] = {"title": "Title is required when a description is provided"}
        return errors

    # ==================== ATTACHMENTS ====================

    def can_attach(self, plan_index: int) -> bool:
        """Flows can only be attached to a plan with a title and description"""
        if not (0 <= plan_index < len(self.plans)):
            return False
        return self.plans[plan_index].is_complete

    def attach_existing(self, plan_index: int, group_id: str) -> bool:
        plan = self._plan(plan_index)
        if plan is None:
            return False
        if not plan.is_complete:
            self.notices.warning("Add a title and description before attaching flows")
            return False

        flow = self.resolve(group_id)
        attached = {aw.workflow_group_id for aw in plan.attached_workflows}
        if group_id in attached or (flow is not None and flow.group.id in attached):
            self.notices.info("This flow is already attached to the plan")
            return False

        if flow is None:
            self.notices.warning("Flow not found")
            return False

        next_order = max((aw.order for aw in plan.attached_workflows), default=-1) + 1
        plan.attached_workflows.append(AttachedWorkflow(
            workflow_group_id=flow.group.id,
            order=next_order,
            workflow_title=flow.group.title
        ))
        logger.info(f"Attached flow {flow.group.id} to plan {plan_index} at {next_order}")
        return True

    def remove_attachment(self, plan_index: int, group_id: str) -> bool:
        plan = self._plan(plan_index)
        if plan is None:
            return False
        remaining = [aw for aw in plan.sorted_attachments() if aw.workflow_group_id != group_id]
        if len(remaining) == len(plan.attached_workflows):
            return False
        plan.attached_workflows = renumber(remaining)
        return True

    def reorder_attachments(self, plan_index: int, from_index: int, to_index: int) -> bool:
        """Move over the order-sorted view, then renumber every entry"""
        plan = self._plan(plan_index)
        if plan is None:
            return False
        current = plan.sorted_attachments()
        if not (0 <= from_index < len(current)) or not (0 <= to_index < len(current)):
            return False
        moved = move(current, from_index, to_index)
        plan.attached_workflows = renumber(moved)
        return True

    def attachment_views(self, plan_index: int) -> List[AttachmentView]:
        """Every attached entry, with unresolved ones kept as placeholders"""
        plan = self._plan(plan_index)
        if plan is None:
            return []
        views = []
        for aw in plan.sorted_attachments():
            flow = self.resolve(aw.workflow_group_id)
            if flow is None:
                views.append(AttachmentView(
                    workflow_group_id=aw.workflow_group_id,
                    order=aw.order,
                    resolved=False,
                    title=aw.workflow_title or "Loading workflow..."
                ))
                continue
            root = flow.root_question
            views.append(AttachmentView(
                workflow_group_id=aw.workflow_group_id,
                order=aw.order,
                resolved=True,
                title=flow.group.title or (root.title if root else ""),
                root_prompt=root.question if root else None,
                is_active=flow.group.is_active,
                question_count=len(flow.all_questions())
            ))
        return views

    def available_flows(self, plan_index: int) -> List[GroupedWorkflow]:
        """Flows not yet attached to the plan"""
        plan = self._plan(plan_index)
        if plan is None:
            return []
        attached = {aw.workflow_group_id for aw in plan.attached_workflows}
        return [f for f in self.flows if f.group.id not in attached]

    # ==================== PERSISTENCE ====================

    async def save(self) -> OperationResult:
        errors = self.validate()
        if errors:
            message = "Please fix the highlighted plans before saving"
            self.notices.error(message)
            fields = {f"{index}.{name}": text for index, row in errors.items() for name, text in row.items()}
            return failed(message, fields)

        to_save = [p for p in self.plans if not p.is_blank]
        try:
            await self.plan_service.upsert(self.app_id, to_save)
        except ApiError as e:
            self.notices.error(e.message or "Failed to save plans")
            return failed(e.message)

        self._snapshot = self._dump()
        self.notices.success("Plans saved successfully")
        return ok()

    async def create_workflow_for_plan(
        self,
        plan_index: int,
        opening_prompt: str,
        title: str = "",
        question_type_id: Optional[int] = None
    ) -> OperationResult:
        """Create a new root flow and attach it to the plan"""
        plan = self._plan(plan_index)
        if plan is None:
            return failed("Plan not found")
        if not plan.is_complete:
            message = "Add a title and description before attaching flows"
            self.notices.warning(message)
            return failed(message)

        prompt = opening_prompt.strip()
        if not prompt:
            message = "Question text is required"
            self.notices.error(message)
            return failed(message, {"question": message})

        root = Question(
            title=title.strip() or prompt[:settings.TITLE_MAX_LENGTH],
            question=prompt,
            question_type_id=question_type_id,
            is_root=True,
            is_active=True,
            order=0
        )
        try:
            saved = await self.workflows.create(self.app_id, root)
        except ApiError as e:
            self.notices.error(e.message or "Failed to create workflow")
            return failed(e.message)

        # New group id is only known remotely
        await self.reload_flows()
        group_id = saved.workflow_group_id or saved.id
        if not self.attach_existing(plan_index, group_id):
            warning = "Workflow created, but it could not be attached to the plan"
            self.notices.warning(warning)
            result = ok(saved)
            result.partial = True
            result.warnings.append(warning)
            return result

        self.notices.success("Workflow created and attached")
        return ok(saved)
