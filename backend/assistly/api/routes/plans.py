"""
Service plan API routes - plans and the flows attached to them
"""
import logging
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any

from ...authoring import PlanAttachmentController
from ...core.notices import NoticeBoard
from ...services.plans import PlanService
from ...services.workflows import WorkflowService
from ..deps import get_plan_service, get_workflow_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/apps/{app_id}/plans", tags=["plans"])


class PlanRow(BaseModel):
    model_config = {"populate_by_name": True}

    title: str = ""
    description: str = ""
    attached_workflows: Optional[List[Dict[str, Any]]] = Field(default=None, alias="attachedWorkflows")


class SavePlansRequest(BaseModel):
    plans: List[PlanRow]


class AttachRequest(BaseModel):
    model_config = {"populate_by_name": True}

    workflow_group_id: Optional[str] = Field(default=None, alias="workflowGroupId")
    # Create a new flow instead of attaching an existing one
    question: Optional[str] = None
    title: str = ""
    question_type_id: Optional[int] = Field(default=None, alias="questionTypeId")


class ReorderRequest(BaseModel):
    model_config = {"populate_by_name": True}

    from_index: int = Field(alias="fromIndex")
    to_index: int = Field(alias="toIndex")


async def _controller(app_id: str, plans: PlanService, workflows: WorkflowService) -> PlanAttachmentController:
    controller = PlanAttachmentController(app_id, plans, workflows, NoticeBoard())
    if not await controller.load():
        raise HTTPException(
            status_code=502,
            detail={"error": "Failed to load plans", "notices": _notices(controller.notices)}
        )
    return controller


def _notices(board: NoticeBoard) -> List[Dict[str, Any]]:
    return [n.to_dict() for n in board.drain()]


def _plans_view(controller: PlanAttachmentController) -> List[Dict[str, Any]]:
    return [
        {
            "index": index,
            "id": plan.id,
            "title": plan.title,
            "description": plan.description,
            "canAttach": controller.can_attach(index),
            "attachments": [view.to_dict() for view in controller.attachment_views(index)],
        }
        for index, plan in enumerate(controller.plans)
    ]


def _check_index(controller: PlanAttachmentController, plan_index: int) -> None:
    if not (0 <= plan_index < len(controller.plans)):
        raise HTTPException(status_code=404, detail="Plan not found")


@router.get("")
async def list_plans(
    app_id: str,
    plans: PlanService = Depends(get_plan_service),
    workflows: WorkflowService = Depends(get_workflow_service)
):
    """Plans with their attached flows; unresolved flows stay listed"""
    controller = await _controller(app_id, plans, workflows)
    return {"plans": _plans_view(controller), "notices": _notices(controller.notices)}


@router.put("")
async def save_plans(
    app_id: str,
    request: SavePlansRequest,
    plans: PlanService = Depends(get_plan_service),
    workflows: WorkflowService = Depends(get_workflow_service)
):
    """
    Replace the plan rows. Rows without `attachedWorkflows` keep the
    attachments of the stored row at the same position.
    """
    controller = await _controller(app_id, plans, workflows)
    existing = list(controller.plans)
    controller.plans = []
    for index, row in enumerate(request.plans):
        controller.add_plan()
        controller.update_plan(index, title=row.title, description=row.description)
        plan = controller.plans[index]
        if row.attached_workflows is not None:
            for item in row.attached_workflows:
                group_id = item.get("workflowId") or item.get("workflowGroupId")
                if group_id:
                    controller.attach_existing(index, group_id)
        elif index < len(existing):
            plan.attached_workflows = existing[index].attached_workflows
    if not controller.plans:
        controller.add_plan()

    result = await controller.save()
    body = result.to_dict()
    body["plans"] = _plans_view(controller)
    body["notices"] = _notices(controller.notices)
    if not result.success:
        raise HTTPException(status_code=422 if result.fields else 400, detail=body)
    return body


async def _persist(controller: PlanAttachmentController, changed: bool) -> Dict[str, Any]:
    if changed:
        result = await controller.save()
        if not result.success:
            raise HTTPException(
                status_code=422 if result.fields else 400,
                detail={**result.to_dict(), "notices": _notices(controller.notices)}
            )
    return {
        "changed": changed,
        "plans": _plans_view(controller),
        "notices": _notices(controller.notices),
    }


@router.post("/{plan_index}/attachments")
async def attach_flow(
    app_id: str,
    plan_index: int,
    request: AttachRequest,
    plans: PlanService = Depends(get_plan_service),
    workflows: WorkflowService = Depends(get_workflow_service)
):
    """Attach an existing flow, or create a new one and attach it"""
    controller = await _controller(app_id, plans, workflows)
    _check_index(controller, plan_index)

    if request.workflow_group_id:
        changed = controller.attach_existing(plan_index, request.workflow_group_id)
    elif request.question is not None:
        result = await controller.create_workflow_for_plan(
            plan_index, request.question, request.title, request.question_type_id
        )
        if not result.success:
            raise HTTPException(
                status_code=422 if result.fields else 400,
                detail={**result.to_dict(), "notices": _notices(controller.notices)}
            )
        changed = not result.partial
    else:
        raise HTTPException(status_code=422, detail="workflowGroupId or question is required")

    return await _persist(controller, changed)


@router.delete("/{plan_index}/attachments/{group_id}")
async def detach_flow(
    app_id: str,
    plan_index: int,
    group_id: str,
    plans: PlanService = Depends(get_plan_service),
    workflows: WorkflowService = Depends(get_workflow_service)
):
    controller = await _controller(app_id, plans, workflows)
    _check_index(controller, plan_index)
    changed = controller.remove_attachment(plan_index, group_id)
    return await _persist(controller, changed)


@router.post("/{plan_index}/attachments/reorder")
async def reorder_attachments(
    app_id: str,
    plan_index: int,
    request: ReorderRequest,
    plans: PlanService = Depends(get_plan_service),
    workflows: WorkflowService = Depends(get_workflow_service)
):
    controller = await _controller(app_id, plans, workflows)
    _check_index(controller, plan_index)
    changed = controller.reorder_attachments(plan_index, request.from_index, request.to_index)
    return await _persist(controller, changed)
