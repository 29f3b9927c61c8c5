"""
Flow authoring API routes

Each request runs one FlowAuthoringController edit session against the
flow storage; notices raised along the way are returned with the result.
"""
import logging
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any

from ...authoring import FlowAuthoringController, OperationResult
from ...core.notices import NoticeBoard
from ...models.chat import FileUpload
from ...models.flow import BranchingOption
from ...services.attachments import AttachmentService
from ...services.workflows import WorkflowService
from ..deps import get_attachment_service, get_workflow_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/apps/{app_id}/flows", tags=["flows"])


class QuestionRequest(BaseModel):
    """Body for creating a flow or adding a question to one"""

    model_config = {"populate_by_name": True}

    question: str
    title: str = ""
    question_type_id: Optional[int] = Field(default=None, alias="questionTypeId")
    options: List[BranchingOption] = Field(default_factory=list)


class QuestionUpdateRequest(BaseModel):
    """Partial update; omitted fields keep their stored value"""

    model_config = {"populate_by_name": True}

    question: Optional[str] = None
    title: Optional[str] = None
    question_type_id: Optional[int] = Field(default=None, alias="questionTypeId")
    options: Optional[List[BranchingOption]] = None
    is_active: Optional[bool] = Field(default=None, alias="isActive")


class ReorderRequest(BaseModel):
    model_config = {"populate_by_name": True}

    from_index: int = Field(alias="fromIndex")
    to_index: int = Field(alias="toIndex")


async def _controller(
    app_id: str,
    workflows: WorkflowService,
    attachments: AttachmentService
) -> FlowAuthoringController:
    controller = FlowAuthoringController(app_id, workflows, attachments, NoticeBoard())
    if not await controller.load():
        raise HTTPException(
            status_code=502,
            detail={"error": "Failed to load workflows", "notices": _notices(controller.notices)}
        )
    return controller


def _notices(board: NoticeBoard) -> List[Dict[str, Any]]:
    return [n.to_dict() for n in board.drain()]


def _respond(result: OperationResult, board: NoticeBoard) -> Dict[str, Any]:
    body = result.to_dict()
    body["notices"] = _notices(board)
    if not result.success:
        raise HTTPException(status_code=422 if result.fields else 400, detail=body)
    return body


def _flows_view(controller: FlowAuthoringController) -> List[Dict[str, Any]]:
    graph = controller.graph
    flows = []
    for entry in controller.grouped():
        questions = entry.all_questions()
        flows.append({
            "group": entry.group.model_dump(by_alias=True),
            "rootQuestion": entry.root_question.model_dump(by_alias=True) if entry.root_question else None,
            "questions": [q.model_dump(by_alias=True) for q in entry.questions],
            "displayOrder": controller.display_order(entry.group.id),
            "links": {
                q.id: [link.to_dict() for link in controller.describe_options(q)]
                for q in questions if q.id
            },
            "activeCount": graph.active_count(entry.group.id),
            "issues": [issue.to_dict() for issue in controller.validate_flow(entry.group.id)],
        })
    return flows


# ==================== FLOWS ====================

@router.get("")
async def list_flows(
    app_id: str,
    workflows: WorkflowService = Depends(get_workflow_service),
    attachments: AttachmentService = Depends(get_attachment_service)
):
    """All flows of an app with resolved option links and display positions"""
    controller = await _controller(app_id, workflows, attachments)
    return {"flows": _flows_view(controller), "notices": _notices(controller.notices)}


@router.post("")
async def create_flow(
    app_id: str,
    request: QuestionRequest,
    workflows: WorkflowService = Depends(get_workflow_service),
    attachments: AttachmentService = Depends(get_attachment_service)
):
    """Create a new flow from its opening question"""
    controller = await _controller(app_id, workflows, attachments)
    result = await controller.create_flow(
        request.question,
        title=request.title,
        question_type_id=request.question_type_id,
        options=request.options
    )
    return _respond(result, controller.notices)


@router.delete("/{group_id}")
async def delete_flow(
    app_id: str,
    group_id: str,
    workflows: WorkflowService = Depends(get_workflow_service),
    attachments: AttachmentService = Depends(get_attachment_service)
):
    controller = await _controller(app_id, workflows, attachments)
    result = await controller.delete_flow(group_id)
    return _respond(result, controller.notices)


@router.post("/{group_id}/reorder")
async def reorder_questions(
    app_id: str,
    group_id: str,
    request: ReorderRequest,
    workflows: WorkflowService = Depends(get_workflow_service),
    attachments: AttachmentService = Depends(get_attachment_service)
):
    """Move a follow-up question; indexes follow the listed arrangement"""
    controller = await _controller(app_id, workflows, attachments)
    result = await controller.reorder_questions(group_id, request.from_index, request.to_index)
    return _respond(result, controller.notices)


@router.post("/{group_id}/autocorrect")
async def autocorrect_flow(
    app_id: str,
    group_id: str,
    workflows: WorkflowService = Depends(get_workflow_service),
    attachments: AttachmentService = Depends(get_attachment_service)
):
    """Renumber question orders and drop links from terminal options"""
    controller = await _controller(app_id, workflows, attachments)
    result = await controller.autocorrect_flow(group_id)
    return _respond(result, controller.notices)


# ==================== QUESTIONS ====================

@router.post("/{group_id}/questions")
async def add_question(
    app_id: str,
    group_id: str,
    request: QuestionRequest,
    workflows: WorkflowService = Depends(get_workflow_service),
    attachments: AttachmentService = Depends(get_attachment_service)
):
    controller = await _controller(app_id, workflows, attachments)
    if controller.graph.root_of(group_id) is None:
        raise HTTPException(status_code=404, detail="Flow not found")
    staged = controller.add_question_to_flow(
        group_id,
        prompt=request.question,
        title=request.title,
        question_type_id=request.question_type_id,
        options=request.options
    )
    result = await controller.save_question(staged)
    return _respond(result, controller.notices)


@router.patch("/questions/{question_id}")
async def update_question(
    app_id: str,
    question_id: str,
    request: QuestionUpdateRequest,
    workflows: WorkflowService = Depends(get_workflow_service),
    attachments: AttachmentService = Depends(get_attachment_service)
):
    controller = await _controller(app_id, workflows, attachments)
    staged = controller.edit_question(question_id)
    if staged is None:
        raise HTTPException(status_code=404, detail="Question not found")

    changes = request.model_dump(exclude_unset=True, exclude_none=True, exclude={"is_active"})
    if changes:
        for name, value in changes.items():
            if name == "options":
                value = request.options
            setattr(staged.question, name, value)
        result = await controller.save_question(staged)
        if not result.success:
            return _respond(result, controller.notices)

    if request.is_active is not None:
        result = await controller.set_question_active(question_id, request.is_active)
    elif not changes:
        result = OperationResult(success=True, question=staged.question)

    return _respond(result, controller.notices)


@router.delete("/questions/{question_id}")
async def delete_question(
    app_id: str,
    question_id: str,
    workflows: WorkflowService = Depends(get_workflow_service),
    attachments: AttachmentService = Depends(get_attachment_service)
):
    controller = await _controller(app_id, workflows, attachments)
    result = await controller.delete_question(question_id)
    return _respond(result, controller.notices)


@router.post("/questions/{question_id}/attachment")
async def upload_attachment(
    app_id: str,
    question_id: str,
    file: UploadFile = File(...),
    workflows: WorkflowService = Depends(get_workflow_service),
    attachments: AttachmentService = Depends(get_attachment_service)
):
    """Attach a file to an existing question (replaces any previous one)"""
    controller = await _controller(app_id, workflows, attachments)
    staged = controller.edit_question(question_id)
    if staged is None:
        raise HTTPException(status_code=404, detail="Question not found")

    contents = await file.read()
    staged.attachment_file = FileUpload(
        filename=file.filename or "attachment",
        content=contents,
        content_type=file.content_type or "application/octet-stream"
    )
    result = await controller.save_question(staged)
    return _respond(result, controller.notices)


@router.delete("/questions/{question_id}/attachment")
async def remove_attachment(
    app_id: str,
    question_id: str,
    workflows: WorkflowService = Depends(get_workflow_service),
    attachments: AttachmentService = Depends(get_attachment_service)
):
    controller = await _controller(app_id, workflows, attachments)
    result = await controller.remove_attachment(question_id)
    return _respond(result, controller.notices)


# ==================== CATALOGUE ====================

question_types_router = APIRouter(prefix="/question-types", tags=["flows"])


@question_types_router.get("")
async def list_question_types(workflows: WorkflowService = Depends(get_workflow_service)):
    """The question type catalogue"""
    catalogue = await workflows.get_question_types()
    return [item.model_dump() for item in catalogue]
