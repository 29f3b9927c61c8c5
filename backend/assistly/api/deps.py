"""
Shared service instances for the API routes
"""
from functools import lru_cache

from ..services.workflows import WorkflowService
from ..services.attachments import AttachmentService
from ..services.plans import PlanService


@lru_cache()
def get_workflow_service() -> WorkflowService:
    return WorkflowService()


@lru_cache()
def get_attachment_service() -> AttachmentService:
    return AttachmentService()


@lru_cache()
def get_plan_service() -> PlanService:
    return PlanService()
