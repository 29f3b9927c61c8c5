"""
Service plan models - plans with an ordered list of attached flows
"""
from enum import IntEnum
from typing import Optional, Any, List, Dict
from pydantic import BaseModel, Field, field_validator


class QuestionnaireType(IntEnum):
    """Questionnaire entry kinds; plans are stored as SERVICE_PLAN entries"""
    FAQ = 1
    SERVICE_PLAN = 2


class AttachedWorkflow(BaseModel):
    """Reference from a plan to a workflow group, with its position"""

    model_config = {"extra": "allow", "populate_by_name": True}

    workflow_group_id: Optional[str] = Field(default=None, alias="workflowId")
    order: int = 0
    workflow_title: str = Field(default="", alias="workflowTitle")

    @field_validator("workflow_group_id", mode="before")
    @classmethod
    def unwrap_populated(cls, value: Any) -> Optional[str]:
        """Storage may return the referenced workflow populated as an object"""
        if isinstance(value, dict):
            value = value.get("_id") or value.get("id")
        if value is None or value == "":
            return None
        return str(value)


class Plan(BaseModel):
    """Operator-defined service plan"""

    model_config = {"extra": "allow", "populate_by_name": True}

    id: Optional[str] = Field(default=None, alias="_id")
    title: str = ""
    description: str = ""
    attached_workflows: List[AttachedWorkflow] = Field(default_factory=list, alias="attachedWorkflows")

    @property
    def is_complete(self) -> bool:
        """Both title and description filled in"""
        return bool(self.title.strip()) and bool(self.description.strip())

    @property
    def is_blank(self) -> bool:
        return not self.title.strip() and not self.description.strip()

    def sorted_attachments(self) -> List[AttachedWorkflow]:
        return sorted(self.attached_workflows, key=lambda a: a.order)

    def to_payload(self) -> Dict[str, Any]:
        """
        Flatten for the plan storage API.

        Entries without a workflow id are dropped before transmission.
        """
        return {
            "question": self.title.strip(),
            "answer": self.description.strip(),
            "attachedWorkflows": [
                {"workflowId": aw.workflow_group_id, "order": aw.order}
                for aw in self.attached_workflows
                if aw.workflow_group_id is not None
            ],
        }

    @classmethod
    def from_questionnaire(cls, item: Dict[str, Any]) -> "Plan":
        """Build a plan from a questionnaire entry (question/answer naming)"""
        attached = []
        for raw in item.get("attachedWorkflows") or []:
            aw = AttachedWorkflow.model_validate(raw)
            if aw.workflow_group_id is None:
                continue
            populated = raw.get("workflowId")
            if isinstance(populated, dict) and not aw.workflow_title:
                aw.workflow_title = populated.get("title", "")
            attached.append(aw)
        return cls(
            id=item.get("_id"),
            title=item.get("question") or "",
            description=item.get("answer") or "",
            attached_workflows=sorted(attached, key=lambda a: a.order),
        )
