"""
Conversation flow models - questions, branching options and workflow groups

Wire names are camelCase (the flow storage API speaks JSON from a JS
backend); Python code uses snake_case through field aliases.
"""
from enum import Enum
from typing import Optional, Any, List, Dict
from pydantic import BaseModel, Field


class QuestionKind(str, Enum):
    """Answer kinds known to the question type catalogue"""
    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    TEXT_INPUT = "text_input"
    NUMBER_INPUT = "number_input"
    EMAIL_INPUT = "email_input"
    PHONE_INPUT = "phone_input"


class QuestionTypeItem(BaseModel):
    """Entry of the externally defined question type enumeration"""

    model_config = {"extra": "allow"}

    id: int
    code: str
    value: str


class Attachment(BaseModel):
    """File descriptor attached to a question (at most one per question)"""

    model_config = {"extra": "allow", "populate_by_name": True}

    filename: Optional[str] = None
    content_type: Optional[str] = Field(default=None, alias="contentType")
    has_file: bool = Field(default=False, alias="hasFile")


class BranchingOption(BaseModel):
    """
    Clickable choice attached to a question.

    next_question_id None means sequential fallback to the next active
    question by order; is_terminal ends the flow.
    """

    model_config = {"extra": "allow", "populate_by_name": True}

    id: Optional[str] = Field(default=None, alias="_id")
    text: str = ""
    order: int = 0
    is_terminal: bool = Field(default=False, alias="isTerminal")
    next_question_id: Optional[str] = Field(default=None, alias="nextQuestionId")


class Question(BaseModel):
    """Flow node - one message/question of a conversation flow"""

    model_config = {"extra": "allow", "populate_by_name": True}

    id: Optional[str] = Field(default=None, alias="_id")
    owner: Optional[str] = None
    workflow_group_id: Optional[str] = Field(default=None, alias="workflowGroupId")
    title: str = ""
    question: str = ""  # Prompt text shown to the visitor
    question_type_id: Optional[int] = Field(default=None, alias="questionTypeId")
    options: List[BranchingOption] = Field(default_factory=list)
    is_root: bool = Field(default=False, alias="isRoot")
    is_active: bool = Field(default=True, alias="isActive")
    order: int = 0
    attachment: Optional[Attachment] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

    def to_payload(self) -> Dict[str, Any]:
        """Serialize for the flow storage API (server-owned fields excluded)"""
        return self.model_dump(
            by_alias=True,
            exclude_none=True,
            exclude={"id", "owner", "attachment", "created_at", "updated_at"},
        )


class WorkflowGroup(BaseModel):
    """A named conversation flow: one root question plus follow-ups"""

    model_config = {"extra": "allow", "populate_by_name": True}

    id: str = Field(alias="_id")
    title: str = ""
    is_active: bool = Field(default=True, alias="isActive")


class GroupedWorkflow(BaseModel):
    """Grouped-list entry returned by the flow storage API"""

    model_config = {"extra": "allow", "populate_by_name": True}

    group: WorkflowGroup
    root_question: Optional[Question] = Field(default=None, alias="rootQuestion")
    questions: List[Question] = Field(default_factory=list)

    def all_questions(self) -> List[Question]:
        """Root first, then the follow-up questions as stored"""
        result = [self.root_question] if self.root_question else []
        seen = {q.id for q in result}
        result.extend(q for q in self.questions if q.id not in seen)
        return result


def format_question_type(
    question_type_id: Optional[int],
    catalogue: List[QuestionTypeItem]
) -> str:
    """Human readable label for a question type id"""
    for item in catalogue:
        if item.id == question_type_id:
            return item.value
    return "Unknown"
