"""
Flow storage client - questions, grouped flows and the question type catalogue
"""
import logging
from typing import Optional, Any, List, Dict

from ..models.flow import GroupedWorkflow, Question, QuestionTypeItem
from .http import HttpService

logger = logging.getLogger(__name__)

# Fields the flow storage accepts in create/update bodies
WRITABLE_FIELDS = (
    "workflowGroupId", "title", "question", "questionTypeId",
    "options", "isRoot", "isActive", "order"
)


def sanitize_question(data: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only writable fields that were actually provided"""
    return {k: data[k] for k in WRITABLE_FIELDS if k in data and data[k] is not None}


class WorkflowService(HttpService):
    """Flow storage operations keyed by app (tenant) id and question id"""

    def _base(self, app_id: str) -> str:
        return f"/chatbot-workflows/apps/{app_id}"

    async def list(self, app_id: str, include_inactive: bool = True) -> List[Question]:
        params = {"includeInactive": "true"} if include_inactive else None
        res = await self.request("GET", self._base(app_id), params=params)
        return self.parse_list(Question, self.data_field(res, "workflows"), "workflow list")

    async def list_grouped(self, app_id: str) -> List[GroupedWorkflow]:
        """Grouped list: [{group, rootQuestion, questions[]}]"""
        res = await self.request("GET", f"{self._base(app_id)}/grouped")
        return self.parse_list(GroupedWorkflow, self.data_field(res, "groups"), "grouped workflow list")

    async def get(self, app_id: str, question_id: str) -> Question:
        res = await self.request("GET", f"{self._base(app_id)}/{question_id}")
        return self.parse(Question, self.data_field(res, "workflow"), "workflow")

    async def create(self, app_id: str, question: Question) -> Question:
        payload = sanitize_question(question.to_payload())
        logger.info(f"Creating question for app {app_id} (root={question.is_root})")
        res = await self.request("POST", self._base(app_id), json=payload)
        return self.parse(Question, self.data_field(res, "workflow"), "workflow")

    async def update(self, app_id: str, question_id: str, fields: Dict[str, Any]) -> Optional[Question]:
        """
        Partial update: only the given (wire-named) fields are sent, the
        rest of the stored question is preserved by the server.
        """
        payload = sanitize_question(fields)
        logger.info(f"Updating question {question_id} fields={list(payload.keys())}")
        res = await self.request("PATCH", f"{self._base(app_id)}/{question_id}", json=payload)
        workflow = self.data_field(res, "workflow")
        return self.parse(Question, workflow, "workflow") if workflow else None

    async def update_order(self, app_id: str, question_id: str, order: int) -> Optional[Question]:
        return await self.update(app_id, question_id, {"order": order})

    async def delete(self, app_id: str, question_id: str) -> None:
        logger.info(f"Deleting question {question_id}")
        await self.request("DELETE", f"{self._base(app_id)}/{question_id}")

    async def replace(self, app_id: str, questions: List[Question]) -> List[Question]:
        """Bulk replace every question of the app"""
        payload = {"workflows": [sanitize_question(q.to_payload()) for q in questions]}
        res = await self.request("PUT", self._base(app_id), json=payload)
        return self.parse_list(Question, self.data_field(res, "workflows"), "workflow list")

    async def list_public(self, app_id: str) -> List[Question]:
        """Public (unauthenticated) listing used by the widget side"""
        res = await self.request("GET", f"/chatbot-workflows/public/{app_id}", auth=False)
        return self.parse_list(Question, self.data_field(res, "workflows"), "workflow list")

    async def get_question_types(self) -> List[QuestionTypeItem]:
        res = await self.request("GET", "/question-types")
        return self.parse_list(QuestionTypeItem, self.data_field(res, "questionTypes"), "question type list")
