"""
Test doubles for the remote collaborators and the chat channel.
"""
import asyncio
import itertools
import json
from typing import Any, Dict, List, Optional

from assistly.core.exceptions import ApiError, ChannelError
from assistly.models.chat import FileUpload
from assistly.models.flow import (
    Attachment, BranchingOption, GroupedWorkflow, Question, QuestionTypeItem, WorkflowGroup
)
from assistly.models.plan import Plan
from assistly.services.workflows import sanitize_question
from assistly.widget.channel import ChatChannel


def make_question(
    qid: Optional[str],
    group_id: Optional[str] = "g1",
    order: int = 0,
    is_root: bool = False,
    is_active: bool = True,
    options: Optional[List[BranchingOption]] = None,
    question: Optional[str] = None,
    title: Optional[str] = None
) -> Question:
    return Question(
        id=qid,
        workflow_group_id=group_id,
        order=order,
        is_root=is_root,
        is_active=is_active,
        options=options or [],
        question=question if question is not None else f"Prompt {qid}",
        title=title if title is not None else f"Title {qid}",
    )


# ==================== FAKE COLLABORATORS ====================

class FakeWorkflowStore:
    """In-memory flow storage with the WorkflowService interface"""

    def __init__(self, questions: Optional[List[Question]] = None, group_titles: Optional[Dict[str, str]] = None):
        self.questions: Dict[str, Question] = {q.id: q.model_copy(deep=True) for q in questions or []}
        self.group_titles = group_titles or {}
        self.calls: List[tuple] = []
        self.failures: Dict[str, ApiError] = {}
        self.failing_ids: set = set()
        self._ids = itertools.count(1)

    def fail(self, method: str, message: str = "Server rejected the request", *question_ids: str) -> None:
        self.failures[method] = ApiError(message, 400)
        self.failing_ids.update(question_ids)

    def _check(self, method: str, question_id: Optional[str] = None) -> None:
        self.calls.append((method, question_id))
        error = self.failures.get(method)
        if error and (not self.failing_ids or question_id in self.failing_ids):
            raise error

    def calls_to(self, method: str) -> List[Optional[str]]:
        return [qid for name, qid in self.calls if name == method]

    async def list_grouped(self, app_id: str) -> List[GroupedWorkflow]:
        self._check("list_grouped")
        grouped: Dict[str, List[Question]] = {}
        for q in self.questions.values():
            grouped.setdefault(q.workflow_group_id, []).append(q.model_copy(deep=True))
        result = []
        for group_id, questions in grouped.items():
            root = next((q for q in questions if q.is_root), None)
            result.append(GroupedWorkflow(
                group=WorkflowGroup(id=group_id, title=self.group_titles.get(group_id, root.title if root else "")),
                root_question=root,
                questions=[q for q in questions if not q.is_root],
            ))
        return result

    async def create(self, app_id: str, question: Question) -> Question:
        self._check("create")
        saved = question.model_copy(deep=True)
        saved.id = f"new-{next(self._ids)}"
        if saved.workflow_group_id is None:
            saved.workflow_group_id = f"group-{saved.id}"
        self.questions[saved.id] = saved
        return saved.model_copy(deep=True)

    async def update(self, app_id: str, question_id: str, fields: Dict[str, Any]) -> Question:
        self._check("update", question_id)
        stored = self.questions.get(question_id)
        if stored is None:
            raise ApiError("Workflow not found", 404)
        data = stored.model_dump(by_alias=True)
        data.update(sanitize_question(fields))
        updated = Question.model_validate(data)
        self.questions[question_id] = updated
        return updated.model_copy(deep=True)

    async def update_order(self, app_id: str, question_id: str, order: int) -> Question:
        self._check("update_order", question_id)
        stored = self.questions[question_id]
        stored.order = order
        return stored.model_copy(deep=True)

    async def delete(self, app_id: str, question_id: str) -> None:
        self._check("delete", question_id)
        if question_id not in self.questions:
            raise ApiError("Workflow not found", 404)
        del self.questions[question_id]

    async def get_question_types(self) -> List[QuestionTypeItem]:
        self._check("get_question_types")
        return [
            QuestionTypeItem(id=1, code="single_choice", value="Single choice"),
            QuestionTypeItem(id=2, code="text_input", value="Text input"),
        ]


class FakeAttachmentStore:
    """In-memory attachment storage with the AttachmentService interface"""

    def __init__(self):
        self.uploads: List[tuple] = []
        self.deleted: List[str] = []
        self.error: Optional[ApiError] = None

    async def upload(self, app_id: str, question_id: str, file: FileUpload) -> Attachment:
        if self.error:
            raise self.error
        self.uploads.append((question_id, file.filename))
        return Attachment(filename=file.filename, content_type=file.content_type, has_file=True)

    async def delete(self, app_id: str, question_id: str) -> None:
        if self.error:
            raise self.error
        self.deleted.append(question_id)


class FakePlanStore:
    """In-memory plan storage with the PlanService interface"""

    def __init__(self, plans: Optional[List[Plan]] = None):
        self.plans = [p.model_copy(deep=True) for p in plans or []]
        self.saved_payloads: List[List[Dict[str, Any]]] = []
        self.error: Optional[ApiError] = None

    async def list(self, app_id: str) -> List[Plan]:
        return [p.model_copy(deep=True) for p in self.plans]

    async def upsert(self, app_id: str, plans: List[Plan]) -> None:
        if self.error:
            raise self.error
        self.saved_payloads.append([p.to_payload() for p in plans])
        self.plans = [p.model_copy(deep=True) for p in plans]


class FakeChannel(ChatChannel):
    """Queue-backed chat channel; the test plays the server"""

    def __init__(self, url: str, fail_connect: bool = False):
        self.url = url
        self.fail_connect = fail_connect
        self.sent: List[Dict[str, Any]] = []
        self.connected = False
        self.closed = False
        self._incoming: asyncio.Queue = asyncio.Queue()

    async def connect(self) -> None:
        if self.fail_connect:
            raise ChannelError("Connection refused")
        self.connected = True

    async def send(self, message: Dict[str, Any]) -> None:
        if self.closed:
            raise ChannelError("Channel closed")
        self.sent.append(message)

    async def close(self) -> None:
        self.closed = True
        self._incoming.put_nowait(None)

    async def frames(self):
        while True:
            frame = await self._incoming.get()
            if frame is None:
                return
            if isinstance(frame, Exception):
                raise frame
            yield frame

    async def deliver(self, frame: Any) -> None:
        """Push one server frame and let the listener handle it"""
        self._incoming.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))
        for _ in range(5):
            await asyncio.sleep(0)

    async def hang_up(self) -> None:
        """Remote side closes the connection"""
        self._incoming.put_nowait(None)
        for _ in range(5):
            await asyncio.sleep(0)

    async def fail(self, reason: str) -> None:
        """Connection drops abnormally"""
        self._incoming.put_nowait(ChannelError(reason))
        for _ in range(5):
            await asyncio.sleep(0)


