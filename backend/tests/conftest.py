"""
Pytest configuration and shared fixtures for Assistly tests.
"""
import pytest
import httpx
from typing import Callable, List

from assistly.models.flow import BranchingOption, Question
from assistly.services.uploads import UploadService

from helpers import (
    FakeAttachmentStore, FakeChannel, FakePlanStore, FakeWorkflowStore, make_question
)


# ==================== FIXTURES ====================

@pytest.fixture
def sample_questions() -> List[Question]:
    """One flow: root plus three follow-ups, one option per branch style."""
    root = make_question("root", order=0, is_root=True, options=[
        BranchingOption(text="Sales", order=0, next_question_id="q2"),
        BranchingOption(text="Support", order=1),
        BranchingOption(text="Bye", order=2, is_terminal=True),
    ])
    return [
        root,
        make_question("q1", order=0),
        make_question("q2", order=1),
        make_question("q3", order=2),
    ]


@pytest.fixture
def workflow_store(sample_questions) -> FakeWorkflowStore:
    return FakeWorkflowStore(sample_questions, group_titles={"g1": "Welcome"})


@pytest.fixture
def attachment_store() -> FakeAttachmentStore:
    return FakeAttachmentStore()


@pytest.fixture
def plan_store() -> FakePlanStore:
    return FakePlanStore()


@pytest.fixture
def channels() -> List[FakeChannel]:
    """Every channel the runtime opened, in order"""
    return []


@pytest.fixture
def channel_factory(channels) -> Callable[[str], FakeChannel]:
    def factory(url: str) -> FakeChannel:
        channel = FakeChannel(url)
        channels.append(channel)
        return channel
    return factory


@pytest.fixture
def upload_requests() -> List[httpx.Request]:
    return []


@pytest.fixture
def upload_service(upload_requests) -> UploadService:
    """Real UploadService over a mock transport"""

    def handler(request: httpx.Request) -> httpx.Response:
        upload_requests.append(request)
        return httpx.Response(201, json={"data": {
            "fileId": f"file-{len(upload_requests)}",
            "filename": "scan.pdf",
            "contentType": "application/pdf",
        }})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return UploadService(base_url="https://files.test/api", client=client)
