"""
Attachment storage client - one file per question
"""
import logging

from ..models.chat import FileUpload
from ..models.flow import Attachment
from .http import HttpService

logger = logging.getLogger(__name__)


class AttachmentService(HttpService):
    """Upload (multipart) and delete, keyed by app id + question id"""

    def _endpoint(self, app_id: str, question_id: str) -> str:
        return f"/chatbot-workflows/apps/{app_id}/{question_id}/attachment"

    async def upload(self, app_id: str, question_id: str, file: FileUpload) -> Attachment:
        logger.info(f"Uploading attachment '{file.filename}' ({file.size} bytes) to question {question_id}")
        res = await self.request(
            "POST",
            self._endpoint(app_id, question_id),
            files={"file": (file.filename, file.content, file.content_type)}
        )
        data = res.get("data") or {}
        attachment = data.get("attachment") if isinstance(data, dict) else None
        return self.parse(Attachment, attachment or data, "attachment")

    async def delete(self, app_id: str, question_id: str) -> None:
        logger.info(f"Deleting attachment of question {question_id}")
        await self.request("DELETE", self._endpoint(app_id, question_id))
