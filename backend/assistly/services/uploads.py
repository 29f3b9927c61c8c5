"""
Chat file upload side channel

Plain multipart POST scoped by app id; retrieval goes through the
companion GET-by-id endpoint.
"""
import logging
from typing import Optional
import httpx

from ..core.config import settings
from ..models.chat import FileUpload, UploadedFile
from .http import HttpService

logger = logging.getLogger(__name__)


class UploadService(HttpService):
    """Request/response upload channel used by the chat widget"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        # Visitors are anonymous: no operator token on this channel
        super().__init__(base_url=base_url or settings.UPLOAD_URL, token="", client=client)

    def _endpoint(self, app_id: str) -> str:
        return f"/chat/apps/{app_id}/uploads"

    async def upload(self, app_id: str, file: FileUpload) -> UploadedFile:
        logger.info(f"Uploading chat file '{file.filename}' ({file.size} bytes) for app {app_id}")
        res = await self.request(
            "POST",
            self._endpoint(app_id),
            files={"file": (file.filename, file.content, file.content_type)},
            auth=False
        )
        return self.parse(UploadedFile, res.get("data") or res, "upload response")

    def download_url(self, app_id: str, file_id: str) -> str:
        return self.url(f"{self._endpoint(app_id)}/{file_id}")
