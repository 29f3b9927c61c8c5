"""
Error taxonomy shared by the authoring controllers, the services and the widget.
"""
from typing import Any, Dict, Optional


class AssistlyError(Exception):
    """Base error for the package"""


class ValidationFailed(AssistlyError):
    """
    Local validation error.

    Raised before anything reaches a remote collaborator; carries the
    offending field messages so forms can show them inline.
    """

    def __init__(self, message: str, fields: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.fields = fields or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "fields": self.fields}


class DanglingReferenceError(ValidationFailed):
    """A branching option points at a question outside its candidates"""

    def __init__(self, option_text: str, next_question_id: str):
        super().__init__(
            f"Option '{option_text}' links to a question that is not available: {next_question_id}",
            fields={"nextQuestionId": next_question_id},
        )
        self.option_text = option_text
        self.next_question_id = next_question_id


class ApiError(AssistlyError):
    """Remote collaborator rejected a request (or could not be reached)"""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        payload: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def __str__(self) -> str:
        return self.message


class UploadTooLarge(AssistlyError):
    """File exceeds the client-side upload ceiling"""

    def __init__(self, filename: str, size: int, limit: int):
        limit_mb = limit // (1024 * 1024)
        super().__init__(f"File '{filename}' is too large. Maximum size is {limit_mb}MB.")
        self.filename = filename
        self.size = size
        self.limit = limit


class ChannelError(AssistlyError):
    """Persistent chat channel failure"""

