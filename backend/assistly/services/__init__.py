from .http import HttpService
from .workflows import WorkflowService, sanitize_question
from .attachments import AttachmentService
from .plans import PlanService
from .uploads import UploadService
from .country import CountryDetector, CountryDetectionResult

__all__ = [
    "HttpService",
    "WorkflowService",
    "sanitize_question",
    "AttachmentService",
    "PlanService",
    "UploadService",
    "CountryDetector",
    "CountryDetectionResult"
]
