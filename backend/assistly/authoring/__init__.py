from .results import OperationResult
from .flows import FlowAuthoringController, StagedQuestion
from .plans import PlanAttachmentController, AttachmentView

__all__ = [
    "OperationResult",
    "FlowAuthoringController",
    "StagedQuestion",
    "PlanAttachmentController",
    "AttachmentView"
]
