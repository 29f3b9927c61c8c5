from .flow import (
    QuestionKind,
    QuestionTypeItem,
    Attachment,
    BranchingOption,
    Question,
    WorkflowGroup,
    GroupedWorkflow,
    format_question_type
)
from .plan import QuestionnaireType, AttachedWorkflow, Plan
from .chat import (
    MessageKind,
    BOT_REPLY_KINDS,
    ChatMessage,
    FileUpload,
    UploadedFile,
    user_message,
    warn_message,
    error_message
)

__all__ = [
    # Flow
    "QuestionKind", "QuestionTypeItem", "Attachment", "BranchingOption",
    "Question", "WorkflowGroup", "GroupedWorkflow", "format_question_type",

    # Plan
    "QuestionnaireType", "AttachedWorkflow", "Plan",

    # Chat
    "MessageKind", "BOT_REPLY_KINDS", "ChatMessage", "FileUpload", "UploadedFile",
    "user_message", "warn_message", "error_message"
]
