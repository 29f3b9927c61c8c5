"""
Operation Result - outcome of an authoring operation
"""
from dataclasses import dataclass, field
from typing import Optional, Any, Dict, List
from datetime import datetime

from ..models.flow import Question


@dataclass
class OperationResult:
    """
    Outcome of one authoring operation.

    Controllers never raise remote or validation failures at their
    caller; they report them here (and as notices). `partial` marks a
    kept success whose follow-up step failed, e.g. a saved question whose
    attachment upload was rejected.
    """

    success: bool
    partial: bool = False
    question: Optional[Question] = None
    error: Optional[str] = None
    fields: Dict[str, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "partial": self.partial,
            "question": self.question.model_dump(by_alias=True) if self.question else None,
            "error": self.error,
            "fields": self.fields,
            "warnings": self.warnings,
        }


def ok(question: Optional[Question] = None) -> OperationResult:
    return OperationResult(success=True, question=question)


def failed(error: str, fields: Optional[Dict[str, str]] = None) -> OperationResult:
    return OperationResult(success=False, error=error, fields=fields or {})
