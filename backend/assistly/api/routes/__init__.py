from .flows import router as flows_router, question_types_router
from .plans import router as plans_router

__all__ = [
    "flows_router",
    "question_types_router",
    "plans_router"
]
