"""
FastAPI application - operator authoring API
"""
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..core.config import settings
from ..core.exceptions import ApiError, ValidationFailed
from .routes import flows_router, question_types_router, plans_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""

    app = FastAPI(
        title=settings.APP_NAME,
        description="Assistly - conversation flow authoring and chat widget backend",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationFailed)
    async def validation_failed(request: Request, exc: ValidationFailed):
        return JSONResponse(status_code=422, content=exc.to_dict())

    @app.exception_handler(ApiError)
    async def api_error(request: Request, exc: ApiError):
        """Remote collaborator rejections are passed through verbatim"""
        logger.warning(f"{request.method} {request.url.path} failed upstream: {exc.message}")
        status = exc.status_code if exc.status_code >= 400 else 502
        return JSONResponse(status_code=status, content={"error": exc.message})

    # Include routers
    app.include_router(flows_router, prefix="/api")
    app.include_router(question_types_router, prefix="/api")
    app.include_router(plans_router, prefix="/api")

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "name": settings.APP_NAME,
            "version": "1.0.0",
            "status": "running"
        }

    @app.get("/health")
    async def health():
        """Health check endpoint"""
        return {"status": "ok"}

    return app


# Create app instance
app = create_app()
