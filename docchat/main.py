"""
Main FastAPI application.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docchat.api.v1 import api_router
from docchat.core.config import settings
from docchat.core.dependencies import Services, build_services
from docchat.core.exceptions import DocChatError, DocumentAlreadyExistsError, NotFoundError, ValidationError
from docchat.models import Base
from docchat.schemas.common import HealthResponse

# Configure logging BEFORE creating the app
logging.basicConfig(
    level=logging.INFO,
    format='%(levelname)s:\t%(name)s\t%(message)s',
    handlers=[
        logging.StreamHandler()  # Output to console
    ]
)
logging.getLogger("uvicorn").setLevel(logging.INFO)

logger = logging.getLogger(__name__)


def _error(status_code: int, detail: str, exc: Exception) -> JSONResponse:
    content = {"detail": detail}
    if settings.DEBUG:
        content["message"] = str(exc)
    return JSONResponse(status_code=status_code, content=content)


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Create the FastAPI app.

    Args:
        services: Prebuilt service container; built from settings at startup when omitted
    """
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Chat with your documents: ingestion pipeline and retrieval-augmented answers",
        version="0.1.0",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.services = services

    # Configure CORS - Always apply middleware
    cors_origins = settings.BACKEND_CORS_ORIGINS if settings.BACKEND_CORS_ORIGINS != "*" else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin).rstrip("/") for origin in cors_origins],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Global exception handlers
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(ValidationError)
    async def domain_validation_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})

    @app.exception_handler(DocumentAlreadyExistsError)
    async def conflict_handler(request: Request, exc: DocumentAlreadyExistsError):
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})

    @app.exception_handler(DocChatError)
    async def pipeline_exception_handler(request: Request, exc: DocChatError):
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", exc)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", exc)

    # Startup and shutdown events
    @app.on_event("startup")
    async def startup_event():
        if app.state.services is None:
            app.state.services = build_services()
        # Create database tables
        Base.metadata.create_all(bind=app.state.services.engine)
        logger.info(f"Starting {settings.PROJECT_NAME} (env={settings.ENV})")

    @app.on_event("shutdown")
    async def shutdown_event():
        if app.state.services is not None:
            app.state.services.task_queue.shutdown()
        logger.info(f"Shutting down {settings.PROJECT_NAME}")

    # Health check endpoints
    @app.get("/", tags=["Health"])
    async def root():
        return {
            "message": f"{settings.PROJECT_NAME} API",
            "status": "healthy",
            "version": "0.1.0",
            "docs": "/docs",
        }

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check():
        return HealthResponse(status="healthy")

    # Include API routers
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)
    return app


app = create_app()
