import logging

from fastapi import APIRouter, FastAPI, Request
from fastapi.concurrency import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from fastapi.params import Depends
from fastapi.responses import JSONResponse

from article_stream.api import generation
from article_stream.core.config import Settings, get_settings
from article_stream.core.constants import CONFIG_GENERATION_SERVICE
from article_stream.core.exceptions import NormalizationFailure
from article_stream.services.generation_service import GenerationService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health", summary="Health Check")
async def health_check():
    """Health check endpoint to verify if the application is running."""
    return {"status": "ok", "message": "Application is running"}


@router.get("/config", summary="Configuration")
async def get_config(s: Settings = Depends(get_settings)):
    """Get application configuration."""
    return s.model_dump()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan event handler."""
    logger.info("Starting application...")

    generation_service = GenerationService(settings=get_settings())
    await generation_service.startup()
    setattr(app.state, CONFIG_GENERATION_SERVICE, generation_service)

    logger.info("Application started")
    yield

    await generation_service.shutdown()
    logger.info("Application stopped")


async def normalization_failure_handler(request: Request, exc: NormalizationFailure):
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc)},
    )


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

    if settings.all_cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.all_cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(NormalizationFailure, normalization_failure_handler)

    # Setup routers
    routers = [router, generation.router]
    for r in routers:
        app.include_router(r)

    return app
