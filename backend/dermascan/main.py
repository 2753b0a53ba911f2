import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse

from dermascan.api.v1.routes import api_router
from dermascan.core.config import settings
from dermascan.core.logging_config import configure_logging
from dermascan.services.runner import analysis_runner


configure_logging()
logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "static"


@asynccontextmanager
async def lifespan(_: FastAPI):
    logger.info("%s starting (model=%s)", settings.PROJECT_NAME, settings.GEMINI_MODEL)
    if not settings.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY is not set; every analysis will fail until it is configured")
    yield
    await analysis_runner.wait_idle()


def create_application() -> FastAPI:
    """FastAPI application factory."""
    application = FastAPI(
        title="DermaScan API",
        version="0.1.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)
    return application


app = create_application()


@app.get("/health", tags=["health"])
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/", include_in_schema=False)
async def index() -> FileResponse:
    return FileResponse(STATIC_DIR / "index.html", media_type="text/html")
