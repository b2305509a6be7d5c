"""Report Gate: FastAPI app for deduplicated incident report submission."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reportgate import event_bus
from reportgate.config import settings
from reportgate.pipelines.auto_share import register_handlers
from reportgate.routers import files, reports
from reportgate.services.backend import get_backend
from reportgate.services.media import get_uploader

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start event bus and resolve backend/media clients; stop bus on shutdown."""
    register_handlers()
    await event_bus.start_event_bus()
    backend = get_backend()
    uploader = get_uploader()
    if settings.auto_share_reports:
        logger.info("Auto-share of new reports enabled (visibility=%s)", settings.auto_share_visibility)
    logger.info(
        "Report Gate started (backend: %s, media: %s)",
        type(backend).__name__,
        type(uploader).__name__,
    )
    yield
    await event_bus.stop_event_bus()
    logger.info("Report Gate stopped")


app = FastAPI(
    title="Report Gate",
    description="Incident report submission with similar-report deduplication",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(reports.router)
app.include_router(files.router)


@app.get("/health")
async def health():
    """Health check."""
    return {
        "status": "ok",
        "backend": type(get_backend()).__name__,
        "media": type(get_uploader()).__name__,
        "event_bus_running": event_bus.is_running(),
    }
