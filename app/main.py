"""FastAPI application — main entry point."""

import structlog
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.infrastructure.database import engine, Base
from app.core.logging import configure_logging
from app.core.middleware import setup_middleware
from app.core.exceptions import setup_exception_handlers

# Import all models so SQLAlchemy knows about them
from app.domain.models.church import Church
from app.domain.models.profile import Profile
from app.domain.models.group import Ministry, Group, GroupMember
from app.domain.models.gathering import Gathering, Attendance
from app.domain.models.event import Event, EventRegistration
from app.domain.models.visitor import Visitor
from app.domain.models.notification_log import NotificationLog

# Import routers
from app.interfaces.api.notifications import router as notifications_router
from app.interfaces.api.cron import router as cron_router
from app.interfaces.api.hooks import router as hooks_router
from app.interfaces.api.engagement import router as engagement_router
from app.interfaces.webhooks.whatsapp import router as whatsapp_router
from app.scheduler.tasks import start_scheduler, stop_scheduler

settings = get_settings()

# Configure logging immediately
configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — startup and shutdown events."""
    logger.info("Starting Ekklesia Engage...", env=settings.ENVIRONMENT)

    # Create DB tables (dev only — use Alembic in production)
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

    start_scheduler()

    yield

    stop_scheduler()
    logger.info("Ekklesia Engage stopped")


app = FastAPI(
    title="Ekklesia Engage",
    description="Church engagement API — notifications, reminders, visitor follow-up and at-risk tracking",
    version="1.0.0",
    lifespan=lifespan,
)

# Correlation ID + request logging
setup_middleware(app)

# Error envelope for AppError, request validation and anything unhandled
setup_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(notifications_router)
app.include_router(cron_router)
app.include_router(hooks_router)
app.include_router(engagement_router)
app.include_router(whatsapp_router)


@app.get("/")
def root():
    return {
        "name": "Ekklesia Engage",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
def health():
    return {"status": "healthy"}
