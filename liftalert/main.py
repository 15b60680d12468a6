"""FastAPI application entry point."""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

from liftalert.core.config import settings
from liftalert.core.inbound_buffer import InboundBuffer
from liftalert.core.rate_limit import limiter
from liftalert.core.structured_logging import configure_logging
from liftalert.db.session import engine
from liftalert.jobs.reminders import reminder_loop
from liftalert.routers import admin, internal, sms, webhooks
from liftalert.services.whatsapp_gateway import WhatsAppGateway

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the in-process reminder loop when this process owns the schedule."""
    task = None
    if settings.SCHEDULER_ENABLED:
        task = asyncio.create_task(reminder_loop(WhatsAppGateway()))
    else:
        logger.info("In-process reminder loop disabled (SCHEDULER_ENABLED=false)")
    try:
        yield
    finally:
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Lift Alert API",
    description="Emergency lift alert routing: SMS trigger, WhatsApp fan-out, reminders",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
    lifespan=lifespan,
)

app.state.inbound_buffer = InboundBuffer(settings.INBOUND_BUFFER_SIZE)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Admin-Token"],
)

# ============================================================================
# Routers
# ============================================================================

# Inbound SMS trigger (lift diallers)
app.include_router(sms.router, prefix="/sms", tags=["sms"])

# WhatsApp button clicks and statuses
app.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])

# Internal endpoints (external cron - protected by INTERNAL_SECRET)
app.include_router(internal.router)

# Operator reads (protected by ADMIN_TOKEN)
app.include_router(admin.router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
