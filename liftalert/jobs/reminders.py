"""Periodic reminder loop (in-process or standalone worker)."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from sqlalchemy.orm import Session

from liftalert.core.config import settings
from liftalert.db.session import SessionLocal
from liftalert.services.reminder_service import ReminderSweepStats, run_reminder_sweep
from liftalert.services.whatsapp_gateway import MessagingGateway

logger = logging.getLogger(__name__)


async def run_tick(
    gateway: MessagingGateway,
    session_factory: Callable[[], Session] = SessionLocal,
) -> ReminderSweepStats | None:
    """One sweep in a fresh session. Returns None if the sweep itself failed."""
    with session_factory() as db:
        try:
            return await run_reminder_sweep(db, gateway)
        except Exception:
            db.rollback()
            logger.exception("Error in reminder tick")
            return None


async def reminder_loop(
    gateway: MessagingGateway,
    interval: float | None = None,
    session_factory: Callable[[], Session] = SessionLocal,
) -> None:
    """Run a sweep every `interval` seconds until cancelled."""
    interval = interval if interval is not None else settings.REMINDER_INTERVAL_SECONDS
    logger.info("Reminder loop starting (interval: %ss)", interval)

    while True:
        await run_tick(gateway, session_factory)
        await asyncio.sleep(interval)
