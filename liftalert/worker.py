"""
Standalone reminder worker.

Runs the reminder sweep loop outside the API process. Use it with
SCHEDULER_ENABLED=false on the API so exactly one role owns the schedule.

Usage:
    python -m liftalert.worker
"""

import asyncio
import logging

from liftalert.core.config import settings
from liftalert.core.structured_logging import configure_logging
from liftalert.jobs.reminders import reminder_loop
from liftalert.services.whatsapp_gateway import WhatsAppGateway

logger = logging.getLogger(__name__)


def main() -> None:
    """Entry point for the worker."""
    configure_logging(settings.LOG_LEVEL)
    try:
        asyncio.run(reminder_loop(WhatsAppGateway()))
    except KeyboardInterrupt:
        logger.info("Worker shutting down")


if __name__ == "__main__":
    main()
