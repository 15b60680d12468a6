"""
Internal endpoints for scheduled/cron operations.

Protected by X-Internal-Secret header.
For deployments that run the reminder sweep from external cron instead of
the in-process loop (SCHEDULER_ENABLED=false).
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from liftalert.core.deps import get_db, get_gateway, require_internal_secret
from liftalert.schemas.status import ReminderSweepResponse
from liftalert.services.reminder_service import run_reminder_sweep
from liftalert.services.whatsapp_gateway import MessagingGateway

router = APIRouter(
    prefix="/internal/scheduled",
    tags=["internal"],
    dependencies=[Depends(require_internal_secret)],
)


@router.post("/reminders", response_model=ReminderSweepResponse)
async def run_reminders(
    db: Session = Depends(get_db),
    gateway: MessagingGateway = Depends(get_gateway),
):
    """Run one reminder sweep (Sweep A then Sweep B)."""
    stats = await run_reminder_sweep(db, gateway)
    return ReminderSweepResponse(**stats.as_dict())
