"""Cron endpoints — invoked by the external scheduler with the shared secret."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.infrastructure.database import get_db
from app.infrastructure.providers.registry import ProviderRegistry
from app.interfaces.api.deps import verify_cron_secret
from app.interfaces.deps import get_providers
from app.domain.schemas.engagement import EscalationSummary, ReminderSummary
from app.application.services.trigger_service import (
    run_event_reminders,
    run_gathering_reminders,
    run_visitor_sla_escalation,
)

router = APIRouter(prefix="/api/cron", tags=["Cron"], dependencies=[Depends(verify_cron_secret)])


@router.api_route("/event-reminders", methods=["GET", "POST"], response_model=ReminderSummary)
async def event_reminders(
    db: Session = Depends(get_db),
    providers: ProviderRegistry = Depends(get_providers),
):
    return await run_event_reminders(db, providers=providers)


@router.api_route("/gathering-reminders", methods=["GET", "POST"], response_model=ReminderSummary)
async def gathering_reminders(
    db: Session = Depends(get_db),
    providers: ProviderRegistry = Depends(get_providers),
):
    return await run_gathering_reminders(db, providers=providers)


@router.api_route("/visitor-sla", methods=["GET", "POST"], response_model=EscalationSummary)
async def visitor_sla(
    db: Session = Depends(get_db),
    providers: ProviderRegistry = Depends(get_providers),
):
    return await run_visitor_sla_escalation(db, providers=providers)
