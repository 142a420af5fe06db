"""Collaborator hooks — the attendance and visitor modules report lifecycle events here."""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.infrastructure.database import get_db
from app.infrastructure.providers.registry import ProviderRegistry
from app.interfaces.api.deps import verify_cron_secret
from app.interfaces.deps import get_providers
from app.domain.models.visitor import Visitor
from app.domain.schemas.engagement import AtRiskSummary, QueuedTask
from app.application.services.absence_service import check_and_flag_at_risk
from app.scheduler.tasks import enqueue, send_visitor_assigned_task, send_welcome_task

router = APIRouter(prefix="/api/hooks", tags=["Hooks"], dependencies=[Depends(verify_cron_secret)])


def _require_visitor(db: Session, visitor_id: str) -> Visitor:
    visitor = db.get(Visitor, visitor_id)
    if visitor is None:
        raise NotFoundError("Visitor not found", details={"visitor_id": visitor_id})
    return visitor


@router.post("/gatherings/{gathering_id}/completed", response_model=AtRiskSummary)
async def gathering_completed(
    gathering_id: str,
    db: Session = Depends(get_db),
    providers: ProviderRegistry = Depends(get_providers),
):
    """Run the at-risk check for a gathering whose attendance was just finalized."""
    result = await check_and_flag_at_risk(db, gathering_id, providers)
    return result.to_dict()


@router.post("/visitors/{visitor_id}/created", response_model=QueuedTask, status_code=status.HTTP_202_ACCEPTED)
def visitor_created(visitor_id: str, db: Session = Depends(get_db)):
    """Queue the WhatsApp welcome for a new visitor."""
    _require_visitor(db, visitor_id)
    job_id = enqueue(send_welcome_task, visitor_id, name="visitor_welcome")
    return {"queued": True, "job_id": job_id}


@router.post("/visitors/{visitor_id}/assigned", response_model=QueuedTask, status_code=status.HTTP_202_ACCEPTED)
def visitor_assigned(
    visitor_id: str,
    leader_id: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Queue the notice to the leader a visitor was just assigned to."""
    visitor = _require_visitor(db, visitor_id)
    job_id = enqueue(
        send_visitor_assigned_task,
        visitor_id,
        leader_id or visitor.assigned_to,
        name="visitor_assigned",
    )
    return {"queued": True, "job_id": job_id}
