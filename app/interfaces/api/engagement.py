"""Engagement views for leadership — at-risk members and overdue visitors."""

from datetime import timedelta
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.config import get_settings
from app.core.clock import utcnow
from app.infrastructure.database import get_db
from app.interfaces.api.deps import require_leadership
from app.domain.models.church import Church
from app.domain.models.profile import Profile
from app.domain.models.visitor import Visitor, SLA_STATUSES
from app.domain.schemas.engagement import AtRiskMemberRead, VisitorEscalationList, VisitorEscalationRead

settings = get_settings()
router = APIRouter(prefix="/api/engagement", tags=["Engagement"])


@router.get("/at-risk", response_model=List[AtRiskMemberRead])
def list_at_risk(
    db: Session = Depends(get_db),
    profile: Profile = Depends(require_leadership),
):
    return (
        db.query(Profile)
        .filter(Profile.church_id == profile.church_id, Profile.status == "at_risk")
        .order_by(Profile.updated_at.desc(), Profile.id)
        .all()
    )


@router.get("/visitor-escalations", response_model=VisitorEscalationList)
def list_visitor_escalations(
    db: Session = Depends(get_db),
    profile: Profile = Depends(require_leadership),
):
    """Visitors still uncontacted after the church's SLA, oldest first."""
    church = db.get(Church, profile.church_id)
    sla_hours = (church.visitor_sla_hours if church else None) or settings.DEFAULT_VISITOR_SLA_HOURS
    cutoff = utcnow() - timedelta(hours=sla_hours)

    visitors = (
        db.query(Visitor)
        .filter(
            Visitor.church_id == profile.church_id,
            Visitor.status.in_(SLA_STATUSES),
            Visitor.visited_at < cutoff,
        )
        .order_by(Visitor.visited_at.asc())
        .all()
    )
    return {
        "items": [VisitorEscalationRead.model_validate(v) for v in visitors],
        "sla_hours": sla_hours,
    }
