"""Absence tracking and the active → at_risk transition.

Run after a gathering is completed. A member whose newest completed
gatherings in the group are all absences (a missing attendance row counts as
absent) reaches the threshold and is flagged. The flag is a conditional
update, so only the run that actually changes the row notifies the leader.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.config import get_settings
from app.core.exceptions import NotFoundError
from app.domain.models.gathering import Attendance, Gathering
from app.domain.models.group import Group, GroupMember
from app.domain.models.profile import Profile
from app.infrastructure.providers.registry import ProviderRegistry
from app.application.services.notification_service import NotificationRequest, send_notification
from app.application.services.templates import get_template

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass
class AtRiskResult:
    checked: int = 0
    flagged: int = 0
    notified: int = 0

    def to_dict(self) -> dict:
        return {"checked": self.checked, "flagged": self.flagged, "notified": self.notified}


def get_consecutive_absences(
    db: Session,
    profile_id: str,
    group_id: str,
    lookback: Optional[int] = None,
) -> int:
    """Count absences from the most recent completed gathering backwards, stopping at the first attendance."""
    if lookback is None:
        lookback = settings.ABSENCE_LOOKBACK
    gathering_ids = [
        gid
        for (gid,) in db.query(Gathering.id)
        .filter(Gathering.group_id == group_id, Gathering.status == "completed")
        .order_by(Gathering.scheduled_at.desc())
        .limit(lookback)
        .all()
    ]
    if not gathering_ids:
        return 0

    records = dict(
        db.query(Attendance.gathering_id, Attendance.status)
        .filter(Attendance.profile_id == profile_id, Attendance.gathering_id.in_(gathering_ids))
        .all()
    )

    streak = 0
    for gathering_id in gathering_ids:
        status = records.get(gathering_id)
        if status is None or status == "absent":
            streak += 1
        else:
            break
    return streak


def flag_at_risk(db: Session, profile_id: str) -> bool:
    """active → at_risk. True only when this call changed the row."""
    count = (
        db.query(Profile)
        .filter(Profile.id == profile_id, Profile.status == "active")
        .update({Profile.status: "at_risk"}, synchronize_session=False)
    )
    db.commit()
    return count == 1


async def notify_at_risk_member(
    db: Session,
    profile_id: str,
    group: Group,
    streak: int,
    providers: Optional[ProviderRegistry] = None,
) -> bool:
    if not group.leader_id:
        logger.info(f"Group {group.id} has no leader; at-risk notice for {profile_id} not sent")
        return False

    member = db.get(Profile, profile_id)
    template = get_template("at_risk_member")
    request = NotificationRequest(
        church_id=group.church_id,
        type="at_risk_member",
        title_en=template.title_en,
        title_ar=template.title_ar,
        body_en=template.body_en,
        body_ar=template.body_ar,
        profile_id=group.leader_id,
        reference_id=profile_id,
        reference_type="profile",
        data={
            "memberName": member.display_name if member else "",
            "groupName": group.display_name,
            "weeks": str(streak),
        },
        # The conditional update already makes this once per transition, and a
        # member who recovers and lapses again must be reported again.
        dedup=False,
    )
    entry = await send_notification(db, request, providers)
    return entry.status != "failed"


async def check_and_flag_at_risk(
    db: Session,
    gathering_id: str,
    providers: Optional[ProviderRegistry] = None,
) -> AtRiskResult:
    """Check every active member of the gathering's group and flag absence streaks."""
    gathering = db.get(Gathering, gathering_id)
    if gathering is None:
        raise NotFoundError("Gathering not found", details={"gathering_id": gathering_id})

    group = db.get(Group, gathering.group_id)
    member_ids = [
        pid
        for (pid,) in db.query(GroupMember.profile_id)
        .filter(GroupMember.group_id == gathering.group_id, GroupMember.is_active.is_(True))
        .all()
    ]

    result = AtRiskResult()
    for profile_id in member_ids:
        result.checked += 1
        streak = get_consecutive_absences(db, profile_id, gathering.group_id)
        if streak < settings.AT_RISK_THRESHOLD:
            continue
        if not flag_at_risk(db, profile_id):
            continue

        result.flagged += 1
        logger.info(f"Profile {profile_id} flagged at_risk after {streak} consecutive absences")
        if group is None:
            continue
        try:
            if await notify_at_risk_member(db, profile_id, group, streak, providers):
                result.notified += 1
        except Exception as e:
            db.rollback()
            logger.error(f"At-risk notification for {profile_id} failed: {e}")

    logger.info(f"At-risk check for gathering {gathering_id}: {result.to_dict()}")
    return result
