"""Audience resolution — turns coarse target tags into deduplicated recipients.

Profile lookups for every target are combined with a SQL UNION, so a profile
reachable by two overlapping targets collapses to one row in the database.
Visitor phones are deduplicated after normalization.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Query, Session

from app.core.exceptions import ValidationError
from app.core.phone import normalize_phone
from app.domain.models.group import Group, GroupMember
from app.domain.models.profile import Profile
from app.domain.models.visitor import Visitor
from app.domain.schemas.audience import (
    AudienceTarget,
    AllMembersTarget,
    RolesTarget,
    GroupsTarget,
    MinistriesTarget,
    VisitorsTarget,
    StatusesTarget,
    GenderTarget,
)

# Members that broadcasts reach; at-risk members are still members
MEMBER_STATUSES = ("active", "at_risk")

_targets_adapter = TypeAdapter(List[AudienceTarget])


@dataclass
class VisitorRecipient:
    visitor_id: str
    phone: str
    name: str = ""


@dataclass
class ResolvedAudience:
    profile_ids: List[str] = field(default_factory=list)
    visitors: List[VisitorRecipient] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.profile_ids) + len(self.visitors)


@dataclass
class AudienceCount:
    profile_count: int
    visitor_count: int

    @property
    def total(self) -> int:
        return self.profile_count + self.visitor_count

    def to_dict(self) -> dict:
        return {"profile_count": self.profile_count, "visitor_count": self.visitor_count, "total": self.total}


def parse_targets(raw: Optional[Iterable[Any]]) -> List[AudienceTarget]:
    """Validate request JSON into targets. Unknown tags are a ValidationError."""
    if raw is None:
        return []
    try:
        return _targets_adapter.validate_python(list(raw))
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid audience target",
            details={"errors": [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()]},
        ) from e


def _members(db: Session, church_id: str) -> Query:
    return db.query(Profile.id).filter(
        Profile.church_id == church_id,
        Profile.onboarding_completed.is_(True),
        Profile.status.in_(MEMBER_STATUSES),
    )


def _group_members(db: Session, church_id: str, group_ids) -> Query:
    return (
        db.query(Profile.id)
        .join(GroupMember, GroupMember.profile_id == Profile.id)
        .filter(
            GroupMember.church_id == church_id,
            GroupMember.is_active.is_(True),
            GroupMember.group_id.in_(group_ids),
            Profile.status.in_(MEMBER_STATUSES),
        )
    )


def _profile_query(db: Session, church_id: str, target) -> Optional[Query]:
    if isinstance(target, AllMembersTarget):
        return _members(db, church_id)
    if isinstance(target, RolesTarget):
        return _members(db, church_id).filter(Profile.role.in_(target.roles))
    if isinstance(target, GroupsTarget):
        return _group_members(db, church_id, target.group_ids)
    if isinstance(target, MinistriesTarget):
        ministry_groups = db.query(Group.id).filter(
            Group.church_id == church_id,
            Group.is_active.is_(True),
            Group.ministry_id.in_(target.ministry_ids),
        )
        return _group_members(db, church_id, ministry_groups)
    if isinstance(target, StatusesTarget):
        return db.query(Profile.id).filter(
            Profile.church_id == church_id,
            Profile.onboarding_completed.is_(True),
            Profile.status.in_(target.statuses),
        )
    if isinstance(target, GenderTarget):
        return _members(db, church_id).filter(Profile.gender == target.gender)
    return None


def _profiles_union(db: Session, church_id: str, targets) -> Optional[Query]:
    queries = [q for q in (_profile_query(db, church_id, t) for t in targets) if q is not None]
    if not queries:
        return None
    first, *rest = queries
    # UNION (not UNION ALL) removes duplicates across targets
    return first.union(*rest) if rest else first.distinct()


def _visitor_recipients(db: Session, church_id: str, targets) -> List[VisitorRecipient]:
    statuses = sorted({s for t in targets if isinstance(t, VisitorsTarget) for s in t.visitor_statuses})
    if not statuses:
        return []

    rows = (
        db.query(Visitor.id, Visitor.phone, Visitor.first_name, Visitor.last_name)
        .filter(
            Visitor.church_id == church_id,
            Visitor.status.in_(statuses),
            Visitor.phone.isnot(None),
        )
        .order_by(Visitor.visited_at.desc())
        .all()
    )

    by_phone: dict[str, VisitorRecipient] = {}
    for visitor_id, phone, first_name, last_name in rows:
        normalized = normalize_phone(phone)
        if normalized and normalized not in by_phone:
            by_phone[normalized] = VisitorRecipient(
                visitor_id=visitor_id,
                phone=normalized,
                name=f"{first_name} {last_name}".strip(),
            )
    return list(by_phone.values())


def resolve_audience(db: Session, church_id: str, targets) -> ResolvedAudience:
    """Union every target's recipients, deduplicated by profile id and visitor phone."""
    if not targets:
        return ResolvedAudience()

    union = _profiles_union(db, church_id, targets)
    profile_ids = [row[0] for row in union.all()] if union is not None else []
    return ResolvedAudience(
        profile_ids=profile_ids,
        visitors=_visitor_recipients(db, church_id, targets),
    )


def count_audience(db: Session, church_id: str, targets) -> AudienceCount:
    """Preview counts; profile ids are counted in SQL without being loaded."""
    if not targets:
        return AudienceCount(profile_count=0, visitor_count=0)

    union = _profiles_union(db, church_id, targets)
    return AudienceCount(
        profile_count=union.count() if union is not None else 0,
        visitor_count=len(_visitor_recipients(db, church_id, targets)),
    )
