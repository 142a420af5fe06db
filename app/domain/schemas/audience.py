"""Audience targets — the coarse selectors a broadcast or preview is addressed to.

Targets are a tagged union on `type`; an unknown tag fails validation.
"""

from pydantic import BaseModel, Field
from typing import Annotated, List, Literal, Union

from app.domain.models.visitor import OPEN_STATUSES

Role = Literal["member", "group_leader", "ministry_leader", "super_admin"]
ProfileStatus = Literal["active", "inactive", "at_risk", "visitor"]
VisitorStatus = Literal["new", "assigned", "contacted", "converted", "lost"]


class AllMembersTarget(BaseModel):
    type: Literal["all_members"] = "all_members"


class RolesTarget(BaseModel):
    type: Literal["roles"] = "roles"
    roles: List[Role] = Field(min_length=1)


class GroupsTarget(BaseModel):
    type: Literal["groups"] = "groups"
    group_ids: List[str] = Field(min_length=1)


class MinistriesTarget(BaseModel):
    type: Literal["ministries"] = "ministries"
    ministry_ids: List[str] = Field(min_length=1)


class VisitorsTarget(BaseModel):
    type: Literal["visitors"] = "visitors"
    visitor_statuses: List[VisitorStatus] = Field(default_factory=lambda: list(OPEN_STATUSES))


class StatusesTarget(BaseModel):
    type: Literal["statuses"] = "statuses"
    statuses: List[ProfileStatus] = Field(min_length=1)


class GenderTarget(BaseModel):
    type: Literal["gender"] = "gender"
    gender: Literal["male", "female"]


AudienceTarget = Annotated[
    Union[
        AllMembersTarget,
        RolesTarget,
        GroupsTarget,
        MinistriesTarget,
        VisitorsTarget,
        StatusesTarget,
        GenderTarget,
    ],
    Field(discriminator="type"),
]
