"""Pydantic schemas for engagement views and job summaries."""

from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional


class ReminderSummary(BaseModel):
    sent: int
    total: int


class EscalationSummary(BaseModel):
    escalated: int


class AtRiskSummary(BaseModel):
    checked: int
    flagged: int
    notified: int


class AtRiskMemberRead(BaseModel):
    id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    first_name_ar: Optional[str] = None
    last_name_ar: Optional[str] = None
    phone: Optional[str] = None
    role: str
    status: str
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class VisitorEscalationRead(BaseModel):
    id: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    status: str
    visited_at: Optional[datetime] = None
    assigned_to: Optional[str] = None
    escalated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class VisitorEscalationList(BaseModel):
    items: List[VisitorEscalationRead]
    sla_hours: int


class QueuedTask(BaseModel):
    queued: bool = True
    job_id: str
