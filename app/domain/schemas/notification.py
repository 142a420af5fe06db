"""Pydantic schemas for notifications, audience preview and broadcasts."""

from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional

from app.domain.schemas.audience import AudienceTarget


class NotificationLogRead(BaseModel):
    id: str
    type: str
    channel: str
    title_en: Optional[str] = None
    title_ar: Optional[str] = None
    body_en: Optional[str] = None
    body_ar: Optional[str] = None
    locale: Optional[str] = None
    status: str
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    payload: Optional[dict] = None
    created_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    read_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class NotificationFeed(BaseModel):
    items: List[NotificationLogRead]
    total: int
    unread_count: int
    page: int
    page_size: int
    total_pages: int


class AudiencePreviewRequest(BaseModel):
    targets: List[AudienceTarget] = []


class AudienceCountRead(BaseModel):
    profile_count: int
    visitor_count: int
    total: int


class BroadcastRequest(BaseModel):
    title_ar: str = ""
    body_ar: str = ""
    title_en: Optional[str] = None
    body_en: Optional[str] = None
    targets: List[AudienceTarget] = []


class BroadcastRead(BaseModel):
    broadcast_id: str
    sent: int
    failed: int
    targets: int


class MarkAllReadResult(BaseModel):
    updated: int
