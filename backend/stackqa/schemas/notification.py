"""StackQA Backend — Notification Schemas."""

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from stackqa.models.enums import NotificationType


class NotificationItem(BaseModel):
    id: str
    type: NotificationType
    content: str = Field(description="Display text")
    link: str = Field(description="Client route to open, e.g. /question/<id>")
    is_read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: List[NotificationItem]
    unread_count: int
