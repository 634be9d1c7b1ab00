"""
StackQA Backend — Notification Service
=======================================

What:  Serves the notification dropdown.
How:   Nothing in the system generates notifications yet, so the dropdown is
       fed a fixed sample list whose timestamps are anchored at request time
       ("5 minutes ago" stays 5 minutes ago).
Who:   GET /api/notifications.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from stackqa.exceptions import AuthenticationError
from stackqa.models.enums import NotificationType
from stackqa.schemas.notification import NotificationItem, NotificationListResponse
from stackqa.services.user_cache import CachedUser

# (id, type, content, link, is_read, age)
SAMPLE_NOTIFICATIONS = (
    (
        "1",
        NotificationType.NEW_ANSWER,
        'Alice answered your question: "How to vertically align a div?"',
        "/question/q1",
        False,
        timedelta(minutes=5),
    ),
    (
        "2",
        NotificationType.MENTION,
        'You were mentioned in a comment on "Best practices for React hooks".',
        "/question/q2",
        False,
        timedelta(hours=2),
    ),
    (
        "3",
        NotificationType.COMMENT,
        'Bob commented on your answer for "CSS Grid vs Flexbox".',
        "/question/q3",
        True,
        timedelta(days=1),
    ),
    (
        "4",
        NotificationType.OTHER,
        "Charlie answered your question about Firebase security rules.",
        "/question/q4",
        True,
        timedelta(days=2),
    ),
)


class NotificationService:

    def list_notifications(
        self,
        viewer: Optional[CachedUser],
        now: Optional[datetime] = None,
    ) -> NotificationListResponse:
        if viewer is None:
            raise AuthenticationError(message="Please log in to see your notifications.")

        now = now or datetime.now(timezone.utc)
        items = [
            NotificationItem(
                id=notification_id,
                type=kind,
                content=content,
                link=link,
                is_read=is_read,
                created_at=now - age,
            )
            for notification_id, kind, content, link, is_read, age in SAMPLE_NOTIFICATIONS
        ]
        return NotificationListResponse(
            notifications=items,
            unread_count=sum(1 for item in items if not item.is_read),
        )


notification_service = NotificationService()
