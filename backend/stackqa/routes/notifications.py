"""StackQA Backend — Notification dropdown route."""

from fastapi import APIRouter, Depends, Response

from stackqa.dependencies import require_current_user
from stackqa.schemas.common import ErrorResponse
from stackqa.schemas.notification import NotificationListResponse
from stackqa.services.notification_service import notification_service
from stackqa.services.user_cache import CachedUser

router = APIRouter(prefix="/api", tags=["Notifications"])


@router.get(
    "/notifications",
    response_model=NotificationListResponse,
    responses={401: {"description": "Not signed in", "model": ErrorResponse}},
    summary="Notifications of the signed-in user",
)
async def list_notifications(
    response: Response,
    viewer: CachedUser = Depends(require_current_user),
) -> NotificationListResponse:
    response.headers["Cache-Control"] = "private, no-cache"
    return notification_service.list_notifications(viewer)
