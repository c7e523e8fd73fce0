"""
Achievement and notification routes.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from activity_tracker.api.dependencies import get_achievement, get_current_user, get_notification
from activity_tracker.components.achievement import AchievementComponent
from activity_tracker.components.notification import NotificationComponent
from activity_tracker.core.models import (
    AchievementType,
    LeaderboardEntry,
    Notification,
    User,
    UserAchievement,
)

router = APIRouter(tags=["rewards"])


# =============================================================================
# Achievements
# =============================================================================


@router.get("/api/achievements", response_model=list[AchievementType])
async def list_achievement_types(
    user: User = Depends(get_current_user),
    achievements: AchievementComponent = Depends(get_achievement),
):
    return achievements.get_achievement_types(active_only=True)


@router.get("/api/achievements/me", response_model=list[UserAchievement])
async def my_achievements(
    user: User = Depends(get_current_user),
    achievements: AchievementComponent = Depends(get_achievement),
):
    return achievements.get_user_achievements(user.id)


@router.get("/api/achievements/points")
async def my_points(
    user: User = Depends(get_current_user),
    achievements: AchievementComponent = Depends(get_achievement),
):
    return {"userId": user.id, "points": achievements.get_user_points(user.id)}


@router.get("/api/achievements/leaderboard", response_model=list[LeaderboardEntry])
async def leaderboard(
    limit: int = Query(default=10, ge=1, le=100),
    user: User = Depends(get_current_user),
    achievements: AchievementComponent = Depends(get_achievement),
):
    return achievements.get_leaderboard(limit)


# =============================================================================
# Notifications
# =============================================================================


@router.get("/api/notifications", response_model=list[Notification])
async def list_notifications(
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    user: User = Depends(get_current_user),
    notifications: NotificationComponent = Depends(get_notification),
):
    return notifications.get_user_notifications(user.id, unread_only=unread_only)


@router.post("/api/notifications/{notification_id}/read", response_model=Notification)
async def mark_notification_read(
    notification_id: int,
    user: User = Depends(get_current_user),
    notifications: NotificationComponent = Depends(get_notification),
):
    return notifications.mark_as_read(notification_id, user.id)
