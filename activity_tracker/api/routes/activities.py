"""
Activity and log routes.

All routes act on the authenticated user's own data.
"""

from __future__ import annotations

from datetime import date, datetime

from fastapi import APIRouter, Depends, Query

from activity_tracker.api.dependencies import get_activity, get_current_user
from activity_tracker.components.activity import ActivityComponent
from activity_tracker.core.models import Activity, ActivityLog, ActivityStats, ApiModel, User

router = APIRouter(tags=["activities"])


# =============================================================================
# Request Models
# =============================================================================


class ActivityCreate(ApiModel):
    name: str
    unit: str
    is_public: bool = False
    category: str = "other"


class ActivityUpdate(ApiModel):
    name: str | None = None
    unit: str | None = None
    is_public: bool | None = None
    category: str | None = None


class LogCreate(ApiModel):
    activity_id: int
    count: float
    notes: str = ""
    logged_at: datetime | None = None


class LogUpdate(ApiModel):
    count: float | None = None
    notes: str | None = None
    logged_at: datetime | None = None


# =============================================================================
# Activities
# =============================================================================


@router.get("/api/activities", response_model=list[Activity])
async def list_activities(
    user: User = Depends(get_current_user),
    activities: ActivityComponent = Depends(get_activity),
):
    return activities.get_all_activities(user.id)


@router.post("/api/activities", response_model=Activity, status_code=201)
async def create_activity(
    data: ActivityCreate,
    user: User = Depends(get_current_user),
    activities: ActivityComponent = Depends(get_activity),
):
    return activities.create_activity(user.id, data.name, data.unit, data.is_public, data.category)


@router.get("/api/activities/{activity_id}", response_model=Activity)
async def get_activity_by_id(
    activity_id: int,
    user: User = Depends(get_current_user),
    activities: ActivityComponent = Depends(get_activity),
):
    return activities.get_owned_activity(activity_id, user.id)


@router.put("/api/activities/{activity_id}", response_model=Activity)
async def update_activity(
    activity_id: int,
    data: ActivityUpdate,
    user: User = Depends(get_current_user),
    activities: ActivityComponent = Depends(get_activity),
):
    return activities.update_activity(activity_id, user.id, **data.model_dump(exclude_unset=True))


@router.delete("/api/activities/{activity_id}")
async def delete_activity(
    activity_id: int,
    user: User = Depends(get_current_user),
    activities: ActivityComponent = Depends(get_activity),
):
    activities.delete_activity(activity_id, user.id)
    return {"message": "Activity deleted"}


@router.get("/api/activities/{activity_id}/stats", response_model=ActivityStats)
async def activity_stats(
    activity_id: int,
    period: str = "daily",
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    user: User = Depends(get_current_user),
    activities: ActivityComponent = Depends(get_activity),
):
    return activities.get_activity_stats(user.id, activity_id, period, start_date, end_date)


# =============================================================================
# Logs
# =============================================================================


@router.get("/api/logs", response_model=list[ActivityLog])
async def list_logs(
    activity_id: int | None = Query(default=None, alias="activityId"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    start_date: datetime | None = Query(default=None, alias="startDate"),
    end_date: datetime | None = Query(default=None, alias="endDate"),
    user: User = Depends(get_current_user),
    activities: ActivityComponent = Depends(get_activity),
):
    return activities.get_activity_logs(
        user.id,
        activity_id,
        limit=limit,
        offset=offset,
        start_date=start_date,
        end_date=end_date,
    )


@router.post("/api/logs", response_model=ActivityLog, status_code=201)
async def create_log(
    data: LogCreate,
    user: User = Depends(get_current_user),
    activities: ActivityComponent = Depends(get_activity),
):
    return activities.create_activity_log(
        user.id, data.activity_id, data.count, data.notes, data.logged_at
    )


@router.put("/api/logs/{log_id}", response_model=ActivityLog)
async def update_log(
    log_id: int,
    data: LogUpdate,
    user: User = Depends(get_current_user),
    activities: ActivityComponent = Depends(get_activity),
):
    return activities.update_activity_log(log_id, user.id, **data.model_dump(exclude_unset=True))


@router.delete("/api/logs/{log_id}")
async def delete_log(
    log_id: int,
    user: User = Depends(get_current_user),
    activities: ActivityComponent = Depends(get_activity),
):
    activities.delete_activity_log(log_id, user.id)
    return {"message": "Log deleted"}
