"""
Goal routes, including the progress endpoint.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from pydantic import Field

from activity_tracker.api.dependencies import get_current_user, get_goal
from activity_tracker.components.goal import GoalComponent
from activity_tracker.core.models import ApiModel, Goal, GoalProgress, GoalWithProgress, User
from activity_tracker.core.periods import PeriodType

router = APIRouter(prefix="/api/goals", tags=["goals"])


class GoalCreate(ApiModel):
    activity_id: int
    target_value: float = Field(gt=0)
    period_type: PeriodType = PeriodType.WEEKLY
    start_date: date | None = None
    end_date: date | None = None
    name: str | None = None
    description: str | None = None


class GoalUpdate(ApiModel):
    target_value: float | None = Field(default=None, gt=0)
    period_type: PeriodType | None = None
    start_date: date | None = None
    end_date: date | None = None
    name: str | None = None
    description: str | None = None
    is_active: bool | None = None


@router.get("", response_model=list[GoalWithProgress])
async def list_goals(
    user: User = Depends(get_current_user),
    goals: GoalComponent = Depends(get_goal),
):
    """All of the user's goals, each with its current progress."""
    return goals.get_user_goals_with_progress(user.id)


@router.post("", response_model=Goal, status_code=201)
async def create_goal(
    data: GoalCreate,
    user: User = Depends(get_current_user),
    goals: GoalComponent = Depends(get_goal),
):
    return goals.create_goal(
        user.id,
        data.activity_id,
        data.target_value,
        period_type=data.period_type,
        start_date=data.start_date,
        end_date=data.end_date,
        name=data.name,
        description=data.description,
    )


@router.get("/{goal_id}", response_model=Goal)
async def get_goal_by_id(
    goal_id: int,
    user: User = Depends(get_current_user),
    goals: GoalComponent = Depends(get_goal),
):
    return goals.get_owned_goal(goal_id, user.id)


@router.put("/{goal_id}", response_model=Goal)
async def update_goal(
    goal_id: int,
    data: GoalUpdate,
    user: User = Depends(get_current_user),
    goals: GoalComponent = Depends(get_goal),
):
    return goals.update_goal(goal_id, user.id, **data.model_dump(exclude_unset=True))


@router.delete("/{goal_id}")
async def delete_goal(
    goal_id: int,
    user: User = Depends(get_current_user),
    goals: GoalComponent = Depends(get_goal),
):
    goals.delete_goal(goal_id, user.id)
    return {"message": "Goal deleted"}


@router.get("/{goal_id}/progress", response_model=GoalProgress)
async def goal_progress(
    goal_id: int,
    user: User = Depends(get_current_user),
    goals: GoalComponent = Depends(get_goal),
):
    goals.get_owned_goal(goal_id, user.id)
    return goals.get_goal_progress(goal_id)
