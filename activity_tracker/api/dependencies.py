"""
FastAPI dependencies.

Route handlers never reach for globals: components are looked up on the
orchestrator the app was built for, and the current user is resolved from
the bearer token through the Auth component.
"""

from __future__ import annotations

from typing import Any, Callable

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from activity_tracker.core.models import User


# Optional JWT bearer (missing tokens are reported as 401, not 403)
optional_bearer = HTTPBearer(auto_error=False)


def component(name: str) -> Callable[[Request], Any]:
    """Create a FastAPI dependency that resolves to a started component."""

    def dependency(request: Request) -> Any:
        instance = request.app.state.orchestrator.get_component(name)
        if instance is None or not instance.initialized:
            raise HTTPException(status_code=503, detail=f"{name} component is not available")
        return instance

    dependency.__name__ = f"get_{name.lower()}_component"
    return dependency


get_auth = component("Auth")
get_activity = component("Activity")
get_goal = component("Goal")
get_achievement = component("Achievement")
get_notification = component("Notification")


async def get_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_bearer),
) -> str:
    """The raw bearer token of the request."""
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials


async def get_current_user(
    token: str = Depends(get_token),
    auth: Any = Depends(get_auth),
) -> User:
    """Resolve the bearer token to a user (AuthenticationError -> 401)."""
    return auth.verify_token(token)
