"""HTTP layer: the FastAPI app and the component that serves it."""

from activity_tracker.api.app import create_app
from activity_tracker.api.server import ApiComponent

__all__ = ["create_app", "ApiComponent"]
