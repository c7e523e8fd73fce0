"""
Activity Tracker - log countable activities, set periodic goals, earn achievements.

The application is a set of components (database, auth, activities, goals,
achievements, notifications, HTTP API) started and stopped by an
orchestrator in dependency order and wired together through an event bus.
"""

__version__ = "0.1.0"
