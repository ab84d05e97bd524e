from fastapi import Depends, FastAPI
from routes.auth import init_auth_routes
from routes.deps import require_db
from routes.events import init_events_routes


def init_routes(app: FastAPI, oauth_client, event_service=None, user_service=None):
    """Initialize all application routes; each answers 503 until the database is up"""
    guarded = [Depends(require_db)]

    # Initialize auth routes
    auth_router = init_auth_routes(oauth_client, user_service)
    app.include_router(auth_router, dependencies=guarded)

    # Initialize events and invites routes
    events_router = init_events_routes(event_service)
    app.include_router(events_router, dependencies=guarded)

    return app
