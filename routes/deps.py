from fastapi import HTTPException, Request
from db import mongo


def get_current_user(request: Request) -> dict:
    """Session user set by the Google OAuth callback"""
    user = request.session.get("user")
    if not user or not user.get("id"):
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_db():
    if not mongo.connected:
        raise HTTPException(status_code=503, detail="Database not available")
    return True
