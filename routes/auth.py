from fastapi import APIRouter, Depends, Request, HTTPException
from fastapi.responses import RedirectResponse
from typing import Optional
from routes.deps import get_current_user
from services.user_db import UserService
import httpx
import os
import logging
import secrets

# Logging setup
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

FRONTEND_URL = os.getenv("FRONTEND_URL")
BACKEND_URL = os.getenv("BACKEND_URL")
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"


def init_auth_routes(oauth_client, user_service: Optional[UserService] = None):
    router = APIRouter(prefix="/auth", tags=["auth"])
    user_service = user_service or UserService()

    @router.get("/google")
    async def google_auth(request: Request):
        try:
            redirect_uri = f"{BACKEND_URL}/auth/google/callback"
            state = secrets.token_urlsafe(16)
            request.session['oauth_state'] = state

            return await oauth_client.google.authorize_redirect(
                request,
                redirect_uri,
                state=state
            )
        except Exception as e:
            logger.error(f"Google auth error: {str(e)}")
            return RedirectResponse(url=f'{FRONTEND_URL}/?error=auth_failed')

    @router.get("/google/callback")
    async def google_callback(request: Request):
        try:
            token = await oauth_client.google.authorize_access_token(request)

            async with httpx.AsyncClient() as client:
                userinfo_response = await client.get(
                    GOOGLE_USERINFO_URL,
                    headers={"Authorization": f"Bearer {token['access_token']}"}
                )
                if not userinfo_response.is_success:
                    raise Exception(f"Failed to get user info: {userinfo_response.status_code}")

                userinfo = userinfo_response.json()

            user = await user_service.create_or_update_google_user(
                email=userinfo["email"],
                google_id=userinfo["id"],
                name=userinfo.get("name"),
                picture=userinfo.get("picture")
            )

            request.session["user"] = {
                "id": user["id"],
                "email": user["email"],
                "name": user.get("name"),
                "picture": user.get("picture")
            }

            return RedirectResponse(url=f"{FRONTEND_URL}/calendar")
        except Exception as e:
            logger.error(f"Callback error: {str(e)}")
            return RedirectResponse(url=f'{FRONTEND_URL}/?error=auth_failed')

    @router.get("/me")
    async def get_me(user: dict = Depends(get_current_user)):
        user_data = await user_service.get_user_by_id(user["id"])
        if not user_data:
            raise HTTPException(status_code=404, detail="User not found")
        return user_data

    @router.post("/logout")
    async def logout(request: Request):
        request.session.pop("user", None)
        return {"message": "Logged out successfully"}

    return router
