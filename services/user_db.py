from typing import Optional, Dict, Any, List
from bson import ObjectId
from db.mongo import get_db
from services.event_db import utcnow
import logging

logger = logging.getLogger(__name__)


def _public(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Strip OAuth data and expose the id as a string"""
    if user:
        user.pop("google", None)
        user["id"] = str(user.pop("_id"))
    return user


class UserService:
    def __init__(self, database=None):
        self.collection_name = "users"
        self.db = database if database is not None else get_db()
        self.collection = self.db[self.collection_name] if self.db is not None else None

    async def create_or_update_google_user(
        self,
        email: str,
        google_id: str,
        name: Optional[str] = None,
        picture: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create or update a user signing in with Google.
        Returns the user document without OAuth data.
        """
        now = utcnow()
        email = email.strip().lower()

        try:
            await self.collection.update_one(
                {"email": email},
                {
                    "$set": {
                        "email": email,
                        "name": name,
                        "picture": picture,
                        "google": {"id": google_id},
                        "updatedAt": now
                    },
                    "$setOnInsert": {"createdAt": now}
                },
                upsert=True
            )
            logger.info(f"Signed in user {email}")
            return await self.get_user_by_email(email)
        except Exception as e:
            logger.error(f"Error in create_or_update_google_user: {str(e)}")
            raise

    async def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Get a user by email, excluding OAuth data"""
        try:
            user = await self.collection.find_one({"email": email.strip().lower()})
            return _public(user)
        except Exception as e:
            logger.error(f"Error getting user by email: {str(e)}")
            raise

    async def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        if not ObjectId.is_valid(user_id):
            return None
        try:
            user = await self.collection.find_one({"_id": ObjectId(user_id)})
            return _public(user)
        except Exception as e:
            logger.error(f"Error getting user {user_id}: {str(e)}")
            raise

    async def get_users_by_emails(self, emails: List[str]) -> List[Dict[str, Any]]:
        """Get every user whose email is in the list"""
        if not emails:
            return []
        try:
            normalized = [email.strip().lower() for email in emails]
            users = await self.collection.find({"email": {"$in": normalized}}).to_list(length=None)
            return [_public(user) for user in users]
        except Exception as e:
            logger.error(f"Error getting users by email: {str(e)}")
            raise

    async def get_users_by_ids(self, user_ids: List[str]) -> List[Dict[str, Any]]:
        """Get every user whose id is in the list; malformed ids are skipped"""
        object_ids = [ObjectId(user_id) for user_id in user_ids if ObjectId.is_valid(user_id)]
        if not object_ids:
            return []
        try:
            users = await self.collection.find({"_id": {"$in": object_ids}}).to_list(length=None)
            return [_public(user) for user in users]
        except Exception as e:
            logger.error(f"Error getting users by id: {str(e)}")
            raise
