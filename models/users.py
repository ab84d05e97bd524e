from pydantic import BaseModel, Field
from typing import Optional


class UserSummary(BaseModel):
    id: str = Field(..., description="User ID")
    email: str = Field(..., description="User email")
    name: Optional[str] = Field(None, description="Display name")
