# aurora/backend/models/redis_models.py

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .db_models import User


class UserSessionRedis(BaseModel):
    """
    An active sign-in session, stored in Redis under 'users:{id}' with a TTL.
    A valid JWT is only accepted while its session exists.
    """
    user_data: User = Field(..., description="The signed-in user's profile")
    session_id: UUID
    session_start_time: datetime
    session_end_time: datetime
