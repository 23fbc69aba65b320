import logging
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import bcrypt

from ..core.exceptions import AuthenticationError
from ..db import tables
from ..db.db_client import AsyncPostgresClient
from ..db.redis_client import RedisClient
from ..models.db_models import User, UserAccount
from ..models.redis_models import UserSessionRedis

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials."


def hash_password(password: str) -> str:
    """Hashes a password with bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash.")
        return False


class AuthService:
    """
    Credential checks against the 'users' table and Redis-backed sessions.
    """
    def __init__(self, db_client: AsyncPostgresClient, redis_client: RedisClient):
        self.db_client = db_client
        self.redis_client = redis_client

    async def authenticate(self, username: str, password: str) -> User:
        row = await self.db_client.select_one(tables.USERS, {"username": username})
        if row is None:
            logger.warning(f"Sign-in attempt for unknown user '{username}'.")
            raise AuthenticationError(INVALID_CREDENTIALS)

        account = UserAccount(**row)
        if not verify_password(password, account.password_hash):
            logger.warning(f"Wrong password for user '{username}'.")
            raise AuthenticationError(INVALID_CREDENTIALS)

        return User(**account.model_dump(exclude={"password_hash"}))

    async def start_session(self, user: User, ttl: int) -> UserSessionRedis:
        now = datetime.now(timezone.utc)
        session = UserSessionRedis(
            user_data=user,
            session_id=uuid4(),
            session_start_time=now,
            session_end_time=now + timedelta(seconds=ttl),
        )
        await self.redis_client.save_user_session(session, ttl=ttl)
        logger.info(f"Redis session created for user '{user.username}' with a TTL of {ttl} seconds.")
        return session

    async def end_session(self, user: User) -> bool:
        deleted = await self.redis_client.delete_user_session(user.id)
        logger.info(f"Session for user '{user.username}' {'deleted' if deleted else 'was already gone'}.")
        return bool(deleted)
