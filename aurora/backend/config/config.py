import os
from typing import List, Mapping, Optional

from dotenv import load_dotenv

DEFAULT_ALLOWED_ORIGINS = "https://aurora-end.vercel.app,http://localhost:5173"


class Config:
    """
    Settings read from environment variables.

    The object is built once at process start and handed to `create_app`, which
    keeps it on `app.state.settings`. Tests pass an explicit mapping instead of
    touching `os.environ`.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        env = os.environ if environ is None else environ

        # Database
        self.DATABASE_URL: str = env.get("DATABASE_URL")
        self.DB_POOL_MIN_SIZE: int = int(env.get("DB_POOL_MIN_SIZE", 5))
        self.DB_POOL_MAX_SIZE: int = int(env.get("DB_POOL_MAX_SIZE", 20))

        # Redis (sessions) and rate limiter storage
        self.APPLICATION_REDIS_URL: str = env.get("APPLICATION_REDIS_URL")
        self.RATE_LIMITER_STORAGE_URI: str = env.get("RATE_LIMITER_STORAGE_URI", "memory://")

        # JWT and sessions
        self.SECRET_KEY: str = env.get("SECRET_KEY")
        self.ALGORITHM: str = env.get("ALGORITHM", "HS256")
        self.SESSION_TTL_SECONDS: int = int(env.get("SESSION_TTL_SECONDS", 3600))

        # HTTP
        self.ALLOWED_ORIGINS: List[str] = [
            origin.strip()
            for origin in env.get("ALLOWED_ORIGINS", DEFAULT_ALLOWED_ORIGINS).split(",")
            if origin.strip()
        ]

        self.LOG_DIR: str = env.get("LOG_DIR", "logs")


def load_settings() -> Config:
    """Loads `.env` (if present) and builds the process-wide settings object."""
    load_dotenv()
    return Config()
