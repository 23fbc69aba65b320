# aurora/backend/api/dependencies.py
import asyncpg
import redis.asyncio as redis
from fastapi import Depends, Request

from ..config.config import Config
from ..core.exceptions import StoreError
from ..db.db_client import AsyncPostgresClient
from ..db.redis_client import RedisClient
from ..services.auth_service import AuthService
from ..services.directory_service import StaffDirectory, StudentDirectory
from ..services.staff_attendance_service import StaffAttendanceService
from ..services.student_attendance_service import StudentAttendanceService


def get_settings(request: Request) -> Config:
    return request.app.state.settings


def get_redis_pool(request: Request) -> redis.ConnectionPool:
    """
    Provides the Redis connection pool created at application start-up.
    """
    pool = getattr(request.app.state, "redis_pool", None)
    if pool is None:
        raise StoreError("Session store is not available.")
    return pool


def get_postgres_pool(request: Request) -> asyncpg.Pool:
    """
    Provides the PostgreSQL connection pool created at application start-up.
    """
    pool = getattr(request.app.state, "postgres_pool", None)
    if pool is None:
        raise StoreError("Database is not available.")
    return pool


def get_db_client(postgres_pool: asyncpg.Pool = Depends(get_postgres_pool)) -> AsyncPostgresClient:
    return AsyncPostgresClient(pool=postgres_pool)


def get_redis_client(redis_pool: redis.ConnectionPool = Depends(get_redis_pool)) -> RedisClient:
    return RedisClient(pool=redis_pool)


def get_staff_directory(db_client: AsyncPostgresClient = Depends(get_db_client)) -> StaffDirectory:
    return StaffDirectory(db_client=db_client)


def get_student_directory(db_client: AsyncPostgresClient = Depends(get_db_client)) -> StudentDirectory:
    return StudentDirectory(db_client=db_client)


def get_staff_attendance_service(
    db_client: AsyncPostgresClient = Depends(get_db_client),
    staff_directory: StaffDirectory = Depends(get_staff_directory),
) -> StaffAttendanceService:
    """
    Builds a fresh StaffAttendanceService for each request.

    Clients are cheap wrappers around the shared pools created in the
    lifespan, so every endpoint call gets its own service instance.
    """
    return StaffAttendanceService(db_client=db_client, staff_directory=staff_directory)


def get_student_attendance_service(
    db_client: AsyncPostgresClient = Depends(get_db_client),
    student_directory: StudentDirectory = Depends(get_student_directory),
) -> StudentAttendanceService:
    return StudentAttendanceService(db_client=db_client, student_directory=student_directory)


def get_auth_service(
    db_client: AsyncPostgresClient = Depends(get_db_client),
    redis_client: RedisClient = Depends(get_redis_client),
) -> AuthService:
    return AuthService(db_client=db_client, redis_client=redis_client)
