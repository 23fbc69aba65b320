import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from pydantic import ValidationError

from ..config.config import Config
from ..core.exceptions import AuthorizationError
from ..db.redis_client import RedisClient
from ..models.db_models import Role, User
from ..services.auth_service import AuthService
from .dependencies import get_auth_service, get_redis_client, get_settings
from .schemas.user import SignInRequest, SignInResponse, Token, TokenData, UserResponse
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


def create_access_token(data: dict, expires_delta: timedelta, settings: Config) -> str:
    """Creates a signed JWT access token carrying `data` that expires after `expires_delta`."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    settings: Config = Depends(get_settings),
    redis_client: RedisClient = Depends(get_redis_client),
) -> User:
    """
    Decodes the bearer token, validates its payload and requires an active
    Redis session for the user. Returns the user stored in the session.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        token_data = TokenData.model_validate(payload)
    except (jwt.PyJWTError, ValidationError) as e:
        logger.warning(f"Token validation error: {e}")
        raise credentials_exception

    if token_data.user_id is None:
        logger.warning(f"Token is valid but missing 'user_id': {payload}")
        raise credentials_exception

    user_session = await redis_client.get_user_session(token_data.user_id)
    if user_session is None:
        logger.warning(f"User {token_data.user_id} has a valid token but no active session. Denying access.")
        raise credentials_exception

    return user_session.user_data


def require_roles(*roles: Role) -> Callable:
    """
    Builds a dependency that returns the current user when their role is one
    of `roles` and raises AuthorizationError (403) otherwise.
    """
    allowed = {Role(role) for role in roles}

    async def _check_role(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            logger.warning(f"User '{current_user.username}' ({current_user.role.value}) denied, requires one of {sorted(r.value for r in allowed)}.")
            raise AuthorizationError("You are not allowed to perform this action.")
        return current_user

    return _check_role


async def _sign_in(username: str, password: str, service: AuthService, settings: Config) -> SignInResponse:
    logger.info(f"Sign-in attempt for user '{username}'.")
    user = await service.authenticate(username, password)

    ttl = settings.SESSION_TTL_SECONDS
    await service.start_session(user, ttl=ttl)

    access_token = create_access_token(
        data={"user_id": user.id, "role": user.role.value},
        expires_delta=timedelta(seconds=ttl),
        settings=settings,
    )
    logger.info(f"User '{username}' ({user.role.value}) signed in successfully.")
    return SignInResponse(
        token=Token(access_token=access_token),
        user=UserResponse.model_validate(user.model_dump(mode="json")),
    )


@router.post("/token", response_model=Token)
@limiter.limit("20/minute")
async def login_for_access_token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    service: AuthService = Depends(get_auth_service),
    settings: Config = Depends(get_settings),
):
    """Standard OAuth2 endpoint for Swagger UI."""
    sign_in_response = await _sign_in(form_data.username, form_data.password, service, settings)
    return sign_in_response.token


@router.post("/signin", response_model=SignInResponse, response_model_by_alias=True)
@limiter.limit("20/minute")
async def signin(
    request: Request,
    sign_in_request: SignInRequest,
    service: AuthService = Depends(get_auth_service),
    settings: Config = Depends(get_settings),
):
    """Sign-in endpoint for the web client."""
    return await _sign_in(sign_in_request.username, sign_in_request.password, service, settings)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("60/minute")
async def logout(
    request: Request,
    service: AuthService = Depends(get_auth_service),
    current_user: User = Depends(get_current_user),
):
    """Ends the user's session. The token stops working immediately."""
    logger.info(f"User '{current_user.username}' logging out.")
    await service.end_session(current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/profile", response_model=UserResponse)
@limiter.limit("60/minute")
async def profile(request: Request, current_user: User = Depends(get_current_user)):
    return UserResponse.model_validate(current_user.model_dump(mode="json"))
