# aurora/backend/api/utilities/limiter.py

import jwt
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from ...config.config import load_settings


def get_limiter_key(request: Request) -> str:
    """
    Returns the rate-limit key for a request.

    With a decodable bearer token the signed-in user's id is the key, otherwise
    the client address is used, so signed-in users share one budget across
    devices and anonymous callers are limited per address.
    """
    auth_header = request.headers.get("authorization")
    settings = getattr(request.app.state, "settings", None)
    if settings is not None and settings.SECRET_KEY and auth_header and auth_header.lower().startswith("bearer "):
        token = auth_header.split(" ")[1]
        try:
            # Expiry does not matter here, only the identity.
            payload = jwt.decode(
                token,
                settings.SECRET_KEY,
                algorithms=[settings.ALGORITHM],
                options={"verify_exp": False}
            )
            user_id = payload.get("user_id")
            if user_id is not None:
                return f"user:{user_id}"
        except jwt.PyJWTError:
            pass

    return get_remote_address(request)


limiter = Limiter(key_func=get_limiter_key, storage_uri=load_settings().RATE_LIMITER_STORAGE_URI)
