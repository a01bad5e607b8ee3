"""Rate limiting for the SAT prep API.

Uses slowapi, keyed by the user ID from the bearer token and falling
back to the client IP for unauthenticated requests. Set
RATE_LIMIT_ENABLED=false to turn limits off.
"""

import os

from fastapi import HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

RATE_LIMIT_ENABLED = os.environ.get("RATE_LIMIT_ENABLED", "true").lower() == "true"


def get_user_identifier(request: Request) -> str:
    """Rate limit key: user:<id> for valid tokens, ip:<address> otherwise."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        from .auth import decode_access_token

        try:
            payload = decode_access_token(auth_header.split(" ", 1)[1])
            return f"user:{payload['user_id']}"
        except HTTPException:
            pass
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(key_func=get_user_identifier, enabled=RATE_LIMIT_ENABLED)
