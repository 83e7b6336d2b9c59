# api/auth.py

import logging
from typing import Optional

from fastapi import Depends, Request
from supabase import Client

from api.errors import Unauthorized
from api.supabase_client import get_supabase

logger = logging.getLogger(__name__)

# Cookie set by the Supabase JS client when the browser calls the API directly
ACCESS_TOKEN_COOKIE = "sb-access-token"


def _extract_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    cookie = request.cookies.get(ACCESS_TOKEN_COOKIE)
    return cookie.strip() if cookie and cookie.strip() else None


def get_current_user(request: Request, supabase: Client = Depends(get_supabase)) -> dict:
    """
    Resolve the caller's Supabase session.

    Returns {"id", "email"}; raises Unauthorized when the token is
    missing, expired or rejected by Supabase Auth.
    """
    token = _extract_token(request)
    if not token:
        logger.warning("[Auth] No access token on %s", request.url.path)
        raise Unauthorized(stage="auth")

    try:
        result = supabase.auth.get_user(token)
    except Exception as e:
        logger.warning("[Auth] Token rejected on %s: %s", request.url.path, type(e).__name__)
        raise Unauthorized(stage="auth")

    user = getattr(result, "user", None)
    if not user or not getattr(user, "id", None):
        logger.warning("[Auth] No user for token on %s", request.url.path)
        raise Unauthorized(stage="auth")

    return {"id": str(user.id), "email": getattr(user, "email", None)}
