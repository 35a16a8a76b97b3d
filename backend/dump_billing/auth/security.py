"""Bearer token handling for identity-provider issued JWTs."""
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import jwt

from dump_billing.config import settings


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Sign a token the same way the identity provider does (tooling and tests)."""
    to_encode = dict(data)
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode["exp"] = expire
    if settings.AUTH_JWT_AUDIENCE:
        to_encode.setdefault("aud", settings.AUTH_JWT_AUDIENCE)
    return jwt.encode(to_encode, settings.AUTH_JWT_SECRET, algorithm=settings.AUTH_JWT_ALGORITHM)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify and decode a bearer token. Returns None when it is invalid or expired."""
    options = {"verify_aud": bool(settings.AUTH_JWT_AUDIENCE)}
    try:
        return jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            audience=settings.AUTH_JWT_AUDIENCE or None,
            options=options,
        )
    except jwt.PyJWTError:
        return None
