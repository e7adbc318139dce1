"""
Bearer token handling.

Tokens are issued by the identity provider and carry the profile id in
`sub`. This service only verifies them; `create_access_token` exists for
scripts and tests that need a locally signed token.
"""

import os
from datetime import datetime, timedelta
from typing import Optional

from dotenv import load_dotenv
from jose import JWTError, jwt

load_dotenv()

SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
ALGORITHM = "HS256"


def _expire_hours(raw: Optional[str]) -> Optional[int]:
    # Unset, unparsable or non-positive means tokens carry no `exp` claim
    try:
        hours = int(raw) if raw else None
    except ValueError:
        return None
    return hours if hours and hours > 0 else None


ACCESS_TOKEN_EXPIRE_HOURS = _expire_hours(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_HOURS"))


def create_access_token(data: dict) -> str:
    claims = dict(data)
    if ACCESS_TOKEN_EXPIRE_HOURS:
        claims["exp"] = datetime.utcnow() + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> Optional[dict]:
    """Decoded claims, or None for a bad signature or an expired token."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
