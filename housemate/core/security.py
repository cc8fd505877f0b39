"""Bearer token helpers.

Tokens are issued by the identity service; this module only needs the
shared signing key to verify them. ``create_access_token`` produces the
same format and is used by operators and the test suite.
"""

from datetime import timedelta
from typing import Optional

from jose import jwt

from housemate.config import settings
from housemate.utils.dates import utcnow


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Encode a signed access token.

    Args:
        data: Claims to embed; ``sub`` must be the user id as a string
        expires_delta: Token lifetime (default: ACCESS_TOKEN_EXPIRE_MINUTES)

    Returns:
        Encoded JWT string
    """
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and verify a token. Raises ``jose.JWTError`` when invalid."""
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
