"""
Bearer token verification.

Tokens are minted by the identity service; this module only checks the
signature and expiry and hands back the claims.
"""
import logging
from typing import Optional

import jwt

from sneakerstore.core.config import settings

logger = logging.getLogger(__name__)


def decode_access_token(token: str) -> Optional[dict]:
    """Decode a JWT access token. Returns None if the token is invalid or expired."""
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except jwt.PyJWTError as e:
        logger.info(f"Rejected access token: {e}")
        return None
