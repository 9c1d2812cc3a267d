from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from motor.motor_asyncio import AsyncIOMotorDatabase
from sneakerstore.core.database import get_database
from sneakerstore.core.security import decode_access_token

# Security schemes
security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


async def get_db() -> AsyncIOMotorDatabase:
    """Dependency to get database instance."""
    return get_database()


def _user_from_claims(payload: Optional[dict]) -> Optional[dict]:
    if payload is None:
        return None

    user_id = payload.get("sub")
    if user_id is None:
        return None

    return {
        "_id": str(user_id),
        "role": payload.get("role", "customer"),
        "email": payload.get("email")
    }


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> dict:
    """
    Dependency to get the current authenticated user.

    Validates the JWT token and returns the user identity carried by its
    claims (`_id`, `role`, `email`).

    Raises:
        HTTPException: If token is invalid
    """
    user = _user_from_claims(decode_access_token(credentials.credentials))
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_admin(
    current_user: dict = Depends(get_current_user)
) -> dict:
    """
    Dependency to ensure the current user is store staff.

    Raises:
        HTTPException: If user is not an admin
    """
    if current_user.get("role") != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only store staff can access this endpoint"
        )

    return current_user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security)
) -> Optional[dict]:
    """
    Dependency to optionally get the current user.
    Returns None if no valid token is provided.
    """
    if not credentials:
        return None
    return _user_from_claims(decode_access_token(credentials.credentials))
