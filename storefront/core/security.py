"""
Security utilities for authentication and authorization
Handles JWT tokens and permission checks
"""

from datetime import datetime, timedelta
from typing import Dict, Any, List, Optional
from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import uuid

from .config import settings
from .exceptions import ForbiddenException, UnauthorizedException

# Security scheme
security = HTTPBearer(auto_error=False)


class SecurityUtils:
    """Security utility functions"""

    @staticmethod
    def create_access_token(data: Dict[str, Any]) -> str:
        """Create JWT access token"""
        to_encode = data.copy()
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        to_encode.update({"exp": expire, "type": "access"})
        return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def decode_token(token: str) -> Dict[str, Any]:
        """Decode and validate JWT token"""
        try:
            payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
            return payload
        except JWTError:
            raise UnauthorizedException("Invalid authentication credentials", error_code="INVALID_TOKEN")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Dict[str, Any]:
    """Extract and validate user from JWT token"""
    if credentials is None:
        raise UnauthorizedException("Not authenticated", error_code="NOT_AUTHENTICATED")

    payload = SecurityUtils.decode_token(credentials.credentials)

    if payload.get("type") != "access" or not payload.get("sub"):
        raise UnauthorizedException("Invalid token type", error_code="INVALID_TOKEN")

    return {
        "id": payload.get("sub"),
        "role": payload.get("role"),
        "email": payload.get("email"),
    }


def require_role(allowed_roles: List[str]):
    """Dependency factory checking the user's role"""
    async def role_checker(current_user: dict = Depends(get_current_user)):
        if current_user.get("role") not in allowed_roles:
            raise ForbiddenException("Insufficient permissions", error_code="INSUFFICIENT_PERMISSIONS")
        return current_user
    return role_checker


require_admin = require_role(["admin"])


async def get_current_user_id(current_user: dict = Depends(get_current_user)) -> uuid.UUID:
    """Authenticated user's id as a UUID"""
    try:
        return uuid.UUID(str(current_user["id"]))
    except ValueError:
        raise UnauthorizedException("Invalid authentication credentials", error_code="INVALID_TOKEN")
