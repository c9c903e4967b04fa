# core/security.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException, status
from jose import JWTError, jwt

from app.core.config import settings

logger = logging.getLogger(__name__)


class JWTManager:
    """JWT handling for student identity.

    Users are owned by another system; the engine only needs the opaque
    user id carried in the ``sub`` claim.
    """

    def __init__(self):
        self.secret_key = settings.jwt_secret
        self.algorithm = settings.jwt_algorithm
        self.user_token_expire = timedelta(days=settings.jwt_user_expiration)
        self.issuer = settings.jwt_issuer

    def create_access_token(
        self, user_id: str, custom_expiration: Optional[timedelta] = None
    ) -> str:
        """
        Create JWT access token for a user id

        Args:
            user_id: Opaque user identifier
            custom_expiration: Override default expiration

        Returns:
            JWT access token string
        """
        current_time = datetime.now(timezone.utc)
        expire = current_time + (custom_expiration or self.user_token_expire)

        payload = {
            "sub": str(user_id),
            "exp": int(expire.timestamp()),
            "iat": int(current_time.timestamp()),
            "iss": self.issuer,
            "type": "access",
        }

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.debug(f"Access token created for user: {user_id}")
        return token

    def verify_token(self, token: str, token_type: str = "access") -> Dict[str, Any]:
        """
        Verify and decode JWT token
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": True},
            )
        except JWTError as e:
            logger.warning(f"JWT verification failed: {e}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
                headers={"WWW-Authenticate": "Bearer"},
            )

        # Verify token type (check 'type' field, not 'role')
        if payload.get("type") != token_type:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid token type. Expected {token_type}",
            )

        if payload.get("iss") != self.issuer:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token issuer",
            )

        return payload


# Global instance
jwt_manager = JWTManager()
