import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from uwuweb.core.config import (
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES,
    JWT_ALGORITHM,
    JWT_SECRET_KEY,
)
from uwuweb.core.exceptions import AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)

TOKEN_TYPE = "access_token"


class JWTManager:
    def __init__(
        self,
        secret_key: Optional[str] = JWT_SECRET_KEY,
        algorithm: str = JWT_ALGORITHM,
        access_token_expire_minutes: int = JWT_ACCESS_TOKEN_EXPIRE_MINUTES,
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_expire_minutes = access_token_expire_minutes

    def _require_secret(self) -> str:
        if not self.secret_key:
            raise ConfigurationError("JWT_SECRET_KEY", "JWT secret key is not configured")
        return self.secret_key

    def create_access_token(
        self, user_id: int, role: str, extra_data: Dict[str, Any] = None
    ) -> str:
        """
        Create JWT access token for a user

        Args:
            user_id: ID of the authenticated user
            role: User's role code (admin, teacher, student, parent)
            extra_data: Additional claims to include in token

        Returns:
            JWT token string
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "role": role,
            "exp": now + timedelta(minutes=self.access_token_expire_minutes),
            "iat": now,
            "type": TOKEN_TYPE,
        }

        if extra_data:
            payload.update(extra_data)

        token = jwt.encode(payload, self._require_secret(), algorithm=self.algorithm)
        logger.info(f"JWT token created for user: {user_id}, role: {role}")
        return token

    def decode_token(self, token: str) -> Dict[str, Any]:
        """
        Decode and verify JWT token

        Raises:
            AuthenticationError: If token is invalid, expired or of a wrong type
        """
        try:
            payload = jwt.decode(
                token,
                self._require_secret(),
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            logger.warning("JWT token has expired")
            raise AuthenticationError("Token has expired")
        except jwt.InvalidTokenError:
            logger.warning("Invalid JWT token provided")
            raise AuthenticationError("Invalid token")

        if payload.get("type") != TOKEN_TYPE:
            raise AuthenticationError("Invalid token type")

        return payload


# Create global instance
jwt_manager = JWTManager()
