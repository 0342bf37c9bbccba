"""
JWT token service for authentication.

Tokens are issued by the account service; this backend only needs to turn a
bearer token back into a user ID.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt


@dataclass
class TokenPayload:
    """JWT token payload structure."""

    sub: str  # Subject (user ID)
    exp: datetime
    iat: datetime
    type: str  # Token type: "access"


class TokenService:
    """Service for creating and validating JWT access tokens."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_token_expire_minutes: int = 30,
    ):
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._access_token_expire_minutes = access_token_expire_minutes

    def create_access_token(self, user_id: str) -> str:
        """
        Create an access token.

        Args:
            user_id: User ID to encode in the token

        Returns:
            Encoded JWT access token
        """
        now = datetime.now(UTC)
        payload = {
            "sub": user_id,
            "exp": now + timedelta(minutes=self._access_token_expire_minutes),
            "iat": now,
            "type": "access",
        }
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def decode_token(self, token: str) -> TokenPayload | None:
        """
        Decode and validate a JWT token.

        Returns:
            TokenPayload if valid, None if invalid or expired
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
            )

            for field in ("sub", "exp", "type"):
                if field not in payload:
                    raise JWTError(f"Missing required field: {field}")

            return TokenPayload(
                sub=payload.get("sub"),
                exp=datetime.fromtimestamp(payload.get("exp"), tz=UTC),
                iat=datetime.fromtimestamp(payload.get("iat", 0), tz=UTC),
                type=payload.get("type"),
            )
        except JWTError:
            return None

    def verify_access_token(self, token: str) -> str | None:
        """Return the user ID for a valid access token, else None."""
        payload = self.decode_token(token)
        if payload and payload.type == "access":
            return payload.sub
        return None
