"""Identity-provider token verification"""

from typing import Any, Dict, Optional

import jwt

from abaya_bank.config import settings
from abaya_bank.domain.exceptions import AuthenticationError
from abaya_bank.domain.models import Identity


class IdentityVerifier:
    """Verifies bearer tokens issued by the external identity provider"""

    def __init__(
        self,
        secret: Optional[str] = None,
        algorithm: Optional[str] = None,
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
    ):
        self.secret = secret or settings.identity_jwt_secret
        self.algorithm = algorithm or settings.identity_jwt_algorithm
        self.issuer = issuer if issuer is not None else settings.identity_jwt_issuer
        self.audience = audience if audience is not None else settings.identity_jwt_audience

    def decode(self, token: str) -> Dict[str, Any]:
        """
        Decode and validate a token.

        Raises:
            AuthenticationError: On expired, malformed or badly signed tokens
        """
        try:
            return jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                audience=self.audience,
                options={"require": ["exp", "sub"], "verify_aud": self.audience is not None},
            )
        except jwt.ExpiredSignatureError as e:
            raise AuthenticationError("Token has expired. Please login again.") from e
        except jwt.InvalidTokenError as e:
            raise AuthenticationError("Authentication failed") from e

    def verify(self, token: str) -> Identity:
        claims = self.decode(token)
        return Identity(
            uid=claims["sub"],
            email=claims.get("email"),
            role=claims.get("role"),
            claims=claims,
        )


def parse_bearer(authorization: Optional[str]) -> str:
    """Extract the token from an 'Authorization: Bearer <token>' header"""
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("No token provided. Authorization header must be in format: Bearer <token>")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise AuthenticationError("Invalid token format")
    return token
