"""JWT Token Validation

Tokens are issued by the host application's auth service. This module only
validates them and maps their claims to an Actor.
"""
import jwt
from typing import Any, Dict, Optional

from ..config.settings import settings
from ..domain.errors import AuthenticationError
from ..domain.models import Actor
from .logger import get_logger

logger = get_logger(__name__)

DEV_ENVIRONMENTS = ["development", "dev", "local"]


class JWTValidator:
    """Shared-secret JWT validator"""

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Validate a bearer token

        With no JWT_SECRET configured, development environments decode
        without signature verification (expiry is still checked).

        Args:
            token: Bearer token (with or without 'Bearer ' prefix)

        Returns:
            Decoded token claims

        Raises:
            AuthenticationError: If token is invalid
        """
        if not token:
            raise AuthenticationError("Token is missing")

        if token.startswith("Bearer "):
            token = token[7:]

        try:
            if not settings.jwt_secret:
                if settings.environment.lower() not in DEV_ENVIRONMENTS:
                    raise AuthenticationError("Token validation is not configured")

                claims = jwt.decode(
                    token,
                    options={
                        "verify_signature": False,
                        "verify_exp": True,
                        "verify_aud": False,
                        "verify_iss": False,
                    }
                )
                logger.debug(f"Dev mode - unverified token for {claims.get('sub')}")
                return claims

            options = {
                "verify_exp": True,
                "verify_aud": bool(settings.jwt_audience),
                "verify_iss": bool(settings.jwt_issuer),
            }
            return jwt.decode(
                token,
                settings.jwt_secret,
                algorithms=[settings.jwt_algorithm],
                audience=settings.jwt_audience or None,
                issuer=settings.jwt_issuer or None,
                options=options
            )

        except jwt.ExpiredSignatureError:
            logger.warning("Token expired")
            raise AuthenticationError("Token has expired")
        except jwt.InvalidAudienceError as e:
            logger.warning(f"Invalid token audience: {e}")
            raise AuthenticationError("Invalid token audience")
        except jwt.InvalidIssuerError:
            logger.warning("Invalid token issuer")
            raise AuthenticationError("Invalid token issuer")
        except jwt.PyJWTError as e:
            logger.warning(f"JWT validation error: {e}")
            raise AuthenticationError(f"Invalid token: {str(e)}")

    def get_actor(self, token: str) -> Actor:
        """
        Extract the actor from a validated token

        Claims: sub (or oid) -> id, roles, email, name -> display_name
        """
        claims = self.validate_token(token)

        actor_id = claims.get("sub") or claims.get("oid")
        if not actor_id:
            logger.warning(f"No subject in token claims. Available claims: {list(claims.keys())}")
            raise AuthenticationError("Unable to determine user from token")

        roles = claims.get("roles") or []
        if isinstance(roles, str):
            roles = [roles]

        email = claims.get("email") or claims.get("preferred_username")
        return Actor(
            id=str(actor_id),
            email=email,
            display_name=claims.get("name", email),
            roles=[str(role) for role in roles]
        )


# Global validator instance
_jwt_validator: Optional[JWTValidator] = None


def get_jwt_validator() -> JWTValidator:
    """Get global JWT validator instance"""
    global _jwt_validator
    if _jwt_validator is None:
        _jwt_validator = JWTValidator()
    return _jwt_validator


def get_current_actor(authorization: str) -> Actor:
    """
    Get current actor from authorization header

    Args:
        authorization: Authorization header value
    """
    if not authorization:
        raise AuthenticationError("Authorization header is missing")

    return get_jwt_validator().get_actor(authorization)
