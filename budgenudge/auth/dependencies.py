"""
FastAPI dependency functions for authentication.

Two callers exist:
- End users, who send a Supabase Auth JWT. Verified against the project's
  JWT Signing Keys (ES256 via JWKS).
- The scheduler, which sends the shared CRON_SECRET (or the Vercel cron
  header) to trigger background jobs.
"""

import hmac
import logging
from dataclasses import dataclass
from typing import Annotated, Any, Dict

from fastapi import Header, HTTPException, status
from jwt import PyJWKClient, decode
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError, PyJWKClientError

from budgenudge.config import settings

logger = logging.getLogger(__name__)

# Lazily created; PyJWKClient caches keys and handles rotation
_jwks_client: PyJWKClient | None = None


@dataclass
class AuthenticatedUser:
    """
    Represents an authenticated user with their token.

    Attributes:
        user_id: The user's UUID from the JWT token's 'sub' claim
        access_token: The full JWT access token (for creating RLS Supabase clients)
    """
    user_id: str
    access_token: str


def get_jwks_client() -> PyJWKClient:
    """
    Get or create the JWKS client instance.

    Raises:
        ValueError: If SUPABASE_URL is not configured
    """
    global _jwks_client

    if _jwks_client is None:
        jwks_url = settings.SUPABASE_JWKS_URL
        if not jwks_url:
            raise ValueError(
                "SUPABASE_URL is not configured. "
                "Cannot construct JWKS URL for JWT verification."
            )

        logger.info(f"Initializing JWKS client with URL: {jwks_url}")
        _jwks_client = PyJWKClient(
            jwks_url,
            cache_keys=True,
            max_cached_keys=16,
        )

    return _jwks_client


def _unauthorized(error: str, details: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "details": details}
    )


def _extract_bearer_token(authorization: str | None) -> str:
    """Pull the token out of an 'Authorization: Bearer <token>' header."""
    if not authorization:
        logger.warning("Missing Authorization header")
        raise _unauthorized("unauthorized", "Missing Authorization header")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        logger.warning("Invalid Authorization header format")
        raise _unauthorized("unauthorized", "Invalid Authorization header format")

    return parts[1]


def _decode_supabase_token(token: str) -> Dict[str, Any]:
    """
    Verify a Supabase JWT and return its claims.

    Raises:
        HTTPException: 401 for any verification failure
    """
    try:
        jwks_client = get_jwks_client()
        signing_key = jwks_client.get_signing_key_from_jwt(token)

        # Supabase issues tokens from <project>/auth/v1
        issuer = f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1"

        return decode(
            token,
            signing_key.key,
            algorithms=["ES256"],
            audience="authenticated",
            issuer=issuer,
            options={
                "verify_signature": True,
                "verify_exp": True,
                "verify_aud": True,
                "verify_iss": True,
            }
        )

    except ExpiredSignatureError:
        logger.warning("Token has expired")
        raise _unauthorized("token_expired", "Authentication token has expired")

    except PyJWKClientError as e:
        logger.error(f"JWKS client error: {str(e)}")
        raise _unauthorized("jwks_error", "Unable to verify token signature")

    except InvalidTokenError as e:
        logger.warning(f"Invalid token: {str(e)}")
        raise _unauthorized("invalid_token", "Invalid authentication token")

    except Exception as e:
        logger.error(f"Unexpected error during token verification: {str(e)}")
        raise _unauthorized("unauthorized", "Token verification failed")


async def verify_token(authorization: Annotated[str | None, Header()] = None) -> str:
    """
    Verify Supabase Auth Bearer token and extract user_id.

    Returns:
        user_id: UUID string from validated token (auth.uid())

    Raises:
        HTTPException: 401 if token is missing, invalid, or expired
    """
    auth_user = await get_authenticated_user(authorization)
    return auth_user.user_id


async def get_authenticated_user(
    authorization: Annotated[str | None, Header()] = None
) -> AuthenticatedUser:
    """
    Verify token and return authenticated user with token.

    Any user_id sent by the client in a body or query string is ignored;
    the token's 'sub' claim is the only source of truth.

    Usage:
        @router.get("/tagged-merchants")
        async def list_merchants(
            auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
        ):
            supabase_client = get_supabase_client(auth_user.access_token)
    """
    token = _extract_bearer_token(authorization)
    payload = _decode_supabase_token(token)

    user_id = payload.get("sub")
    if not user_id:
        logger.error("Token payload missing 'sub' claim")
        raise _unauthorized("unauthorized", "Invalid token: missing user ID")

    logger.info(f"Token verified successfully for user_id={user_id}")
    return AuthenticatedUser(user_id=str(user_id), access_token=token)


async def verify_cron_secret(
    authorization: Annotated[str | None, Header()] = None,
    x_vercel_cron: Annotated[str | None, Header()] = None,
) -> None:
    """
    Guard for scheduler-triggered endpoints.

    Accepts either the platform cron header or "Bearer <CRON_SECRET>".

    Raises:
        HTTPException: 401 otherwise (including when CRON_SECRET is unset)
    """
    if x_vercel_cron:
        logger.info("Cron request authorized via platform header")
        return

    if not settings.CRON_SECRET:
        logger.error("CRON_SECRET is not configured; rejecting cron request")
        raise _unauthorized("unauthorized", "Cron endpoint is not configured")

    token = _extract_bearer_token(authorization)
    if not hmac.compare_digest(token, settings.CRON_SECRET):
        logger.warning("Cron request rejected: bad secret")
        raise _unauthorized("unauthorized", "Invalid cron secret")
