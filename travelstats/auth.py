"""
Authenticated-session principal resolution

The caller's identity always comes from a verified bearer JWT issued by the
login service, never from request parameters.
"""
import functools
import logging
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Optional

import jwt
from flask import g, request

from travelstats.config import settings
from travelstats.exceptions import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """
    Authenticated caller

    Attributes:
        username: Subject of the session token
        roles: Roles granted by the token
    """

    username: str
    roles: FrozenSet[str] = field(default_factory=frozenset)


def decode_token(token: str) -> Principal:
    """
    Validate a session JWT and extract the principal

    Args:
        token: JWT string (without the "Bearer " prefix)

    Returns:
        Principal carried by the token

    Raises:
        AuthenticationError: If the token is invalid, expired or the
            service has no JWT secret configured
    """
    if not settings.JWT_SECRET:
        logger.error("JWT_SECRET not configured, cannot validate session tokens")
        raise AuthenticationError("Authentication is not configured")

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            issuer=settings.JWT_ISSUER or None,
            leeway=settings.JWT_LEEWAY_SECONDS,
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        logger.debug("JWT token has expired")
        raise AuthenticationError("Session token has expired")
    except jwt.InvalidSignatureError:
        logger.warning("JWT token has invalid signature")
        raise AuthenticationError("Invalid session token")
    except jwt.InvalidTokenError as e:
        logger.debug(f"JWT token rejected: {e}")
        raise AuthenticationError("Invalid session token")

    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]
    return Principal(username=str(payload["sub"]), roles=frozenset(roles))


def current_principal() -> Principal:
    """
    Resolve the principal of the current request

    Cached on flask.g for the duration of the request.

    Raises:
        AuthenticationError: If no valid bearer token is present
    """
    principal: Optional[Principal] = g.get("principal")
    if principal is not None:
        return principal

    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        raise AuthenticationError("Missing bearer token")

    principal = decode_token(header[len("Bearer "):].strip())
    g.principal = principal
    return principal


def require_user(func: Callable) -> Callable:
    """Reject requests without an authenticated session"""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        current_principal()
        return func(*args, **kwargs)

    return wrapper


def require_role(role: str) -> Callable[[Callable], Callable]:
    """
    Reject requests whose principal lacks `role`

    Example:
        @bp.route("/admin/statistics/topBuyers")
        @require_role(settings.ADMIN_ROLE)
        def top_buyers():
            ...
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            principal = current_principal()
            if role not in principal.roles:
                logger.warning(f"User {principal.username} denied: missing role {role}")
                raise AuthorizationError("Insufficient permissions")
            return func(*args, **kwargs)

        return wrapper

    return decorator
