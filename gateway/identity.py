"""Request identity model and the dependencies that expose it to routes."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union

from fastapi import Request

from gateway.exceptions import AuthenticationRequiredError, ValidationError

logger = logging.getLogger(__name__)

USER_ID_HEADER = "x-auth-user-id"
USER_ALIAS_HEADER = "x-auth-user-alias"
USER_ROLES_HEADER = "x-auth-user-roles"
USER_ATTRIBUTES_HEADER = "x-auth-user-attributes"

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Anonymous:
    """Caller without an authenticated identity."""


@dataclass(frozen=True)
class User:
    """
    Authenticated caller.

    `id` is the account identifier (usually an email), `alias` the public
    handle if one was chosen, `attributes` the account metadata forwarded by
    the authenticating edge (quota counters live there).
    """
    id: str
    alias: Optional[str] = None
    is_admin: bool = False
    attributes: Dict[str, Any] = field(default_factory=dict)

    def owns(self, owner: Optional[str]) -> bool:
        """True when `owner` names this user by id or by alias."""
        if not owner:
            return False
        return owner == self.id or (bool(self.alias) and owner == self.alias)


Identity = Union[Anonymous, User]

ANONYMOUS = Anonymous()

IdentityResolver = Callable[[Request], Identity]


def resolve_identity_from_headers(request: Request) -> Identity:
    """
    Build the identity from headers set by the authenticating edge proxy.

    Args:
        request: Incoming request

    Returns:
        `User` when the user id header is present, `ANONYMOUS` otherwise

    Raises:
        ValidationError: if the attributes header is not a JSON object
    """
    headers = request.headers
    user_id = headers.get(USER_ID_HEADER)
    if not user_id:
        return ANONYMOUS

    roles = {role.strip().lower() for role in headers.get(USER_ROLES_HEADER, "").split(",")}

    raw_attributes = headers.get(USER_ATTRIBUTES_HEADER)
    attributes: Dict[str, Any] = {}
    if raw_attributes:
        try:
            attributes = json.loads(raw_attributes)
        except json.JSONDecodeError:
            attributes = None
        if not isinstance(attributes, dict):
            logger.warning(f"Malformed identity attributes for user {user_id}")
            raise ValidationError("identity attributes must be a JSON object")

    return User(
        id=user_id,
        alias=headers.get(USER_ALIAS_HEADER) or attributes.get("alias") or None,
        is_admin=ADMIN_ROLE in roles,
        attributes=attributes,
    )


async def get_identity(request: Request) -> Identity:
    """
    FastAPI dependency for routes where authentication is optional.

    The resolver is taken from the application so it can be swapped at
    construction time.
    """
    identity = getattr(request.state, "identity", None)
    if identity is None:
        resolver: IdentityResolver = request.app.state.identity_resolver
        identity = resolver(request)
        request.state.identity = identity
    return identity


async def require_user(request: Request) -> User:
    """
    FastAPI dependency for routes that need an authenticated caller.

    Raises:
        AuthenticationRequiredError: 401 for anonymous callers
    """
    identity = await get_identity(request)
    if not isinstance(identity, User):
        raise AuthenticationRequiredError("authentication required")
    return identity
