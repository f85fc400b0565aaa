"""Visibility resolver: who may see which file records."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from gateway.exceptions import NotFoundError
from gateway.identity import Anonymous, Identity, User


class VisibilityRule(str, Enum):
    """Which precedence rule produced a list filter."""
    ANONYMOUS = "anonymous"
    ADMIN = "admin"
    SELF = "self"
    IMPLICIT_SELF = "implicit_self"
    FOREIGN = "foreign"


@dataclass(frozen=True)
class Visibility:
    """
    Effective list filter for one caller.

    `public_only` is None when the caller may see both public and private
    records and did not ask to narrow the listing.
    """
    owner_filter: Optional[str]
    public_only: Optional[bool]
    rule: VisibilityRule


def resolve_list_visibility(
    identity: Identity,
    owner: Optional[str] = None,
    pub: Optional[bool] = None,
) -> Visibility:
    """
    Compute the owner/public filter for a listing.

    Rules, first match wins:
      1. anonymous: public records only, optionally of `owner`
      2. administrator: `pub` as given, optionally of `owner`
      3. caller asks for their own records (id or alias): `pub` as given
      4. no owner asked and caller has no alias: caller's own records
      5. anything else: public records of `owner`, or of the caller's alias

    Args:
        identity: Request identity
        owner: Requested owner (query `owner`)
        pub: Parsed query `pub` flag, None when not given

    Returns:
        Visibility
    """
    owner = owner or None

    if isinstance(identity, Anonymous):
        return Visibility(owner_filter=owner, public_only=True, rule=VisibilityRule.ANONYMOUS)

    if not isinstance(identity, User):
        raise TypeError(f"Unsupported identity: {identity!r}")

    if identity.is_admin:
        return Visibility(owner_filter=owner, public_only=pub, rule=VisibilityRule.ADMIN)

    if owner is not None and identity.owns(owner):
        return Visibility(owner_filter=owner, public_only=pub, rule=VisibilityRule.SELF)

    if owner is None and not identity.alias:
        return Visibility(owner_filter=identity.id, public_only=pub, rule=VisibilityRule.IMPLICIT_SELF)

    return Visibility(
        owner_filter=owner or identity.alias,
        public_only=True,
        rule=VisibilityRule.FOREIGN,
    )


def is_private_view(identity: Identity, record_owner: Optional[str]) -> bool:
    """True when the caller is the owner of the record."""
    if not isinstance(identity, User):
        return False
    return bool(record_owner) and record_owner == identity.id


def is_public(record: Mapping[str, Any]) -> bool:
    """
    Records store the flag as a bool or as the strings "1"/"0".
    """
    value = record.get("public")
    if isinstance(value, str):
        return value not in ("", "0", "false")
    return bool(value)


def ensure_visible(identity: Identity, record: Mapping[str, Any], record_owner: Optional[str] = None) -> bool:
    """
    Gate a single-record lookup.

    A private record looks exactly like a missing one to anybody but its
    owner.

    Args:
        identity: Request identity
        record: File record as returned by the backend
        record_owner: Owner reported alongside the record, if any

    Returns:
        Whether the caller gets the private (unredacted) view

    Raises:
        NotFoundError: the record is private and the caller is not its owner
    """
    private_view = is_private_view(identity, record_owner or record.get("owner"))
    if not is_public(record) and not private_view:
        raise NotFoundError("file not found")
    return private_view
