"""Query normalizer for list requests: raw query string -> canonical ListQuery."""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import unquote

from common.constants import (
    DEFAULT_ORDER,
    DEFAULT_PAGE_LIMIT,
    MAX_PAGE_LIMIT,
    VALID_ORDERS,
)
from gateway.exceptions import ValidationError
from gateway.visibility import Visibility


def compact(values: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Drop absent fields so nothing null or empty is sent onward.

    `False`, `0` and `{}` are meaningful and kept.
    """
    return {
        key: value
        for key, value in values.items()
        if value is not None and value != "" and value != []
    }


def parse_offset(raw: Optional[str]) -> Optional[int]:
    """Non-negative integer offset; anything else leaves it unset."""
    if raw is None:
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None
    if value <= 0:
        return None
    return value


def parse_limit(raw: Optional[str]) -> int:
    """Page size in [1, MAX_PAGE_LIMIT]; anything else resolves to the default."""
    if raw is None:
        return DEFAULT_PAGE_LIMIT
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return DEFAULT_PAGE_LIMIT
    if value < 1 or value > MAX_PAGE_LIMIT:
        return DEFAULT_PAGE_LIMIT
    return value


def parse_order(raw: Optional[str]) -> str:
    if not raw:
        return DEFAULT_ORDER
    order = raw.upper()
    if order not in VALID_ORDERS:
        raise ValidationError("query.order must be either ASC or DESC")
    return order


def parse_flag(raw: Optional[str], name: str) -> Optional[bool]:
    """
    Parse a 0/1 style flag. Empty or missing means "not specified".
    """
    if raw is None or raw == "":
        return None
    try:
        return bool(int(raw))
    except ValueError:
        pass
    lowered = raw.lower()
    if lowered in ("true", "yes"):
        return True
    if lowered in ("false", "no"):
        return False
    raise ValidationError(f"query.{name} must be 0 or 1")


def _decode_json(raw: str, name: str, expected: type, description: str) -> Any:
    try:
        value = json.loads(unquote(raw))
    except ValueError:
        raise ValidationError(f"query.{name} must be uri encoded and {description}") from None
    if not isinstance(value, expected):
        raise ValidationError(f"query.{name} must be uri encoded and {description}")
    return value


def parse_filter(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    return _decode_json(raw, "filter", dict, "a valid JSON object")


def parse_tags(raw: Optional[str]) -> Optional[List[str]]:
    if not raw:
        return None
    tags = _decode_json(raw, "tags", list, "a valid JSON array")
    if not all(isinstance(tag, str) for tag in tags):
        raise ValidationError("query.tags must contain only strings")
    return tags or None


def parse_sort_key(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    return unquote(raw)


@dataclass(frozen=True)
class ListQuery:
    """
    Canonical list request.

    Built once per request; both the RPC message and the pagination links
    are derived from it and from nothing else.
    """
    order: str = DEFAULT_ORDER
    offset: Optional[int] = None
    limit: int = DEFAULT_PAGE_LIMIT
    filter: Dict[str, Any] = field(default_factory=dict)
    sort_key: Optional[str] = None
    owner: Optional[str] = None
    public_only: Optional[bool] = None
    tags: Optional[List[str]] = None

    def to_message(self) -> Dict[str, Any]:
        """RPC payload for the `list` route."""
        return compact({
            "order": self.order,
            "owner": self.owner,
            "offset": self.offset,
            "limit": self.limit,
            "filter": dict(self.filter),
            "criteria": self.sort_key,
            "public": self.public_only,
            "tags": list(self.tags) if self.tags else None,
        })


def normalize_list_query(params: Mapping[str, str], visibility: Visibility) -> ListQuery:
    """
    Build the canonical list request from raw query parameters.

    Args:
        params: Raw (already percent-decoded once) query parameters
        visibility: Resolved owner/public filter for the caller

    Returns:
        ListQuery

    Raises:
        ValidationError: naming the first parameter that failed to parse
    """
    return ListQuery(
        order=parse_order(params.get("order")),
        offset=parse_offset(params.get("offset")),
        limit=parse_limit(params.get("limit")),
        filter=parse_filter(params.get("filter")),
        sort_key=parse_sort_key(params.get("sortBy")) or parse_sort_key(params.get("criteria")),
        owner=visibility.owner_filter,
        public_only=visibility.public_only,
        tags=parse_tags(params.get("tags")),
    )
