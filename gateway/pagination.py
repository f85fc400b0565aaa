"""Pagination link builder for list responses."""

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote, urlencode

from gateway.query import ListQuery, compact

# characters encodeURIComponent leaves alone besides the always-safe "_.-~"
URI_COMPONENT_SAFE = "!*'()"


def encode_json_param(value: Any) -> str:
    """Compact JSON, percent-encoded as a single URI component."""
    return quote(json.dumps(value, separators=(",", ":")), safe=URI_COMPONENT_SAFE)


@dataclass(frozen=True)
class Page:
    """Backend-reported page position; the gateway never computes paging."""
    current_page: Optional[int]
    total_pages: Optional[int]
    cursor: Any = None

    @classmethod
    def from_reply(cls, reply: Mapping[str, Any]) -> "Page":
        return cls(
            current_page=reply.get("page"),
            total_pages=reply.get("pages"),
            cursor=reply.get("cursor"),
        )

    @property
    def has_next(self) -> bool:
        try:
            return self.current_page < self.total_pages
        except TypeError:
            return False


@dataclass(frozen=True)
class PageLinks:
    self_link: str
    next_link: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        return compact({"self": self.self_link, "next": self.next_link})


def self_params(query: ListQuery) -> Dict[str, Any]:
    """
    Query-string fields that reproduce the request the page was fetched with.
    """
    return compact({
        "order": query.order,
        "limit": query.limit,
        "offset": query.offset or 0,
        "sortBy": quote(query.sort_key, safe=URI_COMPONENT_SAFE) if query.sort_key else None,
        "filter": encode_json_param(query.filter),
        "pub": int(query.public_only) if query.public_only is not None else None,
        "owner": query.owner,
        "tags": encode_json_param(query.tags) if query.tags else None,
    })


def build_page_links(base_url: str, query: ListQuery, page: Page) -> PageLinks:
    """
    Build self/next links for a list response.

    `next` exists only while there are pages left and differs from `self`
    in the offset alone, which becomes the backend's cursor.

    Args:
        base_url: Absolute URL of the collection
        query: Canonical request the page was fetched with
        page: Backend page position

    Returns:
        PageLinks
    """
    params = self_params(query)
    links = PageLinks(self_link=f"{base_url}?{urlencode(params)}")

    if page.has_next:
        next_params = dict(params)
        next_params["offset"] = page.cursor
        links = PageLinks(self_link=links.self_link, next_link=f"{base_url}?{urlencode(next_params)}")

    return links
