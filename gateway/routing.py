"""Route registry: logical operation name -> backend queue address and timeout."""

import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from common.constants import (
    DEFAULT_RPC_TIMEOUT_MS,
    QUOTA_DECREMENT_TIMEOUT_MS,
)
from gateway import config

logger = logging.getLogger(__name__)

FILES_NAMESPACE = "files"
USERS_NAMESPACE = "users"

FILES_OPERATIONS = (
    "upload",
    "download",
    "info",
    "get",
    "finish",
    "process",
    "list",
    "access",
    "remove",
    "update",
)

USERS_OPERATIONS = ("updateMetadata",)


def _freeze(mapping: Optional[Mapping]) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class RouteDescriptor:
    """Resolved address of one logical operation."""
    logical_name: str
    queue_address: str
    timeout_ms: int


@dataclass(frozen=True)
class Namespace:
    """
    A backend service reachable under one queue prefix.

    Operations without a configured postfix are addressed by their own name.
    """
    prefix: str
    postfix: Mapping[str, str] = field(default_factory=lambda: _freeze({}))
    timeouts: Mapping[str, int] = field(default_factory=lambda: _freeze({}))
    default_timeout_ms: int = DEFAULT_RPC_TIMEOUT_MS

    def address(self, name: str) -> str:
        return ".".join(part for part in (self.prefix, self.postfix.get(name, name)) if part)

    def timeout(self, name: str) -> int:
        return int(self.timeouts.get(name, self.default_timeout_ms))


@dataclass(frozen=True)
class RouteConfig:
    """Immutable snapshot of every namespace the gateway talks to."""
    namespaces: Mapping[str, Namespace]

    def namespace(self, name: str) -> Namespace:
        try:
            return self.namespaces[name]
        except KeyError:
            raise KeyError(f"Unknown namespace: {name}") from None


def build_route_config(
    files_prefix: str = FILES_NAMESPACE,
    files_postfix: Optional[Mapping[str, str]] = None,
    files_timeouts: Optional[Mapping[str, int]] = None,
    default_timeout_ms: int = DEFAULT_RPC_TIMEOUT_MS,
    users_prefix: str = USERS_NAMESPACE,
) -> RouteConfig:
    """
    Build a route snapshot from plain values.

    Args:
        files_prefix: Queue prefix of the file catalog service
        files_postfix: Per-operation postfix overrides
        files_timeouts: Per-operation timeouts in milliseconds
        default_timeout_ms: Timeout for operations without an override
        users_prefix: Queue prefix of the users service

    Returns:
        RouteConfig snapshot
    """
    files = Namespace(
        prefix=files_prefix,
        postfix=_freeze({name: name for name in FILES_OPERATIONS} | dict(files_postfix or {})),
        timeouts=_freeze({name: int(value) for name, value in (files_timeouts or {}).items()}),
        default_timeout_ms=default_timeout_ms,
    )
    users = Namespace(
        prefix=users_prefix,
        postfix=_freeze({name: name for name in USERS_OPERATIONS}),
        timeouts=_freeze({"updateMetadata": QUOTA_DECREMENT_TIMEOUT_MS}),
        default_timeout_ms=default_timeout_ms,
    )
    return RouteConfig(namespaces=_freeze({FILES_NAMESPACE: files, USERS_NAMESPACE: users}))


def load_route_config() -> RouteConfig:
    """Build the route snapshot from environment-derived settings."""
    return build_route_config(
        files_prefix=config.FILES_PREFIX,
        files_postfix=config.FILES_POSTFIX,
        files_timeouts=config.FILES_TIMEOUTS,
        default_timeout_ms=config.DEFAULT_TIMEOUT_MS,
        users_prefix=config.USERS_PREFIX,
    )


class RouteRegistry:
    """
    Resolves logical operation names against the current route snapshot.

    The snapshot is never mutated; `reconfigure` derives a new one and
    replaces the reference in a single assignment.
    """

    def __init__(self, route_config: RouteConfig):
        self._config = route_config

    @property
    def snapshot(self) -> RouteConfig:
        return self._config

    def resolve(self, logical_name: str, namespace: str = FILES_NAMESPACE) -> RouteDescriptor:
        """
        Resolve an operation to its queue address and timeout.

        Args:
            logical_name: Operation name, e.g. "download"
            namespace: Service namespace, "files" unless stated otherwise

        Returns:
            RouteDescriptor for the operation
        """
        current = self._config
        ns = current.namespace(namespace)
        return RouteDescriptor(
            logical_name=logical_name,
            queue_address=ns.address(logical_name),
            timeout_ms=ns.timeout(logical_name),
        )

    def reconfigure(
        self,
        namespace: str = FILES_NAMESPACE,
        prefix: Optional[str] = None,
        postfix: Optional[Mapping[str, str]] = None,
        timeouts: Optional[Mapping[str, int]] = None,
        default_timeout_ms: Optional[int] = None,
    ) -> RouteConfig:
        """
        Merge overrides into one namespace and swap in the resulting snapshot.

        Returns:
            The new snapshot
        """
        current = self._config
        ns = current.namespace(namespace)
        changes: Dict[str, object] = {}
        if prefix is not None:
            changes["prefix"] = prefix
        if postfix:
            changes["postfix"] = _freeze(dict(ns.postfix) | dict(postfix))
        if timeouts:
            changes["timeouts"] = _freeze(
                dict(ns.timeouts) | {name: int(value) for name, value in timeouts.items()}
            )
        if default_timeout_ms is not None:
            changes["default_timeout_ms"] = int(default_timeout_ms)

        namespaces = dict(current.namespaces)
        namespaces[namespace] = replace(ns, **changes)
        updated = RouteConfig(namespaces=_freeze(namespaces))
        self._config = updated
        logger.info(f"Route configuration updated for namespace '{namespace}'")
        return updated
