"""Shared plumbing for services that talk to backend queues."""

import logging
from typing import Any, Optional

from gateway.routing import FILES_NAMESPACE, RouteRegistry
from gateway.rpc_client import RpcClient, RpcResult

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"


class BackendService:
    """
    Resolves an operation through the route registry and performs the call.

    Instances are created per request and hold nothing beyond that request.
    """

    def __init__(self, rpc_client: RpcClient, registry: RouteRegistry, request_id: Optional[str] = None):
        self.rpc_client = rpc_client
        self.registry = registry
        self.request_id = request_id

    async def call(
        self,
        route_name: str,
        payload: Any,
        namespace: str = FILES_NAMESPACE,
        timeout_ms: Optional[int] = None,
    ) -> RpcResult:
        route = self.registry.resolve(route_name, namespace)
        headers = {REQUEST_ID_HEADER: self.request_id} if self.request_id else {}
        logger.debug(f"Calling {route.queue_address} [request_id={self.request_id}]")
        return await self.rpc_client.call(route, payload, headers=headers, timeout_ms=timeout_ms)
