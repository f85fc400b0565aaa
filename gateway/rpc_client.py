"""RPC client adapter: one request/await-reply exchange with a backend queue."""

import grpc
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from common.constants import GRPC_KEEPALIVE_TIME_MS, GRPC_KEEPALIVE_TIMEOUT_MS
from common.protocol import RpcReply, RpcRequest
from gateway.exceptions import (
    RemoteError,
    RpcError,
    RpcTimeoutError,
    TransportError,
)
from gateway.routing import RouteDescriptor

logger = logging.getLogger(__name__)


def method_path(queue_address: str) -> str:
    """
    Map a dotted queue address to a gRPC method path.

    The last segment is the method, the rest the service:
    "files.download" -> "/files/download".
    """
    service, _, method = queue_address.rpartition(".")
    if not service:
        return f"/{method}/{method}"
    return f"/{service}/{method}"


@dataclass(frozen=True)
class RpcResult:
    """
    Outcome of one RPC exchange: a reply or a typed failure.

    Callers either `unwrap()` it or inspect `error` against the remote codes
    they are prepared to recover from.
    """
    reply: Any = None
    error: Optional[RpcError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def remote_code(self) -> Any:
        """Peer's error code when the failure is a RemoteError, else None."""
        if isinstance(self.error, RemoteError):
            return self.error.remote_code
        return None

    def unwrap(self) -> Any:
        if self.error is not None:
            raise self.error
        return self.reply


class RpcClient:
    """
    gRPC client for the backend message gateway.

    Every queue address maps to a unary method carrying JSON envelopes.
    Handles connection management; never retries.
    """

    def __init__(self, target: str):
        """Initialize client with lazy connection."""
        self._channel = None
        self._target = target

    def _ensure_channel(self):
        """Ensure gRPC channel is established."""
        if self._channel is None:
            options = [
                ('grpc.keepalive_time_ms', GRPC_KEEPALIVE_TIME_MS),
                ('grpc.keepalive_timeout_ms', GRPC_KEEPALIVE_TIMEOUT_MS),
                ('grpc.keepalive_permit_without_calls', 1),
            ]
            self._channel = grpc.aio.insecure_channel(self._target, options=options)
            logger.info(f"Established gRPC channel to {self._target}")

    async def close(self):
        """Close gRPC channel."""
        if self._channel:
            await self._channel.close()
            self._channel = None

    async def call(
        self,
        route: RouteDescriptor,
        payload: Any,
        headers: Optional[Dict[str, str]] = None,
        timeout_ms: Optional[int] = None,
    ) -> RpcResult:
        """
        Send a payload to a queue and await its reply.

        Args:
            route: Resolved queue address and timeout
            payload: JSON-serializable request body
            headers: Envelope headers (request id, ...)
            timeout_ms: Overrides the route timeout for this call only

        Returns:
            RpcResult with the reply data, or with RpcTimeoutError,
            RemoteError or TransportError
        """
        self._ensure_channel()
        timeout = (timeout_ms if timeout_ms is not None else route.timeout_ms) / 1000.0
        request = RpcRequest(payload=payload, headers=dict(headers or {}))

        multi_callable = self._channel.unary_unary(
            method_path(route.queue_address),
            request_serializer=lambda x: x,
            response_deserializer=lambda x: x,
        )

        try:
            response_bytes = await multi_callable(request.to_json(), timeout=timeout)
        except grpc.RpcError as e:
            return RpcResult(error=self._translate(route, e))

        try:
            reply = RpcReply.from_json(response_bytes)
        except (ValueError, TypeError, AttributeError) as e:
            logger.error(f"Undecodable reply from {route.queue_address}: {e}")
            return RpcResult(error=TransportError("invalid reply from backend"))

        if reply.error is not None:
            logger.warning(
                f"Remote error from {route.queue_address}: "
                f"code={reply.error.code} message={reply.error.message}"
            )
            return RpcResult(error=RemoteError(
                reply.error.code,
                reply.error.message,
                name=reply.error.name
            ))

        return RpcResult(reply=reply.data)

    def _translate(self, route: RouteDescriptor, e: grpc.RpcError) -> RpcError:
        code = e.code()
        if code == grpc.StatusCode.DEADLINE_EXCEEDED:
            logger.warning(f"Timeout after {route.timeout_ms}ms waiting on {route.queue_address}")
            return RpcTimeoutError("request timed out")
        logger.error(f"gRPC error calling {route.queue_address}: {code} - {e.details()}")
        return TransportError("backend unavailable")


async def ping(client: RpcClient, route: RouteDescriptor) -> bool:
    """
    Check whether the backend answers on a route.

    Returns:
        True unless the exchange failed at the transport level
    """
    result = await client.call(route, {}, timeout_ms=5000)
    return not isinstance(result.error, (TransportError, RpcTimeoutError))
