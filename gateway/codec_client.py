"""Streaming client for the external image codec (decode/resize/encode) service."""

import grpc
import logging
from typing import AsyncIterator

from common.constants import (
    CODEC_TIMEOUT_SECONDS,
    GRPC_KEEPALIVE_TIME_MS,
    GRPC_KEEPALIVE_TIMEOUT_MS,
)
from common.protocol import RenderChunk, RenderRequest
from gateway.exceptions import (
    NotFoundError,
    RemoteError,
    RpcTimeoutError,
    TransportError,
    ValidationError,
)

logger = logging.getLogger(__name__)

RENDER_METHOD = '/codec.CodecService/Render'


class CodecClient:
    """
    gRPC client for the image codec.

    The codec receives a storage path prefixed with transform modifiers and
    streams back the encoded image.
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
            ]
            self._channel = grpc.aio.insecure_channel(self._target, options=options)
            logger.info(f"Established gRPC channel to codec {self._target}")

    async def close(self):
        """Close gRPC channel."""
        if self._channel:
            await self._channel.close()
            self._channel = None

    async def render(self, path: str, output_format: str) -> AsyncIterator[RenderChunk]:
        """
        Stream a transformed image from the codec.

        Note: Streaming operations cannot be retried.
        The stream must succeed or fail in one attempt.

        Args:
            path: "<modifiers>/<storage path>" or just the storage path
            output_format: jpeg, png or webp

        Yields:
            RenderChunk pieces; the first one carries the content type

        Raises:
            ValidationError: codec rejected the modifiers
            NotFoundError: source image does not exist
            RemoteError: codec reported any other failure
            TransportError / RpcTimeoutError: codec unreachable or too slow
        """
        self._ensure_channel()

        multi_callable = self._channel.unary_stream(
            RENDER_METHOD,
            request_serializer=lambda x: x,
            response_deserializer=lambda x: x,
        )
        response_stream = multi_callable(
            RenderRequest(path=path, output_format=output_format).to_json(),
            timeout=CODEC_TIMEOUT_SECONDS
        )

        try:
            async for response_bytes in response_stream:
                chunk = RenderChunk.from_json(response_bytes)
                if chunk.error_code is not None:
                    raise self._codec_error(chunk)
                yield chunk
        except grpc.RpcError as e:
            if e.code() == grpc.StatusCode.DEADLINE_EXCEEDED:
                raise RpcTimeoutError("image rendering timed out")
            logger.error(f"gRPC error rendering {path}: {e.code()} - {e.details()}")
            raise TransportError("image service unavailable")

    @staticmethod
    def _codec_error(chunk: RenderChunk) -> Exception:
        message = chunk.error_message or "image rendering failed"
        if chunk.error_code == 400:
            return ValidationError(message)
        if chunk.error_code == 404:
            return NotFoundError(message)
        return RemoteError(chunk.error_code, message)
