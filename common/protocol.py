"""Shared RPC/protocol message definitions (serialization formats)."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import json
import base64


@dataclass
class RpcRequest:
    """Request envelope published to a backend queue."""
    payload: Any
    headers: Dict[str, str] = field(default_factory=dict)

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({
            'payload': self.payload,
            'headers': self.headers
        }).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'RpcRequest':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        return cls(payload=obj.get('payload'), headers=obj.get('headers') or {})


@dataclass
class RpcErrorBody:
    """Structured failure reported by the peer."""
    code: Any
    message: str
    name: Optional[str] = None


@dataclass
class RpcReply:
    """
    Reply envelope received from a backend queue.

    Exactly one of `data` or `error` is meaningful: a reply carrying an
    `error` object is a remote failure, anything else is a success (and
    `data` may legitimately be null).
    """
    data: Any = None
    error: Optional[RpcErrorBody] = None

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        obj = {'data': self.data}
        if self.error is not None:
            obj['error'] = self.error.__dict__
        return json.dumps(obj).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'RpcReply':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        error = obj.get('error')
        if error:
            return cls(error=RpcErrorBody(
                code=error.get('code'),
                message=error.get('message') or '',
                name=error.get('name')
            ))
        return cls(data=obj.get('data'))


@dataclass
class RenderRequest:
    """Request message for the codec Render RPC (streaming reply)."""
    path: str
    output_format: str

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps({
            'path': self.path,
            'output_format': self.output_format
        }).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'RenderRequest':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        return cls(path=obj['path'], output_format=obj['output_format'])


@dataclass
class RenderChunk:
    """A piece of a rendered image, or a codec failure."""
    data: Optional[bytes] = None
    content_type: Optional[str] = None
    error_code: Optional[int] = None
    error_message: Optional[str] = None

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        obj = {}
        if self.data is not None:
            obj['data'] = base64.b64encode(self.data).decode('ascii')
        if self.content_type:
            obj['content_type'] = self.content_type
        if self.error_code is not None:
            obj['error'] = {'code': self.error_code, 'message': self.error_message}
        return json.dumps(obj).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'RenderChunk':
        """Deserialize from JSON bytes."""
        obj = json.loads(data)
        piece = base64.b64decode(obj['data']) if 'data' in obj else None
        error = obj.get('error') or {}
        return cls(
            data=piece,
            content_type=obj.get('content_type'),
            error_code=error.get('code'),
            error_message=error.get('message')
        )
