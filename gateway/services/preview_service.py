"""Image preview: locate a file's preview and stream it through the codec."""

import logging
import re
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Tuple

from common.constants import DEFAULT_PREVIEW_FORMAT, PREVIEW_FORMATS
from common.protocol import RenderChunk
from gateway.codec_client import CodecClient
from gateway.exceptions import PreconditionFailedError, RemoteError, ValidationError
from gateway.identity import Identity
from gateway.services.backend import BackendService
from gateway.services.file_service import split_record
from gateway.visibility import ensure_visible

logger = logging.getLogger(__name__)

MODIFIERS_PATTERN = re.compile(r"(?:(?:[hwscyxq][1-9][0-9]*|[cgf][a-z]+)-?){1,9}")


def parse_target(filename: str) -> Tuple[str, str]:
    """
    Split an optional output-format extension off the requested name.

    Returns:
        (file name, output format)
    """
    name, dot, extension = filename.rpartition(".")
    if dot and extension in PREVIEW_FORMATS:
        return name, extension
    return filename, DEFAULT_PREVIEW_FORMAT


def check_modifiers(modifiers: Optional[str]) -> Optional[str]:
    if modifiers and not MODIFIERS_PATTERN.fullmatch(modifiers):
        raise ValidationError("invalid modifiers")
    return modifiers or None


@dataclass
class PreviewStream:
    """An opened codec stream whose first piece has already arrived."""
    content_type: str
    body: AsyncIterator[bytes]


class PreviewService(BackendService):
    """
    Resolves the preview artifact of a file and pipes it through the codec.
    """

    def __init__(self, *args, codec_client: CodecClient, **kwargs):
        super().__init__(*args, **kwargs)
        self.codec_client = codec_client

    async def open(
        self,
        identity: Identity,
        alias: str,
        filename: str,
        modifiers: Optional[str] = None,
    ) -> PreviewStream:
        """
        Look up the file and start rendering.

        Errors before the first image byte surface as regular HTTP errors;
        later ones abort the stream.

        Raises:
            ValidationError: malformed modifiers
            NotFoundError: file missing or not visible to the caller
            PreconditionFailedError: preview not extracted yet
        """
        modifiers = check_modifiers(modifiers)
        name, output_format = parse_target(filename)

        reply = (await self.call("info", {"filename": name, "username": alias})).unwrap()
        record, owner = split_record(reply)
        ensure_visible(identity, record, owner)

        preview = record.get("preview")
        if not preview:
            raise PreconditionFailedError("preview was not extracted yet")

        path = "/".join(part for part in (modifiers, preview) if part)
        chunks = self.codec_client.render(path, output_format)

        try:
            first = await chunks.__anext__()
        except StopAsyncIteration:
            raise RemoteError(502, "image service returned no data") from None

        content_type = first.content_type or f"image/{output_format}"
        return PreviewStream(content_type=content_type, body=self._pipe(first, chunks, path))

    async def _pipe(self, first: RenderChunk, chunks: AsyncIterator[RenderChunk], path: str) -> AsyncIterator[bytes]:
        try:
            if first.data:
                yield first.data
            async for chunk in chunks:
                if chunk.data:
                    yield chunk.data
        except Exception as e:
            logger.error(f"Preview stream for {path} aborted: {e} [request_id={self.request_id}]")
            raise
        finally:
            await chunks.aclose()
