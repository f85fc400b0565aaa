"""Image preview routes."""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from gateway.identity import Identity, get_identity
from gateway.service_locator import get_preview_service
from gateway.services.preview_service import PreviewService

router = APIRouter(tags=["Preview"])


async def _stream_preview(
    preview_service: PreviewService,
    identity: Identity,
    alias: str,
    filename: str,
    modifiers: Optional[str] = None,
) -> StreamingResponse:
    stream = await preview_service.open(identity, alias, filename, modifiers)
    return StreamingResponse(stream.body, media_type=stream.content_type)


@router.get("/preview/{alias}/{filename}", response_class=StreamingResponse)
async def preview(
    alias: str,
    filename: str,
    identity: Identity = Depends(get_identity),
    preview_service: PreviewService = Depends(get_preview_service),
):
    """
    Stream the preview image of a file.

    Parameters:
        - filename: upload id, optionally suffixed with .jpeg, .png or .webp

    Raises:
        - 404: File not found or not visible to the caller
        - 412: Preview not extracted yet
    """
    return await _stream_preview(preview_service, identity, alias, filename)


@router.get("/preview/{alias}/{modifiers}/{filename}", response_class=StreamingResponse)
async def preview_with_modifiers(
    alias: str,
    modifiers: str,
    filename: str,
    identity: Identity = Depends(get_identity),
    preview_service: PreviewService = Depends(get_preview_service),
):
    """
    Stream a transformed preview, e.g. `w200-h100-cfill`.

    Raises:
        - 400: Malformed modifiers
    """
    return await _stream_preview(preview_service, identity, alias, filename, modifiers)
