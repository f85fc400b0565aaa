"""Service locator: per-request services built from application state."""

from typing import Any, Optional

from fastapi import Request

from gateway.exceptions import ValidationError
from gateway.services.file_service import FileService
from gateway.services.hook_service import HookService
from gateway.services.preview_service import PreviewService


def get_request_id(request: Request) -> Optional[str]:
    """Request id assigned by the logging middleware"""
    return getattr(request.state, "request_id", None)


def get_file_service(request: Request) -> FileService:
    state = request.app.state
    return FileService(
        state.rpc_client,
        state.route_registry,
        request_id=get_request_id(request),
        settings=state.settings,
        projector=state.projector,
    )


def get_preview_service(request: Request) -> PreviewService:
    state = request.app.state
    return PreviewService(
        state.rpc_client,
        state.route_registry,
        request_id=get_request_id(request),
        codec_client=state.codec_client,
    )


def get_hook_service(request: Request) -> HookService:
    state = request.app.state
    return HookService(
        state.rpc_client,
        state.route_registry,
        request_id=get_request_id(request),
        settings=state.settings,
    )


async def read_json_body(request: Request) -> Any:
    """
    Decode the request body as JSON.

    Raises:
        ValidationError: body is empty or not JSON
    """
    body = await request.body()
    if not body:
        raise ValidationError("request body is required")
    try:
        return await request.json()
    except ValueError:
        raise ValidationError("request body must be valid JSON") from None
