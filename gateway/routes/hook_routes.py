"""Storage notification webhooks."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import PlainTextResponse

from gateway.service_locator import get_hook_service, read_json_body
from gateway.services.hook_service import HookService

router = APIRouter(tags=["Hooks"])


@router.post("/gce", response_class=PlainTextResponse)
async def object_change(
    request: Request,
    hook_service: HookService = Depends(get_hook_service),
):
    """
    Object change notification channel.

    Raises:
        - 403: Channel, resource, token or bucket mismatch
    """
    body = await read_json_body(request) if await request.body() else None
    ack = await hook_service.object_change(request.headers, body)
    if ack is None:
        return PlainTextResponse("OK", status_code=status.HTTP_200_OK)
    return PlainTextResponse(ack.text, status_code=ack.status_code)


@router.post("/gce-pubsub", response_class=PlainTextResponse)
async def pubsub_push(
    request: Request,
    token: Optional[str] = Query(None),
    hook_service: HookService = Depends(get_hook_service),
):
    """
    Pub/Sub push endpoint for bucket notifications.

    Raises:
        - 403: Unknown subscription, token or bucket
    """
    body = await read_json_body(request)
    ack = await hook_service.pubsub_push(body, token)
    if ack is None:
        return PlainTextResponse("OK", status_code=status.HTTP_200_OK)
    return PlainTextResponse(ack.text, status_code=ack.status_code)
