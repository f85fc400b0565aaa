"""Storage notification hooks that complete uploads on the backend."""

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional
from urllib.parse import urlparse

from gateway.config import GatewaySettings
from gateway.exceptions import ForbiddenError, ValidationError
from gateway.rpc_client import RpcResult
from gateway.services.backend import BackendService

logger = logging.getLogger(__name__)

# backend codes that mean "accepted, not finished yet"
PENDING_CODES = frozenset({202, 412, "202", "412"})

SYNC_STATE = "sync"
DELETED_STATE = "not_exists"
FINALIZE_EVENT = "OBJECT_FINALIZE"


@dataclass(frozen=True)
class Acknowledgement:
    """Plain-text answer to a storage notification."""
    status_code: int
    text: str


def fold_pending(result: RpcResult) -> Acknowledgement:
    """
    Turn a finish result into the acknowledgement.

    A relayed finish answers 202 "OK"; a pending code is still a success
    for the notifier: 202 with "<code>: <message>".

    Raises:
        RpcError: any failure other than a pending code
    """
    if result.ok:
        return Acknowledgement(202, "OK")
    if result.remote_code() in PENDING_CODES:
        return Acknowledgement(202, f"{result.error.remote_code}: {result.error.message}")
    raise result.error


def bucket_from_resource_uri(resource_uri: Optional[str]) -> Optional[str]:
    """.../storage/v1/b/<bucket>/o?alt=json -> <bucket>"""
    if not resource_uri:
        return None
    parts = urlparse(resource_uri).path.split("/")
    return parts[4] if len(parts) > 4 else None


class HookService(BackendService):
    """
    Verifies storage notifications and relays completed objects to `finish`.
    """

    def __init__(self, *args, settings: GatewaySettings, **kwargs):
        super().__init__(*args, **kwargs)
        self.settings = settings

    def verify_object_change(self, headers: Mapping[str, str]) -> str:
        """
        Check object-change notification headers against configuration.

        Returns:
            The resource state ("sync", "exists", "not_exists")

        Raises:
            ForbiddenError: any header does not match
        """
        settings = self.settings
        if headers.get("x-goog-channel-id") != settings.gce_channel:
            raise ForbiddenError("invalid channel")
        if headers.get("x-goog-resource-id") != settings.gce_resource_id:
            raise ForbiddenError("invalid resource id")
        if headers.get("x-goog-channel-token") != settings.gce_token:
            raise ForbiddenError("invalid token")
        if bucket_from_resource_uri(headers.get("x-goog-resource-uri")) != settings.gce_bucket:
            raise ForbiddenError("invalid bucket")
        return headers.get("x-goog-resource-state", "")

    async def object_change(self, headers: Mapping[str, str], body: Any) -> Optional[Acknowledgement]:
        """
        Handle an object-change notification.

        Returns:
            None when there is nothing to relay, the acknowledgement otherwise
        """
        state = self.verify_object_change(headers)
        if state in (SYNC_STATE, DELETED_STATE):
            logger.info(f"Ignoring object change notification state={state}")
            return None

        name = body.get("name") if isinstance(body, Mapping) else None
        if not name:
            raise ValidationError("notification body must carry the object name")

        return fold_pending(await self.call("finish", {"filename": name}))

    def verify_push(self, body: Any, token: Optional[str]) -> Mapping[str, Any]:
        if not isinstance(body, Mapping) or not isinstance(body.get("message"), Mapping):
            raise ValidationError("push body must carry a message")
        if body.get("subscription") not in self.settings.gce_pubsub_subscriptions:
            raise ForbiddenError("invalid subscription")
        if self.settings.gce_pubsub_token and token != self.settings.gce_pubsub_token:
            raise ForbiddenError("invalid token")
        return body["message"]

    async def pubsub_push(self, body: Any, token: Optional[str]) -> Optional[Acknowledgement]:
        """
        Handle a Pub/Sub push delivery of a storage notification.

        Returns:
            None for events that are acknowledged without relaying
        """
        message = self.verify_push(body, token)
        attributes = message.get("attributes") or {}

        event_type = attributes.get("eventType")
        if event_type != FINALIZE_EVENT:
            logger.info(f"Ignoring push notification eventType={event_type}")
            return None

        if self.settings.gce_bucket and attributes.get("bucketId") != self.settings.gce_bucket:
            raise ForbiddenError("invalid bucket")

        resource = {}
        if message.get("data"):
            try:
                resource = json.loads(base64.b64decode(message["data"]))
            except (binascii.Error, ValueError):
                raise ValidationError("message.data must be base64 encoded JSON") from None

        name = resource.get("name") if isinstance(resource, Mapping) else None
        name = name or attributes.get("objectId")
        if not name:
            raise ValidationError("notification does not name an object")

        return fold_pending(await self.call("finish", {"filename": name}))
