"""Configuration settings for the files gateway."""

import json
import os
from dataclasses import dataclass
from typing import Tuple

from common.constants import DEFAULT_RPC_TIMEOUT_MS


def _json_env(name: str) -> dict:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return {}
    value = json.loads(raw)
    if not isinstance(value, dict):
        raise ValueError(f"{name} must be a JSON object")
    return value


def _list_env(name: str) -> list:
    return [item.strip() for item in os.environ.get(name, "").split(",") if item.strip()]


GATEWAY_HOST = os.environ.get("GATEWAY_HOST", "0.0.0.0")

GATEWAY_PORT = int(os.environ.get("GATEWAY_PORT", "8000"))

PUBLIC_HOST = os.environ.get("GATEWAY_PUBLIC_HOST", "http://localhost:8000").rstrip("/")

FILES_ATTACH_POINT = os.environ.get("GATEWAY_FILES_ATTACH_POINT", "/api/files").rstrip("/")

USERS_ATTACH_POINT = os.environ.get("GATEWAY_USERS_ATTACH_POINT", "/api/users").rstrip("/")

RPC_TARGET = os.environ.get("GATEWAY_RPC_TARGET", "backend:50051")

CODEC_TARGET = os.environ.get("GATEWAY_CODEC_TARGET", "codec:50052")

FILES_PREFIX = os.environ.get("GATEWAY_FILES_PREFIX", "files")
FILES_POSTFIX = _json_env("GATEWAY_FILES_POSTFIX")
FILES_TIMEOUTS = _json_env("GATEWAY_FILES_TIMEOUTS")

DEFAULT_TIMEOUT_MS = int(os.environ.get("GATEWAY_DEFAULT_TIMEOUT_MS", str(DEFAULT_RPC_TIMEOUT_MS)))

USERS_PREFIX = os.environ.get("GATEWAY_USERS_PREFIX", "users")
USERS_AUDIENCE = os.environ.get("GATEWAY_USERS_AUDIENCE", "*.localhost")

GCE_CHANNEL = os.environ.get("GCE_CHANNEL", "")
GCE_RESOURCE_ID = os.environ.get("GCE_RESOURCE_ID", "")
GCE_TOKEN = os.environ.get("GCE_TOKEN", "")
GCE_BUCKET = os.environ.get("GCE_BUCKET", "")

GCE_PUBSUB_SUBSCRIPTIONS = _list_env("GCE_PUBSUB_SUBSCRIPTIONS")
GCE_PUBSUB_TOKEN = os.environ.get("GCE_PUBSUB_TOKEN", "")


@dataclass(frozen=True)
class GatewaySettings:
    """
    Snapshot of the settings handlers need at request time.

    Built once by `load_settings()` and stored on the application; tests
    construct their own instance instead of patching module constants.
    """
    public_host: str = PUBLIC_HOST
    files_attach_point: str = FILES_ATTACH_POINT
    users_attach_point: str = USERS_ATTACH_POINT
    users_audience: str = USERS_AUDIENCE
    gce_channel: str = GCE_CHANNEL
    gce_resource_id: str = GCE_RESOURCE_ID
    gce_token: str = GCE_TOKEN
    gce_bucket: str = GCE_BUCKET
    gce_pubsub_subscriptions: Tuple[str, ...] = tuple(GCE_PUBSUB_SUBSCRIPTIONS)
    gce_pubsub_token: str = GCE_PUBSUB_TOKEN

    @property
    def files_base_url(self) -> str:
        return f"{self.public_host}{self.files_attach_point}"

    @property
    def users_base_url(self) -> str:
        return f"{self.public_host}{self.users_attach_point}"


def load_settings() -> GatewaySettings:
    """Build the settings snapshot from the environment-derived constants."""
    return GatewaySettings()
