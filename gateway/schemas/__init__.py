"""Pydantic schemas for API requests and responses."""

from gateway.schemas.common import ErrorResponse
from gateway.schemas.files import (
    AccessRequest,
    DownloadResponse,
    FileResponse,
    FinishRequest,
    ListFilesResponse,
    PlayerMetaResponse,
    ProcessRequest,
    UpdateRequest,
    UploadRequest,
    UploadResponse,
)

__all__ = [
    "AccessRequest",
    "DownloadResponse",
    "ErrorResponse",
    "FileResponse",
    "FinishRequest",
    "ListFilesResponse",
    "PlayerMetaResponse",
    "ProcessRequest",
    "UpdateRequest",
    "UploadRequest",
    "UploadResponse",
]
