"""Service layer: per-request coordination of backend calls."""

from gateway.services.backend import BackendService
from gateway.services.file_service import FileService
from gateway.services.hook_service import HookService
from gateway.services.preview_service import PreviewService
from gateway.services.quota_service import QuotaService

__all__ = [
    "BackendService",
    "FileService",
    "HookService",
    "PreviewService",
    "QuotaService",
]
