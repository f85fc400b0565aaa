"""Pydantic schemas for file operation request bodies and responses."""

import re
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MD5_PATTERN = r"^[a-fA-F0-9]{32}$"
COLOR_PATTERN = re.compile(
    r"^(#[0-9a-fA-F]{3}|#[0-9a-fA-F]{6}|rgb\(\s*\d{1,3}\s*,\s*\d{1,3}\s*,\s*\d{1,3}\s*\))$"
)


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class BackgroundImage(StrictModel):
    filename: str
    username: Optional[str] = None
    uploadId: Optional[str] = None
    contentType: Literal["image/png", "image/jpeg"]
    contentLength: int = Field(gt=0)
    url: Optional[str] = None


class FileMeta(StrictModel):
    """User-editable metadata of a file."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, max_length=2000)
    website: Optional[str] = None
    type: Optional[str] = None
    tags: Optional[List[str]] = Field(default=None, max_length=20)
    controlsData: Optional[List[float]] = None
    backgroundColor: Optional[str] = None
    backgroundImage: Optional[BackgroundImage] = None

    @field_validator("backgroundColor")
    @classmethod
    def check_color(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not COLOR_PATTERN.match(value):
            raise ValueError("must be a hex color or rgb($r, $g, $b)")
        return value

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return value
        return [tag.lower().strip() for tag in value]


class UploadFilePart(StrictModel):
    """One constituent blob of a multi-part upload."""
    type: Literal["c-bin", "c-texture", "c-preview", "c-archive"]
    md5Hash: str = Field(pattern=MD5_PATTERN)
    contentType: str
    contentLength: int = Field(gt=0)
    contentEncoding: Optional[str] = None


class AccessSetting(StrictModel):
    setPublic: bool = False


class UploadAttributes(StrictModel):
    """
    Either a single blob (md5Hash, contentType, contentLength) or a list
    of typed `files`.
    """
    md5Hash: Optional[str] = Field(default=None, pattern=MD5_PATTERN)
    contentType: Optional[str] = None
    contentLength: Optional[int] = Field(default=None, gt=0)
    contentEncoding: Optional[str] = None
    files: Optional[List[UploadFilePart]] = Field(default=None, min_length=1)
    meta: Optional[FileMeta] = None
    access: Optional[AccessSetting] = None
    resumable: bool = True

    @model_validator(mode="after")
    def check_payload(self) -> "UploadAttributes":
        single = (self.md5Hash, self.contentType, self.contentLength)
        if self.files is None and not all(value is not None for value in single):
            raise ValueError("either files or md5Hash, contentType and contentLength are required")
        return self


class UploadData(StrictModel):
    type: Literal["file"]
    attributes: UploadAttributes


class UploadRequest(StrictModel):
    """Request model for upload initiation."""
    data: UploadData


class FinishData(StrictModel):
    type: Literal["upload"]
    id: str = Field(min_length=1)


class FinishRequest(StrictModel):
    """Request model for upload completion."""
    data: FinishData


class AccessAttributes(StrictModel):
    public: bool


class AccessData(StrictModel):
    type: Literal["file"]
    id: str = Field(min_length=1)
    attributes: AccessAttributes


class AccessRequest(StrictModel):
    """Request model for changing file visibility."""
    data: AccessData


class UpdateAttributes(StrictModel):
    meta: FileMeta


class UpdateData(StrictModel):
    type: Literal["file"]
    id: str = Field(min_length=1)
    attributes: UpdateAttributes


class UpdateRequest(StrictModel):
    """Request model for metadata updates."""
    data: UpdateData


class ExportSpec(StrictModel):
    type: str = Field(min_length=1)
    meta: Dict[str, Any] = Field(default_factory=dict)


class ProcessAttributes(StrictModel):
    export: Optional[ExportSpec] = None


class ProcessData(StrictModel):
    type: Literal["file"]
    id: str = Field(min_length=1)
    attributes: ProcessAttributes = Field(default_factory=ProcessAttributes)


class ProcessRequest(StrictModel):
    """Request model for (re-)processing a file."""
    data: ProcessData


class FileResource(BaseModel):
    """Response model for a projected file record."""
    type: str
    id: Optional[str] = None
    attributes: Dict[str, Any]
    links: Optional[Dict[str, str]] = None


class ListMeta(BaseModel):
    id: Optional[str] = None
    page: Optional[Any] = None
    pages: Optional[Any] = None
    cursor: Optional[Any] = None


class ListFilesResponse(BaseModel):
    """Response model for file listing."""
    meta: ListMeta
    data: List[FileResource]
    links: Dict[str, str]


class ResourceMeta(BaseModel):
    id: Optional[str] = None


class FileResponse(BaseModel):
    """Response model for a single file."""
    meta: ResourceMeta
    data: FileResource


class UploadResource(BaseModel):
    type: Literal["upload"] = "upload"
    id: Optional[str] = None
    attributes: Optional[Dict[str, Any]] = None
    links: Optional[Dict[str, str]] = None


class UploadResponse(BaseModel):
    """Response model for upload initiation."""
    meta: ResourceMeta
    data: UploadResource


class DownloadResource(BaseModel):
    type: Literal["download"] = "download"
    id: Optional[str] = None
    attributes: Dict[str, Any]


class DownloadResponse(BaseModel):
    """Response model for download authorization."""
    meta: ResourceMeta
    data: DownloadResource


class PlayerMaterial(BaseModel):
    texture: Optional[str] = None


class PlayerMetaResponse(BaseModel):
    """Response model for player metadata."""
    name: Optional[str] = None
    owner: Optional[str] = None
    file: Optional[str] = None
    size: Optional[int] = None
    materials: List[PlayerMaterial]
