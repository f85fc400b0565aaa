"""Common schemas used across multiple endpoints."""

from typing import List, Optional

from pydantic import BaseModel


class ErrorObject(BaseModel):
    """A single JSON:API error object."""
    status: str
    code: str
    title: str


class ErrorMeta(BaseModel):
    id: Optional[str] = None


class ErrorResponse(BaseModel):
    """Response model for errors."""
    errors: List[ErrorObject]
    meta: ErrorMeta
