"""Request body validation keyed by operation name."""

from typing import Any, Dict, Type, Union

from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from gateway.exceptions import ValidationError
from gateway.schemas.files import (
    AccessRequest,
    FinishRequest,
    ProcessRequest,
    UpdateRequest,
    UploadRequest,
)

SCHEMAS: Dict[str, Type[BaseModel]] = {
    "upload": UploadRequest,
    "finish": FinishRequest,
    "access": AccessRequest,
    "update": UpdateRequest,
    "process": ProcessRequest,
}


def format_errors(exc: Union[PydanticValidationError, RequestValidationError]) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "body"
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


def validate(route_name: str, body: Any) -> BaseModel:
    """
    Validate a request body against the schema of an operation.

    Args:
        route_name: Operation name, e.g. "upload"
        body: Decoded JSON body

    Returns:
        Parsed model instance

    Raises:
        ValidationError: body does not match the schema
        KeyError: no schema registered for the operation
    """
    schema = SCHEMAS[route_name]
    try:
        return schema.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError(format_errors(e)) from None
