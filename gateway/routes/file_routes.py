"""File operation API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import RedirectResponse

from gateway.identity import Identity, User, get_identity, require_user
from gateway.query import parse_flag
from gateway.schemas.files import (
    DownloadResponse,
    FileResponse,
    ListFilesResponse,
    PlayerMetaResponse,
    UploadResponse,
)
from gateway.service_locator import get_file_service, read_json_body
from gateway.services.file_service import FileService

router = APIRouter(tags=["Files"])


@router.get("", response_model=ListFilesResponse, response_model_exclude_unset=True)
async def list_files(
    request: Request,
    identity: Identity = Depends(get_identity),
    file_service: FileService = Depends(get_file_service),
):
    """
    List files visible to the caller.

    Parameters:
        - offset, limit, order, sortBy (or criteria)
        - filter: URI encoded JSON object
        - tags: URI encoded JSON array of strings
        - owner, pub: ownership and visibility filter

    Returns:
        - meta: page, pages and cursor as reported by the backend
        - data: projected file resources
        - links: self, and next while pages remain

    Raises:
        - 400: Malformed query parameter
    """
    return await file_service.list_files(identity, dict(request.query_params))


@router.post(
    "",
    response_model=UploadResponse,
    response_model_exclude_unset=True,
    status_code=status.HTTP_201_CREATED,
)
async def initiate_upload(
    request: Request,
    user: User = Depends(require_user),
    file_service: FileService = Depends(get_file_service),
):
    """
    Start an upload and return where to send the bytes.

    Raises:
        - 400: Invalid body
        - 401: Not authenticated
        - 402: Upload quota exhausted
    """
    body = await read_json_body(request)
    return await file_service.initiate_upload(user, body, request.headers.get("origin"))


@router.patch("", status_code=status.HTTP_202_ACCEPTED)
async def finish_upload(
    request: Request,
    user: User = Depends(require_user),
    file_service: FileService = Depends(get_file_service),
):
    """
    Mark an upload finished; processing continues in the background.

    Returns:
        - 202 with a Location header pointing at the file resource
    """
    body = await read_json_body(request)
    location = await file_service.finish_upload(user, body)
    return Response(status_code=status.HTTP_202_ACCEPTED, headers={"Location": location})


@router.get("/info/{alias}/{filename}", response_model=FileResponse, response_model_exclude_unset=True)
async def get_info(
    alias: str,
    filename: str,
    identity: Identity = Depends(get_identity),
    file_service: FileService = Depends(get_file_service),
):
    """
    Retrieve one file. Private files of other owners answer 404.
    """
    return await file_service.get_info(identity, alias, filename)


@router.get("/public/{alias}/{filename}", response_model=FileResponse, response_model_exclude_unset=True)
async def get_public(
    alias: str,
    filename: str,
    file_service: FileService = Depends(get_file_service),
):
    return await file_service.get_public(alias, filename)


@router.get(
    "/download/{filename}",
    response_model=DownloadResponse,
    response_model_exclude_unset=True,
    responses={302: {"description": "Redirect to a signed URL"}},
)
async def download_file(
    filename: str,
    redirect: Optional[str] = Query(None),
    identity: Identity = Depends(get_identity),
    file_service: FileService = Depends(get_file_service),
):
    """
    Authorize a download.

    Parameters:
        - redirect: 1 to be redirected to the signed URL

    Returns:
        - 200 download document, or 302 to the signed URL
    """
    outcome = await file_service.download(identity, filename, bool(parse_flag(redirect, "redirect")))
    if outcome.redirect_url is not None:
        return RedirectResponse(
            outcome.redirect_url,
            status_code=status.HTTP_302_FOUND,
            headers=outcome.headers,
        )
    return outcome.document


@router.get("/player/{filename}", response_model=PlayerMetaResponse, response_model_exclude_unset=True)
async def player_meta(
    filename: str,
    identity: Identity = Depends(get_identity),
    file_service: FileService = Depends(get_file_service),
):
    return await file_service.player_meta(identity, filename)


@router.put("/access", status_code=status.HTTP_204_NO_CONTENT)
async def set_access(
    request: Request,
    user: User = Depends(require_user),
    file_service: FileService = Depends(get_file_service),
):
    """
    Make a file public or private.
    """
    body = await read_json_body(request)
    await file_service.set_access(user, body)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/update", status_code=status.HTTP_204_NO_CONTENT)
async def update_file(
    request: Request,
    user: User = Depends(require_user),
    file_service: FileService = Depends(get_file_service),
):
    body = await read_json_body(request)
    await file_service.update(user, body)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/process", status_code=status.HTTP_202_ACCEPTED)
async def process_file(
    request: Request,
    user: User = Depends(require_user),
    file_service: FileService = Depends(get_file_service),
):
    """
    Queue a file for (re-)processing.
    """
    body = await read_json_body(request)
    await file_service.process(user, body)
    return Response(status_code=status.HTTP_202_ACCEPTED)


@router.delete("/{filename}", status_code=status.HTTP_200_OK)
async def remove_file(
    filename: str,
    user: User = Depends(require_user),
    file_service: FileService = Depends(get_file_service),
):
    """
    Remove a file. Administrators may remove files of any owner.

    Raises:
        - 401: Not authenticated
        - 404: File not found (or not owned by the caller)
    """
    await file_service.remove(user, filename)
    return Response(status_code=status.HTTP_200_OK)
