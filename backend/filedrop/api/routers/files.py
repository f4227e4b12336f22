"""
File Router
Endpoints for uploading through a token, listing and downloading its files.
"""
import logging
from typing import Union
from urllib.parse import quote

import aiofiles
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import StreamingResponse
from starlette.requests import ClientDisconnect

from ...config import settings
from ...core.dependencies import AppServices, get_services
from ...core.enums import TokenStatus
from ...core.exceptions import NotFoundError
from ...db.models import File, Token
from ...services.multipart import parse_boundary
from ..schemas import file as file_schema
from ..schemas import token as token_schema

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/f",
    tags=["files"],
    responses={404: {"description": "Not found"}},
)


def _file_response(token_path: str, file: File) -> file_schema.FileResponse:
    content_type = file.content_type or ""
    return file_schema.FileResponse(
        id=file.id,
        name=file.name,
        content_type=file.content_type,
        size=file.size,
        created_at=file.created_at,
        download_uri=f"/f/{quote(token_path)}/{file.id}",
        is_image=content_type.startswith("image/"),
    )


def _upload_info(token: Token) -> token_schema.UploadInfoResponse:
    return token_schema.UploadInfoResponse(
        path=token.path,
        status=token.status,
        upload_uri=f"/f/{quote(token.path)}",
        max_size_mib=token.max_size_mib,
        token_expires_at=token.token_expires_at,
        content_expires_after_hours=token.content_expires_after_hours,
        fields=list(settings.UPLOAD_FIELDS),
    )


@router.get(
    "/{path}",
    response_model=Union[file_schema.FileListResponse, token_schema.UploadInfoResponse],
    summary="Show a token"
)
async def show_token(
    path: str,
    services: AppServices = Depends(get_services),
):
    """
    A Fresh token answers with what is needed to upload through it, a Used
    token with its downloadable files. Unknown or expired tokens are 404.
    """
    token = await services.tokens.resolve_for_read(path)
    if token is None:
        raise NotFoundError(f"No token for path {path}")

    if token.status == TokenStatus.FRESH:
        return _upload_info(token)

    files = await services.tokens.list_completed_files(path)
    return file_schema.FileListResponse(
        path=token.path,
        status=token.status,
        content_expires_at=token.content_expires_at,
        files=[_file_response(token.path, file) for file in files],
    )


@router.post(
    "/{path}",
    response_model=file_schema.UploadResponse,
    summary="Upload files through a token"
)
async def upload_files(
    path: str,
    request: Request,
    services: AppServices = Depends(get_services),
):
    """
    Stream a multipart/form-data body into the token's directory.

    Only a Fresh token accepts uploads, and only once. The body may not exceed
    the token's size limit plus a small allowance for the multipart framing.
    """
    token = await services.tokens.resolve_for_read(path)
    if token is None or token.status != TokenStatus.FRESH:
        raise NotFoundError(f"No fresh token for path {path}")

    boundary = parse_boundary(request.headers.get("content-type"))
    try:
        outcome = await services.uploads.ingest_stream(token, request.stream(), boundary)
    except ClientDisconnect:
        logger.warning("Client disconnected while uploading to %s", path)
        return Response(status_code=status.HTTP_400_BAD_REQUEST)

    return file_schema.UploadResponse(
        path=token.path,
        msg=f"{len(outcome.files)} file(s) uploaded",
        files=[_file_response(token.path, file) for file in outcome.files],
    )


async def _iter_file(location, chunk_size: int):
    async with aiofiles.open(location, "rb") as reader:
        while True:
            chunk = await reader.read(chunk_size)
            if not chunk:
                break
            yield chunk


@router.get(
    "/{path}/{file_id}",
    summary="Download a file"
)
async def download_file(
    path: str,
    file_id: int,
    services: AppServices = Depends(get_services),
):
    """Stream a completed file of a Used token."""
    file, location = await services.tokens.open_file(path, file_id)
    filename = file.name or location.name
    headers = {
        "Content-Disposition": f"attachment; filename*=utf-8''{quote(filename)}",
    }
    if file.size is not None:
        headers["Content-Length"] = str(file.size)
    return StreamingResponse(
        _iter_file(location, settings.UPLOAD_CHUNK_SIZE),
        media_type=file.content_type or "application/octet-stream",
        headers=headers,
    )
