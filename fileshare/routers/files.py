from __future__ import annotations

from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from ..deps import get_file_ops
from ..exceptions import InvalidUploadError
from ..schemas import CreateFolderRequest, FileItem, FileListResponse, FolderResponse, UploadResponse
from ..services.file_ops import FileOps

router = APIRouter(prefix='/files', tags=['files'])


def _content_disposition(filename: str) -> str:
    quoted = quote(filename)
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


def _text_field(value) -> Optional[str]:
    return value if isinstance(value, str) else None


@router.get('', response_model=FileListResponse)
def list_files(
    search: Optional[str] = Query(default=None),
    folder: Optional[str] = Query(default=None),
    ops: FileOps = Depends(get_file_ops),
):
    listing = ops.list_entries(folder, search)
    return FileListResponse(
        items=[
            FileItem(name=item.name, type=item.type, size=item.size, modified_date=item.modified)
            for item in listing.items
        ],
        current_folder=listing.current_folder,
        parent_folder=listing.parent_folder,
    )


@router.post('/upload', response_model=UploadResponse)
async def upload(request: Request, ops: FileOps = Depends(get_file_ops)):
    content_type = request.headers.get('content-type', '')
    if not content_type.lower().startswith('multipart/form-data'):
        raise InvalidUploadError('Content-Type must be multipart/form-data')

    try:
        form = await request.form()
    except (MultiPartException, StarletteHTTPException):
        raise InvalidUploadError('No file uploaded')

    try:
        uploads = [value for _, value in form.multi_items() if isinstance(value, UploadFile)]
        if not uploads:
            raise InvalidUploadError('No file uploaded')
        if len(uploads) > 1:
            raise InvalidUploadError('You can upload only 1 file at a time.')

        upload_file = uploads[0]
        final_name, folder = await run_in_threadpool(
            ops.save_upload,
            upload_file.file,
            upload_file.filename or '',
            _text_field(form.get('newName')),
            _text_field(form.get('folderPath')),
        )
    finally:
        await form.close()

    return UploadResponse(file=final_name, folder=folder or None)


@router.get('/download')
def download(
    filename: Optional[str] = Query(default=None),
    folder: Optional[str] = Query(default=None),
    ops: FileOps = Depends(get_file_ops),
):
    chunks = ops.open_download(filename, folder)
    return StreamingResponse(
        chunks,
        media_type='application/octet-stream',
        headers={'Content-Disposition': _content_disposition(filename)},
    )


@router.post('/folder', response_model=FolderResponse)
def create_folder(payload: CreateFolderRequest, ops: FileOps = Depends(get_file_ops)):
    return FolderResponse(folder=ops.create_folder(payload.name, payload.parent_folder))


@router.delete('/folder', status_code=204)
def delete_folder(
    folder: Optional[str] = Query(default=None),
    force: bool = Query(default=False),
    ops: FileOps = Depends(get_file_ops),
):
    ops.delete_folder(folder, force)
    return Response(status_code=204)


@router.delete('/file', status_code=204)
def delete_file(
    filename: Optional[str] = Query(default=None),
    folder: Optional[str] = Query(default=None),
    ops: FileOps = Depends(get_file_ops),
):
    ops.delete_file(filename, folder)
    return Response(status_code=204)
