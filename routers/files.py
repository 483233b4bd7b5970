import logging

from fastapi import APIRouter, HTTPException, UploadFile, File, Query
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

from models import PdfFileInfo
from services.errors import (
    DeleteFailedError,
    InsufficientFilesError,
    InvalidRequest,
    NameRequired,
    NotFoundError,
    StorageError,
    UploadValidationError,
)
from services.pdf_service import PdfService, get_pdf_service
from services.thumbnails import THUMB_CONTENT_TYPE
from utils import parse_position

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])

FILE_NAME_REQUIRED = "FileName not provided"
FILE_NOT_FOUND = "File Doesn't exist"


def _service() -> PdfService:
    try:
        service = get_pdf_service()
    except StorageError:
        logger.exception("Storage backend unreachable")
        raise HTTPException(status_code=400, detail="Storage backend unreachable")
    if service is None:
        raise HTTPException(status_code=400, detail="Cloudflare R2 is not configured")
    return service


# Fixed routes are declared before "/{file_name}" so they are not captured by it.

@router.get("/list", response_model=list[PdfFileInfo])
def list_files():
    service = _service()
    try:
        return [PdfFileInfo.from_entry(e) for e in service.list_files()]
    except StorageError:
        logger.exception("Error getting file list")
        raise HTTPException(status_code=400, detail="Error getting file list")


@router.get("/reorder", response_model=list[PdfFileInfo])
def reorder_files(
    filename: str | None = None,
    file_position: str | None = Query(None, alias="filePosition"),
):
    service = _service()
    try:
        entries = service.reorder(filename, parse_position(file_position))
    except InvalidRequest:
        raise HTTPException(status_code=400, detail="File name or position is invalid")
    except NotFoundError:
        raise HTTPException(status_code=400, detail=FILE_NOT_FOUND)
    except InsufficientFilesError:
        raise HTTPException(status_code=400, detail="Not enough files to re-order")
    except StorageError:
        logger.exception(f"unable to re-order files (filename={filename!r}, position={file_position!r})")
        raise HTTPException(status_code=400, detail="unable to re-order files")
    return [PdfFileInfo.from_entry(e) for e in entries]


@router.post("/refresh", response_model=list[PdfFileInfo])
def refresh_index():
    service = _service()
    try:
        return [PdfFileInfo.from_entry(e) for e in service.refresh()]
    except StorageError:
        logger.exception("Failed to rebuild file index")
        raise HTTPException(status_code=400, detail="Unable to refresh file list")


@router.post("/uploadfile")
async def upload_file(uploaded_file: UploadFile | None = File(None, alias="uploadedFile")):
    service = _service()
    if uploaded_file is None:
        raise HTTPException(status_code=400, detail={"NoFile": ["file not uploaded"]})
    try:
        if uploaded_file.size is not None:
            service.validate_upload(uploaded_file.content_type, uploaded_file.size)
        content = await uploaded_file.read()
        return await run_in_threadpool(
            service.upload,
            content,
            uploaded_file.filename,
            uploaded_file.content_type,
            len(content),
        )
    except UploadValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors)
    except NameRequired:
        raise HTTPException(status_code=400, detail=FILE_NAME_REQUIRED)
    except StorageError:
        message = f"failed to upload file : {uploaded_file.filename} "
        logger.exception(message)
        raise HTTPException(status_code=400, detail=message)


@router.get("/thumb/{file_name}")
def get_thumbnail(file_name: str):
    service = _service()
    try:
        data = service.thumbnail(file_name)
    except NameRequired:
        raise HTTPException(status_code=400, detail=FILE_NAME_REQUIRED)
    except NotFoundError:
        raise HTTPException(status_code=400, detail=FILE_NOT_FOUND)
    except StorageError:
        message = f"Error downloading thumbnail:  {file_name}"
        logger.exception(message)
        raise HTTPException(status_code=400, detail=message)
    return Response(content=data, media_type=THUMB_CONTENT_TYPE)


@router.delete("/delete/{file_name}")
def delete_file(file_name: str):
    service = _service()
    try:
        physical_name = service.delete(file_name)
    except NameRequired:
        raise HTTPException(status_code=400, detail=FILE_NAME_REQUIRED)
    except NotFoundError:
        raise HTTPException(status_code=400, detail=FILE_NOT_FOUND)
    except DeleteFailedError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError:
        message = f"failed to delete file : {file_name} "
        logger.exception(message)
        raise HTTPException(status_code=400, detail=message)
    return f"File : {physical_name} Deleted successfully"


@router.get("/{file_name}")
def get_file(file_name: str):
    service = _service()
    try:
        stored = service.download(file_name)
    except NameRequired:
        raise HTTPException(status_code=400, detail=FILE_NAME_REQUIRED)
    except NotFoundError:
        raise HTTPException(status_code=400, detail=FILE_NOT_FOUND)
    except StorageError:
        message = f"Error downloading file:  {file_name}"
        logger.exception(message)
        raise HTTPException(status_code=400, detail=message)
    return Response(content=stored.content, media_type=stored.content_type)
