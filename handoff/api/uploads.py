"""
Upload and stored-object endpoints
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Header, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel

from handoff.api.auth import get_current_user
from handoff.api.deps import get_storage
from handoff.models.user import User
from handoff.services.storage import SHARED_FILES_BUCKET, UPLOADS_BUCKET, StorageService

logger = logging.getLogger(__name__)

router = APIRouter()


class SignRequest(BaseModel):
    bucket: str = SHARED_FILES_BUCKET
    path: str
    expires_in: Optional[int] = None


@router.post("/upload")
async def upload(
    file: UploadFile = File(...),
    x_file_path: Optional[str] = Header(None),
    storage: StorageService = Depends(get_storage),
    current_user: User = Depends(get_current_user),
):
    """Store a raw file and return its public URL"""
    content = await file.read()
    path = x_file_path or storage.default_upload_path(file.filename)
    stored = storage.upload(content, file.filename, content_type=file.content_type, bucket=UPLOADS_BUCKET, path=path)
    return {"url": stored.url, "path": stored.path}


@router.post("/storage/sign")
async def sign_url(
    data: SignRequest,
    storage: StorageService = Depends(get_storage),
    current_user: User = Depends(get_current_user),
):
    url = storage.create_signed_url(data.bucket, data.path, data.expires_in)
    return {"signed_url": url}


# Declared before the bucket/path route so "signed" is not taken for a bucket name
@router.get("/storage/signed/{token}")
async def download_signed(token: str, storage: StorageService = Depends(get_storage)):
    bucket, path = storage.verify_signed_token(token)
    return FileResponse(storage.open_path(bucket, path))


@router.get("/storage/{bucket}/{path:path}")
async def download(bucket: str, path: str, storage: StorageService = Depends(get_storage)):
    return FileResponse(storage.open_path(bucket, path))
