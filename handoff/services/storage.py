"""
Object storage on the local filesystem, laid out as <STORAGE_DIR>/<bucket>/<path>.

Objects are served back through the /api/storage routes, either publicly by
path or through a short-lived signed token.
"""
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import List, Optional, Tuple

from jose import jwt, JWTError, ExpiredSignatureError

from handoff.config import Settings
from handoff.errors import AuthError, NotFoundError, ProviderError, ValidationError
from handoff.utils.helpers import file_extension, safe_filename, utcnow
from handoff.utils.validators import validate_file

logger = logging.getLogger(__name__)

SHARED_FILES_BUCKET = "shared-files"
DELIVERABLES_BUCKET = "deliverables"
UPLOADS_BUCKET = "uploads"
BUCKETS = {SHARED_FILES_BUCKET, DELIVERABLES_BUCKET, UPLOADS_BUCKET}


@dataclass
class StoredObject:
    bucket: str
    path: str
    url: str
    size: int
    content_type: Optional[str] = None


class StorageService:
    def __init__(self, settings: Settings):
        self.root = Path(settings.STORAGE_DIR)
        self.public_url_base = settings.STORAGE_PUBLIC_URL.rstrip("/")
        self.max_size_mb = settings.MAX_UPLOAD_SIZE_MB
        self.signed_url_ttl = settings.SIGNED_URL_EXPIRE_SECONDS
        self._secret = settings.SECRET_KEY
        self._algorithm = settings.ALGORITHM

    def _resolve(self, bucket: str, path: str) -> Path:
        """Prevent path traversal - ensure the object is inside its bucket"""
        if bucket not in BUCKETS:
            raise ValidationError(f"Unknown bucket '{bucket}'")
        if not path or path.startswith("/"):
            raise ValidationError("Invalid storage path")
        bucket_dir = (self.root / bucket).resolve()
        target = (bucket_dir / path).resolve()
        if bucket_dir not in target.parents:
            raise ValidationError("Invalid storage path")
        return target

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.public_url_base}/{bucket}/{path}"

    def upload(
        self,
        content: bytes,
        filename: str,
        content_type: Optional[str] = None,
        bucket: str = SHARED_FILES_BUCKET,
        folder: str = "client-uploads",
        path: Optional[str] = None,
    ) -> StoredObject:
        """Store bytes under an explicit path or a fresh unique name inside folder"""
        validate_file(filename, len(content), content_type, max_size_mb=self.max_size_mb)

        if path is None:
            ext = file_extension(filename)
            unique_name = f"{uuid.uuid4().hex}.{ext}" if ext else uuid.uuid4().hex
            path = f"{folder.strip('/')}/{unique_name}" if folder else unique_name
        target = self._resolve(bucket, path)
        if target.exists():
            raise ValidationError(f"An object already exists at '{path}'")

        try:
            os.makedirs(target.parent, exist_ok=True)
            with open(target, "wb") as f:
                f.write(content)
        except OSError as e:
            logger.error(f"Failed to write {bucket}/{path}: {e}")
            raise ProviderError("Could not store file", code="storage_write") from e

        logger.info(f"Stored '{filename}' at {bucket}/{path} ({len(content)} bytes)")
        return StoredObject(
            bucket=bucket,
            path=path,
            url=self.public_url(bucket, path),
            size=len(content),
            content_type=content_type,
        )

    def default_upload_path(self, filename: str, folder: str = "uploads") -> str:
        timestamp = int(utcnow().timestamp() * 1000)
        return f"{folder}/{timestamp}_{safe_filename(filename)}"

    def delete(self, bucket: str, path: str) -> bool:
        target = self._resolve(bucket, path)
        try:
            os.remove(target)
        except FileNotFoundError:
            logger.warning(f"Stored object already deleted: {bucket}/{path}")
            return False
        except OSError as e:
            logger.error(f"Failed to delete {bucket}/{path}: {e}")
            raise ProviderError("Could not delete file", code="storage_delete") from e
        logger.info(f"Deleted stored object {bucket}/{path}")
        return True

    def open_path(self, bucket: str, path: str) -> Path:
        target = self._resolve(bucket, path)
        if not target.is_file():
            raise NotFoundError("File not found")
        return target

    def list_objects(self, bucket: str, folder: str = "") -> List[str]:
        base = self._resolve(bucket, folder) if folder else (self.root / bucket).resolve()
        if not base.is_dir():
            return []
        return sorted(p.name for p in base.iterdir() if p.is_file())

    def create_signed_url(self, bucket: str, path: str, expires_in: Optional[int] = None) -> str:
        self.open_path(bucket, path)
        expire = utcnow() + timedelta(seconds=expires_in or self.signed_url_ttl)
        token = jwt.encode(
            {"bucket": bucket, "path": path, "exp": expire},
            self._secret,
            algorithm=self._algorithm,
        )
        return f"{self.public_url_base}/signed/{token}"

    def verify_signed_token(self, token: str) -> Tuple[str, str]:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except ExpiredSignatureError:
            raise AuthError("Signed URL expired")
        except JWTError:
            raise AuthError("Invalid signed URL")
        bucket, path = payload.get("bucket"), payload.get("path")
        if not bucket or not path:
            raise AuthError("Invalid signed URL")
        return bucket, path
