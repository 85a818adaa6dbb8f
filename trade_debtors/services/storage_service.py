"""
Storage Service Module
Stores uploaded files and deletes them again

Two modes, chosen by config.storage.enabled:
- S3-compatible object storage through the MinIO client; files get a key and a location
- local disk under config.storage.local_dir; files get a path and no key
"""

import asyncio
import io
import re
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from starlette.datastructures import UploadFile
from minio import Minio
from minio.deleteobjects import DeleteObject
from minio.error import S3Error

from ..config import config, StorageConfig
from ..models.upload import UploadedFile
from ..utils.constants import ErrorCode, HealthStatus
from ..utils.decorators import retry
from ..utils.errors import create_app_error
from ..utils.logger import logger


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
READ_CHUNK_SIZE = 1024 * 1024


def safe_file_name(name: str) -> str:
    name = Path(name or "file").name
    return _UNSAFE_CHARS.sub("_", name) or "file"


class StorageService:
    """Service for uploaded file storage"""

    def __init__(self, settings: Optional[StorageConfig] = None, client: Optional[Minio] = None):
        self.settings = settings or config.storage
        self._client = client

    @property
    def remote(self) -> bool:
        return self.settings.enabled

    def _get_client(self) -> Minio:
        """Get or create MinIO client"""
        if self._client is None:
            if not self.settings.access_key or not self.settings.secret_key:
                raise ValueError(
                    "Storage credentials not configured. "
                    "Set STORAGE_ACCESS_KEY and STORAGE_SECRET_KEY."
                )
            self._client = Minio(
                endpoint=self.settings.endpoint,
                access_key=self.settings.access_key,
                secret_key=self.settings.secret_key,
                secure=self.settings.secure,
            )
            logger.info(f"MinIO client initialized for endpoint: {self.settings.endpoint}")
        return self._client

    def _object_location(self, key: str) -> str:
        if self.settings.public_url:
            return f"{self.settings.public_url.rstrip('/')}/{key}"
        scheme = "https" if self.settings.secure else "http"
        return f"{scheme}://{self.settings.endpoint}/{self.settings.bucket}/{key}"

    def _object_key(self, field_name: str, file_name: str) -> str:
        field = safe_file_name(field_name.replace(".", "-"))
        return f"{self.settings.prefix}/{field}/{uuid4().hex}-{safe_file_name(file_name)}"

    @retry(
        max_attempts=config.retry.max_attempts,
        initial_delay=config.retry.initial_delay,
        backoff_multiplier=config.retry.backoff_multiplier,
        max_delay=config.retry.max_delay,
        exceptions=(S3Error,)
    )
    def _put_object(self, key: str, data: bytes, content_type: str) -> None:
        self._get_client().put_object(
            self.settings.bucket,
            key,
            io.BytesIO(data),
            length=len(data),
            content_type=content_type,
        )

    @retry(
        max_attempts=config.retry.max_attempts,
        initial_delay=config.retry.initial_delay,
        backoff_multiplier=config.retry.backoff_multiplier,
        max_delay=config.retry.max_delay,
        exceptions=(S3Error,)
    )
    def _remove_objects(self, keys: List[str]) -> List[Any]:
        """Batch delete; the client returns errors lazily so they are drained here"""
        delete_list = [DeleteObject(key) for key in keys]
        return list(self._get_client().remove_objects(self.settings.bucket, delete_list))

    def _write_local(self, field_name: str, file_name: str, data: bytes) -> Path:
        folder = Path(self.settings.local_dir) / safe_file_name(field_name.replace(".", "-"))
        folder.mkdir(parents=True, exist_ok=True)
        target = folder / f"{uuid4().hex}-{safe_file_name(file_name)}"
        target.write_bytes(data)
        return target

    def _too_large(self, upload: UploadFile):
        return create_app_error(
            f"File {upload.filename} exceeds the {self.settings.max_file_size} byte limit",
            413,
            ErrorCode.FILE_TOO_LARGE
        )

    async def _read_limited(self, upload: UploadFile) -> bytes:
        """Read in chunks, stopping as soon as the size limit is passed"""
        limit = self.settings.max_file_size
        if upload.size is not None and upload.size > limit:
            raise self._too_large(upload)

        data = bytearray()
        while True:
            chunk = await upload.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            data.extend(chunk)
            if len(data) > limit:
                raise self._too_large(upload)
        return bytes(data)

    async def store_upload(self, field_name: str, upload: UploadFile) -> UploadedFile:
        """Store one multipart file part and describe where it went"""
        data = await self._read_limited(upload)

        original_name = upload.filename or "file"
        mime_type = upload.content_type or "application/octet-stream"

        if self.remote:
            key = self._object_key(field_name, original_name)
            await asyncio.to_thread(self._put_object, key, data, mime_type)
            logger.debug(f"Stored {original_name} as {key}")
            return UploadedFile(
                field_name=field_name,
                original_name=original_name,
                mime_type=mime_type,
                size=len(data),
                key=key,
                location=self._object_location(key),
            )

        target = await asyncio.to_thread(self._write_local, field_name, original_name, data)
        logger.debug(f"Stored {original_name} at {target}")
        return UploadedFile(
            field_name=field_name,
            original_name=original_name,
            mime_type=mime_type,
            size=len(data),
            path=str(target),
        )

    async def delete_files(self, keys: List[str]) -> Dict[str, List[Any]]:
        """
        Delete stored files in one batch.

        Args:
            keys: Object keys (remote mode) or file paths (local mode)

        Returns:
            {"successful": [...], "failed": [...], "errors": [...]}
        """
        keys = [key for key in keys if key]
        result: Dict[str, List[Any]] = {"successful": [], "failed": [], "errors": []}
        if not keys:
            return result

        if self.remote:
            errors = await asyncio.to_thread(self._remove_objects, keys)
            failed = {error.name: error.message for error in errors}
            result["failed"] = [key for key in keys if key in failed]
            result["successful"] = [key for key in keys if key not in failed]
            result["errors"] = [{"key": key, "message": message} for key, message in failed.items()]
        else:
            for key in keys:
                try:
                    Path(key).unlink()
                    result["successful"].append(key)
                except OSError as e:
                    result["failed"].append(key)
                    result["errors"].append({"key": key, "message": str(e)})

        logger.info(f"Deleted {len(result['successful'])}/{len(keys)} stored files")
        if result["failed"]:
            logger.warning(f"Failed to delete {len(result['failed'])} files: {result['failed']}")
        return result

    async def check_health(self) -> Dict[str, Any]:
        """Check storage backend health"""
        if not self.remote:
            path = Path(self.settings.local_dir)
            return {
                "status": HealthStatus.HEALTHY,
                "mode": "local",
                "path": str(path),
                "message": "Local storage"
            }
        try:
            exists = await asyncio.to_thread(self._get_client().bucket_exists, self.settings.bucket)
            return {
                "status": HealthStatus.HEALTHY if exists else HealthStatus.DEGRADED,
                "mode": "s3",
                "endpoint": self.settings.endpoint,
                "bucket": self.settings.bucket,
                "message": "Connected" if exists else "Bucket not found"
            }
        except Exception as e:
            return {
                "status": HealthStatus.UNHEALTHY,
                "mode": "s3",
                "endpoint": self.settings.endpoint,
                "bucket": self.settings.bucket,
                "message": str(e)
            }


# Global service instance
storage_service = StorageService()
