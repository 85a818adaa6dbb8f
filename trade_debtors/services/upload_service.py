"""
Upload Service Module
Reads create/update request bodies, storing any multipart file parts

JSON bodies are returned as is with an empty upload batch. Multipart bodies
yield their text fields (repeated fields as lists) and a batch describing
every stored file, grouped by form field name.
"""

from typing import Any, Dict, Tuple

from fastapi import Request
from starlette.datastructures import UploadFile

from ..models.upload import UploadBatch
from ..utils.constants import ErrorCode
from ..utils.errors import create_app_error
from ..utils.logger import logger
from .storage_service import StorageService


async def _cleanup(storage: StorageService, batch: UploadBatch) -> None:
    if not batch.cleanup_targets:
        return
    try:
        await storage.delete_files(batch.cleanup_targets)
    except Exception as e:
        logger.error(f"Error cleaning up partially stored uploads: {e}")


async def read_request_payload(request: Request, storage: StorageService) -> Tuple[Dict[str, Any], UploadBatch]:
    """
    Parse the request body of a create or update call.

    Returns:
        (body fields, stored uploads)
    """
    batch = UploadBatch()
    content_type = request.headers.get("content-type", "")

    if "multipart/form-data" not in content_type and "application/x-www-form-urlencoded" not in content_type:
        raw = await request.body()
        if not raw:
            return {}, batch
        try:
            body = await request.json()
        except ValueError:
            raise create_app_error("Invalid JSON format in request data", 400, ErrorCode.INVALID_JSON_FORMAT)
        if not isinstance(body, dict):
            raise create_app_error("Request body must be a JSON object", 400, ErrorCode.VALIDATION_ERROR)
        return body, batch

    form = await request.form()
    body: Dict[str, Any] = {}
    try:
        for field in dict.fromkeys(form.keys()):
            values = form.getlist(field)
            texts = [v for v in values if not isinstance(v, UploadFile)]
            for value in values:
                if isinstance(value, UploadFile):
                    batch.add(await storage.store_upload(field, value))
            if texts:
                body[field] = texts[0] if len(texts) == 1 else texts
    except Exception:
        await _cleanup(storage, batch)
        raise
    finally:
        await form.close()

    if batch.total:
        logger.info(f"Received {batch.total} files in fields {list(batch.files_by_field)}")
    return body, batch
