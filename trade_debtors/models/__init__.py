# Models Package
# MVC Model Layer - Pydantic Models

from .trade_debtor import DocumentRecord, ListOptions
from .upload import UploadBatch, UploadedFile

__all__ = [
    "DocumentRecord",
    "ListOptions",
    "UploadBatch",
    "UploadedFile"
]
