"""
Upload Models
Descriptors for files accepted by the upload layer
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class UploadedFile(BaseModel):
    """A stored upload: remote objects carry key and location, local files a path"""
    field_name: str
    original_name: str
    mime_type: str = "application/octet-stream"
    size: int = 0
    location: Optional[str] = None
    path: Optional[str] = None
    key: Optional[str] = None

    @property
    def storage_path(self) -> Optional[str]:
        return self.location or self.path

    @property
    def cleanup_target(self) -> Optional[str]:
        """Identifier understood by StorageService.delete_files"""
        return self.key or self.path


class UploadBatch(BaseModel):
    """All files received with one request"""
    files_by_field: Dict[str, List[UploadedFile]] = Field(default_factory=dict)
    files: List[UploadedFile] = Field(default_factory=list)

    def add(self, upload: UploadedFile) -> None:
        self.files_by_field.setdefault(upload.field_name, []).append(upload)
        self.files.append(upload)

    def get(self, field_name: str) -> List[UploadedFile]:
        return self.files_by_field.get(field_name, [])

    def count(self, *field_names: str) -> int:
        return sum(len(self.get(name)) for name in field_names)

    @property
    def total(self) -> int:
        return len(self.files)

    @property
    def cleanup_targets(self) -> List[str]:
        return [f.cleanup_target for f in self.files if f.cleanup_target]
