"""
Trade Debtor Models
Pydantic models for trade debtor payloads
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from ..utils.constants import DEFAULT_LIMIT, DEFAULT_PAGE, DEFAULT_SORT_BY, DEFAULT_SORT_ORDER
from ..utils.helpers import utc_now


class DocumentRecord(BaseModel):
    """Metadata of a file attached to a debtor (VAT/GST, KYC or general)"""
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(alias="fileName")
    file_path: str = Field(alias="filePath")
    file_type: str = Field(alias="fileType")
    s3_key: Optional[str] = Field(default=None, alias="s3Key")
    uploaded_at: datetime = Field(default_factory=utc_now, alias="uploadedAt")

    def to_payload(self) -> dict:
        """camelCase dict as forwarded to the persistence service"""
        return self.model_dump(by_alias=True, mode="json")


class ListOptions(BaseModel):
    """Pagination, filter and sort options of the list endpoint"""
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    search: str = ""
    status: str = ""
    classification: str = ""
    sort_by: str = DEFAULT_SORT_BY
    sort_order: str = DEFAULT_SORT_ORDER
