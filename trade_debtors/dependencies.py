"""
Request Dependencies
Collaborators injected into controllers

The acting administrator is established upstream (gateway or auth
middleware) and forwarded in the X-Admin-Id header.
"""

from typing import Optional

from fastapi import Header

from .services.storage_service import StorageService, storage_service
from .services.trade_debtor_service import TradeDebtorService, trade_debtor_service
from .utils.constants import ErrorCode
from .utils.errors import create_app_error


async def get_current_admin(x_admin_id: Optional[str] = Header(default=None)) -> str:
    """Acting administrator id"""
    if not x_admin_id or not x_admin_id.strip():
        raise create_app_error("Authentication required", 401, ErrorCode.UNAUTHORIZED)
    return x_admin_id.strip()


def get_trade_debtor_service() -> TradeDebtorService:
    return trade_debtor_service


def get_storage_service() -> StorageService:
    return storage_service
