# Services Package
# Business Logic Layer

from .database_service import DatabaseService
from .storage_service import StorageService
from .trade_debtor_service import TradeDebtorService
from .health_service import HealthService

__all__ = [
    "DatabaseService",
    "StorageService",
    "TradeDebtorService",
    "HealthService"
]
