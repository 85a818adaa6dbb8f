"""
Health Service Module
Handles health checks for system components
"""

from typing import Any, Dict

from ..utils.constants import HealthStatus
from ..utils.helpers import get_current_timestamp
from .database_service import DatabaseService, database_service
from .storage_service import StorageService, storage_service


class HealthService:
    """Service for health monitoring"""

    def __init__(self, database: DatabaseService = None, storage: StorageService = None):
        self.database = database or database_service
        self.storage = storage or storage_service

    async def check_all(self) -> Dict[str, Any]:
        """Check health of all components"""
        database_health = await self.check_database()
        storage_health = await self.check_storage()
        statuses = {database_health["status"], storage_health["status"]}

        if statuses == {HealthStatus.HEALTHY}:
            overall_status = HealthStatus.HEALTHY
        elif statuses == {HealthStatus.UNHEALTHY}:
            overall_status = HealthStatus.UNHEALTHY
        else:
            overall_status = HealthStatus.DEGRADED

        return {
            "status": overall_status,
            "timestamp": get_current_timestamp(),
            "components": {
                "database": database_health,
                "storage": storage_health
            }
        }

    async def check_database(self) -> Dict[str, Any]:
        """Check database health"""
        try:
            total = await self.database.fetch_scalar("SELECT COUNT(*) FROM trade_debtors")
            size = await self.database.get_database_size()
            return {
                "status": HealthStatus.HEALTHY,
                "path": self.database.db_path,
                "size_bytes": size,
                "total_debtors": total or 0,
                "message": "Connected"
            }
        except Exception as e:
            return {
                "status": HealthStatus.UNHEALTHY,
                "path": self.database.db_path,
                "message": str(e)
            }

    async def check_storage(self) -> Dict[str, Any]:
        """Check object storage health"""
        return await self.storage.check_health()


# Global service instance
health_service = HealthService()
