"""
Shared pytest fixtures for the trade debtors test suite.

Controller tests run the FastAPI app through TestClient with the persistence
service, storage and acting administrator replaced by in-memory fakes, so no
database, object store or auth layer is needed.
"""

import asyncio
import copy
from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient

from trade_debtors.dependencies import get_current_admin, get_storage_service, get_trade_debtor_service
from trade_debtors.main import app
from trade_debtors.models.upload import UploadedFile
from trade_debtors.services.database_service import DatabaseService
from trade_debtors.services.trade_debtor_service import TradeDebtorService
from trade_debtors.utils.constants import DebtorStatus, ErrorCode
from trade_debtors.utils.errors import create_app_error

from factories import ADMIN_ID


class FakeStorage:
    """Stores nothing; hands out predictable keys and records deletions"""

    remote = True

    def __init__(self):
        self.deleted: List[List[str]] = []
        self.fail_keys: set = set()

    async def store_upload(self, field_name, upload) -> UploadedFile:
        data = await upload.read()
        key = f"test/{field_name}/{upload.filename}"
        return UploadedFile(
            field_name=field_name,
            original_name=upload.filename,
            mime_type=upload.content_type or "application/octet-stream",
            size=len(data),
            key=key,
            location=f"http://storage.local/bucket/{key}",
        )

    async def delete_files(self, keys):
        keys = list(keys)
        self.deleted.append(keys)
        failed = [k for k in keys if k in self.fail_keys]
        return {
            "successful": [k for k in keys if k not in self.fail_keys],
            "failed": failed,
            "errors": [{"key": k, "message": "AccessDenied"} for k in failed],
        }

    @property
    def all_deleted(self) -> List[str]:
        return [key for batch in self.deleted for key in batch]


class FakeTradeDebtorService:
    """In-memory stand-in recording what the handlers forward"""

    def __init__(self):
        self.debtors: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.files_management: Dict[str, Any] = {"filesDeleted": 0, "deletedKeys": []}
        self.fail_create: Exception = None
        self.hard_delete_result: Dict[str, Any] = {
            "message": "Trade debtor permanently deleted",
            "filesDeleted": {"total": 0},
        }

    def _get(self, debtor_id):
        if debtor_id not in self.debtors:
            raise create_app_error("Trade debtor not found", 404, ErrorCode.DEBTOR_NOT_FOUND)
        return self.debtors[debtor_id]

    async def create_trade_debtor(self, data, admin_id):
        self.calls.append(("create", copy.deepcopy(data), admin_id))
        if self.fail_create:
            raise self.fail_create
        debtor = {"id": "new-id", **data, "createdBy": admin_id}
        self.debtors["new-id"] = debtor
        return debtor

    async def get_all_trade_debtors(self, options):
        self.calls.append(("list", options))
        return {
            "tradeDebtors": list(self.debtors.values()),
            "pagination": {
                "currentPage": options.page,
                "totalPages": 1,
                "totalItems": len(self.debtors),
                "itemsPerPage": options.limit,
            },
        }

    async def get_trade_debtor_by_id(self, debtor_id):
        return self._get(debtor_id)

    async def update_trade_debtor(self, debtor_id, data, admin_id):
        self.calls.append(("update", debtor_id, copy.deepcopy(data), admin_id))
        debtor = self._get(debtor_id)
        debtor.update(data)
        return {**debtor, "_filesManagement": dict(self.files_management)}

    async def delete_trade_debtor(self, debtor_id, admin_id):
        debtor = self._get(debtor_id)
        debtor.update({"status": DebtorStatus.INACTIVE, "isActive": False})
        return dict(debtor)

    async def hard_delete_trade_debtor(self, debtor_id):
        self._get(debtor_id)
        del self.debtors[debtor_id]
        return self.hard_delete_result

    async def toggle_status(self, debtor_id, admin_id):
        debtor = self._get(debtor_id)
        debtor["status"] = DebtorStatus.INACTIVE if debtor.get("status") == DebtorStatus.ACTIVE else DebtorStatus.ACTIVE
        return dict(debtor)

    async def get_active_debtors_list(self):
        return [d for d in self.debtors.values() if d.get("status") == DebtorStatus.ACTIVE]

    async def search_debtors(self, term):
        self.calls.append(("search", term))
        return []

    async def get_debtor_statistics(self):
        return {"general": {"totalDebtors": len(self.debtors)}, "byClassification": []}

    def last_call(self, name):
        return [c for c in self.calls if c[0] == name][-1]


@pytest.fixture
def fake_service():
    return FakeTradeDebtorService()


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def client(fake_service, fake_storage):
    app.dependency_overrides[get_trade_debtor_service] = lambda: fake_service
    app.dependency_overrides[get_storage_service] = lambda: fake_storage
    app.dependency_overrides[get_current_admin] = lambda: ADMIN_ID
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def run_service(tmp_path, fake_storage):
    """
    Run a coroutine against a TradeDebtorService backed by a temporary
    SQLite file. Each call gets its own event loop and connection.
    """
    db_path = str(tmp_path / "debtors.db")

    def _run(scenario):
        async def runner():
            db = DatabaseService(db_path)
            service = TradeDebtorService(db, fake_storage)
            try:
                return await scenario(service)
            finally:
                await db.disconnect()

        return asyncio.run(runner())

    return _run
