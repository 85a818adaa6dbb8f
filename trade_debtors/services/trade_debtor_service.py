"""
Trade Debtor Service Module
Persistence and business rules for trade debtor accounts

Each debtor is stored as one JSON document in the trade_debtors table; the
columns beside it (code, name, status, classification) exist for filtering,
sorting and uniqueness.

Document merge policy on update, per section (VAT/GST and each KYC entry):
- replace tag: prior documents are dropped and their stored files deleted
- removal list: listed document ids are dropped and their files deleted
- otherwise new documents are appended to the prior ones
"""

import json
import math
import re
import sqlite3
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from ..models.trade_debtor import ListOptions
from ..utils.constants import (
    DEFAULT_SORT_BY,
    FILES_MANAGEMENT_KEY,
    REMOVE_KYC_TAG,
    REMOVE_VAT_TAG,
    REPLACE_KYC_TAG,
    REPLACE_VAT_TAG,
    SEARCH_RESULT_LIMIT,
    DebtorStatus,
    ErrorCode,
)
from ..utils.decorators import timed
from ..utils.errors import create_app_error
from ..utils.helpers import get_current_timestamp
from ..utils.logger import logger
from .database_service import DatabaseService, database_service
from .storage_service import StorageService, storage_service


ACCOUNT_CODE_PATTERN = re.compile(r"^[A-Z0-9]{1,20}$")

SORT_COLUMNS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "accountCode": "account_code",
    "customerName": "customer_name",
    "shortName": "short_name",
    "classification": "classification",
    "status": "status",
}


def entity_defaults() -> Dict[str, Any]:
    """Fresh defaults for a new debtor; nothing is shared between entities"""
    return {
        "accountType": "Account",
        "mode": "DEBTOR",
        "status": DebtorStatus.ACTIVE,
        "isActive": True,
        "addresses": [],
        "employees": [],
        "vatGstDetails": {},
        "bankDetails": [],
        "kycDetails": [],
        "generalDocuments": [],
    }


# Internal keys never persisted inside the JSON document
TRANSIENT_KEYS = (FILES_MANAGEMENT_KEY, REPLACE_VAT_TAG, REMOVE_VAT_TAG)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _with_ids(documents: List[Any]) -> List[Any]:
    """Give every document record an id so clients can target it for removal"""
    result = []
    for document in documents or []:
        if isinstance(document, dict) and not document.get("id"):
            document = {**document, "id": uuid4().hex}
        result.append(document)
    return result


def storage_identifier(document: Any, local: bool = False) -> Optional[str]:
    """
    What StorageService.delete_files needs to remove a document's file:
    the object key, or in local mode the file path.
    """
    if not isinstance(document, dict):
        return None
    if document.get("s3Key"):
        return document["s3Key"]
    if local:
        return document.get("filePath") or None
    return None


def extract_storage_keys(entity: Dict[str, Any], local: bool = False) -> List[str]:
    """All stored files referenced by a debtor"""
    documents: List[Any] = []

    vat = entity.get("vatGstDetails")
    if isinstance(vat, dict):
        documents.extend(vat.get("documents") or [])

    for kyc in entity.get("kycDetails") or []:
        if isinstance(kyc, dict):
            documents.extend(kyc.get("documents") or [])

    documents.extend(entity.get("generalDocuments") or [])

    keys = (storage_identifier(d, local) for d in documents)
    return [key for key in keys if key]


class TradeDebtorService:
    """Service for trade debtor persistence"""

    def __init__(self, database: DatabaseService = None, storage: StorageService = None):
        self.db = database or database_service
        self.storage = storage or storage_service

    @property
    def local_files(self) -> bool:
        """Local-disk storage identifies files by path instead of key"""
        return not self.storage.remote

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_entity(row: Dict[str, Any]) -> Dict[str, Any]:
        entity = json.loads(row["data"])
        entity.update({
            "id": row["id"],
            "accountCode": row["account_code"],
            "status": row["status"],
            "isActive": bool(row["is_active"]),
            "createdBy": row["created_by"],
            "updatedBy": row["updated_by"],
            "createdAt": row["created_at"],
            "updatedAt": row["updated_at"],
        })
        return entity

    @staticmethod
    def _row_params(entity: Dict[str, Any]) -> Tuple:
        document = {k: v for k, v in entity.items() if k not in TRANSIENT_KEYS}
        return (
            entity["accountCode"],
            entity.get("customerName"),
            entity.get("shortName"),
            entity.get("classification"),
            entity.get("status") or DebtorStatus.ACTIVE,
            1 if entity.get("isActive") else 0,
            json.dumps(document, default=str),
            entity.get("createdBy"),
            entity.get("updatedBy"),
            entity["createdAt"],
            entity["updatedAt"],
        )

    async def _fetch_row(self, debtor_id: str) -> Dict[str, Any]:
        row = await self.db.fetch_one("SELECT * FROM trade_debtors WHERE id = ?", (debtor_id,))
        if not row:
            raise create_app_error("Trade debtor not found", 404, ErrorCode.DEBTOR_NOT_FOUND)
        return row

    async def _write(self, query: str, params: Tuple) -> None:
        """Execute an INSERT/UPDATE; a lost race on the unique account code is a duplicate"""
        try:
            await self.db.execute(query, params)
        except sqlite3.IntegrityError as e:
            if "account_code" not in str(e):
                raise
            raise create_app_error("Account code already exists", 400, ErrorCode.DUPLICATE_ACCOUNT_CODE) from e

    async def _save(self, entity: Dict[str, Any]) -> None:
        await self._write(
            """
            UPDATE trade_debtors SET
                account_code = ?, customer_name = ?, short_name = ?, classification = ?,
                status = ?, is_active = ?, data = ?, created_by = ?, updated_by = ?,
                created_at = ?, updated_at = ?
            WHERE id = ?
            """,
            self._row_params(entity) + (entity["id"],)
        )

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    async def is_account_code_exists(self, account_code: str, exclude_id: Optional[str] = None) -> bool:
        query = "SELECT COUNT(*) FROM trade_debtors WHERE account_code = ?"
        params: Tuple = (account_code,)
        if exclude_id:
            query += " AND id != ?"
            params += (exclude_id,)
        return bool(await self.db.fetch_scalar(query, params))

    @staticmethod
    def _validate_account_code(account_code: Any) -> None:
        if not isinstance(account_code, str) or not ACCOUNT_CODE_PATTERN.match(account_code):
            raise create_app_error(
                "Validation failed: Account code should contain only uppercase letters and numbers (max 20)",
                400,
                ErrorCode.VALIDATION_ERROR
            )

    @staticmethod
    def _validate_status(status: Any) -> None:
        if status not in DebtorStatus.ALL:
            raise create_app_error(
                f"Validation failed: status must be one of {', '.join(DebtorStatus.ALL)}",
                400,
                ErrorCode.VALIDATION_ERROR
            )

    def _merge_documents(
        self,
        old_documents: List[Any],
        new_documents: List[Any],
        replace: bool,
        remove_ids: List[str],
        files_to_delete: List[str],
    ) -> List[Any]:
        kept: List[Any] = []
        for document in old_documents:
            doc_id = str(document.get("id")) if isinstance(document, dict) else None
            dropped = replace or (doc_id is not None and doc_id in remove_ids)
            if dropped:
                key = storage_identifier(document, self.local_files)
                if key:
                    files_to_delete.append(key)
                continue
            kept.append(document)

        known_ids = {d.get("id") for d in kept if isinstance(d, dict) and d.get("id")}
        for document in _with_ids(new_documents):
            if isinstance(document, dict):
                if document["id"] in known_ids or str(document["id"]) in remove_ids:
                    continue
                known_ids.add(document["id"])
            kept.append(document)
        return kept

    def _merge_vat(
        self,
        old_vat: Any,
        new_vat: Any,
        replace: bool,
        remove_ids: List[str],
        files_to_delete: List[str],
    ) -> Any:
        old_vat = old_vat if isinstance(old_vat, dict) else {}
        if new_vat is None:
            new_vat = {}
        if not isinstance(new_vat, dict):
            return new_vat

        merged = {**old_vat, **new_vat}
        merged["documents"] = self._merge_documents(
            old_vat.get("documents") or [],
            new_vat.get("documents") or [],
            replace,
            remove_ids,
            files_to_delete,
        )
        return merged

    def _merge_kyc(self, old_entries: List[Any], new_entries: List[Any], files_to_delete: List[str]) -> List[Any]:
        merged: List[Any] = []
        for index, entry in enumerate(new_entries):
            if not isinstance(entry, dict):
                merged.append(entry)
                continue
            entry = dict(entry)
            replace = bool(entry.pop(REPLACE_KYC_TAG, False))
            remove_ids = [str(x) for x in entry.pop(REMOVE_KYC_TAG, None) or []]
            old_entry = old_entries[index] if index < len(old_entries) and isinstance(old_entries[index], dict) else {}

            combined = {**old_entry, **entry}
            combined["documents"] = self._merge_documents(
                old_entry.get("documents") or [],
                entry.get("documents") or [],
                replace,
                remove_ids,
                files_to_delete,
            )
            merged.append(combined)

        # Entries the update does not reach stay as stored
        merged.extend(old_entries[len(new_entries):])
        return merged

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @timed
    async def create_trade_debtor(self, debtor_data: Dict[str, Any], admin_id: str) -> Dict[str, Any]:
        """Create a new trade debtor"""
        account_code = debtor_data.get("accountCode")
        self._validate_account_code(account_code)

        if await self.is_account_code_exists(account_code):
            raise create_app_error("Account code already exists", 400, ErrorCode.DUPLICATE_ACCOUNT_CODE)

        if not debtor_data.get("addresses"):
            raise create_app_error("At least one address is required", 400, ErrorCode.MISSING_ADDRESS)
        if not debtor_data.get("employees"):
            raise create_app_error("At least one employee contact is required", 400, ErrorCode.MISSING_EMPLOYEE)

        entity = entity_defaults()
        entity.update({k: v for k, v in debtor_data.items() if v is not None})
        self._validate_status(entity["status"])

        vat = entity.get("vatGstDetails")
        if isinstance(vat, dict):
            entity["vatGstDetails"] = {**vat, "documents": _with_ids(vat.get("documents") or [])}
        entity["kycDetails"] = [
            {**kyc, "documents": _with_ids(kyc.get("documents") or [])} if isinstance(kyc, dict) else kyc
            for kyc in entity.get("kycDetails") or []
        ]
        entity["generalDocuments"] = _with_ids(entity.get("generalDocuments") or [])

        now = get_current_timestamp()
        entity.update({
            "id": uuid4().hex,
            "createdBy": admin_id,
            "updatedBy": None,
            "createdAt": now,
            "updatedAt": now,
        })

        await self._write(
            """
            INSERT INTO trade_debtors (
                account_code, customer_name, short_name, classification, status, is_active,
                data, created_by, updated_by, created_at, updated_at, id
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            self._row_params(entity) + (entity["id"],)
        )
        logger.info(f"Created trade debtor {entity['accountCode']} ({entity['id']})")
        return entity

    @timed
    async def get_all_trade_debtors(self, options: ListOptions) -> Dict[str, Any]:
        """Get trade debtors with pagination, filters and sorting"""
        page = max(options.page, 1)
        limit = max(options.limit, 1)
        conditions: List[str] = []
        params: List[Any] = []

        if options.search:
            pattern = f"%{_escape_like(options.search)}%"
            conditions.append(
                "(customer_name LIKE ? ESCAPE '\\' OR account_code LIKE ? ESCAPE '\\' OR short_name LIKE ? ESCAPE '\\')"
            )
            params.extend([pattern, pattern, pattern])
        if options.status:
            conditions.append("status = ?")
            params.append(options.status)
        if options.classification:
            conditions.append("classification = ?")
            params.append(options.classification)

        where = f" WHERE {' AND '.join(conditions)}" if conditions else ""
        column = SORT_COLUMNS.get(options.sort_by, SORT_COLUMNS[DEFAULT_SORT_BY])
        direction = "DESC" if options.sort_order.lower() == "desc" else "ASC"

        try:
            rows = await self.db.fetch_all(
                f"SELECT * FROM trade_debtors{where} ORDER BY {column} {direction} LIMIT ? OFFSET ?",
                tuple(params) + (limit, (page - 1) * limit)
            )
            total = await self.db.fetch_scalar(f"SELECT COUNT(*) FROM trade_debtors{where}", tuple(params))
        except Exception as e:
            logger.error(f"Failed to fetch trade debtors: {e}")
            raise create_app_error("Error fetching trade debtors", 500, ErrorCode.FETCH_ERROR) from e

        total = total or 0
        return {
            "tradeDebtors": [self._row_to_entity(row) for row in rows],
            "pagination": {
                "currentPage": page,
                "totalPages": math.ceil(total / limit),
                "totalItems": total,
                "itemsPerPage": limit,
            },
        }

    async def get_trade_debtor_by_id(self, debtor_id: str) -> Dict[str, Any]:
        """Get a trade debtor by id"""
        return self._row_to_entity(await self._fetch_row(debtor_id))

    @timed
    async def update_trade_debtor(self, debtor_id: str, update_data: Dict[str, Any], admin_id: str) -> Dict[str, Any]:
        """
        Apply a partial update, executing document merge directives.

        Returns:
            Updated entity plus a ``_filesManagement`` summary of stored files
            removed by replace/remove directives.
        """
        current = self._row_to_entity(await self._fetch_row(debtor_id))
        update = dict(update_data)

        new_code = update.get("accountCode")
        if new_code and new_code != current["accountCode"]:
            self._validate_account_code(new_code)
            if await self.is_account_code_exists(new_code, exclude_id=debtor_id):
                raise create_app_error("Account code already exists", 400, ErrorCode.DUPLICATE_ACCOUNT_CODE)

        if "status" in update:
            self._validate_status(update["status"])

        files_to_delete: List[str] = []
        replace_vat = bool(update.pop(REPLACE_VAT_TAG, False))
        remove_vat = [str(x) for x in update.pop(REMOVE_VAT_TAG, None) or []]
        if "vatGstDetails" in update or remove_vat:
            update["vatGstDetails"] = self._merge_vat(
                current.get("vatGstDetails"),
                update.get("vatGstDetails"),
                replace_vat,
                remove_vat,
                files_to_delete,
            )

        if isinstance(update.get("kycDetails"), list):
            update["kycDetails"] = self._merge_kyc(current.get("kycDetails") or [], update["kycDetails"], files_to_delete)

        deletion = {"successful": [], "failed": []}
        if files_to_delete:
            logger.info(f"Deleting {len(files_to_delete)} replaced stored files")
            try:
                deletion = await self.storage.delete_files(files_to_delete)
            except Exception as e:
                logger.warning(f"Could not delete old stored files: {e}")
                deletion = {"successful": [], "failed": list(files_to_delete)}

        for key in ("id", "createdBy", "createdAt"):
            update.pop(key, None)
        entity = {**current, **update}
        entity["updatedBy"] = admin_id
        entity["updatedAt"] = get_current_timestamp()
        await self._save(entity)

        entity[FILES_MANAGEMENT_KEY] = {
            "filesDeleted": len(deletion["successful"]),
            "filesFailedToDelete": len(deletion["failed"]),
            "deletedKeys": list(deletion["successful"]),
        }
        return entity

    async def delete_trade_debtor(self, debtor_id: str, admin_id: str) -> Dict[str, Any]:
        """Soft delete: mark the debtor inactive"""
        entity = self._row_to_entity(await self._fetch_row(debtor_id))
        entity.update({
            "status": DebtorStatus.INACTIVE,
            "isActive": False,
            "updatedBy": admin_id,
            "updatedAt": get_current_timestamp(),
        })
        await self._save(entity)
        return entity

    async def hard_delete_trade_debtor(self, debtor_id: str) -> Dict[str, Any]:
        """Remove the debtor permanently, then its stored files"""
        entity = self._row_to_entity(await self._fetch_row(debtor_id))
        storage_keys = extract_storage_keys(entity, self.local_files)

        await self.db.execute("DELETE FROM trade_debtors WHERE id = ?", (debtor_id,))
        logger.info(f"Hard deleted trade debtor {debtor_id}")

        if not storage_keys:
            return {"message": "Trade debtor permanently deleted", "filesDeleted": {"total": 0}}

        logger.info(f"Deleting {len(storage_keys)} stored files for trade debtor {debtor_id}")
        try:
            result = await self.storage.delete_files(storage_keys)
        except Exception as e:
            logger.error(f"Error deleting stored files: {e}")
            return {
                "message": "Trade debtor permanently deleted (warning: some files may remain in storage)",
                "filesDeleted": {
                    "total": len(storage_keys),
                    "successful": 0,
                    "failed": len(storage_keys),
                    "successfulKeys": [],
                    "failedKeys": storage_keys,
                    "errors": [str(e)],
                },
            }

        files_deleted = {
            "total": len(storage_keys),
            "successful": len(result["successful"]),
            "failed": len(result["failed"]),
            "successfulKeys": result["successful"],
            "failedKeys": result["failed"],
        }
        if result.get("errors"):
            files_deleted["errors"] = result["errors"]
        return {"message": "Trade debtor permanently deleted", "filesDeleted": files_deleted}

    async def toggle_status(self, debtor_id: str, admin_id: str) -> Dict[str, Any]:
        """Flip active <-> inactive; suspended debtors become active"""
        entity = self._row_to_entity(await self._fetch_row(debtor_id))
        new_status = DebtorStatus.INACTIVE if entity["status"] == DebtorStatus.ACTIVE else DebtorStatus.ACTIVE
        entity.update({
            "status": new_status,
            "isActive": new_status == DebtorStatus.ACTIVE,
            "updatedBy": admin_id,
            "updatedAt": get_current_timestamp(),
        })
        await self._save(entity)
        return entity

    async def get_active_debtors_list(self) -> List[Dict[str, Any]]:
        """Active debtors for dropdowns"""
        try:
            rows = await self.db.fetch_all(
                "SELECT id, account_code, customer_name, short_name FROM trade_debtors "
                "WHERE is_active = 1 AND status = ? ORDER BY customer_name ASC",
                (DebtorStatus.ACTIVE,)
            )
        except Exception as e:
            logger.error(f"Failed to fetch active debtors: {e}")
            raise create_app_error("Error fetching active debtors list", 500, ErrorCode.FETCH_ERROR) from e
        return [self._summary(row) for row in rows]

    async def search_debtors(self, search_term: str) -> List[Dict[str, Any]]:
        """Active debtors whose name, code or short name contains the term"""
        pattern = f"%{_escape_like(search_term)}%"
        try:
            rows = await self.db.fetch_all(
                "SELECT id, account_code, customer_name, short_name FROM trade_debtors "
                "WHERE is_active = 1 AND status = ? AND ("
                "customer_name LIKE ? ESCAPE '\\' OR account_code LIKE ? ESCAPE '\\' OR short_name LIKE ? ESCAPE '\\'"
                ") LIMIT ?",
                (DebtorStatus.ACTIVE, pattern, pattern, pattern, SEARCH_RESULT_LIMIT)
            )
        except Exception as e:
            logger.error(f"Failed to search debtors: {e}")
            raise create_app_error("Error searching debtors", 500, ErrorCode.SEARCH_ERROR) from e
        return [self._summary(row) for row in rows]

    async def get_debtor_statistics(self) -> Dict[str, Any]:
        """Counts by status and by classification"""
        try:
            general = await self.db.fetch_one(
                """
                SELECT
                    COUNT(*) AS totalDebtors,
                    COALESCE(SUM(CASE WHEN status = 'active' THEN 1 ELSE 0 END), 0) AS activeDebtors,
                    COALESCE(SUM(CASE WHEN status = 'inactive' THEN 1 ELSE 0 END), 0) AS inactiveDebtors,
                    COALESCE(SUM(CASE WHEN status = 'suspended' THEN 1 ELSE 0 END), 0) AS suspendedDebtors
                FROM trade_debtors
                """
            )
            by_classification = await self.db.fetch_all(
                "SELECT classification, COUNT(*) AS count FROM trade_debtors GROUP BY classification"
            )
        except Exception as e:
            logger.error(f"Failed to compute debtor statistics: {e}")
            raise create_app_error("Error fetching debtor statistics", 500, ErrorCode.STATS_ERROR) from e

        return {"general": general, "byClassification": by_classification}

    @staticmethod
    def _summary(row: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": row["id"],
            "accountCode": row["account_code"],
            "customerName": row["customer_name"],
            "shortName": row["short_name"],
        }


# Global service instance
trade_debtor_service = TradeDebtorService()
