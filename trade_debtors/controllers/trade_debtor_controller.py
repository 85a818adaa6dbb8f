"""
Trade Debtor Controller
Handles trade debtor API endpoints

ENDPOINTS:
----------
GET    /                      - List debtors (pagination, filters, sort)
GET    /active                - Active debtors for dropdowns
GET    /search?q=             - Search active debtors
GET    /statistics            - Counts by status and classification
GET    /{id}                  - Get one debtor
POST   /                      - Create debtor (JSON or multipart with documents)
POST   /bulk-update-status    - Set status on many debtors
POST   /bulk-delete           - Soft delete many debtors
PUT    /{id}                  - Update debtor (JSON or multipart with documents)
PUT    /{id}/toggle-status    - Flip active/inactive
DELETE /{id}                  - Soft delete
DELETE /{id}/hard-delete      - Permanent delete, including stored files
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request

from ..dependencies import get_current_admin, get_storage_service, get_trade_debtor_service
from ..models.trade_debtor import ListOptions
from ..models.upload import UploadBatch
from ..services.document_service import (
    apply_update_uploads,
    classify_create_uploads,
    create_upload_summary,
    strip_client_directives,
    strip_internal_tags,
    update_upload_summary,
)
from ..services.storage_service import StorageService
from ..services.trade_debtor_service import TradeDebtorService
from ..services.upload_service import read_request_payload
from ..services.validation_service import (
    check_required_fields,
    normalize_create_payload,
    normalize_update_payload,
    validate_create_payload,
    validate_update_payload,
)
from ..utils.constants import (
    DEFAULT_LIMIT,
    DEFAULT_PAGE,
    DEFAULT_SORT_BY,
    DEFAULT_SORT_ORDER,
    MIN_SEARCH_LENGTH,
    DebtorStatus,
    ErrorCode,
)
from ..utils.errors import AppError, create_app_error
from ..utils.helpers import clean_string
from ..utils.logger import logger
from ..views.json_view import JsonView

router = APIRouter()


def _require_id(debtor_id: Optional[str]) -> str:
    if not debtor_id or not debtor_id.strip():
        raise create_app_error("Trade debtor ID is required", 400, ErrorCode.MISSING_ID)
    return debtor_id.strip()


async def _json_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _require_ids(body: Dict[str, Any]) -> List[Any]:
    ids = body.get("ids")
    if not isinstance(ids, list) or not ids:
        raise create_app_error("IDs array is required", 400, ErrorCode.MISSING_IDS)
    return ids


async def _cleanup_uploads(storage: StorageService, batch: UploadBatch, log) -> None:
    """Best-effort removal of files stored by a failed request"""
    targets = batch.cleanup_targets
    if not targets:
        return
    log.info(f"Cleaning up {len(targets)} uploaded files due to error")
    try:
        result = await storage.delete_files(targets)
        if result["failed"]:
            log.warning(f"Failed to clean up {len(result['failed'])} files: {result['failed']}")
    except Exception as cleanup_error:
        log.error(f"Error during file cleanup: {cleanup_error}")


# ----------------------------------------------------------------------
# Collection routes
# ----------------------------------------------------------------------

@router.get("")
async def get_all_trade_debtors(
    page: int = Query(DEFAULT_PAGE),
    limit: int = Query(DEFAULT_LIMIT),
    search: str = Query(""),
    status: str = Query(""),
    classification: str = Query(""),
    sort_by: str = Query(DEFAULT_SORT_BY, alias="sortBy"),
    sort_order: str = Query(DEFAULT_SORT_ORDER, alias="sortOrder"),
    service: TradeDebtorService = Depends(get_trade_debtor_service)
):
    """List trade debtors"""
    options = ListOptions(
        page=page,
        limit=limit,
        search=search.strip(),
        status=status.strip(),
        classification=classification.strip(),
        sort_by=sort_by.strip(),
        sort_order=sort_order.strip(),
    )
    result = await service.get_all_trade_debtors(options)
    return JsonView.paginated("Trade debtors fetched successfully", result["tradeDebtors"], result["pagination"])


@router.get("/active")
async def get_active_debtors_list(service: TradeDebtorService = Depends(get_trade_debtor_service)):
    """Active debtors list"""
    debtors = await service.get_active_debtors_list()
    return JsonView.success("Active debtors list fetched successfully", debtors)


@router.get("/search")
async def search_debtors(
    q: Optional[str] = Query(None, description="Name, code or short name fragment"),
    service: TradeDebtorService = Depends(get_trade_debtor_service)
):
    """Search active debtors"""
    if not q or len(q.strip()) < MIN_SEARCH_LENGTH:
        raise create_app_error(
            f"Search term must be at least {MIN_SEARCH_LENGTH} characters long",
            400,
            ErrorCode.INVALID_SEARCH_TERM
        )
    debtors = await service.search_debtors(q.strip())
    return JsonView.success("Search results fetched successfully", debtors)


@router.get("/statistics")
async def get_debtor_statistics(service: TradeDebtorService = Depends(get_trade_debtor_service)):
    """Debtor statistics"""
    statistics = await service.get_debtor_statistics()
    return JsonView.success("Debtor statistics fetched successfully", statistics)


@router.post("", status_code=201)
async def create_trade_debtor(
    request: Request,
    admin_id: str = Depends(get_current_admin),
    service: TradeDebtorService = Depends(get_trade_debtor_service),
    storage: StorageService = Depends(get_storage_service)
):
    """
    Create a trade debtor.

    Accepts JSON, or multipart form data where structured fields are JSON
    text and documents arrive under vatGstDetails.documents,
    kycDetails.documents or file/files/documents. Stored files are removed
    again if any later step fails.
    """
    log = logger.bind(admin=admin_id)
    body, batch = await read_request_payload(request, storage)
    log.debug(f"Create request fields: {sorted(body)}; files: {batch.total}")

    try:
        check_required_fields(body)
        payload = normalize_create_payload(strip_internal_tags(dict(body)))
        validate_create_payload(payload)

        vat_gst_details, kyc_details, general_documents = classify_create_uploads(
            batch, payload.get("vatGstDetails"), payload.get("kycDetails")
        )

        debtor_data = {
            "accountType": clean_string(payload.get("accountType")),
            "title": clean_string(payload["title"]),
            "accountCode": clean_string(payload["accountCode"], upper=True),
            "customerName": clean_string(payload["customerName"]),
            "classification": clean_string(payload.get("classification")),
            "shortName": clean_string(payload.get("shortName")),
            "parentGroup": clean_string(payload.get("parentGroup")),
            "remarks": clean_string(payload.get("remarks")),
            "acDefinition": payload.get("acDefinition"),
            "limitsMargins": payload.get("limitsMargins"),
            "addresses": payload["addresses"],
            "employees": payload["employees"],
            "vatGstDetails": vat_gst_details,
            "bankDetails": payload.get("bankDetails"),
            "kycDetails": kyc_details,
            "generalDocuments": general_documents,
        }

        trade_debtor = await service.create_trade_debtor(debtor_data, admin_id)
    except Exception as e:
        log.error(f"Error creating trade debtor: {e}")
        await _cleanup_uploads(storage, batch, log)
        raise

    return JsonView.success(
        "Trade debtor created successfully",
        trade_debtor,
        uploadedFiles=create_upload_summary(batch, vat_gst_details, general_documents)
    )


@router.post("/bulk-update-status")
async def bulk_update_status(
    request: Request,
    admin_id: str = Depends(get_current_admin),
    service: TradeDebtorService = Depends(get_trade_debtor_service)
):
    """Set one status on many debtors; items fail independently"""
    body = await _json_body(request)
    ids = _require_ids(body)

    status = body.get("status")
    if status not in DebtorStatus.ALL:
        raise create_app_error(
            "Valid status is required (active, inactive, suspended)",
            400,
            ErrorCode.INVALID_STATUS
        )

    results = []
    for debtor_id in ids:
        try:
            updated = await service.update_trade_debtor(
                debtor_id,
                {"status": status, "isActive": status == DebtorStatus.ACTIVE},
                admin_id
            )
            updated.pop("_filesManagement", None)
            results.append({"id": debtor_id, "success": True, "data": updated})
        except Exception as e:
            logger.bind(admin=admin_id).warning(f"Bulk status update failed for {debtor_id}: {e}")
            message = e.message if isinstance(e, AppError) else str(e)
            results.append({"id": debtor_id, "success": False, "error": message})

    return JsonView.success("Bulk status update completed", results)


@router.post("/bulk-delete")
async def bulk_delete_debtors(
    request: Request,
    admin_id: str = Depends(get_current_admin),
    service: TradeDebtorService = Depends(get_trade_debtor_service)
):
    """Soft delete many debtors; items fail independently"""
    body = await _json_body(request)
    ids = _require_ids(body)

    results = []
    for debtor_id in ids:
        try:
            deleted = await service.delete_trade_debtor(debtor_id, admin_id)
            results.append({"id": debtor_id, "success": True, "data": deleted})
        except Exception as e:
            logger.bind(admin=admin_id).warning(f"Bulk delete failed for {debtor_id}: {e}")
            message = e.message if isinstance(e, AppError) else str(e)
            results.append({"id": debtor_id, "success": False, "error": message})

    return JsonView.success("Bulk delete completed", results)


# ----------------------------------------------------------------------
# Item routes
# ----------------------------------------------------------------------

@router.get("/{debtor_id}")
async def get_trade_debtor_by_id(debtor_id: str, service: TradeDebtorService = Depends(get_trade_debtor_service)):
    """Get a trade debtor"""
    trade_debtor = await service.get_trade_debtor_by_id(_require_id(debtor_id))
    return JsonView.success("Trade debtor fetched successfully", trade_debtor)


@router.api_route("/{debtor_id}", methods=["PUT", "PATCH"])
async def update_trade_debtor(
    debtor_id: str,
    request: Request,
    admin_id: str = Depends(get_current_admin),
    service: TradeDebtorService = Depends(get_trade_debtor_service),
    storage: StorageService = Depends(get_storage_service)
):
    """
    Partially update a trade debtor.

    Merge directives (multipart or JSON):
    - replaceVatDocuments / replaceKycDocuments: new uploads replace stored documents
    - removeVatDocuments / removeKycDocuments: document id or list of ids to drop
    Without a replace flag new uploads are added to the stored documents.
    """
    debtor_id = _require_id(debtor_id)
    log = logger.bind(admin=admin_id)
    body, batch = await read_request_payload(request, storage)
    log.info(f"Update request for trade debtor {debtor_id}: fields {sorted(body)}; files: {batch.total}")

    try:
        update = apply_update_uploads(strip_internal_tags(dict(body)), batch)
        normalize_update_payload(update)
        validate_update_payload(update)
        strip_client_directives(update)

        trade_debtor = await service.update_trade_debtor(debtor_id, update, admin_id)
    except Exception as e:
        log.error(f"Error updating trade debtor {debtor_id}: {e}")
        await _cleanup_uploads(storage, batch, log)
        raise

    files_management = trade_debtor.pop("_filesManagement", None) or {}
    response = JsonView.success("Trade debtor updated successfully", trade_debtor)

    if batch.total > 0:
        response["filesUploaded"] = update_upload_summary(batch)

    files_deleted = files_management.get("filesDeleted", 0)
    if files_deleted > 0:
        failed = files_management.get("filesFailedToDelete", 0)
        response["filesManagement"] = {
            "oldFilesDeleted": files_deleted,
            "filesFailedToDelete": failed,
            "message": f"{files_deleted} old files were removed from storage",
        }
        if failed > 0:
            response["filesManagement"]["warning"] = f"{failed} files could not be deleted from storage"

    return response


@router.delete("/{debtor_id}")
async def delete_trade_debtor(
    debtor_id: str,
    admin_id: str = Depends(get_current_admin),
    service: TradeDebtorService = Depends(get_trade_debtor_service)
):
    """Soft delete a trade debtor"""
    deleted = await service.delete_trade_debtor(_require_id(debtor_id), admin_id)
    return JsonView.success("Trade debtor deleted successfully", deleted)


@router.delete("/{debtor_id}/hard-delete")
async def hard_delete_trade_debtor(
    debtor_id: str,
    admin_id: str = Depends(get_current_admin),
    service: TradeDebtorService = Depends(get_trade_debtor_service)
):
    """Permanently delete a trade debtor and its stored files"""
    debtor_id = _require_id(debtor_id)
    log = logger.bind(admin=admin_id)
    log.info(f"Processing hard delete request for trade debtor: {debtor_id}")

    result = await service.hard_delete_trade_debtor(debtor_id)
    files = result.get("filesDeleted") or {}

    response = {
        "success": True,
        "message": result["message"],
        "filesDeleted": {
            "total": files.get("total", 0),
            "successful": files.get("successful", 0),
            "failed": files.get("failed", 0),
        },
    }

    if files.get("total", 0) > 0:
        response["filesDeleted"]["details"] = {
            "successfulKeys": files.get("successfulKeys", []),
            "failedKeys": files.get("failedKeys", []),
        }
        if files.get("failed", 0) > 0:
            response["warning"] = f"{files['failed']} files could not be deleted from storage"
            if files.get("errors"):
                response["s3Errors"] = files["errors"]

    log.info(
        f"Hard delete completed for trade debtor {debtor_id}: "
        f"{files.get('successful', 0)}/{files.get('total', 0)} files deleted"
    )
    return response


@router.api_route("/{debtor_id}/toggle-status", methods=["PUT", "PATCH"])
async def toggle_trade_debtor_status(
    debtor_id: str,
    admin_id: str = Depends(get_current_admin),
    service: TradeDebtorService = Depends(get_trade_debtor_service)
):
    """Flip a debtor between active and inactive"""
    updated = await service.toggle_status(_require_id(debtor_id), admin_id)
    return JsonView.success("Trade debtor status updated successfully", updated)
