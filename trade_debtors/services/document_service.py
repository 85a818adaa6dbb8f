"""
Document Service Module
Maps uploaded files to document records and resolves the merge policy

Uploads are grouped by form field:
- vatGstDetails.documents -> vatGstDetails.documents
- kycDetails.documents    -> documents of the first KYC entry
- file / files / documents -> generalDocuments on create,
                              appended to vatGstDetails.documents on update

On update the handler never reads stored documents. It forwards the new batch
plus directive tags, and the persistence service performs the union,
replacement or removal.
"""

from typing import Any, Dict, List, Optional, Tuple

from ..models.trade_debtor import DocumentRecord
from ..models.upload import UploadBatch, UploadedFile
from ..utils.constants import (
    CLIENT_DIRECTIVES,
    DEFAULT_KYC_DOCUMENT_TYPE,
    GENERAL_DOCUMENT_FIELDS,
    INTERNAL_KYC_TAGS,
    INTERNAL_TAGS,
    KYC_DOCUMENTS_FIELD,
    REMOVE_KYC_DOCUMENTS,
    REMOVE_KYC_TAG,
    REMOVE_VAT_DOCUMENTS,
    REMOVE_VAT_TAG,
    REPLACE_KYC_DOCUMENTS,
    REPLACE_KYC_TAG,
    REPLACE_VAT_DOCUMENTS,
    REPLACE_VAT_TAG,
    VAT_DOCUMENTS_FIELD,
)
from ..utils.helpers import as_list, is_truthy_flag, parse_json_field
from ..utils.logger import logger


def build_document(upload: UploadedFile) -> Dict[str, Any]:
    """Document record for one stored upload, stamped with the processing time"""
    return DocumentRecord(
        file_name=upload.original_name,
        file_path=upload.storage_path or "",
        file_type=upload.mime_type,
        s3_key=upload.key,
    ).to_payload()


def build_documents(uploads: List[UploadedFile]) -> List[Dict[str, Any]]:
    return [build_document(upload) for upload in uploads]


def general_uploads(batch: UploadBatch) -> List[UploadedFile]:
    uploads: List[UploadedFile] = []
    for field in GENERAL_DOCUMENT_FIELDS:
        uploads.extend(batch.get(field))
    return uploads


def classify_create_uploads(
    batch: UploadBatch,
    vat_gst_details: Optional[Dict[str, Any]],
    kyc_details: Optional[List[Any]],
) -> Tuple[Dict[str, Any], List[Any], List[Dict[str, Any]]]:
    """
    Attach uploads of a create request to their sections.

    Returns:
        (vatGstDetails, kycDetails, generalDocuments)
    """
    vat = dict(vat_gst_details) if isinstance(vat_gst_details, dict) else {}
    kyc = list(kyc_details) if isinstance(kyc_details, list) else []

    vat_uploads = batch.get(VAT_DOCUMENTS_FIELD)
    if vat_uploads:
        vat["documents"] = build_documents(vat_uploads)

    kyc_uploads = batch.get(KYC_DOCUMENTS_FIELD)
    if kyc_uploads:
        documents = build_documents(kyc_uploads)
        if kyc and isinstance(kyc[0], dict):
            kyc[0] = {**kyc[0], "documents": documents}
        else:
            kyc.insert(0, {"documentType": DEFAULT_KYC_DOCUMENT_TYPE, "documents": documents})

    general_documents = build_documents(general_uploads(batch))
    return vat, kyc, general_documents


def _first_kyc_entry(update: Dict[str, Any]) -> Dict[str, Any]:
    """First KYC entry of the update, creating the list or entry as needed"""
    kyc = parse_json_field(update.get("kycDetails"), "kycDetails", strict=False)
    if isinstance(kyc, dict):
        kyc = [kyc]
    elif not isinstance(kyc, list):
        kyc = []
    if not kyc or not isinstance(kyc[0], dict):
        kyc.insert(0, {})
    update["kycDetails"] = kyc
    return kyc[0]


def _vat_section(update: Dict[str, Any]) -> Dict[str, Any]:
    vat = parse_json_field(update.get("vatGstDetails"), "vatGstDetails", strict=False)
    if not isinstance(vat, dict):
        vat = {}
    update["vatGstDetails"] = vat
    return vat


def apply_update_uploads(update: Dict[str, Any], batch: UploadBatch) -> Dict[str, Any]:
    """Attach uploads of an update request and tag merge directives in place"""
    vat_uploads = batch.get(VAT_DOCUMENTS_FIELD)
    if vat_uploads:
        vat = _vat_section(update)
        vat["documents"] = build_documents(vat_uploads)
        if is_truthy_flag(update.get(REPLACE_VAT_DOCUMENTS)):
            update[REPLACE_VAT_TAG] = True
            logger.info(f"Replacing VAT documents with {len(vat_uploads)} new files")
        else:
            logger.info(f"Adding {len(vat_uploads)} new VAT documents")

    remove_vat = as_list(update.get(REMOVE_VAT_DOCUMENTS))
    if remove_vat:
        update[REMOVE_VAT_TAG] = remove_vat
        logger.info(f"Removing VAT documents: {remove_vat}")

    kyc_uploads = batch.get(KYC_DOCUMENTS_FIELD)
    if kyc_uploads:
        entry = _first_kyc_entry(update)
        entry["documents"] = build_documents(kyc_uploads)
        if is_truthy_flag(update.get(REPLACE_KYC_DOCUMENTS)):
            entry[REPLACE_KYC_TAG] = True
            logger.info(f"Replacing KYC documents with {len(kyc_uploads)} new files")
        else:
            logger.info(f"Adding {len(kyc_uploads)} new KYC documents")

    remove_kyc = as_list(update.get(REMOVE_KYC_DOCUMENTS))
    if remove_kyc:
        _first_kyc_entry(update)[REMOVE_KYC_TAG] = remove_kyc
        logger.info(f"Removing KYC documents: {remove_kyc}")

    general = build_documents(general_uploads(batch))
    if general:
        vat = _vat_section(update)
        vat["documents"] = list(vat.get("documents") or []) + general
        logger.info(f"Added {len(general)} general documents to VAT section")

    return update


def strip_internal_tags(body: Dict[str, Any]) -> Dict[str, Any]:
    """Drop merge tags a client sent itself, including those inside KYC entries"""
    dropped = [key for key in INTERNAL_TAGS if body.pop(key, None) is not None]

    if body.get("kycDetails"):
        kyc = parse_json_field(body["kycDetails"], "kycDetails", strict=False)
        if isinstance(kyc, dict):
            kyc = [kyc]
        if isinstance(kyc, list):
            cleaned = []
            for entry in kyc:
                if isinstance(entry, dict):
                    dropped.extend(key for key in INTERNAL_KYC_TAGS if key in entry)
                    entry = {k: v for k, v in entry.items() if k not in INTERNAL_KYC_TAGS}
                cleaned.append(entry)
            body["kycDetails"] = cleaned

    if dropped:
        logger.warning(f"Ignoring client-supplied internal tags: {dropped}")
    return body


def strip_client_directives(update: Dict[str, Any]) -> Dict[str, Any]:
    for key in CLIENT_DIRECTIVES:
        update.pop(key, None)
    return update


def create_upload_summary(batch: UploadBatch, vat: Dict[str, Any], general_documents: List[Any]) -> Dict[str, int]:
    return {
        "total": batch.total,
        "vatGstDocuments": len(vat.get("documents") or []),
        "kycDocuments": batch.count(KYC_DOCUMENTS_FIELD),
        "generalDocuments": len(general_documents),
    }


def update_upload_summary(batch: UploadBatch) -> Dict[str, int]:
    return {
        "vatDocuments": batch.count(VAT_DOCUMENTS_FIELD),
        "kycDocuments": batch.count(KYC_DOCUMENTS_FIELD),
        "generalDocuments": batch.count(*GENERAL_DOCUMENT_FIELDS),
        "total": batch.total,
    }
