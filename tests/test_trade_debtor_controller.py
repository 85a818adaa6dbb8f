"""
Tests for the trade debtor HTTP handlers

The persistence service and file storage are in-memory fakes (see conftest),
so these tests cover request parsing, validation, upload classification,
directive tagging, cleanup and response shaping.
"""

import json

import pytest

from trade_debtors.config import config
from trade_debtors.dependencies import get_current_admin
from trade_debtors.main import app
from trade_debtors.utils.constants import DebtorStatus, ErrorCode
from trade_debtors.utils.errors import create_app_error

from factories import ADMIN_ID, valid_address, valid_create_body

BASE = config.api.prefix
HEADERS = {"X-Admin-Id": ADMIN_ID}


def form_fields(body):
    """Multipart clients send structured fields as JSON text"""
    return {k: json.dumps(v) if isinstance(v, (list, dict)) else v for k, v in body.items()}


def pdf(name):
    return (name, b"%PDF-1.4 test", "application/pdf")


def seed(fake_service, debtor_id="d1", **fields):
    debtor = {"id": debtor_id, "accountCode": "AC1", "customerName": "Seeded", "status": DebtorStatus.ACTIVE}
    debtor.update(fields)
    fake_service.debtors[debtor_id] = debtor
    return debtor


class TestCreate:

    def test_create_json(self, client, fake_service):
        response = client.post(BASE, json=valid_create_body(), headers=HEADERS)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Trade debtor created successfully"
        assert body["data"]["id"] == "new-id"
        assert body["uploadedFiles"] == {"total": 0, "vatGstDocuments": 0, "kycDocuments": 0, "generalDocuments": 0}

        _, data, admin = fake_service.last_call("create")
        assert admin == ADMIN_ID
        assert data["generalDocuments"] == []
        assert data["vatGstDetails"] == {}
        assert data["kycDetails"] == []

    @pytest.mark.parametrize("missing", ["accountCode", "customerName", "title"])
    def test_required_fields_missing(self, client, fake_service, missing):
        body = valid_create_body()
        del body[missing]
        response = client.post(BASE, json=body, headers=HEADERS)

        assert response.status_code == 400
        assert response.json()["errorCode"] == ErrorCode.REQUIRED_FIELDS_MISSING
        assert fake_service.calls == []

    def test_account_code_trimmed_and_uppercased(self, client, fake_service):
        body = valid_create_body(accountCode=" ac1 ", customerName="  Al Noor  ")
        response = client.post(BASE, json=body, headers=HEADERS)

        assert response.status_code == 201
        _, data, _ = fake_service.last_call("create")
        assert data["accountCode"] == "AC1"
        assert data["customerName"] == "Al Noor"

    @pytest.mark.parametrize("field,code", [
        ("addresses", ErrorCode.MISSING_ADDRESS),
        ("employees", ErrorCode.MISSING_EMPLOYEE),
    ])
    def test_missing_collections(self, client, field, code):
        response = client.post(BASE, json=valid_create_body(**{field: []}), headers=HEADERS)
        assert response.status_code == 400
        assert response.json()["errorCode"] == code

    def test_incomplete_address(self, client):
        address = valid_address()
        del address["phoneNumber2"]
        response = client.post(BASE, json=valid_create_body(addresses=[address]), headers=HEADERS)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["errorCode"] == ErrorCode.INVALID_ADDRESS_DATA
        assert body["timestamp"]

    def test_invalid_json_field_cleans_up_uploads(self, client, fake_service, fake_storage):
        fields = form_fields(valid_create_body())
        fields["employees"] = "[{not json"
        response = client.post(
            BASE,
            data=fields,
            files=[("vatGstDetails.documents", pdf("vat.pdf"))],
            headers=HEADERS,
        )

        assert response.status_code == 400
        body = response.json()
        assert body["errorCode"] == ErrorCode.INVALID_JSON_FORMAT
        assert body["details"] == {"field": "employees"}
        assert fake_storage.all_deleted == ["test/vatGstDetails.documents/vat.pdf"]
        assert fake_service.calls == []

    def test_multipart_kyc_files_form_one_entry(self, client, fake_service):
        response = client.post(
            BASE,
            data=form_fields(valid_create_body()),
            files=[
                ("kycDetails.documents", pdf("a.pdf")),
                ("kycDetails.documents", pdf("b.pdf")),
                ("kycDetails.documents", pdf("c.pdf")),
            ],
            headers=HEADERS,
        )

        assert response.status_code == 201
        _, data, _ = fake_service.last_call("create")
        assert len(data["kycDetails"]) == 1
        assert data["kycDetails"][0]["documentType"] == "General"
        assert len(data["kycDetails"][0]["documents"]) == 3
        assert response.json()["uploadedFiles"]["kycDocuments"] == 3

    def test_multipart_general_and_vat_documents(self, client, fake_service):
        body = valid_create_body(vatGstDetails={"vatNumber": "VAT-9"})
        response = client.post(
            BASE,
            data=form_fields(body),
            files=[
                ("vatGstDetails.documents", pdf("vat.pdf")),
                ("file", pdf("misc.pdf")),
                ("documents", pdf("other.pdf")),
            ],
            headers=HEADERS,
        )

        assert response.status_code == 201
        _, data, _ = fake_service.last_call("create")
        assert data["vatGstDetails"]["vatNumber"] == "VAT-9"
        assert [d["fileName"] for d in data["vatGstDetails"]["documents"]] == ["vat.pdf"]
        assert [d["fileName"] for d in data["generalDocuments"]] == ["misc.pdf", "other.pdf"]
        assert data["generalDocuments"][0]["s3Key"] == "test/file/misc.pdf"
        assert response.json()["uploadedFiles"] == {
            "total": 3,
            "vatGstDocuments": 1,
            "kycDocuments": 0,
            "generalDocuments": 2,
        }

    def test_service_failure_cleans_up_uploads(self, client, fake_service, fake_storage):
        fake_service.fail_create = create_app_error(
            "Account code already exists", 400, ErrorCode.DUPLICATE_ACCOUNT_CODE
        )
        response = client.post(
            BASE,
            data=form_fields(valid_create_body()),
            files=[("files", pdf("a.pdf")), ("kycDetails.documents", pdf("k.pdf"))],
            headers=HEADERS,
        )

        assert response.status_code == 400
        assert response.json()["errorCode"] == ErrorCode.DUPLICATE_ACCOUNT_CODE
        assert sorted(fake_storage.all_deleted) == ["test/files/a.pdf", "test/kycDetails.documents/k.pdf"]

    def test_requires_admin(self, client):
        app.dependency_overrides.pop(get_current_admin)
        response = client.post(BASE, json=valid_create_body())

        assert response.status_code == 401
        assert response.json()["errorCode"] == ErrorCode.UNAUTHORIZED


class TestUpdate:

    def test_replace_vat_documents(self, client, fake_service):
        seed(fake_service)
        response = client.put(
            f"{BASE}/d1",
            data={"replaceVatDocuments": "true", "remarks": "  new remark  "},
            files=[("vatGstDetails.documents", pdf("new.pdf"))],
            headers=HEADERS,
        )

        assert response.status_code == 200
        _, debtor_id, data, admin = fake_service.last_call("update")
        assert debtor_id == "d1"
        assert admin == ADMIN_ID
        assert data["_replaceVatDocuments"] is True
        assert "replaceVatDocuments" not in data
        assert data["remarks"] == "new remark"
        assert [d["fileName"] for d in data["vatGstDetails"]["documents"]] == ["new.pdf"]
        assert response.json()["filesUploaded"] == {
            "vatDocuments": 1,
            "kycDocuments": 0,
            "generalDocuments": 0,
            "total": 1,
        }

    def test_removal_directives_forwarded_as_tags(self, client, fake_service):
        seed(fake_service)
        response = client.put(
            f"{BASE}/d1",
            json={"removeVatDocuments": ["doc-1", "doc-2"], "removeKycDocuments": "kyc-1"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        _, _, data, _ = fake_service.last_call("update")
        assert data["_removeVatDocuments"] == ["doc-1", "doc-2"]
        assert data["kycDetails"] == [{"_removeDocuments": ["kyc-1"]}]
        for directive in ("removeVatDocuments", "removeKycDocuments", "replaceVatDocuments", "replaceKycDocuments"):
            assert directive not in data
        assert "filesUploaded" not in response.json()

    def test_client_sent_internal_tags_are_discarded(self, client, fake_service, fake_storage):
        seed(fake_service)
        response = client.put(
            f"{BASE}/d1",
            json={
                "_replaceVatDocuments": True,
                "_removeVatDocuments": ["a"],
                "_filesManagement": {"filesDeleted": 9},
                "kycDetails": [{"documentType": "Passport", "_replaceDocuments": True, "_removeDocuments": ["k"]}],
                "remarks": "x",
            },
            headers=HEADERS,
        )

        assert response.status_code == 200
        _, _, data, _ = fake_service.last_call("update")
        for tag in ("_replaceVatDocuments", "_removeVatDocuments", "_filesManagement"):
            assert tag not in data
        assert data["kycDetails"] == [{"documentType": "Passport"}]
        assert data["remarks"] == "x"
        assert fake_storage.deleted == []

    def test_replace_tag_only_follows_the_client_flag(self, client, fake_service):
        seed(fake_service)
        client.put(
            f"{BASE}/d1",
            data={"_replaceVatDocuments": "true"},
            files=[("vatGstDetails.documents", pdf("new.pdf"))],
            headers=HEADERS,
        )

        _, _, data, _ = fake_service.last_call("update")
        assert "_replaceVatDocuments" not in data
        assert len(data["vatGstDetails"]["documents"]) == 1

    def test_general_files_appended_to_vat(self, client, fake_service):
        seed(fake_service)
        response = client.patch(
            f"{BASE}/d1",
            data={"vatGstDetails": json.dumps({"vatNumber": "V7"})},
            files=[("file", pdf("misc.pdf"))],
            headers=HEADERS,
        )

        assert response.status_code == 200
        _, _, data, _ = fake_service.last_call("update")
        assert data["vatGstDetails"]["vatNumber"] == "V7"
        assert [d["fileName"] for d in data["vatGstDetails"]["documents"]] == ["misc.pdf"]
        assert "generalDocuments" not in data
        assert response.json()["filesUploaded"]["generalDocuments"] == 1

    def test_unparseable_json_forwarded_as_text(self, client, fake_service):
        seed(fake_service)
        response = client.put(f"{BASE}/d1", data={"bankDetails": "[{broken"}, headers=HEADERS)

        assert response.status_code == 200
        _, _, data, _ = fake_service.last_call("update")
        assert data["bankDetails"] == "[{broken"

    def test_postal_address_fields_are_enough(self, client, fake_service):
        seed(fake_service)
        address = {"streetAddress": "1 Road", "city": "Dubai", "country": "UAE", "zipCode": "0"}
        response = client.put(f"{BASE}/d1", json={"addresses": [address]}, headers=HEADERS)
        assert response.status_code == 200

    def test_incomplete_update_address(self, client, fake_service):
        seed(fake_service)
        response = client.put(f"{BASE}/d1", json={"addresses": [{"city": "Dubai"}]}, headers=HEADERS)

        assert response.status_code == 400
        assert response.json()["errorCode"] == ErrorCode.INVALID_ADDRESS_DATA

    def test_files_management_reported(self, client, fake_service):
        seed(fake_service)
        fake_service.files_management = {"filesDeleted": 2, "filesFailedToDelete": 1, "deletedKeys": ["a", "b"]}
        response = client.put(f"{BASE}/d1", json={"replaceVatDocuments": True}, headers=HEADERS)

        body = response.json()
        assert response.status_code == 200
        assert "_filesManagement" not in body["data"]
        assert body["filesManagement"] == {
            "oldFilesDeleted": 2,
            "filesFailedToDelete": 1,
            "message": "2 old files were removed from storage",
            "warning": "1 files could not be deleted from storage",
        }

    def test_no_files_management_when_nothing_deleted(self, client, fake_service):
        seed(fake_service)
        response = client.put(f"{BASE}/d1", json={"remarks": "x"}, headers=HEADERS)
        assert "filesManagement" not in response.json()

    def test_unknown_debtor_cleans_up_uploads(self, client, fake_storage):
        response = client.put(
            f"{BASE}/missing",
            data={"remarks": "x"},
            files=[("vatGstDetails.documents", pdf("v.pdf"))],
            headers=HEADERS,
        )

        assert response.status_code == 404
        assert response.json()["errorCode"] == ErrorCode.DEBTOR_NOT_FOUND
        assert fake_storage.all_deleted == ["test/vatGstDetails.documents/v.pdf"]

    def test_blank_id(self, client):
        response = client.put(f"{BASE}/%20", json={"remarks": "x"}, headers=HEADERS)
        assert response.status_code == 400
        assert response.json()["errorCode"] == ErrorCode.MISSING_ID


class TestReads:

    def test_list_defaults(self, client, fake_service):
        seed(fake_service)
        response = client.get(BASE)

        assert response.status_code == 200
        body = response.json()
        assert body["pagination"]["currentPage"] == 1
        assert body["pagination"]["itemsPerPage"] == 10
        assert len(body["data"]) == 1

        _, options = fake_service.last_call("list")
        assert options.sort_by == "createdAt"
        assert options.sort_order == "desc"
        assert options.search == ""

    def test_list_query_parameters(self, client, fake_service):
        client.get(BASE, params={
            "page": 3, "limit": 5, "search": " noor ", "status": "active",
            "classification": "Retail", "sortBy": "customerName", "sortOrder": "asc",
        })
        _, options = fake_service.last_call("list")
        assert (options.page, options.limit) == (3, 5)
        assert options.search == "noor"
        assert options.status == "active"
        assert options.classification == "Retail"
        assert (options.sort_by, options.sort_order) == ("customerName", "asc")

    def test_invalid_page_parameter(self, client):
        response = client.get(BASE, params={"page": "first"})
        assert response.status_code == 400
        assert response.json()["errorCode"] == ErrorCode.VALIDATION_ERROR

    def test_get_by_id(self, client, fake_service):
        seed(fake_service)
        response = client.get(f"{BASE}/d1")
        assert response.status_code == 200
        assert response.json()["data"]["accountCode"] == "AC1"

    def test_get_unknown(self, client):
        response = client.get(f"{BASE}/nope")
        assert response.status_code == 404
        assert response.json()["errorCode"] == ErrorCode.DEBTOR_NOT_FOUND

    def test_get_blank_id(self, client):
        response = client.get(f"{BASE}/%20")
        assert response.status_code == 400
        assert response.json()["errorCode"] == ErrorCode.MISSING_ID

    @pytest.mark.parametrize("term", [None, "", "a", " b "])
    def test_search_term_too_short(self, client, fake_service, term):
        params = {} if term is None else {"q": term}
        response = client.get(f"{BASE}/search", params=params)

        assert response.status_code == 400
        assert response.json()["errorCode"] == ErrorCode.INVALID_SEARCH_TERM
        assert fake_service.calls == []

    def test_search(self, client, fake_service):
        response = client.get(f"{BASE}/search", params={"q": " ab "})
        assert response.status_code == 200
        assert fake_service.last_call("search") == ("search", "ab")

    def test_active_list(self, client, fake_service):
        seed(fake_service, "d1")
        seed(fake_service, "d2", status=DebtorStatus.INACTIVE)
        response = client.get(f"{BASE}/active")
        assert [d["id"] for d in response.json()["data"]] == ["d1"]

    def test_statistics(self, client, fake_service):
        seed(fake_service)
        response = client.get(f"{BASE}/statistics")
        assert response.status_code == 200
        assert response.json()["data"]["general"]["totalDebtors"] == 1


class TestStatusAndDelete:

    def test_toggle_status(self, client, fake_service):
        seed(fake_service)
        response = client.patch(f"{BASE}/d1/toggle-status", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == DebtorStatus.INACTIVE

    def test_soft_delete(self, client, fake_service):
        seed(fake_service)
        response = client.delete(f"{BASE}/d1", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["data"]["isActive"] is False

    def test_hard_delete_without_files(self, client, fake_service):
        seed(fake_service)
        response = client.delete(f"{BASE}/d1/hard-delete", headers=HEADERS)

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Trade debtor permanently deleted",
            "filesDeleted": {"total": 0, "successful": 0, "failed": 0},
        }

    def test_hard_delete_reports_failed_files(self, client, fake_service):
        seed(fake_service)
        fake_service.hard_delete_result = {
            "message": "Trade debtor permanently deleted",
            "filesDeleted": {
                "total": 3,
                "successful": 2,
                "failed": 1,
                "successfulKeys": ["k1", "k2"],
                "failedKeys": ["k3"],
                "errors": [{"key": "k3", "message": "AccessDenied"}],
            },
        }
        body = client.delete(f"{BASE}/d1/hard-delete", headers=HEADERS).json()

        assert body["filesDeleted"] == {
            "total": 3,
            "successful": 2,
            "failed": 1,
            "details": {"successfulKeys": ["k1", "k2"], "failedKeys": ["k3"]},
        }
        assert body["warning"] == "1 files could not be deleted from storage"
        assert body["s3Errors"] == [{"key": "k3", "message": "AccessDenied"}]


class TestBulk:

    def test_bulk_status_partial_failure(self, client, fake_service):
        seed(fake_service, "A")
        response = client.post(
            f"{BASE}/bulk-update-status",
            json={"ids": ["A", "B"], "status": DebtorStatus.SUSPENDED},
            headers=HEADERS,
        )

        assert response.status_code == 200
        results = response.json()["data"]
        assert [r["id"] for r in results] == ["A", "B"]
        assert results[0]["success"] is True
        assert results[0]["data"]["status"] == DebtorStatus.SUSPENDED
        assert "_filesManagement" not in results[0]["data"]
        assert results[1] == {"id": "B", "success": False, "error": "Trade debtor not found"}

        _, _, data, _ = fake_service.last_call("update")
        assert data == {"status": DebtorStatus.SUSPENDED, "isActive": False}

    @pytest.mark.parametrize("body", [{}, {"ids": []}, {"ids": "A"}])
    def test_bulk_status_requires_ids(self, client, body):
        response = client.post(f"{BASE}/bulk-update-status", json={**body, "status": "active"}, headers=HEADERS)
        assert response.status_code == 400
        assert response.json()["errorCode"] == ErrorCode.MISSING_IDS

    @pytest.mark.parametrize("status", [None, "deleted", "ACTIVE"])
    def test_bulk_status_requires_valid_status(self, client, status):
        response = client.post(f"{BASE}/bulk-update-status", json={"ids": ["A"], "status": status}, headers=HEADERS)
        assert response.status_code == 400
        assert response.json()["errorCode"] == ErrorCode.INVALID_STATUS

    def test_bulk_delete(self, client, fake_service):
        seed(fake_service, "A")
        seed(fake_service, "C")
        response = client.post(f"{BASE}/bulk-delete", json={"ids": ["A", "B", "C"]}, headers=HEADERS)

        results = response.json()["data"]
        assert response.status_code == 200
        assert [r["success"] for r in results] == [True, False, True]
        assert fake_service.debtors["C"]["status"] == DebtorStatus.INACTIVE

    def test_bulk_delete_requires_ids(self, client):
        response = client.post(f"{BASE}/bulk-delete", json={"ids": None}, headers=HEADERS)
        assert response.json()["errorCode"] == ErrorCode.MISSING_IDS
