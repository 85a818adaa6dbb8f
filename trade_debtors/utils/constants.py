"""
Constants Module
Application-wide constants
"""

# Application Info
APP_NAME = "Trade Debtors API"
APP_VERSION = "1.0.0"

# Structured fields that multipart clients send as JSON text
JSON_FIELDS = [
    "addresses",
    "employees",
    "vatGstDetails",
    "bankDetails",
    "kycDetails",
    "acDefinition",
    "limitsMargins",
]

# Scalar fields trimmed on update
STRING_FIELDS = [
    "accountCode",
    "customerName",
    "title",
    "shortName",
    "parentGroup",
    "remarks",
]

REQUIRED_CREATE_FIELDS = ["accountCode", "customerName", "title"]

ADDRESS_REQUIRED_FIELDS = [
    "streetAddress",
    "city",
    "country",
    "zipCode",
    "phoneNumber1",
    "phoneNumber2",
    "email",
    "telephone",
    "website",
]
ADDRESS_UPDATE_REQUIRED_FIELDS = ["streetAddress", "city", "country", "zipCode"]
EMPLOYEE_REQUIRED_FIELDS = ["name", "designation", "email", "mobile"]

# Upload form fields
VAT_DOCUMENTS_FIELD = "vatGstDetails.documents"
KYC_DOCUMENTS_FIELD = "kycDetails.documents"
GENERAL_DOCUMENT_FIELDS = ["file", "files", "documents"]

# Client-supplied merge directives
REPLACE_VAT_DOCUMENTS = "replaceVatDocuments"
REPLACE_KYC_DOCUMENTS = "replaceKycDocuments"
REMOVE_VAT_DOCUMENTS = "removeVatDocuments"
REMOVE_KYC_DOCUMENTS = "removeKycDocuments"
CLIENT_DIRECTIVES = [
    REPLACE_VAT_DOCUMENTS,
    REPLACE_KYC_DOCUMENTS,
    REMOVE_VAT_DOCUMENTS,
    REMOVE_KYC_DOCUMENTS,
]

# Directive tags forwarded to the persistence service
REPLACE_VAT_TAG = "_replaceVatDocuments"
REMOVE_VAT_TAG = "_removeVatDocuments"
REPLACE_KYC_TAG = "_replaceDocuments"
REMOVE_KYC_TAG = "_removeDocuments"
FILES_MANAGEMENT_KEY = "_filesManagement"

# Set by the handler only; client-sent copies are discarded
INTERNAL_TAGS = [REPLACE_VAT_TAG, REMOVE_VAT_TAG, FILES_MANAGEMENT_KEY]
INTERNAL_KYC_TAGS = [REPLACE_KYC_TAG, REMOVE_KYC_TAG]

DEFAULT_KYC_DOCUMENT_TYPE = "General"

# List defaults
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
DEFAULT_SORT_BY = "createdAt"
DEFAULT_SORT_ORDER = "desc"
MIN_SEARCH_LENGTH = 2
SEARCH_RESULT_LIMIT = 10


# Error Codes
class ErrorCode:
    REQUIRED_FIELDS_MISSING = "REQUIRED_FIELDS_MISSING"
    INVALID_JSON_FORMAT = "INVALID_JSON_FORMAT"
    MISSING_ADDRESS = "MISSING_ADDRESS"
    MISSING_EMPLOYEE = "MISSING_EMPLOYEE"
    INVALID_ADDRESS_DATA = "INVALID_ADDRESS_DATA"
    INVALID_EMPLOYEE_DATA = "INVALID_EMPLOYEE_DATA"
    MISSING_ID = "MISSING_ID"
    INVALID_SEARCH_TERM = "INVALID_SEARCH_TERM"
    MISSING_IDS = "MISSING_IDS"
    INVALID_STATUS = "INVALID_STATUS"
    DUPLICATE_ACCOUNT_CODE = "DUPLICATE_ACCOUNT_CODE"
    DEBTOR_NOT_FOUND = "DEBTOR_NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    UNAUTHORIZED = "UNAUTHORIZED"
    FETCH_ERROR = "FETCH_ERROR"
    SEARCH_ERROR = "SEARCH_ERROR"
    STATS_ERROR = "STATS_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# Debtor Status
class DebtorStatus:
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"

    ALL = [ACTIVE, INACTIVE, SUSPENDED]


# Health Status
class HealthStatus:
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"
