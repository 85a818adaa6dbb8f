"""
Validation Service Module
Normalizes and validates trade debtor request payloads

Create is strict: any structured field that is not valid JSON fails the
request, and addresses need the full contact field set. Update is lenient:
unparseable fields are forwarded as received and addresses only need the
postal fields.
"""

from typing import Any, Dict, List

from ..utils.constants import (
    ADDRESS_REQUIRED_FIELDS,
    ADDRESS_UPDATE_REQUIRED_FIELDS,
    EMPLOYEE_REQUIRED_FIELDS,
    JSON_FIELDS,
    REQUIRED_CREATE_FIELDS,
    STRING_FIELDS,
    ErrorCode,
)
from ..utils.errors import create_app_error
from ..utils.helpers import clean_string, is_blank, parse_json_field


def normalize_create_payload(body: Dict[str, Any]) -> Dict[str, Any]:
    """Parse every structured field, failing on the first invalid one"""
    payload = dict(body)
    for field in JSON_FIELDS:
        payload[field] = parse_json_field(body.get(field), field, strict=True)
    return payload


def normalize_update_payload(update: Dict[str, Any]) -> Dict[str, Any]:
    """Parse supplied structured fields leniently and trim scalar fields"""
    for field in JSON_FIELDS:
        if update.get(field):
            update[field] = parse_json_field(update[field], field, strict=False)

    for field in STRING_FIELDS:
        if update.get(field) and isinstance(update[field], str):
            update[field] = clean_string(update[field], upper=field == "accountCode")

    return update


def _missing_fields(record: Any, required: List[str]) -> List[str]:
    if not isinstance(record, dict):
        return list(required)
    return [field for field in required if is_blank(record.get(field))]


def validate_addresses(addresses: List[Any], required: List[str]) -> None:
    for address in addresses:
        missing = _missing_fields(address, required)
        if missing:
            raise create_app_error(
                f"Address must include {', '.join(required)}",
                400,
                ErrorCode.INVALID_ADDRESS_DATA,
                details={"missing": missing}
            )


def validate_employees(employees: List[Any]) -> None:
    for employee in employees:
        missing = _missing_fields(employee, EMPLOYEE_REQUIRED_FIELDS)
        if missing:
            raise create_app_error(
                "Employee must include name, designation, email, and mobile",
                400,
                ErrorCode.INVALID_EMPLOYEE_DATA,
                details={"missing": missing}
            )


def check_required_fields(body: Dict[str, Any]) -> None:
    """accountCode, customerName and title must all be present"""
    if any(is_blank(body.get(field)) for field in REQUIRED_CREATE_FIELDS):
        raise create_app_error(
            "Required fields missing: accountCode, customerName, title",
            400,
            ErrorCode.REQUIRED_FIELDS_MISSING
        )


def validate_create_payload(payload: Dict[str, Any]) -> None:
    """Validate a normalized create payload"""
    addresses = payload.get("addresses")
    if not isinstance(addresses, list) or not addresses:
        raise create_app_error("At least one address is required", 400, ErrorCode.MISSING_ADDRESS)

    employees = payload.get("employees")
    if not isinstance(employees, list) or not employees:
        raise create_app_error("At least one employee contact is required", 400, ErrorCode.MISSING_EMPLOYEE)

    validate_addresses(addresses, ADDRESS_REQUIRED_FIELDS)
    validate_employees(employees)


def validate_update_payload(update: Dict[str, Any]) -> None:
    """Validate only the collections present in a normalized update"""
    if isinstance(update.get("addresses"), list):
        validate_addresses(update["addresses"], ADDRESS_UPDATE_REQUIRED_FIELDS)
    if isinstance(update.get("employees"), list):
        validate_employees(update["employees"])
