from __future__ import annotations

import pytest
from pydantic import ValidationError

from exportregistry import ErrorCode, ExporterRecord, RegistryCallError, Response


# -----------------------------------------------------------------------------
# Response tests
# -----------------------------------------------------------------------------


def test_response_success_wire_form() -> None:
    assert Response.success(True).to_wire() == {"type": "ok", "value": True}


def test_response_failure_wire_form_uses_numeric_code() -> None:
    response = Response.failure(ErrorCode.NOT_FOUND)

    assert response.is_err
    assert response.to_wire() == {"type": "err", "value": 3}


def test_response_rejects_ok_with_error_code() -> None:
    with pytest.raises(ValueError):
        Response(ok=True, value=True, error=ErrorCode.NOT_FOUND)


def test_response_rejects_err_without_code() -> None:
    with pytest.raises(ValueError):
        Response(ok=False)


def test_unwrap_raises_with_code() -> None:
    with pytest.raises(RegistryCallError, match="not authorized") as excinfo:
        Response.failure(ErrorCode.NOT_AUTHORIZED).unwrap()

    assert excinfo.value.code == 1


def test_response_is_frozen() -> None:
    response = Response.success(True)
    with pytest.raises(ValidationError):
        response.ok = False  # type: ignore[misc]


def test_error_code_values_are_stable() -> None:
    assert [int(code) for code in ErrorCode] == [1, 2, 3]
    assert ErrorCode.ALREADY_VERIFIED.message == "already verified"


# -----------------------------------------------------------------------------
# ExporterRecord tests
# -----------------------------------------------------------------------------


def test_record_accepts_wire_keys() -> None:
    record = ExporterRecord.from_wire(
        {
            "company-name": "Test Exporter",
            "country": "USA",
            "verification-date": 50,
            "is-active": True,
        }
    )

    assert record.company_name == "Test Exporter"
    assert record.verification_date == 50


def test_record_rejects_negative_verification_date() -> None:
    with pytest.raises(ValidationError):
        ExporterRecord(company_name="X", country="USA", verification_date=-1, is_active=True)


def test_deactivated_copies_every_field() -> None:
    record = ExporterRecord(company_name="X", country="USA", verification_date=5, is_active=True)

    inactive = record.deactivated()

    assert inactive.is_active is False
    assert inactive.model_dump(exclude={"is_active"}) == record.model_dump(exclude={"is_active"})
    assert record.is_active is True


def test_response_wire_form_renders_record_with_wire_keys() -> None:
    record = ExporterRecord(company_name="X", country="USA", verification_date=5, is_active=False)

    assert Response.success(record).to_wire() == {
        "type": "ok",
        "value": {
            "company-name": "X",
            "country": "USA",
            "verification-date": 5,
            "is-active": False,
        },
    }
