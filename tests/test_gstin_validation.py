"""Tests for GSTIN and credential field validation."""

import pytest

from gstbooks.domain.errors import ValidationFailure
from gstbooks.domain.services.gstin_validation import (
    is_valid_email,
    is_valid_gstin,
    is_valid_ip_address,
    is_valid_state_code,
    normalize_gstin,
    validate_credential_fields,
)


@pytest.mark.parametrize("gstin", ["22AAAAA0000A1Z5", "27AADCB2230M1ZP", " 36aabcu9603r1zm "])
def test_valid_gstins(gstin):
    assert is_valid_gstin(gstin)


@pytest.mark.parametrize("gstin", [
    "22AAAAA0000A1Z",      # 14 chars
    "22AAAAA0000A1Z55",    # 16 chars
    "22AAAAA0000A0Z5",     # entity code 0
    "22AAAAA0000A1X5",     # 14th char must be Z
    "AAAAAAA0000A1Z5",     # state code not numeric
    "",
    None,
])
def test_invalid_gstins(gstin):
    assert not is_valid_gstin(gstin)


def test_normalize_gstin():
    assert normalize_gstin(" 27aadcb2230m1zp ") == "27AADCB2230M1ZP"
    assert normalize_gstin(None) == ""


def test_state_code():
    assert is_valid_state_code("27")
    assert not is_valid_state_code("7")
    assert not is_valid_state_code("MH")


def test_email_and_ip():
    assert is_valid_email("a@b.co")
    assert not is_valid_email("not-an-email")
    assert not is_valid_email("a@b..c")
    assert not is_valid_email("two@@example.com")
    assert is_valid_ip_address("10.0.0.1")
    assert not is_valid_ip_address("256.1.1.1")


def test_validate_credential_fields_collects_every_error():
    with pytest.raises(ValidationFailure) as exc:
        validate_credential_fields("22AAAAA0000A1Z", "bad", "7", "1.2.3")
    fields = {e["field"] for e in exc.value.errors}
    assert fields == {"gstin", "email", "state_code", "ip_address"}


def test_validate_credential_fields_ok():
    validate_credential_fields("22AAAAA0000A1Z5", "a@b.co", "22")


def test_partial_validation_skips_missing_fields():
    validate_credential_fields(email="a@b.co", partial=True)
    with pytest.raises(ValidationFailure):
        validate_credential_fields(state_code="ABC", partial=True)
