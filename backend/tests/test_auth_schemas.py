"""
StudioGen Backend - Auth Request Validation Tests
===================================================

Identifier normalization, password policy and profile field rules.
"""

import pytest
from pydantic import ValidationError

from studiogen.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    SignupRequest,
    UpdateProfileRequest,
    validate_password_strength,
)


class TestPasswordPolicy:
    def test_strong_password_accepted(self):
        assert validate_password_strength("Sup3rSecret") == "Sup3rSecret"

    @pytest.mark.parametrize(
        "password, message",
        [
            ("Ab1", "at least 8 characters"),
            ("ALLUPPER123", "lowercase"),
            ("alllower123", "uppercase"),
            ("NoDigitsHere", "number"),
        ],
    )
    def test_weak_passwords_rejected(self, password, message):
        with pytest.raises(ValueError, match=message):
            validate_password_strength(password)


class TestSignupRequest:
    def test_email_is_normalized(self):
        request = SignupRequest(identifier="  Jane.Doe@Example.COM ", password="Sup3rSecret", fullName="Jane")
        assert request.identifier == "jane.doe@example.com"

    @pytest.mark.parametrize("phone", ["0912345678", "+84912345678", "09123456789"])
    def test_vietnamese_phone_numbers_accepted(self, phone):
        request = SignupRequest(identifier=phone, password="Sup3rSecret", fullName="Jane")
        assert request.identifier == phone

    @pytest.mark.parametrize("identifier", ["12345", "+1555123456", "not an email"])
    def test_other_identifiers_rejected(self, identifier):
        with pytest.raises(ValidationError, match="valid email address or phone number"):
            SignupRequest(identifier=identifier, password="Sup3rSecret", fullName="Jane")

    def test_blank_padded_name_rejected(self):
        with pytest.raises(ValidationError):
            SignupRequest(identifier="a@example.com", password="Sup3rSecret", fullName="  J  ")


def test_login_lowercases_email_only():
    assert LoginRequest(identifier=" A@Example.com ", password="x").identifier == "a@example.com"
    assert LoginRequest(identifier="+84912345678", password="x").identifier == "+84912345678"


def test_new_password_must_differ():
    with pytest.raises(ValidationError, match="must be different"):
        ChangePasswordRequest(currentPassword="Sup3rSecret", newPassword="Sup3rSecret")


class TestUpdateProfileRequest:
    def test_only_sent_fields_are_marked(self):
        request = UpdateProfileRequest.model_validate({"name": "New Name"})
        assert request.model_fields_set == {"name"}

    def test_empty_strings_clear(self):
        request = UpdateProfileRequest.model_validate({"phone": "", "dob": "", "avatarUrl": ""})
        assert request.phone == ""
        assert request.dob == ""
        assert request.avatar_url == ""

    def test_datetime_dob_reduced_to_date(self):
        request = UpdateProfileRequest.model_validate({"dob": "1995-04-12T00:00:00Z"})
        assert request.dob == "1995-04-12"

    @pytest.mark.parametrize(
        "payload",
        [{"phone": "123"}, {"dob": "yesterday"}, {"avatarUrl": "not a url"}, {"name": "x"}],
    )
    def test_invalid_fields_rejected(self, payload):
        with pytest.raises(ValidationError):
            UpdateProfileRequest.model_validate(payload)
