"""
Unit tests for formharvest.mapping (classifier + validator).
"""
from types import SimpleNamespace

import pytest

from formharvest.ir import FieldObservation, Role
from formharvest.mapping import (
    ROLE_RULES,
    RoleRule,
    classify,
    validate,
    validate_field,
    validate_observations,
)
from formharvest.mapping.validator import MESSAGES


def obs(name, value="x", type="text"):
    return FieldObservation(name=name, value=value, type=type)


class TestClassify:

    @pytest.mark.parametrize("name,expected", [
        ("aadhar_no", Role.AADHAR),
        ("Aadhaar Number", Role.AADHAR),
        ("UID", Role.AADHAR),
        ("PAN Card", Role.PAN),
        ("tax id", Role.PAN),
        ("first_name", Role.NAME),
        ("Surname", Role.NAME),
        ("user_email", Role.EMAIL),
        ("mobile", Role.PHONE),
        ("Contact", Role.PHONE),
        ("remarks", Role.TEXT),
        ("", Role.TEXT),
    ])
    def test_keyword_matching(self, name, expected):
        assert classify(obs(name)) == expected

    def test_rules_apply_in_order(self):
        # "identity number" hits the aadhar keyword before the phone keyword
        assert classify(obs("identity number")) == Role.AADHAR

    def test_email_declared_type(self):
        assert classify(obs("field1", type="email")) == Role.EMAIL

    def test_email_type_outranks_phone_keyword(self):
        assert classify(obs("contact", type="email")) == Role.EMAIL

    def test_phone_declared_type(self):
        assert classify(obs("field2", type="phone")) == Role.PHONE

    def test_raw_tel_type(self):
        # adapters may hand over the undecoded input type
        assert classify(SimpleNamespace(name="field2", type="tel")) == Role.PHONE

    def test_custom_rule_table(self):
        rules = (RoleRule(Role.EMAIL, ("handle",)),) + ROLE_RULES
        assert classify(obs("twitter handle"), rules=rules) == Role.EMAIL
        assert classify(obs("twitter handle")) == Role.TEXT


class TestValidate:

    @pytest.mark.parametrize("role,value,expected", [
        (Role.AADHAR, "1234 5678 9012", True),
        (Role.AADHAR, "1234-5678-9012", True),
        (Role.AADHAR, "12345", False),
        (Role.AADHAR, "1234567890123", False),
        (Role.PAN, "abcde1234f", True),
        (Role.PAN, "ABCDE12345", False),
        (Role.NAME, "Jo", True),
        (Role.NAME, "Priya Sharma", True),
        (Role.NAME, "J", False),
        (Role.NAME, "John3", False),
        (Role.EMAIL, "a@b.co", True),
        (Role.EMAIL, "a b@c.d", False),
        (Role.EMAIL, "a@b", False),
        (Role.PHONE, "9876543210", True),
        (Role.PHONE, "(987) 654-3210", True),
        (Role.PHONE, "+919876543210", False),
        (Role.PHONE, "98765", False),
        (Role.TEXT, "  x ", True),
        (Role.TEXT, "   ", False),
    ])
    def test_role_rules(self, role, value, expected):
        verdict = validate(obs("f", value), role=role)
        assert verdict.is_valid is expected
        assert verdict.role == role

    def test_classifies_when_role_missing(self):
        verdict = validate(obs("aadhar", "12345"))
        assert verdict.role == Role.AADHAR
        assert verdict.is_valid is False
        assert verdict.message == "Invalid Aadhar number (should be 12 digits)"

    def test_messages_are_deterministic(self):
        first = validate(obs("pan", "ABCDE12345"))
        second = validate(obs("pan", "ABCDE12345"))
        assert first == second
        assert first.message == MESSAGES[Role.PAN][1]

    def test_every_role_has_two_messages(self):
        for role in Role:
            valid, invalid = MESSAGES[role]
            assert valid and invalid and valid != invalid

    def test_text_messages(self):
        assert validate(obs("notes", "hello")).message == "Valid text"
        assert validate(obs("notes", "  "), role=Role.TEXT).message == "Empty field"

    def test_validate_field_keeps_observation(self):
        field = validate_field(FieldObservation(name="email", value="a@b.co", type="email", element_id="em"))
        assert field.element_id == "em"
        assert field.validation.is_valid is True
        assert field.validation.message == "Valid email"

    def test_wire_format(self):
        wire = validate_field(obs("email", "a@b.co", "email")).to_wire()
        assert wire["id"] == ""
        assert wire["validation"] == {"isValid": True, "role": "email", "message": "Valid email"}


class TestValidateObservations:

    def test_invalid_fields_dropped_in_order(self):
        fields = validate_observations([
            obs("name", "Asha Rao"),
            obs("aadhar", "12345"),
            obs("email", "a@b.co", "email"),
            obs("nickname", "A"),
        ])
        assert [f.name for f in fields] == ["name", "email"]

    def test_empty_input(self):
        assert validate_observations([]) == []
