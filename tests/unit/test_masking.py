"""
Unit tests -- phone masking of result rows.
"""
import decimal

import pytest

from medbrain_gateway.governance.masking import mask_phone, mask_sensitive_columns


@pytest.mark.parametrize("raw, masked", [
    ("5511987654321", "+55 11 9****-4321"),
    ("551187654321", "+55 11 9****-4321"),
    ("11987654321", "(11) 9****-4321"),
    ("1187654321", "(11) ****-4321"),
    ("+55 (11) 98765-4321", "+55 11 9****-4321"),
])
def test_mask_phone_formats(raw, masked):
    assert mask_phone(raw) == masked


@pytest.mark.parametrize("value", ["123456789", "abc", ""])
def test_short_values_pass_through(value):
    assert mask_phone(value) == value


def test_masking_is_idempotent():
    once = mask_phone("5511987654321")
    assert mask_phone(once) == once


def test_sensitive_columns_masked():
    rows = [{"phone": "5511987654321", "total": 3}]
    assert mask_sensitive_columns(rows) == [{"phone": "+55 11 9****-4321", "total": 3}]


def test_column_names_matched_case_insensitively():
    rows = [{"Referrer_Phone": "11987654321"}]
    assert mask_sensitive_columns(rows)[0]["Referrer_Phone"] == "(11) 9****-4321"


def test_session_id_masked_only_when_phone_shaped():
    rows = [
        {"session_id": "5511987654321"},
        {"session_id": "web-3f2a9c"},
        {"session_id": "12345"},
    ]
    masked = mask_sensitive_columns(rows)
    assert masked[0]["session_id"] == "+55 11 9****-4321"
    assert masked[1]["session_id"] == "web-3f2a9c"
    assert masked[2]["session_id"] == "12345"


def test_other_columns_untouched():
    rows = [{"user_id": "5511987654321"}]
    assert mask_sensitive_columns(rows) == rows


def test_numeric_phone_masked():
    rows = [{"phone": 5511987654321}, {"phone": 11987654321.0}, {"phone": decimal.Decimal("1187654321")}]
    assert mask_sensitive_columns(rows) == [
        {"phone": "+55 11 9****-4321"},
        {"phone": "(11) 9****-4321"},
        {"phone": "(11) ****-4321"},
    ]


def test_numeric_session_id_masked_when_phone_shaped():
    rows = [{"session_id": 5511987654321}, {"session_id": 42}]
    assert mask_sensitive_columns(rows) == [{"session_id": "+55 11 9****-4321"}, {"session_id": 42}]


def test_null_bool_and_short_numbers_untouched():
    rows = [{"phone": None}, {"phone": True}, {"phone": 12345}, {"phone": 1.5}]
    assert mask_sensitive_columns(rows) == rows


def test_input_rows_not_mutated():
    rows = [{"phone": "5511987654321"}]
    mask_sensitive_columns(rows)
    assert rows[0]["phone"] == "5511987654321"


def test_explicit_column_list():
    rows = [{"celular": "11987654321", "phone": "11987654321"}]
    masked = mask_sensitive_columns(rows, sensitive_columns=["celular"])
    assert masked[0] == {"celular": "(11) 9****-4321", "phone": "11987654321"}


def test_empty_rows():
    assert mask_sensitive_columns([]) == []
