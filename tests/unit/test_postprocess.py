"""
Unit tests -- row caps, masking pass-through and CSV rendering.
"""
import pytest

from medbrain_gateway.copilot.postprocess import RowLimitExceeded, process_rows, rows_to_csv


def _rows(n):
    return [{"id": i} for i in range(n)]


def test_under_cap_untouched():
    result = process_rows(_rows(3), max_rows=5)
    assert result.rows == _rows(3)
    assert result.row_count_total == 3
    assert not result.truncated


def test_exactly_at_cap_not_truncated():
    result = process_rows(_rows(5), max_rows=5)
    assert len(result.rows) == 5
    assert not result.truncated


def test_over_cap_truncated():
    result = process_rows(_rows(12), max_rows=5)
    assert result.rows == _rows(5)
    assert result.row_count_total == 12
    assert result.truncated


def test_over_cap_rejected_when_requested():
    with pytest.raises(RowLimitExceeded, match="10,000-row limit") as exc_info:
        process_rows(_rows(10001), max_rows=10000, reject_overflow=True)
    assert exc_info.value.row_count == 10001


def test_reject_overflow_allows_cap():
    result = process_rows(_rows(4), max_rows=4, reject_overflow=True)
    assert result.row_count_total == 4


def test_rows_are_masked():
    result = process_rows([{"phone": "5511987654321"}], max_rows=10)
    assert result.rows == [{"phone": "+55 11 9****-4321"}]


# ── CSV ──────────────────────────────────────────────────

def test_csv_empty():
    assert rows_to_csv([]) == ""


def test_csv_header_and_rows():
    rows = [{"nome": "Ana", "total": 3}, {"nome": "Bia", "total": 5}]
    assert rows_to_csv(rows) == "nome,total\nAna,3\nBia,5\n"


def test_csv_quotes_only_when_needed():
    rows = [{"texto": 'disse "oi", tchau', "linha": "a\nb", "simples": "ok"}]
    assert rows_to_csv(rows) == (
        'texto,linha,simples\n'
        '"disse ""oi"", tchau","a\nb",ok\n'
    )


def test_csv_nulls_are_empty():
    rows = [{"a": None, "b": "x"}]
    assert rows_to_csv(rows) == "a,b\n,x\n"


def test_csv_single_column_empty_values_unquoted():
    assert rows_to_csv([{"a": ""}, {"a": None}]) == "a\n\n\n"


def test_csv_booleans_lowercase():
    rows = [{"ativo": True}, {"ativo": False}]
    assert rows_to_csv(rows) == "ativo\ntrue\nfalse\n"


def test_csv_missing_keys_are_empty():
    rows = [{"a": 1, "b": 2}, {"a": 3}]
    assert rows_to_csv(rows) == "a,b\n1,2\n3,\n"
