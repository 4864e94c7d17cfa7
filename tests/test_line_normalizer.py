from datetime import date

import pytest

from models.budget_data import AdditionalLine, ConceptType
from pricing.line_normalizer import normalize_line, normalize_lines, parse_number, resolve_amount


def test_missing_type_defaults_to_adjustment():
    line = normalize_line({"concept": "Transporte", "amount": 40})

    assert line.concept_type == ConceptType.ADJUSTMENT
    assert line.amount == 40


def test_unknown_type_defaults_to_adjustment():
    line = normalize_line({"concept": "x", "amount": 5, "concept_type": "surcharge"})

    assert line.concept_type == ConceptType.ADJUSTMENT


def test_negative_amount_becomes_magnitude():
    line = normalize_line({"amount": -25.5, "concept_type": "adjustment"})

    assert line.amount == 25.5


@pytest.mark.parametrize("raw", ["abc", None, "", float("nan"), float("inf"), "-inf", [], True])
def test_unparseable_amount_becomes_zero(raw):
    assert normalize_line({"amount": raw}).amount == 0


def test_text_amounts_are_parsed():
    assert resolve_amount(" 12.5 ") == 12.5
    assert resolve_amount("12,5") == 12.5
    assert resolve_amount("-3") == 3
    assert parse_number("1,234.5") is None


def test_note_amount_is_forced_to_zero():
    line = normalize_line({"concept": "Montaje incluido", "amount": 300, "concept_type": "note"})

    assert line.amount == 0
    assert line.concept_type == ConceptType.NOTE


def test_concept_is_trimmed():
    assert normalize_line({"concept": "  Porte  "}).concept == "Porte"
    assert normalize_line({"concept": None}).concept == ""


def test_valid_until_kept_only_for_discounts():
    discount = normalize_line({"concept_type": "discount", "amount": 10, "valid_until": "2026-12-31"})
    optional = normalize_line({"concept_type": "optional", "amount": 10, "valid_until": "2026-12-31"})

    assert discount.valid_until == date(2026, 12, 31)
    assert optional.valid_until is None


def test_bad_valid_until_is_dropped():
    line = normalize_line({"concept_type": "discount", "amount": 10, "valid_until": "31/12/2026"})

    assert line.valid_until is None


def test_id_is_preserved():
    assert normalize_line({"id": -3, "amount": 1}).id == -3
    assert normalize_line(AdditionalLine(id="a1b2", amount=1)).id == "a1b2"


def test_normalizing_twice_returns_same_line():
    raw = {"id": 7, "concept": " Descuento  ", "amount": "-10", "concept_type": "discount",
           "valid_until": date(2026, 11, 30)}

    once = normalize_line(raw)
    twice = normalize_line(once)

    assert twice == once


def test_normalize_lines_keeps_order():
    lines = normalize_lines([
        {"id": 1, "amount": 1},
        {"id": 2, "amount": 2, "concept_type": "note"},
        {"id": 3, "amount": 3, "concept_type": "optional"},
    ])

    assert [line.id for line in lines] == [1, 2, 3]
    assert normalize_lines(None) == []
