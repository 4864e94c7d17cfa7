import itertools

import pytest

from models.budget_data import BudgetSummary, ConceptType, SectionContribution, SectionKey
from pricing.pricing_engine import (
    build_summary, compute_breakdown, discount_value, resolve_vat_percentage, round_cents,
)

from conftest import make_line, make_sections


def test_no_adjustments():
    breakdown = compute_breakdown(200, [], 21)

    assert breakdown.taxable_base == pytest.approx(200)
    assert breakdown.vat == pytest.approx(42)
    assert breakdown.grand_total == pytest.approx(242)
    assert breakdown.total_discount == 0


def test_adjustment_is_taxed():
    breakdown = compute_breakdown(100, [make_line(ConceptType.ADJUSTMENT, 20)], 21)

    assert breakdown.taxable_base == pytest.approx(120)
    assert breakdown.vat == pytest.approx(25.2)
    assert breakdown.grand_total == pytest.approx(145.2)


def test_discount_applies_to_total_with_vat():
    breakdown = compute_breakdown(100, [make_line(ConceptType.DISCOUNT, 10)], 21)

    assert breakdown.taxable_base == pytest.approx(100)
    assert breakdown.vat == pytest.approx(21)
    assert breakdown.total_before_discount == pytest.approx(121)
    assert breakdown.total_discount == pytest.approx(12.1)
    assert breakdown.grand_total == pytest.approx(108.9)


def test_mixed_lines():
    lines = [
        make_line(ConceptType.DISCOUNT, 10),
        make_line(ConceptType.OPTIONAL, 999),
        make_line(ConceptType.ADJUSTMENT, 50),
    ]

    breakdown = compute_breakdown(100, lines, 21)

    assert breakdown.taxable_base == pytest.approx(150)
    assert breakdown.vat == pytest.approx(31.5)
    assert breakdown.total_before_discount == pytest.approx(181.5)
    assert breakdown.total_discount == pytest.approx(18.15)
    assert breakdown.grand_total == pytest.approx(163.35)
    assert breakdown.optional_lines_total == pytest.approx(999)


def test_hidden_section_excluded_from_base():
    sections = [
        SectionContribution(key=SectionKey.COMPOSITE_BLOCKS, raw_total=100, visible=True),
        SectionContribution(key=SectionKey.ITEM_TABLES, raw_total=500, visible=False),
        SectionContribution(key=SectionKey.SIMPLE_BLOCK, raw_total=300, visible=True),
    ]

    breakdown = build_summary(sections, [], 21)

    assert breakdown.base_subtotal == 400
    assert breakdown.total_blocks == 100
    assert breakdown.total_items == 0
    assert breakdown.total_simple_block == 300
    assert breakdown.visible_sections == [SectionKey.COMPOSITE_BLOCKS, SectionKey.SIMPLE_BLOCK]


def test_everything_empty_is_zero():
    breakdown = build_summary([], [], 21)

    assert breakdown.taxable_base == 0
    assert breakdown.vat == 0
    assert breakdown.grand_total == 0
    assert breakdown.optional_lines_total == 0


def test_large_negative_base_is_clamped():
    breakdown = compute_breakdown(-10_000, [make_line(ConceptType.ADJUSTMENT, 5)], 21)

    assert breakdown.taxable_base == 0
    assert breakdown.grand_total == 0


def test_discount_over_100_percent_is_clamped():
    lines = [make_line(ConceptType.DISCOUNT, 80), make_line(ConceptType.DISCOUNT, 70)]

    breakdown = compute_breakdown(100, lines, 21)

    assert breakdown.total_discount == pytest.approx(121 * 1.5)
    assert breakdown.grand_total == 0


def test_notes_and_optionals_never_change_totals():
    plain = compute_breakdown(250, [], 21)
    with_extras = compute_breakdown(250, [
        {"concept_type": "note", "amount": 5000, "concept": "Nota"},
        make_line(ConceptType.OPTIONAL, 700),
        make_line(ConceptType.OPTIONAL, 300),
    ], 21)

    assert with_extras.taxable_base == plain.taxable_base
    assert with_extras.vat == plain.vat
    assert with_extras.grand_total == plain.grand_total
    assert with_extras.optional_lines_total == pytest.approx(1000)


def test_reordering_lines_keeps_totals():
    lines = [
        make_line(ConceptType.ADJUSTMENT, 0.1),
        make_line(ConceptType.ADJUSTMENT, 0.2),
        make_line(ConceptType.ADJUSTMENT, 0.3),
        make_line(ConceptType.DISCOUNT, 3.3),
        make_line(ConceptType.DISCOUNT, 7.7),
        make_line(ConceptType.OPTIONAL, 0.7),
    ]
    expected = compute_breakdown(99.99, lines, 21)

    for permutation in itertools.permutations(lines):
        breakdown = compute_breakdown(99.99, list(permutation), 21)
        assert breakdown.taxable_base == expected.taxable_base
        assert breakdown.vat == expected.vat
        assert breakdown.total_discount == expected.total_discount
        assert breakdown.grand_total == expected.grand_total
        assert breakdown.optional_lines_total == expected.optional_lines_total


def test_taxable_base_is_rounded_to_cents():
    breakdown = compute_breakdown(10.004, [make_line(ConceptType.ADJUSTMENT, 0.003)], 10)

    assert breakdown.taxable_base == 10.01
    assert breakdown.vat == pytest.approx(1.001)


@pytest.mark.parametrize("vat", [-5, float("nan"), float("inf"), "abc", None])
def test_invalid_vat_percentage_is_zero(vat):
    breakdown = compute_breakdown(100, [], vat)

    assert breakdown.vat_percentage == 0
    assert breakdown.vat == 0
    assert breakdown.grand_total == pytest.approx(100)


def test_vat_percentage_accepts_text():
    assert resolve_vat_percentage("10,5") == 10.5


def test_dirty_lines_are_normalized_before_use():
    breakdown = compute_breakdown(100, [{"amount": "-20"}, {"amount": "abc", "concept_type": "discount"}], 21)

    assert breakdown.net_adjustments == 20
    assert breakdown.total_discount == 0
    assert breakdown.additional_lines[0].amount == 20


def test_same_inputs_same_output():
    lines = [make_line(ConceptType.DISCOUNT, 12.5), make_line(ConceptType.ADJUSTMENT, 33.33)]

    first = build_summary(make_sections(blocks=120.5, items=80.25), lines, 21)
    second = build_summary(make_sections(blocks=120.5, items=80.25), lines, 21)

    assert first.model_dump_json() == second.model_dump_json()


def test_inputs_are_not_mutated():
    lines = [make_line(ConceptType.ADJUSTMENT, -20, concept="  Porte ")]
    sections = make_sections(blocks=100)

    build_summary(sections, lines, 21)

    assert lines[0].amount == -20
    assert lines[0].concept == "  Porte "
    assert sections[0].raw_total == 100


def test_to_summary_keeps_canonical_fields():
    breakdown = build_summary(make_sections(blocks=100, items=50), [make_line(ConceptType.NOTE, 0, "Nota")], 21)

    summary = breakdown.to_summary()

    assert type(summary) is BudgetSummary
    assert summary.total_blocks == 100
    assert summary.total_items == 50
    assert summary.grand_total == breakdown.grand_total
    assert summary.additional_lines == breakdown.additional_lines


def test_discount_value():
    discount = make_line(ConceptType.DISCOUNT, 10)
    adjustment = make_line(ConceptType.ADJUSTMENT, 20)
    breakdown = compute_breakdown(100, [discount, adjustment], 21)

    assert discount_value(breakdown, discount) == pytest.approx(14.52)
    assert discount_value(breakdown, adjustment) == 0


def test_exact_half_cent_rounds_up():
    assert compute_breakdown(100.125, [], 0).taxable_base == 100.13
    assert compute_breakdown(0.5 * 20.25, [], 0).taxable_base == 10.13


@pytest.mark.parametrize("value, expected", [
    (100.125, 100.13),
    (2.675, 2.67),  # 2進値は 2.67499...
    (1.005, 1.0),
    (0.0, 0.0),
])
def test_round_cents(value, expected):
    assert round_cents(value) == expected
