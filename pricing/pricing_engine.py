"""見積サマリー計算エンジン（コアビジネスロジック）

編集画面とPDF出力の両方がこのモジュールだけで合計を算出する。
計算順序:
    1. Recargo（adjustment）を有効セクション合計に加算 → 課税標準（2桁丸め、0下限）
    2. IVA = 課税標準 × 税率
    3. Descuento（discount）は税込合計に対する % として差し引く（0下限）
    4. Opcional（optional）は表示用に別集計、Nota（note）は金額なし
"""
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from models.budget_data import (
    AdditionalLine, ConceptType, PriceBreakdown, SectionContribution,
    SUMMARY_FIELD_BY_SECTION,
)
from pricing.line_normalizer import RawLine, normalize_line, normalize_lines, parse_number
from pricing.section_aggregator import base_subtotal as aggregate_base_subtotal
from pricing.section_aggregator import effective_totals

CENT = Decimal("0.01")


def compute_breakdown(base_subtotal: float, lines: Iterable[RawLine],
                      vat_percentage: float) -> PriceBreakdown:
    """セクション合計・追加行・税率から全内訳を計算

    Args:
        base_subtotal: 有効セクション合計
        lines: 追加行（未正規化でも可）
        vat_percentage: IVA率（%）。負・非有限は0

    Returns:
        PriceBreakdown: 内訳（セクション別合計は0のまま）
    """
    normalized = normalize_lines(lines)
    base = parse_number(base_subtotal) or 0.0
    percentage = resolve_vat_percentage(vat_percentage)

    net_adjustments = _sum_amounts(normalized, ConceptType.ADJUSTMENT)
    taxable_base = round_cents(max(base + net_adjustments, 0.0))
    vat = taxable_base * (percentage / 100)
    total_before_discount = taxable_base + vat

    # 割引は税込合計に対する割合
    total_discount = math.fsum(
        total_before_discount * (line.amount / 100)
        for line in normalized if line.concept_type == ConceptType.DISCOUNT
    )
    grand_total = max(total_before_discount - total_discount, 0.0)

    return PriceBreakdown(
        taxable_base=taxable_base,
        vat=vat,
        vat_percentage=percentage,
        grand_total=grand_total,
        additional_lines=normalized,
        base_subtotal=base,
        net_adjustments=net_adjustments,
        total_before_discount=total_before_discount,
        total_discount=total_discount,
        optional_lines_total=_sum_amounts(normalized, ConceptType.OPTIONAL),
    )


def build_summary(sections: Iterable[SectionContribution], lines: Iterable[RawLine],
                  vat_percentage: float) -> PriceBreakdown:
    """セクション集計＋内訳計算（編集画面・PDF出力の共通入口）"""
    sections = list(sections)
    breakdown = compute_breakdown(aggregate_base_subtotal(sections), lines, vat_percentage)

    update = {
        SUMMARY_FIELD_BY_SECTION[key]: total
        for key, total in effective_totals(sections).items()
        if key in SUMMARY_FIELD_BY_SECTION
    }
    update["visible_sections"] = [section.key for section in sections if section.visible]
    return breakdown.model_copy(update=update)


def resolve_vat_percentage(value) -> float:
    """負・非有限・解析不能な税率は0"""
    parsed = parse_number(value)
    if parsed is None or parsed < 0:
        return 0.0
    return parsed


def discount_value(breakdown: PriceBreakdown, line: RawLine) -> float:
    """割引行が差し引く金額（割引以外は0）"""
    line = normalize_line(line)
    if line.concept_type != ConceptType.DISCOUNT:
        return 0.0
    return breakdown.total_before_discount * (line.amount / 100)


def round_cents(value: float) -> float:
    """小数2桁に四捨五入（ちょうど半セントは切り上げ）"""
    # float の2進値そのままで丸める（1.005 は 1.00）
    return float(Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


def _sum_amounts(lines: list[AdditionalLine], concept_type: ConceptType) -> float:
    # fsum: 行の並び順で結果が変わらない
    return math.fsum(line.amount for line in lines if line.concept_type == concept_type)
