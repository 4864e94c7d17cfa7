"""サマリー表の行構築・表示フォーマット（編集画面・PDF共通）"""
from datetime import date
from typing import Iterable, Optional

from models.budget_data import (
    BreakdownRow, ConceptType, PriceBreakdown, RowKind, SectionKey,
    SUMMARY_FIELD_BY_SECTION,
)
from pricing.knowledge_base import concept_type_label, load_pricing_rules
from pricing.knowledge_base import section_order as default_section_order
from pricing.knowledge_base import section_titles as default_section_titles
from pricing.pricing_engine import discount_value


def build_breakdown_rows(breakdown: PriceBreakdown,
                         section_titles: Optional[dict] = None,
                         section_order: Optional[Iterable] = None) -> list[BreakdownRow]:
    """内訳を表示行に展開

    行順: セクション小計 → Recargo/Nota → 課税標準 → IVA
          → （割引適用時のみ）割引前合計・割引行 → 総合計 → Opcional（取り消し線）

    Args:
        breakdown: build_summary の結果
        section_titles: セクションタイトルの上書き
        section_order: セクション表示順（未指定はYAMLの既定順）

    Returns:
        list[BreakdownRow]: 表示行
    """
    labels = load_pricing_rules()["row_labels"]
    titles = _merge_titles(section_titles)
    rows = []

    # セクション小計（表示中のみ）
    for key in _ordered_sections(section_order, breakdown.visible_sections):
        rows.append(BreakdownRow(
            kind=RowKind.SECTION,
            label=titles.get(key, key.value),
            amount=getattr(breakdown, SUMMARY_FIELD_BY_SECTION[key]),
        ))

    for line in breakdown.additional_lines:
        if line.concept_type == ConceptType.ADJUSTMENT:
            rows.append(BreakdownRow(
                kind=RowKind.ADJUSTMENT,
                label=line.concept or concept_type_label(line.concept_type.value),
                amount=line.amount,
            ))
        elif line.concept_type == ConceptType.NOTE:
            rows.append(BreakdownRow(kind=RowKind.NOTE, label=line.concept))

    rows.append(BreakdownRow(kind=RowKind.TAXABLE_BASE, label=labels["taxable_base"],
                             amount=breakdown.taxable_base))
    rows.append(BreakdownRow(
        kind=RowKind.VAT,
        label=labels["vat"].format(percentage=format_percentage(breakdown.vat_percentage)),
        amount=breakdown.vat,
    ))

    if breakdown.total_discount > 0:
        rows.append(BreakdownRow(kind=RowKind.TOTAL_BEFORE_DISCOUNT,
                                 label=labels["total_before_discount"],
                                 amount=breakdown.total_before_discount))
        for line in breakdown.additional_lines:
            if line.concept_type != ConceptType.DISCOUNT or line.amount <= 0:
                continue
            label = f"{labels['discount_applied']} ({format_percentage(line.amount)})"
            if line.concept:
                label = f"{label}: {line.concept}"
            rows.append(BreakdownRow(kind=RowKind.DISCOUNT, label=label,
                                     amount=-discount_value(breakdown, line)))

    rows.append(BreakdownRow(kind=RowKind.GRAND_TOTAL, label=labels["grand_total"],
                             amount=breakdown.grand_total))

    # オプション行は合計に含めない
    for line in breakdown.additional_lines:
        if line.concept_type == ConceptType.OPTIONAL:
            concept = line.concept or concept_type_label(line.concept_type.value)
            rows.append(BreakdownRow(
                kind=RowKind.OPTIONAL,
                label=f"{concept} {labels['optional_suffix']}",
                amount=line.amount,
                struck=True,
            ))

    return rows


def build_disclaimers(breakdown: PriceBreakdown) -> list[str]:
    """割引の有効期限・オプション除外の注記"""
    texts = load_pricing_rules()["disclaimers"]
    disclaimers = []
    for line in breakdown.additional_lines:
        if line.concept_type == ConceptType.DISCOUNT and line.valid_until:
            disclaimers.append(texts["discount_valid_until"].format(
                concept=line.concept or concept_type_label(line.concept_type.value),
                date=format_date(line.valid_until),
            ))
    if any(line.concept_type == ConceptType.OPTIONAL for line in breakdown.additional_lines):
        disclaimers.append(texts["optional_excluded"])
    return disclaimers


def format_currency(value: Optional[float]) -> str:
    """1234.5 → '1.234,50 €'"""
    if value is None:
        return ""
    text = f"{value:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{text} €"


def format_percentage(value: float) -> str:
    """21 → '21%'、10.5 → '10,5%'"""
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text.replace('.', ',')}%"


def format_date(value: Optional[date]) -> str:
    return value.strftime("%d/%m/%Y") if value else ""


def _merge_titles(overrides: Optional[dict]) -> dict[SectionKey, str]:
    titles = {SectionKey(key): title for key, title in default_section_titles().items()}
    for key, title in (overrides or {}).items():
        if title:
            titles[SectionKey(key)] = title
    return titles


def _ordered_sections(order: Optional[Iterable], visible: Iterable[SectionKey]) -> list[SectionKey]:
    visible = [SectionKey(key) for key in visible]
    ordered = []
    # 順序に無いセクションは末尾
    for key in [SectionKey(k) for k in (order or default_section_order())] + visible:
        if key in visible and key not in ordered:
            ordered.append(key)
    return ordered
