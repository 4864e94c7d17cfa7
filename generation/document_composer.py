"""PDF出力用ドキュメントの組み立て

保存済みサマリーは信用せず、印刷時の表示フラグでスナップショットから
再計算する（編集画面と同じ pricing_engine.build_summary を使用）。
"""
import logging
import math
from collections.abc import Mapping
from typing import Optional

from models.budget_data import BudgetSnapshot, ComposedDocument, SectionKey
from generation.budget_builder import section_contributions
from pricing.breakdown_rows import build_breakdown_rows, build_disclaimers
from pricing.knowledge_base import load_pricing_rules
from pricing.knowledge_base import section_order as default_section_order
from pricing.pricing_engine import build_summary

logger = logging.getLogger(__name__)


def compose_document(snapshot: BudgetSnapshot,
                     print_visibility: Optional[Mapping] = None) -> ComposedDocument:
    """スナップショットからPDF用ドキュメントを組み立て

    Args:
        snapshot: 見積スナップショット
        print_visibility: 印刷時の表示フラグ（編集画面のフラグとは独立）

    Returns:
        ComposedDocument: 再計算済みの内訳・表示行・注記を含む
    """
    sections = section_contributions(snapshot, print_visibility)
    stored = snapshot.summary

    lines = snapshot.additional_lines
    if lines is None:
        lines = stored.additional_lines if stored else []
    vat_percentage = snapshot.vat_percentage
    if vat_percentage is None:
        vat_percentage = stored.vat_percentage if stored else load_pricing_rules()["default_vat_percentage"]

    breakdown = build_summary(sections, lines, vat_percentage)
    if stored and not math.isclose(stored.grand_total, breakdown.grand_total, abs_tol=0.005):
        logger.info(
            "Budget %s: stored grand total %.2f differs from export total %.2f",
            snapshot.id, stored.grand_total, breakdown.grand_total,
        )

    order = snapshot.section_order or [SectionKey(key) for key in default_section_order()]
    visible = [key for key in order if key in breakdown.visible_sections]
    document_rules = load_pricing_rules()["document"]

    return ComposedDocument(
        cover=snapshot.cover,
        file_name=build_file_name(snapshot),
        sections=visible,
        section_titles=snapshot.section_titles,
        composite_blocks=snapshot.composite_blocks if SectionKey.COMPOSITE_BLOCKS in visible else [],
        item_tables=snapshot.item_tables if SectionKey.ITEM_TABLES in visible else [],
        simple_block=snapshot.simple_block if SectionKey.SIMPLE_BLOCK in visible else None,
        breakdown=breakdown,
        rows=build_breakdown_rows(breakdown, snapshot.section_titles, order),
        disclaimers=build_disclaimers(breakdown),
        conditions_title=snapshot.conditions_title or document_rules["conditions_title"],
        conditions=snapshot.conditions,
    )


def build_file_name(snapshot: BudgetSnapshot) -> str:
    """見積番号 → ID → 既定名 の順でファイル名を決定"""
    slug = snapshot.cover.budget_number or (str(snapshot.id) if snapshot.id is not None else "")
    if not slug:
        slug = load_pricing_rules()["document"]["default_file_name"]
    return f"{slug}.pdf"
