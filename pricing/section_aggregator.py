"""セクション小計の集計（表示フラグ反映）"""
import math
from collections.abc import Mapping
from typing import Iterable

from models.budget_data import SectionContribution, SectionKey


def effective_total(section: SectionContribution) -> float:
    """非表示セクションは0（小計自体は保持したまま）"""
    if not section.visible:
        return 0.0
    raw = section.raw_total
    return float(raw) if raw is not None and math.isfinite(raw) else 0.0


def effective_totals(sections: Iterable[SectionContribution]) -> dict[SectionKey, float]:
    """セクション別の有効合計（同一キーは加算）"""
    totals: dict[SectionKey, float] = {}
    for section in sections:
        totals[section.key] = totals.get(section.key, 0.0) + effective_total(section)
    return totals


def base_subtotal(sections: Iterable[SectionContribution]) -> float:
    """有効合計の単純和（順序に依存しない）"""
    return math.fsum(effective_total(section) for section in sections)


def apply_visibility(sections: Iterable[SectionContribution],
                     visibility: Mapping) -> list[SectionContribution]:
    """表示フラグを上書きしたコピーを返す（印刷時の上書き用）

    Args:
        sections: 元のセクション
        visibility: {SectionKey|str: bool}、未指定キーは元のフラグのまま

    Returns:
        list[SectionContribution]: raw_total は変更しない
    """
    overrides = {SectionKey(key): bool(value) for key, value in (visibility or {}).items()}
    return [
        section.model_copy(update={"visible": overrides[section.key]})
        if section.key in overrides else section.model_copy()
        for section in sections
    ]
