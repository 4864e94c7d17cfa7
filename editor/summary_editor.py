"""サマリー編集（下書き／確定の2スロット）

編集は常に下書き（draft）に対して行い、save で確定（committed）へ反映、
discard で確定状態へ戻す。内訳は入力が変わるたびに再計算する。
自動保存はしない（保存は save か EditorSession のデバウンスで行う）。
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

from config import DEFAULT_VAT_PERCENTAGE
from models.budget_data import (
    AdditionalLine, BudgetSummary, ConceptType, PriceBreakdown, SectionContribution, SectionKey,
)
from pricing.line_normalizer import RawLine, normalize_line, normalize_lines, parse_number
from pricing.pricing_engine import build_summary, resolve_vat_percentage

logger = logging.getLogger(__name__)

SaveCallback = Callable[[BudgetSummary, list[AdditionalLine]], None]


@dataclass(frozen=True)
class EditorState:
    """追加行とIVA率のスナップショット"""
    lines: tuple = field(default_factory=tuple)
    vat_percentage: float = DEFAULT_VAT_PERCENTAGE


class SummaryEditor:
    """見積サマリーの編集状態"""

    def __init__(self, lines: Optional[list[RawLine]] = None,
                 vat_percentage: float = DEFAULT_VAT_PERCENTAGE,
                 on_save: Optional[SaveCallback] = None):
        # セクションは表示状態で開始（各セクションの編集画面が更新する）
        self._sections = {
            key: SectionContribution(key=key, raw_total=0, visible=True) for key in SectionKey
        }
        self._on_save = on_save
        self._next_client_id = -1
        self._committed = EditorState()
        self._draft = self._committed
        self.has_unsaved_changes = False
        self.load(lines or [], vat_percentage)

    # --- 状態 ---

    def load(self, lines: list[RawLine], vat_percentage: float) -> None:
        """保存済みの状態を読み込み（下書き・確定の両方を置き換え）"""
        state = EditorState(
            lines=tuple(normalize_lines(lines)),
            vat_percentage=resolve_vat_percentage(vat_percentage),
        )
        self._committed = state
        self._draft = state
        self.has_unsaved_changes = False

    @property
    def lines(self) -> list[AdditionalLine]:
        return [line.model_copy() for line in self._draft.lines]

    @property
    def committed_lines(self) -> list[AdditionalLine]:
        return [line.model_copy() for line in self._committed.lines]

    @property
    def vat_percentage(self) -> float:
        return self._draft.vat_percentage

    @property
    def committed_vat_percentage(self) -> float:
        return self._committed.vat_percentage

    @property
    def sections(self) -> list[SectionContribution]:
        return [section.model_copy() for section in self._sections.values()]

    @property
    def breakdown(self) -> PriceBreakdown:
        """現在の下書きから毎回再計算"""
        return build_summary(self._sections.values(), self._draft.lines, self._draft.vat_percentage)

    @property
    def summary(self) -> BudgetSummary:
        return self.breakdown.to_summary()

    @property
    def committed_breakdown(self) -> PriceBreakdown:
        """確定状態の内訳（下書きの変更を含まない）"""
        return build_summary(self._sections.values(), self._committed.lines,
                             self._committed.vat_percentage)

    # --- セクション入力 ---

    def set_section_total(self, key, raw_total) -> None:
        """セクション小計を更新（各セクションの編集画面から）"""
        key = SectionKey(key)
        total = parse_number(raw_total)
        self._sections[key] = self._sections[key].model_copy(
            update={"raw_total": total if total is not None else 0.0})

    def set_section_visibility(self, key, visible: bool) -> None:
        """表示フラグのみ切替（小計は保持）"""
        key = SectionKey(key)
        self._sections[key] = self._sections[key].model_copy(update={"visible": bool(visible)})

    # --- 追加行の編集 ---

    def add_line(self, concept_type: ConceptType = ConceptType.ADJUSTMENT,
                 concept: str = "", amount=0) -> AdditionalLine:
        """追加行を末尾に追加（未保存の行は負の仮ID）"""
        line = normalize_line({
            "id": self._next_client_id,
            "concept": concept,
            "amount": amount,
            "concept_type": concept_type,
        })
        self._next_client_id -= 1
        self._set_draft(lines=self._draft.lines + (line,))
        return line

    def update_line(self, line_id, **changes) -> Optional[AdditionalLine]:
        """行のフィールドを更新（毎回正規化し直す）"""
        for idx, line in enumerate(self._draft.lines):
            if line.id == line_id:
                updated = normalize_line({**line.model_dump(), **changes, "id": line.id})
                lines = list(self._draft.lines)
                lines[idx] = updated
                self._set_draft(lines=tuple(lines))
                return updated
        logger.warning("Cannot update line %s: not found", line_id)
        return None

    def delete_line(self, line_id) -> bool:
        if line_id is None:
            logger.warning("Cannot delete line: invalid ID")
            return False
        lines = tuple(line for line in self._draft.lines if line.id != line_id)
        if len(lines) == len(self._draft.lines):
            logger.warning("Cannot delete line %s: not found", line_id)
            return False
        self._set_draft(lines=lines)
        return True

    def set_vat_percentage(self, value) -> bool:
        """IVA率を更新（解析不能は無視、負は0）"""
        parsed = parse_number(value)
        if parsed is None:
            return False
        self._set_draft(vat_percentage=max(0.0, parsed))
        return True

    # --- 保存／破棄 ---

    def save(self) -> BudgetSummary:
        """下書きを確定し、保存コールバックへ渡す"""
        self._committed = self._draft
        self.has_unsaved_changes = False
        summary = self.summary
        if self._on_save is not None:
            self._on_save(summary, self.committed_lines)
        return summary

    def discard(self) -> None:
        """下書きを確定状態へ戻す"""
        self._draft = self._committed
        self.has_unsaved_changes = False

    def _set_draft(self, **changes) -> None:
        self._draft = replace(self._draft, **changes)
        self.has_unsaved_changes = True
