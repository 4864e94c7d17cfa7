"""編集中ドキュメントと保存のひも付け

- ドキュメント切替時は未保存の書き込みを破棄し、世代番号を進める
  （切替前に発火した書き込みも世代照合で無効になる）
- 保存はデバウンスして最新のペイロードだけ書き込む
- 終了時は未保存分をベストエフォートで書き込む
- 保存に失敗した分は保留のまま残り、flush で再試行できる
"""
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from config import DEFAULT_VAT_PERCENTAGE, SAVE_DEBOUNCE_SECONDS
from editor.summary_editor import SummaryEditor
from models.budget_data import AdditionalLine, BudgetSummary, SectionContribution
from persistence.debounced_writer import DebouncedWriter
from persistence.repository import BudgetId, BudgetRepository

logger = logging.getLogger(__name__)


@dataclass
class SavePayload:
    generation: int
    summary: BudgetSummary
    lines: list[AdditionalLine]


class EditorSession:
    """1画面分の編集セッション"""

    def __init__(self, repository: BudgetRepository,
                 delay: float = SAVE_DEBOUNCE_SECONDS,
                 timer_factory: Callable = threading.Timer):
        self.repository = repository
        self._writer = DebouncedWriter(self._persist, delay=delay,
                                       on_error=self._record_error,
                                       timer_factory=timer_factory)
        self._lock = threading.Lock()
        self._generation = 0
        self.budget_id: Optional[BudgetId] = None
        self.editor: Optional[SummaryEditor] = None
        self.last_error: Optional[Exception] = None

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def has_pending_write(self) -> bool:
        return self.budget_id in self._writer.pending_keys()

    def open_document(self, budget_id: BudgetId, lines: Optional[list[Any]] = None,
                      vat_percentage: float = DEFAULT_VAT_PERCENTAGE,
                      sections: Optional[list[SectionContribution]] = None) -> SummaryEditor:
        """ドキュメントを開く（前のドキュメントの下書き・未保存分は破棄）"""
        with self._lock:
            previous = self.budget_id
            self._generation += 1
            self.budget_id = budget_id
        if previous is not None:
            self._writer.cancel(previous)

        self.editor = SummaryEditor(lines, vat_percentage, on_save=self._schedule_save)
        for section in sections or []:
            self.editor.set_section_total(section.key, section.raw_total)
            self.editor.set_section_visibility(section.key, section.visible)
        self.last_error = None
        return self.editor

    def update_section(self, key, raw_total=None, visible: Optional[bool] = None) -> BudgetSummary:
        """セクション側の変更を反映し、確定済みの行で合計を保存予約"""
        editor = self._require_editor()
        if raw_total is not None:
            editor.set_section_total(key, raw_total)
        if visible is not None:
            editor.set_section_visibility(key, visible)
        return self.notify_change()

    def notify_change(self) -> BudgetSummary:
        """確定済みの内訳と行を保存予約（下書きは保存しない）"""
        editor = self._require_editor()
        summary = editor.committed_breakdown.to_summary()
        self._schedule_save(summary, editor.committed_lines)
        return summary

    def save(self) -> BudgetSummary:
        """下書きを確定して保存予約"""
        return self._require_editor().save()

    def flush(self) -> bool:
        """未保存分を即時書き込み（保存失敗後の再試行にも使う）"""
        if self.budget_id is None:
            return False
        return self._writer.flush(self.budget_id)

    def close(self) -> None:
        """終了処理：未保存分を書き込んでからセッションを閉じる"""
        self._writer.flush_all()
        with self._lock:
            self._generation += 1
            self.budget_id = None
        self.editor = None

    def _schedule_save(self, summary: BudgetSummary, lines: list[AdditionalLine]) -> None:
        with self._lock:
            budget_id, generation = self.budget_id, self._generation
        if budget_id is None:
            return
        self._writer.schedule(budget_id, SavePayload(generation, summary, lines))

    def _persist(self, budget_id: BudgetId, payload: SavePayload) -> None:
        with self._lock:
            stale = payload.generation != self._generation or budget_id != self.budget_id
        if stale:
            logger.debug("Skipped stale save for budget %s (generation %s)",
                         budget_id, payload.generation)
            return
        self.repository.replace_totals(budget_id, payload.summary)
        self.repository.replace_additional_lines(budget_id, payload.lines)
        self.last_error = None

    def _record_error(self, budget_id: BudgetId, exc: Exception) -> None:
        logger.error("Could not save budget %s: %s", budget_id, exc)
        self.last_error = exc

    def _require_editor(self) -> SummaryEditor:
        if self.editor is None:
            raise RuntimeError("No budget is open in this session")
        return self.editor
