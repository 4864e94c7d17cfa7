"""サマリー・追加行の保存先"""
import threading
from typing import Optional, Protocol, Union

from models.budget_data import AdditionalLine, BudgetSummary

BudgetId = Union[int, str]


class PersistenceError(Exception):
    """保存失敗（再試行可能）"""


class BudgetRepository(Protocol):
    """「見積Xの合計／追加行を置き換える」冪等な保存操作"""

    def replace_totals(self, budget_id: BudgetId, summary: BudgetSummary) -> None:
        ...

    def replace_additional_lines(self, budget_id: BudgetId, lines: list[AdditionalLine]) -> None:
        ...


class InMemoryBudgetRepository:
    """プロセス内の保存先（同一ペイロードの再送は結果が変わらない）"""

    def __init__(self):
        self._lock = threading.Lock()
        self._summaries: dict = {}
        self._lines: dict = {}
        self.write_count = 0

    def replace_totals(self, budget_id: BudgetId, summary: BudgetSummary) -> None:
        with self._lock:
            self._summaries[budget_id] = summary.model_copy(deep=True)
            self.write_count += 1

    def replace_additional_lines(self, budget_id: BudgetId, lines: list[AdditionalLine]) -> None:
        with self._lock:
            self._lines[budget_id] = [line.model_copy(deep=True) for line in lines]
            self.write_count += 1

    def get_summary(self, budget_id: BudgetId) -> Optional[BudgetSummary]:
        with self._lock:
            summary = self._summaries.get(budget_id)
            return summary.model_copy(deep=True) if summary else None

    def get_additional_lines(self, budget_id: BudgetId) -> list[AdditionalLine]:
        with self._lock:
            return [line.model_copy(deep=True) for line in self._lines.get(budget_id, [])]
