from datetime import date

import pytest

from models.budget_data import (
    AdditionalLine, BudgetCover, BudgetSnapshot, CompositeBlock, ConceptType, ItemTable,
    ItemTableRow, SectionContribution, SectionKey, SimpleBlock,
)


class FakeTimer:
    """threading.Timer の代わり（テストから手動で発火）"""

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function(*self.args, **self.kwargs)

    def fire_anyway(self):
        # cancel と発火が競合したケース
        self.function(*self.args, **self.kwargs)


class TimerFactory:
    def __init__(self):
        self.timers = []

    def __call__(self, interval, function, args=None, kwargs=None):
        timer = FakeTimer(interval, function, args, kwargs)
        self.timers.append(timer)
        return timer

    @property
    def last(self) -> FakeTimer:
        return self.timers[-1]


@pytest.fixture
def timers():
    return TimerFactory()


def make_line(concept_type: ConceptType, amount, concept: str = "", line_id=None, **extra) -> AdditionalLine:
    return AdditionalLine(id=line_id, concept=concept, amount=amount, concept_type=concept_type, **extra)


def make_sections(blocks=0.0, items=0.0, simple=0.0, visible=True) -> list[SectionContribution]:
    return [
        SectionContribution(key=SectionKey.COMPOSITE_BLOCKS, raw_total=blocks, visible=visible),
        SectionContribution(key=SectionKey.ITEM_TABLES, raw_total=items, visible=visible),
        SectionContribution(key=SectionKey.SIMPLE_BLOCK, raw_total=simple, visible=visible),
    ]


@pytest.fixture
def snapshot() -> BudgetSnapshot:
    return BudgetSnapshot(
        id=42,
        cover=BudgetCover(budget_number="2026-000042", title="Reforma de cocina",
                          customer_name="Ana", issue_date=date(2026, 10, 1)),
        composite_blocks=[CompositeBlock(id=1, heading="Mobiliario", subtotal=100)],
        item_tables=[ItemTable(id=1, title="Electrodomésticos", rows=[
            ItemTableRow(id=1, description="Horno", quantity=1, unit_price=300, total_price=300),
            ItemTableRow(id=2, description="Campana", quantity=2, unit_price=100, total_price=200),
        ])],
        simple_block=SimpleBlock(model="Encimera", price=300),
        vat_percentage=21,
        additional_lines=[],
    )
