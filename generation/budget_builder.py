"""セクション内容から小計を組み立て"""
from collections.abc import Mapping
from typing import Optional

from models.budget_data import (
    BudgetSnapshot, CompositeBlock, ItemTable, ItemTableRow, SectionContribution,
    SectionKey, SimpleBlock,
)
from pricing.section_aggregator import apply_visibility


def composite_blocks_total(blocks: list[CompositeBlock]) -> float:
    """複合ブロックの小計合計"""
    return float(sum(block.subtotal for block in blocks))


def item_table_total(table: ItemTable) -> float:
    """明細テーブル1つの合計"""
    return float(sum(row.total_price for row in table.rows))


def item_tables_total(tables: list[ItemTable]) -> float:
    """全明細テーブルの合計"""
    return float(sum(item_table_total(table) for table in tables))


def simple_block_total(block: Optional[SimpleBlock]) -> float:
    """シンプルブロックの価格（未作成は0）"""
    return float(block.price) if block else 0.0


def section_contributions(snapshot: BudgetSnapshot,
                          visibility: Optional[Mapping] = None) -> list[SectionContribution]:
    """スナップショットから各セクションの小計と表示フラグを作成

    Args:
        snapshot: 見積スナップショット
        visibility: 印刷時の表示フラグ上書き {SectionKey|str: bool}

    Returns:
        list[SectionContribution]: 3セクション分
    """
    raw_totals = {
        SectionKey.COMPOSITE_BLOCKS: composite_blocks_total(snapshot.composite_blocks),
        SectionKey.ITEM_TABLES: item_tables_total(snapshot.item_tables),
        SectionKey.SIMPLE_BLOCK: simple_block_total(snapshot.simple_block),
    }
    sections = [
        SectionContribution(
            key=key,
            raw_total=raw_total,
            visible=snapshot.visibility.is_visible(key),
        )
        for key, raw_total in raw_totals.items()
    ]
    # 印刷時の上書き（未指定キーはスナップショットのフラグ）
    return apply_visibility(sections, visibility or {})


def update_item_row(table: ItemTable, row_idx: int,
                    quantity: float = None, unit_price: float = None,
                    total_price: float = None) -> ItemTable:
    """明細行を手動更新して行合計を再計算

    Args:
        table: 明細テーブル
        row_idx: 行インデックス
        quantity: 新しい数量
        unit_price: 新しい単価
        total_price: 新しい行合計（直接指定）

    Returns:
        ItemTable: 更新されたテーブル
    """
    row: ItemTableRow = table.rows[row_idx]

    if quantity is not None:
        row.quantity = quantity

    if unit_price is not None:
        row.unit_price = unit_price

    if total_price is not None:
        row.total_price = total_price
    elif quantity is not None or unit_price is not None:
        row.total_price = round(row.quantity * row.unit_price, 2)

    return table
