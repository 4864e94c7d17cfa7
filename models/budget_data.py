"""見積（presupuesto）の全構造をモデル化"""
from datetime import date
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field


class ConceptType(str, Enum):
    """追加行の種別"""
    ADJUSTMENT = "adjustment"   # 課税前に加算（Recargo）
    DISCOUNT = "discount"       # 税込合計に対する割合（Descuento）
    OPTIONAL = "optional"       # 表示のみ、合計に含めない（Opcional）
    NOTE = "note"               # テキストのみ、金額なし（Nota）


class SectionKey(str, Enum):
    """金額を持つコンテンツセクション"""
    COMPOSITE_BLOCKS = "composite_blocks"
    ITEM_TABLES = "item_tables"
    SIMPLE_BLOCK = "simple_block"


# セクション → BudgetSummary のフィールド名
SUMMARY_FIELD_BY_SECTION = {
    SectionKey.COMPOSITE_BLOCKS: "total_blocks",
    SectionKey.ITEM_TABLES: "total_items",
    SectionKey.SIMPLE_BLOCK: "total_simple_block",
}


class RowKind(str, Enum):
    """サマリー表の行種別"""
    SECTION = "section"
    ADJUSTMENT = "adjustment"
    NOTE = "note"
    TAXABLE_BASE = "taxable_base"
    VAT = "vat"
    TOTAL_BEFORE_DISCOUNT = "total_before_discount"
    DISCOUNT = "discount"
    GRAND_TOTAL = "grand_total"
    OPTIONAL = "optional"


class AdditionalLine(BaseModel):
    """サマリーの追加行（Recargo / Descuento / Opcional / Nota）"""
    id: Optional[Union[int, str]] = Field(default=None, description="行ID（未保存は負の仮ID）")
    concept: str = Field(default="", description="概念・ラベル")
    amount: float = Field(default=0, description="金額（割引は%）、常に0以上")
    concept_type: ConceptType = Field(default=ConceptType.ADJUSTMENT, description="行種別")
    valid_until: Optional[date] = Field(default=None, description="割引の有効期限")


class SectionContribution(BaseModel):
    """セクション小計と表示フラグ"""
    key: SectionKey = Field(description="セクション種別")
    raw_total: float = Field(default=0, description="セクション自身の小計")
    visible: bool = Field(default=False, description="ドキュメントに表示中か")


class BudgetSummary(BaseModel):
    """見積サマリー（保存される正規形）"""
    total_blocks: float = Field(default=0, description="複合ブロック（有効）合計")
    total_items: float = Field(default=0, description="明細テーブル（有効）合計")
    total_simple_block: float = Field(default=0, description="シンプルブロック（有効）合計")
    taxable_base: float = Field(default=0, description="課税標準（Base imponible）")
    vat: float = Field(default=0, description="IVA")
    vat_percentage: float = Field(default=0, description="IVA率（%）")
    grand_total: float = Field(default=0, description="総合計")
    additional_lines: list[AdditionalLine] = Field(default_factory=list)


class PriceBreakdown(BudgetSummary):
    """計算エンジンの全出力（サマリー＋中間値）"""
    base_subtotal: float = Field(default=0, description="有効セクション合計")
    net_adjustments: float = Field(default=0, description="Recargo合計")
    total_before_discount: float = Field(default=0, description="割引前の税込合計")
    total_discount: float = Field(default=0, description="割引額合計")
    optional_lines_total: float = Field(default=0, description="オプション合計（表示のみ）")
    visible_sections: list[SectionKey] = Field(default_factory=list, description="表示中のセクション")

    def to_summary(self) -> BudgetSummary:
        """保存用の BudgetSummary に射影"""
        return BudgetSummary(**self.model_dump(include=set(BudgetSummary.model_fields)))


class BreakdownRow(BaseModel):
    """サマリー表の1行"""
    kind: RowKind
    label: str = ""
    amount: Optional[float] = Field(default=None, description="金額（ノート行はNone）")
    struck: bool = Field(default=False, description="取り消し線（非拘束）表示")


# --- セクションの中身 ---

class CompositeBlockSection(BaseModel):
    """複合ブロック内の説明セクション"""
    title: str = ""
    text: str = ""


class CompositeBlock(BaseModel):
    """複合ブロック（見出し・説明・小計）"""
    id: Optional[int] = None
    heading: str = ""
    descriptions: list[CompositeBlockSection] = Field(default_factory=list)
    link: str = ""
    subtotal: float = 0


class ItemTableRow(BaseModel):
    """明細テーブルの行"""
    id: Optional[int] = None
    description: str = ""
    reference: str = ""
    manufacturer: str = ""
    quantity: float = 0
    unit_price: float = 0
    total_price: float = Field(default=0, description="数量 × 単価")


class ItemTable(BaseModel):
    """明細テーブル（列表示はPDF用）"""
    id: Optional[int] = None
    title: str = ""
    rows: list[ItemTableRow] = Field(default_factory=list)
    show_reference: bool = True
    show_description: bool = True
    show_manufacturer: bool = True
    show_quantity: bool = True
    show_unit_price: bool = True
    show_total_price: bool = True


class SimpleBlock(BaseModel):
    """シンプルブロック（モデル・説明・価格）"""
    model: str = ""
    description: str = ""
    price: float = 0


class Condition(BaseModel):
    """一般条件の1項目"""
    title: str = ""
    text: str = ""


class SectionVisibility(BaseModel):
    """セクション表示フラグ"""
    composite_blocks: bool = True
    item_tables: bool = True
    simple_block: bool = True

    def is_visible(self, key: SectionKey) -> bool:
        return bool(getattr(self, SectionKey(key).value))


class BudgetCover(BaseModel):
    """見積書ヘッダー情報"""
    budget_number: str = Field(default="", description="見積番号")
    title: str = Field(default="", description="件名")
    customer_name: str = Field(default="", description="宛先")
    issue_date: Optional[date] = Field(default=None, description="発行日")
    valid_until: Optional[date] = Field(default=None, description="有効期限")
    representative: str = Field(default="", description="担当者")


class BudgetSnapshot(BaseModel):
    """エクスポート用の見積スナップショット"""
    id: Optional[Union[int, str]] = None
    cover: BudgetCover = Field(default_factory=BudgetCover)
    composite_blocks: list[CompositeBlock] = Field(default_factory=list)
    item_tables: list[ItemTable] = Field(default_factory=list)
    simple_block: Optional[SimpleBlock] = None
    conditions_title: str = ""
    conditions: list[Condition] = Field(default_factory=list)
    visibility: SectionVisibility = Field(default_factory=SectionVisibility)
    section_order: list[SectionKey] = Field(default_factory=list)
    section_titles: dict[SectionKey, str] = Field(default_factory=dict)
    additional_lines: Optional[list[AdditionalLine]] = Field(
        default=None, description="未指定なら保存済みサマリーの行を使用")
    vat_percentage: Optional[float] = Field(
        default=None, description="未指定なら保存済みサマリーの率を使用")
    summary: Optional[BudgetSummary] = Field(default=None, description="前回保存のサマリー")


class ComposedDocument(BaseModel):
    """PDF描画用に組み立てたドキュメント"""
    cover: BudgetCover
    file_name: str
    sections: list[SectionKey] = Field(default_factory=list, description="表示セクション（順序付き）")
    section_titles: dict[SectionKey, str] = Field(default_factory=dict)
    composite_blocks: list[CompositeBlock] = Field(default_factory=list)
    item_tables: list[ItemTable] = Field(default_factory=list)
    simple_block: Optional[SimpleBlock] = None
    breakdown: PriceBreakdown
    rows: list[BreakdownRow] = Field(default_factory=list)
    disclaimers: list[str] = Field(default_factory=list)
    conditions_title: str = ""
    conditions: list[Condition] = Field(default_factory=list)
