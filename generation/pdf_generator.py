"""ReportLab PDF出力 - 見積書（presupuesto）PDF生成"""
import os
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.platypus import (
    Table, TableStyle, Paragraph, Spacer, Frame, PageTemplate, BaseDocTemplate,
)
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont

from models.budget_data import ComposedDocument, ItemTable, RowKind, SectionKey
from pricing.breakdown_rows import format_currency, format_date
from pricing.knowledge_base import load_pricing_rules
from config import FONT_REGULAR, FONT_BOLD, COMPANY_INFO

# ページサイズ
PAGE_WIDTH, PAGE_HEIGHT = A4  # 210mm x 297mm

# マージン
LEFT_MARGIN = 15 * mm
RIGHT_MARGIN = 15 * mm
TOP_MARGIN = 30 * mm
BOTTOM_MARGIN = 20 * mm
CONTENT_WIDTH = PAGE_WIDTH - LEFT_MARGIN - RIGHT_MARGIN

# 色定義
ACCENT = colors.Color(0.48, 0.30, 0.20)  # #7a4d32
MUTED = colors.Color(0.42, 0.45, 0.50)
BLACK = colors.black
LIGHT_GRAY = colors.Color(0.95, 0.95, 0.95)


def _register_fonts():
    """TTFフォントを登録（無ければHelvetica）"""
    if os.path.exists(str(FONT_REGULAR)) and os.path.exists(str(FONT_BOLD)):
        pdfmetrics.registerFont(TTFont('BudgetSans', str(FONT_REGULAR)))
        pdfmetrics.registerFont(TTFont('BudgetSans-Bold', str(FONT_BOLD)))
        return 'BudgetSans', 'BudgetSans-Bold'
    return 'Helvetica', 'Helvetica-Bold'


def generate_pdf(document: ComposedDocument) -> bytes:
    """見積書PDFを生成

    Args:
        document: compose_document で組み立てたドキュメント

    Returns:
        bytes: PDF バイナリデータ
    """
    font_normal, font_bold = _register_fonts()
    buffer = BytesIO()
    doc_rules = load_pricing_rules()["document"]

    doc = BaseDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=LEFT_MARGIN,
        rightMargin=RIGHT_MARGIN,
        topMargin=TOP_MARGIN,
        bottomMargin=BOTTOM_MARGIN,
        title=document.cover.title or doc_rules["title"],
    )

    frame = Frame(
        LEFT_MARGIN, BOTTOM_MARGIN,
        CONTENT_WIDTH,
        PAGE_HEIGHT - TOP_MARGIN - BOTTOM_MARGIN,
        id='normal',
    )

    def _header_footer(canvas_obj, doc_obj):
        """ヘッダー・フッター描画"""
        canvas_obj.saveState()
        # ヘッダー：タイトル / 見積番号・発行日
        canvas_obj.setFont(font_bold, 14)
        canvas_obj.setFillColor(ACCENT)
        canvas_obj.drawString(LEFT_MARGIN, PAGE_HEIGHT - 15 * mm, doc_rules["title"])
        canvas_obj.setFont(font_normal, 8)
        canvas_obj.setFillColor(BLACK)
        canvas_obj.drawRightString(PAGE_WIDTH - RIGHT_MARGIN, PAGE_HEIGHT - 13 * mm,
                                   f"Nº {document.cover.budget_number}")
        canvas_obj.drawRightString(PAGE_WIDTH - RIGHT_MARGIN, PAGE_HEIGHT - 17 * mm,
                                   f"Fecha {format_date(document.cover.issue_date)}")
        # フッター：会社名 / ページ番号
        canvas_obj.setFillColor(MUTED)
        canvas_obj.drawString(LEFT_MARGIN, 10 * mm, COMPANY_INFO["name"])
        canvas_obj.drawRightString(PAGE_WIDTH - RIGHT_MARGIN, 10 * mm, str(doc_obj.page))
        canvas_obj.restoreState()

    template = PageTemplate(id='main', frames=[frame], onPage=_header_footer)
    doc.addPageTemplates([template])

    styles = _create_styles(font_normal, font_bold)

    elements = []
    elements.extend(_build_cover_block(document, styles))

    # 表示中のセクションのみ（文書順）
    for key in document.sections:
        title = _section_title(document, key)
        if key == SectionKey.COMPOSITE_BLOCKS:
            elements.extend(_build_composite_blocks(document, title, styles))
        elif key == SectionKey.ITEM_TABLES:
            elements.extend(_build_item_tables(document, title, styles, font_normal, font_bold))
        elif key == SectionKey.SIMPLE_BLOCK:
            elements.extend(_build_simple_block(document, title, styles))

    elements.extend(_build_summary(document, styles, font_normal, font_bold))
    elements.extend(_build_conditions(document, styles))

    doc.build(elements)
    pdf_data = buffer.getvalue()
    buffer.close()
    return pdf_data


def _create_styles(font_normal: str, font_bold: str) -> dict:
    """各種スタイルを定義"""
    return {
        'section': ParagraphStyle(
            'Section', fontName=font_bold, fontSize=12, textColor=ACCENT,
            spaceBefore=6 * mm, spaceAfter=3 * mm,
        ),
        'heading': ParagraphStyle(
            'Heading', fontName=font_bold, fontSize=11, textColor=ACCENT,
            spaceAfter=2 * mm,
        ),
        'normal': ParagraphStyle(
            'Normal', fontName=font_normal, fontSize=9, leading=13,
        ),
        'normal_small': ParagraphStyle(
            'NormalSmall', fontName=font_normal, fontSize=8, leading=11,
        ),
        'muted': ParagraphStyle(
            'Muted', fontName=font_normal, fontSize=8, leading=11, textColor=MUTED,
        ),
        'bold': ParagraphStyle(
            'Bold', fontName=font_bold, fontSize=9, leading=13,
        ),
        'right': ParagraphStyle(
            'Right', fontName=font_normal, fontSize=9, alignment=TA_RIGHT,
        ),
        'center_title': ParagraphStyle(
            'CenterTitle', fontName=font_bold, fontSize=16, alignment=TA_CENTER,
            textColor=ACCENT, spaceAfter=5 * mm,
        ),
    }


def _section_title(document: ComposedDocument, key: SectionKey) -> str:
    titles = load_pricing_rules()["section_titles"]
    return document.section_titles.get(key) or titles.get(key.value, key.value)


def _build_cover_block(document: ComposedDocument, styles: dict) -> list:
    """宛先・件名・日付"""
    cover = document.cover
    elements = []
    if cover.title:
        elements.append(Paragraph(escape(cover.title), styles['center_title']))

    info_items = [
        ("Cliente", cover.customer_name),
        ("Fecha", format_date(cover.issue_date)),
        ("Válido hasta", format_date(cover.valid_until)),
        ("Atendido por", cover.representative or COMPANY_INFO["default_representative"]),
    ]
    data = [
        [Paragraph(f"<b>{label}</b>", styles['normal']), Paragraph(escape(value), styles['normal'])]
        for label, value in info_items if value
    ]
    if data:
        table = Table(data, colWidths=[35 * mm, CONTENT_WIDTH - 35 * mm])
        table.setStyle(TableStyle([
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('LINEBELOW', (0, -1), (-1, -1), 0.5, ACCENT),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 3),
        ]))
        elements.append(table)
    elements.append(Spacer(1, 5 * mm))
    return elements


def _build_composite_blocks(document: ComposedDocument, title: str, styles: dict) -> list:
    """複合ブロック：見出し・説明・小計"""
    elements = [Paragraph(escape(title), styles['section'])]
    for block in document.composite_blocks:
        elements.append(Paragraph(escape(block.heading), styles['heading']))
        for description in block.descriptions:
            if description.title:
                elements.append(Paragraph(escape(description.title), styles['bold']))
            if description.text:
                elements.append(Paragraph(escape(description.text).replace('\n', '<br/>'),
                                          styles['normal']))
        if block.link:
            elements.append(Paragraph(escape(block.link), styles['muted']))
        elements.append(Paragraph(
            f"Subtotal del bloque: {format_currency(block.subtotal)}", styles['right']))
        elements.append(Spacer(1, 4 * mm))
    return elements


def _build_item_tables(document: ComposedDocument, title: str, styles: dict,
                       font_normal: str, font_bold: str) -> list:
    """明細テーブル（列表示はテーブルごと）"""
    elements = [Paragraph(escape(title), styles['section'])]
    for table in document.item_tables:
        if table.title:
            elements.append(Paragraph(escape(table.title), styles['heading']))
        elements.append(_build_item_table(table, styles, font_normal, font_bold))
        elements.append(Paragraph(
            f"Total del grupo: {format_currency(sum(row.total_price for row in table.rows))}",
            styles['right']))
        elements.append(Spacer(1, 4 * mm))
    return elements


def _build_item_table(table: ItemTable, styles: dict, font_normal: str, font_bold: str) -> Table:
    columns = [
        (table.show_reference, 'Referencia', 25, lambda r: escape(r.reference)),
        (table.show_description, 'Descripción', 0, lambda r: escape(r.description)),
        (table.show_manufacturer, 'Fabricante', 28, lambda r: escape(r.manufacturer)),
        (table.show_quantity, 'Cant.', 15, lambda r: f"{r.quantity:g}"),
        (table.show_unit_price, 'Precio', 25, lambda r: format_currency(r.unit_price)),
        (table.show_total_price, 'Total', 25, lambda r: format_currency(r.total_price)),
    ]
    columns = [c for c in columns if c[0]] or [columns[1]]

    # 幅0の列（説明）で残り幅を使う
    fixed = sum(width for _, _, width, _ in columns) * mm
    widths = [width * mm if width else max(CONTENT_WIDTH - fixed, 30 * mm)
              for _, _, width, _ in columns]

    data = [[header for _, header, _, _ in columns]]
    for row in table.rows:
        data.append([Paragraph(render(row), styles['normal_small']) for *_, render in columns])

    result = Table(data, colWidths=widths, repeatRows=1)
    result.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), LIGHT_GRAY),
        ('FONTNAME', (0, 0), (-1, 0), font_bold),
        ('FONTNAME', (0, 1), (-1, -1), font_normal),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('TEXTCOLOR', (0, 0), (-1, 0), ACCENT),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('GRID', (0, 0), (-1, -1), 0.25, MUTED),
        ('TOPPADDING', (0, 0), (-1, -1), 3),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 3),
    ]))
    return result


def _build_simple_block(document: ComposedDocument, title: str, styles: dict) -> list:
    """シンプルブロック：モデル・説明・価格"""
    block = document.simple_block
    elements = [Paragraph(escape(title), styles['section'])]
    if block is None:
        return elements
    if block.model:
        elements.append(Paragraph(escape(block.model), styles['heading']))
    if block.description:
        elements.append(Paragraph(escape(block.description).replace('\n', '<br/>'), styles['normal']))
    elements.append(Paragraph(f"Precio: {format_currency(block.price)}", styles['right']))
    return elements


def _build_summary(document: ComposedDocument, styles: dict,
                   font_normal: str, font_bold: str) -> list:
    """サマリー表・注記"""
    title = load_pricing_rules()["document"]["summary_title"]
    elements = [Paragraph(escape(title), styles['section'])]

    data = []
    style_cmds = [
        ('FONTNAME', (0, 0), (-1, -1), font_normal),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
        ('LINEBELOW', (0, 0), (-1, -1), 0.25, LIGHT_GRAY),
        ('TOPPADDING', (0, 0), (-1, -1), 3),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 3),
    ]
    for idx, row in enumerate(document.rows):
        label = escape(row.label)
        amount = format_currency(row.amount)
        if row.struck:
            # オプション行は取り消し線（非拘束）
            label, amount = f"<strike>{label}</strike>", f"<strike>{amount}</strike>"
        data.append([Paragraph(label, styles['normal']), Paragraph(amount, styles['right'])])

        if row.kind == RowKind.NOTE:
            style_cmds.append(('SPAN', (0, idx), (1, idx)))
        elif row.kind in (RowKind.TAXABLE_BASE, RowKind.TOTAL_BEFORE_DISCOUNT):
            style_cmds.append(('LINEABOVE', (0, idx), (-1, idx), 0.5, BLACK))
        elif row.kind == RowKind.GRAND_TOTAL:
            style_cmds.append(('BACKGROUND', (0, idx), (-1, idx), LIGHT_GRAY))
            style_cmds.append(('LINEABOVE', (0, idx), (-1, idx), 1, ACCENT))
            data[idx] = [Paragraph(f"<b>{escape(row.label)}</b>", styles['bold']),
                         Paragraph(f"<b>{format_currency(row.amount)}</b>", styles['right'])]

    table = Table(data, colWidths=[CONTENT_WIDTH - 45 * mm, 45 * mm])
    table.setStyle(TableStyle(style_cmds))
    elements.append(table)

    if document.disclaimers:
        elements.append(Spacer(1, 3 * mm))
        for text in document.disclaimers:
            elements.append(Paragraph(f"* {escape(text)}", styles['muted']))
    return elements


def _build_conditions(document: ComposedDocument, styles: dict) -> list:
    """一般条件"""
    if not document.conditions:
        return []
    elements = [Paragraph(escape(document.conditions_title), styles['section'])]
    for condition in document.conditions:
        if condition.title:
            elements.append(Paragraph(escape(condition.title), styles['bold']))
        if condition.text:
            elements.append(Paragraph(escape(condition.text).replace('\n', '<br/>'), styles['normal']))
        elements.append(Spacer(1, 2 * mm))
    return elements
