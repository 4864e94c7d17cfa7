"""見積（presupuesto）サマリー編集ツール - Streamlit メインエントリ"""
from datetime import date
from xml.sax.saxutils import escape

import streamlit as st

import config
from models.budget_data import (
    BudgetCover, BudgetSnapshot, CompositeBlock, CompositeBlockSection, Condition,
    ConceptType, ItemTable, ItemTableRow, RowKind, SectionKey, SimpleBlock,
)
from editor.editor_session import EditorSession
from generation.budget_builder import section_contributions, update_item_row, item_table_total
from generation.document_composer import compose_document
from generation.pdf_generator import generate_pdf
from persistence.repository import InMemoryBudgetRepository
from pricing.breakdown_rows import (
    build_breakdown_rows, build_disclaimers, format_currency, format_percentage,
)
from pricing.knowledge_base import concept_type_label, section_titles

config.setup_logging()

# ページ設定
st.set_page_config(
    page_title="Presupuestos - Resumen",
    page_icon="🧾",
    layout="wide",
    initial_sidebar_state="collapsed",
)

# カスタムCSS
st.markdown("""
<style>
    .app-header {
        background: linear-gradient(135deg, #7a4d32 0%, #a06a48 100%);
        color: white;
        padding: 1.2rem 1.8rem;
        border-radius: 12px;
        margin-bottom: 1rem;
    }
    .app-header h1 { margin: 0; font-size: 1.6rem; font-weight: 700; }
    .app-header p { margin: 0.3rem 0 0 0; font-size: 0.85rem; color: rgba(255,255,255,0.75); }
    .row-struck { text-decoration: line-through; color: #94a3b8; }
    .row-total { font-weight: 800; font-size: 1.15rem; color: #7a4d32; }
    .unsaved-badge {
        background: #FEF3C7; color: #92400E; padding: 2px 8px;
        border-radius: 4px; font-size: 0.75rem; font-weight: 600;
    }
</style>
""", unsafe_allow_html=True)


# =============================================================
# メイン
# =============================================================
def main():
    st.markdown("""
    <div class="app-header">
        <h1>🧾 Presupuestos</h1>
        <p>Resumen, impuestos y descuentos del presupuesto</p>
    </div>
    """, unsafe_allow_html=True)

    # セッション初期化
    _init_session()

    tab_sections, tab_summary, tab_export = st.tabs(
        ["Secciones", "Resumen", "Exportar PDF"])
    with tab_sections:
        _render_sections()
    with tab_summary:
        _render_summary()
    with tab_export:
        _render_export()


def _init_session():
    if "editor_session" in st.session_state:
        return
    snapshot = _demo_snapshot()
    repository = InMemoryBudgetRepository()
    session = EditorSession(repository)
    session.open_document(
        snapshot.id,
        lines=snapshot.additional_lines or [],
        vat_percentage=snapshot.vat_percentage,
        sections=section_contributions(snapshot),
    )
    st.session_state.snapshot = snapshot
    st.session_state.repository = repository
    st.session_state.editor_session = session
    st.session_state.pdf_bytes = None


def _demo_snapshot() -> BudgetSnapshot:
    """初期表示用のサンプル見積"""
    return BudgetSnapshot(
        id=1,
        cover=BudgetCover(
            budget_number=config.generate_budget_number(),
            title="Reforma de cocina",
            customer_name="Cliente de ejemplo",
            issue_date=date.today(),
        ),
        composite_blocks=[CompositeBlock(
            id=1, heading="Mobiliario",
            descriptions=[CompositeBlockSection(title="Muebles bajos", text="Lacado blanco mate")],
            subtotal=3200,
        )],
        item_tables=[ItemTable(id=1, title="Electrodomésticos", rows=[
            ItemTableRow(id=1, description="Horno", reference="HB-100", manufacturer="Bosch",
                         quantity=1, unit_price=540, total_price=540),
            ItemTableRow(id=2, description="Placa de inducción", reference="PI-60",
                         manufacturer="Bosch", quantity=1, unit_price=420, total_price=420),
        ])],
        simple_block=SimpleBlock(model="Encimera Silestone", description="Blanco Zeus, 2 cm", price=1150),
        conditions=[Condition(title="Forma de pago", text="50% a la firma, 50% a la entrega.")],
        vat_percentage=config.DEFAULT_VAT_PERCENTAGE,
        additional_lines=[],
    )


# =============================================================
# セクション（小計と表示フラグ）
# =============================================================
def _render_sections():
    snapshot: BudgetSnapshot = st.session_state.snapshot
    session: EditorSession = st.session_state.editor_session
    titles = section_titles()

    # 複合ブロック
    snapshot.visibility.composite_blocks = st.checkbox(
        f"Mostrar {titles['composite_blocks']}", value=snapshot.visibility.composite_blocks,
        key="show_composite_blocks")
    for idx, block in enumerate(snapshot.composite_blocks):
        block.subtotal = st.number_input(
            block.heading or f"Bloque {idx + 1}", value=float(block.subtotal),
            min_value=0.0, step=10.0, key=f"block_{idx}")

    st.divider()

    # 明細テーブル
    snapshot.visibility.item_tables = st.checkbox(
        f"Mostrar {titles['item_tables']}", value=snapshot.visibility.item_tables,
        key="show_item_tables")
    for t_idx, table in enumerate(snapshot.item_tables):
        st.markdown(f"**{table.title}**")
        for r_idx, row in enumerate(table.rows):
            cols = st.columns([4, 2, 2, 2])
            with cols[0]:
                st.text(row.description)
            with cols[1]:
                new_qty = st.number_input("Cantidad", value=float(row.quantity), min_value=0.0,
                                          key=f"qty_{t_idx}_{r_idx}", label_visibility="collapsed")
            with cols[2]:
                new_price = st.number_input("Precio", value=float(row.unit_price), min_value=0.0,
                                            key=f"price_{t_idx}_{r_idx}", label_visibility="collapsed")
            if new_qty != row.quantity or new_price != row.unit_price:
                update_item_row(table, r_idx, quantity=new_qty, unit_price=new_price)
            with cols[3]:
                st.text(format_currency(row.total_price))
        st.caption(f"Total del grupo: {format_currency(item_table_total(table))}")

    st.divider()

    # シンプルブロック
    snapshot.visibility.simple_block = st.checkbox(
        f"Mostrar {titles['simple_block']}", value=snapshot.visibility.simple_block,
        key="show_simple_block")
    if snapshot.simple_block is not None:
        snapshot.simple_block.price = st.number_input(
            snapshot.simple_block.model or "Precio", value=float(snapshot.simple_block.price),
            min_value=0.0, step=10.0, key="simple_block_price")

    # 変更のあったセクションだけ反映
    current = {section.key: section for section in session.editor.sections}
    for section in section_contributions(snapshot):
        before = current[section.key]
        if before.raw_total != section.raw_total or before.visible != section.visible:
            session.update_section(section.key, section.raw_total, section.visible)


# =============================================================
# サマリー編集
# =============================================================
def _render_summary():
    session: EditorSession = st.session_state.editor_session
    editor = session.editor

    head_cols = st.columns([2, 1])
    with head_cols[0]:
        if editor.has_unsaved_changes:
            st.markdown('<span class="unsaved-badge">Cambios sin guardar</span>',
                        unsafe_allow_html=True)
    with head_cols[1]:
        vat_text = st.text_input("IVA (%)", value=f"{editor.vat_percentage:g}", key="vat_input")
        if vat_text != f"{editor.vat_percentage:g}":
            editor.set_vat_percentage(vat_text)

    # 追加行
    type_options = [t.value for t in ConceptType]
    for line in editor.lines:
        cols = st.columns([2, 4, 2, 2, 1])
        with cols[0]:
            new_type = st.selectbox(
                "Tipo", type_options, index=type_options.index(line.concept_type.value),
                format_func=concept_type_label, key=f"type_{line.id}",
                label_visibility="collapsed")
        with cols[1]:
            new_concept = st.text_input("Concepto", value=line.concept,
                                        key=f"concept_{line.id}", label_visibility="collapsed")
        with cols[2]:
            new_amount = st.text_input(
                "Importe", value=f"{line.amount:g}", key=f"amount_{line.id}",
                disabled=line.concept_type == ConceptType.NOTE, label_visibility="collapsed")
        with cols[3]:
            new_valid_until = None
            if line.concept_type == ConceptType.DISCOUNT:
                new_valid_until = st.date_input("Válido hasta", value=line.valid_until,
                                                key=f"valid_{line.id}", label_visibility="collapsed")
        with cols[4]:
            if st.button("🗑", key=f"delete_{line.id}"):
                editor.delete_line(line.id)
                st.rerun()

        changes = {}
        if new_type != line.concept_type.value:
            changes["concept_type"] = new_type
        if new_concept != line.concept:
            changes["concept"] = new_concept
        if new_amount != f"{line.amount:g}":
            changes["amount"] = new_amount
        if new_valid_until != line.valid_until and line.concept_type == ConceptType.DISCOUNT:
            changes["valid_until"] = new_valid_until
        if changes:
            editor.update_line(line.id, **changes)

    if st.button("＋ Añadir línea"):
        editor.add_line()
        st.rerun()

    st.divider()

    # 内訳（入力のたびに再計算）
    breakdown = editor.breakdown
    snapshot: BudgetSnapshot = st.session_state.snapshot
    for row in build_breakdown_rows(breakdown, snapshot.section_titles, snapshot.section_order):
        cols = st.columns([4, 2])
        css = "row-struck" if row.struck else ("row-total" if row.kind == RowKind.GRAND_TOTAL else "")
        with cols[0]:
            st.markdown(_row_html(row.label, css), unsafe_allow_html=True)
        with cols[1]:
            st.markdown(_row_html(format_currency(row.amount), css), unsafe_allow_html=True)
    for text in build_disclaimers(breakdown):
        st.caption(f"* {text}")

    nav_cols = st.columns([1, 1, 2])
    with nav_cols[0]:
        if st.button("💾 Guardar", type="primary", disabled=not editor.has_unsaved_changes):
            editor.save()
            st.rerun()
    with nav_cols[1]:
        if st.button("↩ Descartar", disabled=not editor.has_unsaved_changes):
            editor.discard()
            st.rerun()

    if session.last_error is not None:
        st.warning(f"No se pudo guardar: {session.last_error}")
        if session.has_pending_write and st.button("🔁 Reintentar guardado"):
            session.flush()
            st.rerun()


def _row_html(text: str, css: str) -> str:
    """内訳行のHTML（利用者入力はエスケープ）"""
    return f'<span class="{css}">{escape(text)}</span>'


# =============================================================
# PDF出力（印刷時の表示フラグで再計算）
# =============================================================
def _render_export():
    session: EditorSession = st.session_state.editor_session
    snapshot: BudgetSnapshot = st.session_state.snapshot
    editor = session.editor
    titles = section_titles()

    st.caption("Las secciones ocultas no se incluyen en los totales del PDF.")
    print_visibility = {
        key: st.checkbox(f"Imprimir {titles[key.value]}", value=snapshot.visibility.is_visible(key),
                         key=f"print_{key.value}")
        for key in SectionKey
    }

    if st.button("📄 Generar PDF", type="primary"):
        session.flush()
        export_snapshot = snapshot.model_copy(update={
            "additional_lines": editor.committed_lines,
            "vat_percentage": editor.committed_vat_percentage,
            "summary": st.session_state.repository.get_summary(snapshot.id),
        })
        with st.spinner("Generando PDF..."):
            document = compose_document(export_snapshot, print_visibility)
            st.session_state.pdf_bytes = generate_pdf(document)
            st.session_state.pdf_name = document.file_name
        st.success(
            f"Total: {format_currency(document.breakdown.grand_total)} "
            f"(IVA {format_percentage(document.breakdown.vat_percentage)})")

    if st.session_state.pdf_bytes:
        st.download_button(
            label="📥 Descargar PDF", data=st.session_state.pdf_bytes,
            file_name=st.session_state.pdf_name, mime="application/pdf")


if __name__ == "__main__":
    main()
