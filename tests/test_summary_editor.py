import pytest

from editor.summary_editor import SummaryEditor
from models.budget_data import ConceptType, SectionKey


def make_editor(**kwargs) -> SummaryEditor:
    editor = SummaryEditor(vat_percentage=21, **kwargs)
    editor.set_section_total(SectionKey.COMPOSITE_BLOCKS, 100)
    return editor


def test_breakdown_recomputes_on_every_change():
    editor = make_editor()
    assert editor.breakdown.grand_total == pytest.approx(121)

    editor.set_section_total("simple_block", 100)
    assert editor.breakdown.grand_total == pytest.approx(242)

    editor.set_section_visibility(SectionKey.SIMPLE_BLOCK, False)
    assert editor.breakdown.grand_total == pytest.approx(121)

    line = editor.add_line(ConceptType.DISCOUNT, amount=10)
    assert editor.breakdown.grand_total == pytest.approx(108.9)

    editor.update_line(line.id, concept_type="optional")
    assert editor.breakdown.grand_total == pytest.approx(121)

    editor.set_vat_percentage("10")
    assert editor.breakdown.grand_total == pytest.approx(110)


def test_hidden_section_keeps_raw_total():
    editor = make_editor()
    editor.set_section_visibility(SectionKey.COMPOSITE_BLOCKS, False)
    editor.set_section_visibility(SectionKey.COMPOSITE_BLOCKS, True)

    assert editor.breakdown.total_blocks == 100


def test_new_lines_get_decreasing_negative_ids():
    editor = make_editor()

    first = editor.add_line()
    second = editor.add_line(ConceptType.NOTE, concept="Nota")

    assert (first.id, second.id) == (-1, -2)
    assert [line.id for line in editor.lines] == [-1, -2]
    assert editor.has_unsaved_changes


def test_update_line_renormalizes():
    editor = make_editor()
    line = editor.add_line()

    updated = editor.update_line(line.id, amount="-45,5", concept="  Porte ")
    note = editor.update_line(line.id, concept_type="note")

    assert updated.amount == 45.5
    assert updated.concept == "Porte"
    assert note.amount == 0


def test_update_and_delete_unknown_line_is_noop():
    editor = make_editor()
    editor.add_line(amount=5)

    assert editor.update_line(999, amount=1) is None
    assert editor.delete_line(999) is False
    assert editor.delete_line(None) is False
    assert len(editor.lines) == 1


def test_delete_line():
    editor = make_editor()
    line = editor.add_line(amount=30)

    assert editor.delete_line(line.id) is True
    assert editor.lines == []
    assert editor.breakdown.net_adjustments == 0


def test_invalid_vat_input_is_ignored_and_negative_clamped():
    editor = make_editor()

    assert editor.set_vat_percentage("abc") is False
    assert editor.vat_percentage == 21

    editor.set_vat_percentage(-4)
    assert editor.vat_percentage == 0


def test_save_commits_draft_and_calls_callback():
    saved = []
    editor = make_editor(on_save=lambda summary, lines: saved.append((summary, lines)))
    editor.add_line(ConceptType.ADJUSTMENT, "Transporte", 20)

    summary = editor.save()

    assert not editor.has_unsaved_changes
    assert summary.taxable_base == pytest.approx(120)
    assert [line.concept for line in editor.committed_lines] == ["Transporte"]
    assert saved[0][0] == summary
    assert saved[0][1][0].amount == 20


def test_edits_are_not_saved_without_explicit_save():
    saved = []
    editor = make_editor(on_save=lambda summary, lines: saved.append(summary))

    editor.add_line(amount=20)
    editor.set_vat_percentage(10)

    assert saved == []
    assert editor.committed_lines == []
    assert editor.committed_vat_percentage == 21


def test_discard_restores_committed_state():
    editor = make_editor()
    editor.add_line(ConceptType.ADJUSTMENT, "Transporte", 20)
    editor.save()

    editor.add_line(ConceptType.DISCOUNT, amount=50)
    editor.set_vat_percentage(4)
    editor.discard()

    assert [line.concept for line in editor.lines] == ["Transporte"]
    assert editor.vat_percentage == 21
    assert not editor.has_unsaved_changes
    assert editor.breakdown.grand_total == pytest.approx(145.2)


def test_committed_breakdown_ignores_draft():
    editor = make_editor()
    editor.add_line(amount=50)

    assert editor.committed_breakdown.taxable_base == 100
    assert editor.breakdown.taxable_base == 150


def test_load_normalizes_initial_lines():
    editor = SummaryEditor(lines=[{"id": 3, "amount": "-7", "concept_type": "bogus"}], vat_percentage=-1)

    assert editor.lines[0].amount == 7
    assert editor.lines[0].concept_type == ConceptType.ADJUSTMENT
    assert editor.vat_percentage == 0
    assert not editor.has_unsaved_changes


def test_unknown_section_key_raises():
    with pytest.raises(ValueError):
        make_editor().set_section_total("countertops", 10)
