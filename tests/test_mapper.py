"""
Focused tests for ProcedureMapper coercion rules:
- legacy aliases (serialNumber, procedure 'type'),
- defaults for missing optional fields and ids,
- static helpers _to_text / _is_missing.
"""

import math

from stairval.notepad import create_notepad

from implantpass.mapper import ProcedureMapper
from implantpass.procedure import Side


def messages(issues) -> list[str]:
    return [issue.message for issue in issues]


def test_to_text_helpers():
    t = ProcedureMapper._to_text
    assert t(12345.0) == "12345"
    assert t(12.5) == "12.5"
    assert t("  Zimmer ") == "Zimmer"
    assert t(None) == ""
    assert t(math.nan) == ""


def test_is_missing_truth_table():
    m = ProcedureMapper._is_missing
    for missing in [None, math.nan, float("nan")]:
        assert m(missing) is True
    for present in ["", "x", 0, [], {}]:
        assert m(present) is False


def test_serial_number_folds_into_lot_number():
    note = create_notepad("implant")
    implant = ProcedureMapper().map_implant(
        {"id": "i1", "name": "Cup", "serialNumber": "SN-1"}, "implant", note
    )
    assert implant.lot_number == "SN-1"
    assert not hasattr(implant, "serial_number")
    assert "serialNumber" not in implant.to_wire()
    assert any("serialNumber" in msg for msg in messages(note.warnings()))


def test_lot_number_wins_over_serial_number():
    note = create_notepad("implant")
    implant = ProcedureMapper().map_implant(
        {"id": "i1", "lotNumber": "L1", "serialNumber": "SN-1"}, "implant", note
    )
    assert implant.lot_number == "L1"
    assert not note.has_warnings(include_subsections=True)


def test_missing_implant_id_is_generated():
    note = create_notepad("implant")
    implant = ProcedureMapper().map_implant({"name": "Cup"}, "implant", note)
    assert implant.id.startswith("imp-")
    assert implant.manufacturer == ""
    assert implant.notes is None
    assert note.has_warnings(include_subsections=True)


def test_non_object_implant_is_an_error():
    note = create_notepad("implant")
    assert ProcedureMapper().map_implant("Cup", "implant", note) is None
    assert note.has_errors(include_subsections=True)


def test_map_procedure_defaults_and_legacy_type():
    note = create_notepad("procedure")
    procedure = ProcedureMapper().map_procedure(
        {"id": "p1", "date": "2023-05-15", "surgeon": "S", "hospital": "H", "type": "Knee", "side": "right"},
        "procedure",
        note,
    )
    assert procedure.procedure_type == "Knee"
    assert procedure.date == "15.05.2023"
    assert procedure.side is Side.RIGHT
    assert procedure.implants == []
    assert procedure.notes is None
    assert not note.has_errors(include_subsections=True)


def test_map_procedure_keeps_dates_when_normalization_disabled():
    note = create_notepad("procedure")
    procedure = ProcedureMapper(normalize_dates=False).map_procedure(
        {"id": "p1", "date": "2023-05-15"}, "procedure", note
    )
    assert procedure.date == "2023-05-15"


def test_unknown_side_and_bad_implants_are_warnings():
    note = create_notepad("procedure")
    procedure = ProcedureMapper().map_procedure(
        {"id": "p1", "date": "2023-05-15", "side": "both", "implants": "none"}, "procedure", note
    )
    assert procedure.side is None
    assert procedure.implants == []
    assert len(messages(note.warnings())) == 2
    assert not note.has_errors(include_subsections=True)


def test_map_procedures_skips_unusable_entries_in_order():
    note = create_notepad("procedures")
    procedures = ProcedureMapper().map_procedures(
        [{"id": "a", "date": "2020-01-01"}, 7, {"id": "b", "date": "2020-01-02"}], "procedures", note
    )
    assert [p.id for p in procedures] == ["a", "b"]
    assert note.has_errors(include_subsections=True)
