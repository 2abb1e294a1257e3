"""
Tests for reading procedures from an Excel workbook.

Workbooks are built on the fly with pandas + openpyxl:
- sheet 'procedures': index = procedure id
- sheet 'implants'  : index = implant id, 'Procedure ID' links to the procedure
"""

import pandas as pd
import pytest
from stairval.notepad import create_notepad

from implantpass.loader import (
    load_procedures_from_workbook,
    load_sheets_as_tables,
    tables_to_procedures,
)
from implantpass.procedure import Side


def procedures_frame():
    df = pd.DataFrame(
        {
            "Date": ["2023-05-15", "03.11.2021"],
            "Surgeon": ["Dr. A", "Dr. B"],
            "Hospital": ["H", "K"],
            "Procedure Type": ["Hip", "TKR"],
            "Side": ["right", None],
        },
        index=pd.Index(["p1", "p2"], name="ID"),
    )
    return df


def implants_frame():
    df = pd.DataFrame(
        {
            "Procedure ID": ["p2", "p1", "p1"],
            "Name": ["Tibial Tray", "Cup", "Stem"],
            "Manufacturer": ["M", "Zimmer", "Zimmer"],
            "Article Number": ["T-1", "A1", "A2"],
            "Serial Number": ["SN-9", "S1", "S2"],
            "Type (material)": ["Cobalt", "Titanium", "Titanium"],
        },
        index=pd.Index(["k1", "i1", "i2"], name="ID"),
    )
    return df


@pytest.fixture
def workbook(tmp_path):
    path = tmp_path / "procedures.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as w:
        procedures_frame().to_excel(w, sheet_name="Procedures")
        implants_frame().to_excel(w, sheet_name="implants")
    return path


def test_headers_are_normalized(workbook):
    tables = load_sheets_as_tables(str(workbook))
    assert set(tables) == {"Procedures", "implants"}
    assert "procedureType" in tables["Procedures"].columns
    implant_columns = set(tables["implants"].columns)
    assert {"procedureId", "articleNumber", "serialNumber", "type"} <= implant_columns


def test_load_groups_implants_under_their_procedure(workbook):
    note = create_notepad("workbook")
    procedures = load_procedures_from_workbook(str(workbook), note)
    assert not note.has_errors(include_subsections=True)

    assert [p.id for p in procedures] == ["p1", "p2"]
    hip, knee = procedures
    assert hip.date == "15.05.2023"
    assert hip.side is Side.RIGHT
    assert knee.side is None
    assert [i.id for i in hip.implants] == ["i1", "i2"]
    assert [i.lot_number for i in hip.implants] == ["S1", "S2"]
    assert knee.implants[0].name == "Tibial Tray"
    assert knee.implants[0].type == "Cobalt"


def test_missing_procedures_sheet_is_an_error():
    note = create_notepad("workbook")
    assert tables_to_procedures({"implants": implants_frame()}, note) == []
    assert note.has_errors(include_subsections=True)


def test_missing_required_columns_is_an_error():
    note = create_notepad("workbook")
    df = pd.DataFrame({"date": ["2023-05-15"]}, index=pd.Index(["p1"], name="id"))
    assert tables_to_procedures({"procedures": df}, note) == []
    assert any("surgeon" in issue.message for issue in note.errors())


def test_orphan_implants_are_reported(workbook):
    tables = load_sheets_as_tables(str(workbook))
    tables["Procedures"] = tables["Procedures"].iloc[:1]
    note = create_notepad("workbook")
    procedures = tables_to_procedures(tables, note)
    assert [p.id for p in procedures] == ["p1"]
    assert any("'p2'" in issue.message for issue in note.errors())


def test_procedures_without_implant_sheet():
    note = create_notepad("workbook")
    df = procedures_frame()
    df.columns = ["date", "surgeon", "hospital", "procedureType", "side"]
    procedures = tables_to_procedures({"operations": df}, note)
    assert len(procedures) == 2
    assert all(p.implants == [] for p in procedures)
