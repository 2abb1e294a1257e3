import typing
from collections import defaultdict

import pandas as pd
from stairval.notepad import Notepad

from .mapper import ProcedureMapper
from .procedure import Procedure

# Normalized snake_case headers → wire keys understood by ProcedureMapper
RENAME_MAP = {
    "procedure_type": "procedureType",
    "article_number": "articleNumber",
    "lot_number": "lotNumber",
    "serial_number": "serialNumber",
    "implant_date": "implantDate",
    "procedure_id": "procedureId",
}

PROCEDURE_KEY_COLUMNS = {"date", "surgeon", "hospital", "procedureType"}
IMPLANT_KEY_COLUMNS = {"procedureId", "name", "manufacturer"}

KNOWN_SHEET_ALIASES: dict[str, set[str]] = {"procedures": {"procedures", "procedure", "operations", "surgeries"},
                                            "implants": {"implants", "implant", "devices"}}


def load_sheets_as_tables(workbook_path: str) -> dict[str, pd.DataFrame]:
    """
    Read each worksheet into a DataFrame:
      - first row = header
      - first column = index (the record id)
      - normalize all headers to snake_case lowercase
      - apply renames from RENAME_MAP
    """
    excel = pd.ExcelFile(workbook_path, engine="openpyxl")
    tables: dict[str, pd.DataFrame] = {}

    for sheet_name in excel.sheet_names:
        df = pd.read_excel(
            excel, sheet_name=sheet_name, header=0, index_col=0, engine="openpyxl"
        )

        df.columns = (
            df.columns.astype(str).str.strip()
            .str.replace(r"\s*\(.*?\)", "", regex=True)  # drop any "(…)"
            .str.replace(r"[\s\-]+", "_", regex=True)  # spaces → underscore
            .str.replace(":", "", regex=False)  # drop colons
            .str.lower()
        )

        df = df.rename(
            columns={
                orig: target
                for orig, target in RENAME_MAP.items()
                if orig in df.columns
            }
        )

        tables[sheet_name] = df

    return tables


def _by_alias(tables: dict[str, pd.DataFrame], kind: str) -> pd.DataFrame | None:
    aliases = KNOWN_SHEET_ALIASES[kind]
    for sheet_name, df in tables.items():
        if sheet_name.strip().casefold() in aliases:
            return df
    return None


def _prepare_sheet(df: pd.DataFrame) -> pd.DataFrame:
    """Bring the index (record id) into an 'id' column."""
    working = df.reset_index()
    original = working.columns[0]
    return working.rename(columns={original: "id"})


def _row_to_fields(row: pd.Series) -> dict[str, typing.Any]:
    # empty cells are dropped so the mapper treats them as absent
    return {key: value for key, value in row.items() if not ProcedureMapper._is_missing(value)}


def _procedure_key(value: typing.Any) -> str:
    return ProcedureMapper._to_text(value)


def tables_to_procedures(tables: dict[str, pd.DataFrame], notepad: Notepad,
                         mapper: ProcedureMapper | None = None) -> list[Procedure]:
    """
    Process:
    1) pick the procedures sheet (required) and implants sheet (optional)
    2) group implant rows under their procedureId, keeping row order
    3) map every procedure row, implants attached, through ProcedureMapper
    """
    mapper = mapper if mapper is not None else ProcedureMapper()

    procedures_df = _by_alias(tables, "procedures")
    implants_df = _by_alias(tables, "implants")
    if procedures_df is None:
        notepad.add_error("Missing required sheet: 'procedures'.")
        return []

    working = _prepare_sheet(procedures_df)
    missing = sorted(PROCEDURE_KEY_COLUMNS - set(working.columns))
    if missing:
        notepad.add_error(f"Sheet 'procedures': missing required columns: {missing}")
        return []

    implants_by_procedure: dict[str, list[dict[str, typing.Any]]] = defaultdict(list)
    if implants_df is not None:
        implant_rows = _prepare_sheet(implants_df)
        missing = sorted(IMPLANT_KEY_COLUMNS - set(implant_rows.columns))
        if missing:
            notepad.add_error(f"Sheet 'implants': missing required columns: {missing}")
        else:
            for _, row in implant_rows.iterrows():
                fields = _row_to_fields(row)
                procedure_id = _procedure_key(fields.pop("procedureId", None))
                implants_by_procedure[procedure_id].append(fields)

    procedures: list[Procedure] = []
    seen: set[str] = set()
    for index, row in working.iterrows():
        fields = _row_to_fields(row)
        procedure_id = _procedure_key(fields.get("id"))
        fields["implants"] = implants_by_procedure.get(procedure_id, [])
        procedure = mapper.map_procedure(fields, f"Sheet 'procedures', row {index}", notepad)
        if procedure is not None:
            procedures.append(procedure)
            seen.add(procedure_id)

    for orphan_id in sorted(implants_by_procedure.keys() - seen):
        notepad.add_error(f"Sheet 'implants': rows reference unknown procedure {orphan_id!r}")

    return procedures


def load_procedures_from_workbook(workbook_path: str, notepad: Notepad) -> list[Procedure]:
    """Read procedures (and their implants) from an Excel workbook."""
    return tables_to_procedures(load_sheets_as_tables(workbook_path), notepad)
