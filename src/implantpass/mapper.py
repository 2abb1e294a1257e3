import abc
import logging
import math
import typing

import pandas as pd
from stairval.notepad import Notepad

from .dates import format_wire_date
from .procedure import Implant, Procedure, Side, new_record_id

logger = logging.getLogger(__name__)

# Wire keys that older payloads used for the same field; value = current key
LEGACY_IMPLANT_ALIASES = {"serialNumber": "lotNumber"}
LEGACY_PROCEDURE_ALIASES = {"type": "procedureType"}


class RecordMapper(metaclass=abc.ABCMeta):
    @abc.abstractmethod
    def map_procedure(
            self, obj: typing.Any, label: str, notepad: Notepad
    ) -> typing.Optional[Procedure]:
        # return a complete Procedure (implants included) or None if unusable
        raise NotImplementedError


class ProcedureMapper(RecordMapper):
    """
    Coerces loosely-shaped procedure objects (decoded QR payloads, spreadsheet rows)
    into Procedure/Implant dataclasses.

    Partial data is not an error: missing optional fields stay None, missing ids are
    generated, dates are normalized to DD.MM.YYYY. Problems are written to the notepad.
    """

    def __init__(self, normalize_dates: bool = True):
        self.normalize_dates = normalize_dates

    @staticmethod
    def _is_missing(value: typing.Any) -> bool:
        """None, NaN/NaT and pandas NA count as missing; containers never do."""
        if value is None:
            return True
        if isinstance(value, (list, tuple, dict)):
            return False
        try:
            return bool(pd.isna(value))
        except (TypeError, ValueError):
            return False

    @staticmethod
    def _to_text(value: typing.Any) -> str:
        """
        Text coercion for required fields:
        - missing -> ''
        - integral floats lose the '.0' spreadsheets add (12345.0 -> '12345')
        - strings are trimmed
        """
        if ProcedureMapper._is_missing(value):
            return ""
        if isinstance(value, float) and math.isfinite(value) and value.is_integer():
            return str(int(value))
        return str(value).strip()

    @staticmethod
    def _to_optional_text(value: typing.Any) -> typing.Optional[str]:
        if ProcedureMapper._is_missing(value):
            return None
        return ProcedureMapper._to_text(value)

    def _to_date(self, value: typing.Any) -> typing.Optional[str]:
        if self._is_missing(value):
            return None
        if self.normalize_dates:
            return format_wire_date(value)
        return self._to_text(value)

    @staticmethod
    def _fold_aliases(obj: typing.Mapping[str, typing.Any], aliases: dict[str, str], label: str,
                      notepad: Notepad) -> dict[str, typing.Any]:
        """
        Copy `obj`, moving legacy keys onto their current names. A legacy value is only
        used when the current key is absent or empty; the legacy key is never kept.
        """
        folded = dict(obj)
        for legacy_key, current_key in aliases.items():
            if legacy_key not in folded:
                continue
            legacy_value = folded.pop(legacy_key)
            current_value = folded.get(current_key)
            if ProcedureMapper._is_missing(current_value) or current_value == "":
                folded[current_key] = legacy_value
                notepad.add_warning(f"{label}: legacy field {legacy_key!r} read as {current_key!r}")
        return folded

    def map_implant(self, obj: typing.Any, label: str, notepad: Notepad) -> typing.Optional[Implant]:
        """
        Build one Implant. Returns None (with an error) if `obj` is not an object
        or the record fails validation.
        """
        if not isinstance(obj, typing.Mapping):
            notepad.add_error(f"{label}: expected an implant object, got {type(obj).__name__}")
            return None

        fields = self._fold_aliases(obj, LEGACY_IMPLANT_ALIASES, label, notepad)

        implant_id = self._to_text(fields.get("id"))
        if not implant_id:
            implant_id = new_record_id("imp")
            notepad.add_warning(f"{label}: implant without id, assigned {implant_id!r}")

        try:
            return Implant(
                id=implant_id,
                name=self._to_text(fields.get("name")),
                manufacturer=self._to_text(fields.get("manufacturer")),
                article_number=self._to_text(fields.get("articleNumber")),
                lot_number=self._to_text(fields.get("lotNumber")),
                type=self._to_text(fields.get("type")),
                location=self._to_optional_text(fields.get("location")),
                notes=self._to_optional_text(fields.get("notes")),
                implant_date=self._to_date(fields.get("implantDate")),
            )
        except (ValueError, TypeError) as e:
            notepad.add_error(f"{label}: {e}")
            return None

    def map_procedure(self, obj: typing.Any, label: str, notepad: Notepad) -> typing.Optional[Procedure]:
        """
        Build one Procedure with its implants.
        Unusable implants are skipped (the notepad says which); an unusable
        procedure returns None.
        """
        if not isinstance(obj, typing.Mapping):
            notepad.add_error(f"{label}: expected a procedure object, got {type(obj).__name__}")
            return None

        fields = self._fold_aliases(obj, LEGACY_PROCEDURE_ALIASES, label, notepad)

        procedure_id = self._to_text(fields.get("id"))
        if not procedure_id:
            procedure_id = new_record_id("proc")
            notepad.add_warning(f"{label}: procedure without id, assigned {procedure_id!r}")

        date = self._to_date(fields.get("date"))
        if not date:
            notepad.add_warning(f"{label}: procedure {procedure_id!r} has no date")

        side = None
        raw_side = self._to_optional_text(fields.get("side"))
        if raw_side:
            try:
                side = Side.from_label(raw_side)
            except ValueError as e:
                notepad.add_warning(f"{label}: {e}; side left empty")

        implants: list[Implant] = []
        raw_implants = fields.get("implants")
        if self._is_missing(raw_implants):
            raw_implants = []
        if not isinstance(raw_implants, list):
            notepad.add_warning(f"{label}: 'implants' is not a list; no implants read")
            raw_implants = []
        for index, raw_implant in enumerate(raw_implants):
            implant = self.map_implant(raw_implant, f"{label}, implant {index}", notepad)
            if implant is not None:
                implants.append(implant)

        try:
            return Procedure(
                id=procedure_id,
                date=date or "",
                surgeon=self._to_text(fields.get("surgeon")),
                hospital=self._to_text(fields.get("hospital")),
                procedure_type=self._to_text(fields.get("procedureType")),
                location=self._to_optional_text(fields.get("location")),
                side=side,
                notes=self._to_optional_text(fields.get("notes")),
                implants=implants,
            )
        except (ValueError, TypeError) as e:
            notepad.add_error(f"{label}: {e}")
            return None

    def map_procedures(self, objs: typing.Sequence[typing.Any], label: str,
                       notepad: Notepad) -> list[Procedure]:
        """Map a list of procedure objects, keeping order and skipping unusable entries."""
        procedures: list[Procedure] = []
        for index, obj in enumerate(objs):
            procedure = self.map_procedure(obj, f"{label}, procedure {index}", notepad)
            if procedure is not None:
                procedures.append(procedure)
        return procedures
