"""
QR decoder for procedure records.

Turns the raw text read from a QR code (or pasted by a user) into
procedures. The decoder never raises: it returns one of

- SingleProcedure      one procedure,
- ProcedureCollection  an ordered list of procedures,
- ParseFailure         with kind MALFORMED (not JSON) or UNKNOWN_FORMAT
                       (JSON, but no known envelope shape).

Both the current versioned envelope and the legacy bare-object / bare-list
payloads are accepted. Non-fatal findings (legacy aliases, count mismatches,
skipped entries) are written to the notepad passed in by the caller.
"""

from __future__ import annotations

import json
import logging
import typing
from dataclasses import dataclass, field
from enum import Enum, auto

from stairval.notepad import Notepad, create_notepad

from .envelope import (
    CurrentMulti,
    CurrentSingle,
    Envelope,
    LegacyMulti,
    LegacySingle,
    classify_envelope,
)
from .mapper import ProcedureMapper
from .procedure import Procedure

logger = logging.getLogger(__name__)


class FailureKind(Enum):
    MALFORMED = auto()
    UNKNOWN_FORMAT = auto()


@dataclass(frozen=True)
class ParseFailure:
    kind: FailureKind
    message: str


@dataclass
class SingleProcedure:
    procedure: Procedure
    legacy: bool = False


@dataclass
class ProcedureCollection:
    """
    Attributes:
        procedures: Decoded procedures in payload order.
        legacy: True for a bare-list payload without envelope metadata.
        declared_count: The envelope's count field, if any.
        generated_at: The envelope's generatedAt timestamp, if any.
        app_name: The envelope's appName, if any.
    """
    procedures: list[Procedure] = field(default_factory=list)
    legacy: bool = False
    declared_count: typing.Optional[int] = None
    generated_at: typing.Optional[str] = None
    app_name: typing.Optional[str] = None


ParseResult = typing.Union[SingleProcedure, ProcedureCollection, ParseFailure]


class ProcedureDecoder:
    def __init__(self, mapper: typing.Optional[ProcedureMapper] = None):
        self._mapper = mapper if mapper is not None else ProcedureMapper()

    @staticmethod
    def _load_json(raw_text: typing.Any) -> typing.Union[typing.Any, ParseFailure]:
        if isinstance(raw_text, (bytes, bytearray)):
            try:
                raw_text = raw_text.decode("utf-8")
            except UnicodeDecodeError as e:
                return ParseFailure(FailureKind.MALFORMED, f"QR text is not UTF-8: {e}")
        if not isinstance(raw_text, str):
            return ParseFailure(FailureKind.MALFORMED, f"Expected text, got {type(raw_text).__name__}")
        text = raw_text.lstrip("\ufeff").strip()
        if not text:
            return ParseFailure(FailureKind.MALFORMED, "QR text is empty")
        try:
            return json.loads(text)
        except (ValueError, RecursionError) as e:
            return ParseFailure(FailureKind.MALFORMED, f"QR text is not valid JSON: {e}")

    def parse(self, raw_text: typing.Any, notepad: typing.Optional[Notepad] = None) -> ParseResult:
        """
        Process:
        1) JSON-decode the text (failure -> MALFORMED)
        2) classify the envelope (no match -> UNKNOWN_FORMAT)
        3) map procedure objects to Procedure records
        """
        if notepad is None:
            notepad = create_notepad("qr-payload")

        payload = self._load_json(raw_text)
        if isinstance(payload, ParseFailure):
            logger.warning(f"Rejected QR payload: {payload.message}")
            return payload

        envelope = classify_envelope(payload, notepad)
        if envelope is None:
            logger.warning("QR payload matches no known format")
            return ParseFailure(FailureKind.UNKNOWN_FORMAT, "Unknown QR code data format")

        return self._from_envelope(envelope, notepad)

    def _from_envelope(self, envelope: Envelope, notepad: Notepad) -> ParseResult:
        if isinstance(envelope, CurrentMulti):
            procedures = self._mapper.map_procedures(envelope.procedures, "procedures", notepad)
            if envelope.count is None:
                notepad.add_warning("Collection payload has no usable count")
            elif envelope.count != len(envelope.procedures):
                notepad.add_warning(
                    f"Collection declares {envelope.count} procedures but carries {len(envelope.procedures)}"
                )
            elif envelope.count != len(procedures):
                notepad.add_warning(
                    f"Collection declares {envelope.count} procedures but only {len(procedures)} could be read"
                )
            return ProcedureCollection(
                procedures=procedures,
                legacy=False,
                declared_count=envelope.count,
                generated_at=envelope.generated_at,
                app_name=envelope.app_name,
            )

        if isinstance(envelope, LegacyMulti):
            logger.info(f"Reading legacy list payload with {len(envelope.procedures)} entries")
            procedures = self._mapper.map_procedures(envelope.procedures, "procedures", notepad)
            return ProcedureCollection(procedures=procedures, legacy=True)

        if isinstance(envelope, (CurrentSingle, LegacySingle)):
            procedure = self._mapper.map_procedure(envelope.procedure, "procedure", notepad)
            if procedure is None:
                return ParseFailure(FailureKind.UNKNOWN_FORMAT, "Procedure in QR code could not be read")
            return SingleProcedure(procedure=procedure, legacy=isinstance(envelope, LegacySingle))

        raise TypeError(f"Unhandled envelope type: {type(envelope).__name__}")


_default_decoder = ProcedureDecoder()


def parse(raw_text: typing.Any, notepad: typing.Optional[Notepad] = None) -> ParseResult:
    """Decode QR text with the default decoder; see ProcedureDecoder.parse."""
    return _default_decoder.parse(raw_text, notepad)
