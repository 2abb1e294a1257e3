"""
Wire envelopes for QR payloads.

Current payloads (formatVersion "1.0") wrap either one procedure or a list
of procedures together with version metadata. Older releases wrote the bare
procedure object or a bare list; those legacy shapes are still accepted.

All four shapes are modelled as a tagged union and told apart by a single
function, classify_envelope(), which keeps the historical fallback order:
current envelope first, then legacy list, then legacy single object.
"""

from __future__ import annotations

import datetime
import logging
import typing
from dataclasses import dataclass

from stairval.notepad import Notepad

from .dates import WIRE_DATE_FORMAT
from .procedure import Procedure

logger = logging.getLogger(__name__)

FORMAT_VERSION = "1.0"
DATE_FORMAT = WIRE_DATE_FORMAT
ALL_PROCEDURES_TYPE = "allProcedures"
APP_NAME = "Implant Pass"

KNOWN_FORMAT_VERSIONS = {FORMAT_VERSION}

RawObject = typing.Mapping[str, typing.Any]


@dataclass(frozen=True)
class CurrentSingle:
    """Versioned envelope carrying exactly one procedure."""
    procedure: RawObject
    format_version: str


@dataclass(frozen=True)
class CurrentMulti:
    """Versioned envelope carrying an ordered list of procedures."""
    procedures: typing.Sequence[typing.Any]
    format_version: str
    count: typing.Optional[int] = None
    generated_at: typing.Optional[str] = None
    app_name: typing.Optional[str] = None


@dataclass(frozen=True)
class LegacySingle:
    """Pre-versioning payload: a bare procedure object."""
    procedure: RawObject


@dataclass(frozen=True)
class LegacyMulti:
    """Pre-versioning payload: a bare list of procedure objects."""
    procedures: typing.Sequence[typing.Any]


Envelope = typing.Union[CurrentSingle, CurrentMulti, LegacySingle, LegacyMulti]


def _declared_count(value: typing.Any) -> typing.Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def classify_envelope(payload: typing.Any, notepad: Notepad) -> typing.Optional[Envelope]:
    """
    Decide which envelope shape `payload` (already JSON-decoded) has.

    Order:
    1) formatVersion + dateFormat present:
       - type == "allProcedures" with a procedures list -> CurrentMulti
       - a procedure object -> CurrentSingle
    2) top-level list -> LegacyMulti
    3) object with both id and date -> LegacySingle
    Returns None when nothing matches.
    """
    if isinstance(payload, typing.Mapping):
        format_version = payload.get("formatVersion")
        if format_version and payload.get("dateFormat"):
            version = str(format_version)
            if version not in KNOWN_FORMAT_VERSIONS:
                notepad.add_warning(f"Unknown formatVersion {version!r}; reading it as {FORMAT_VERSION!r}")
            if payload.get("dateFormat") != DATE_FORMAT:
                notepad.add_warning(f"Unexpected dateFormat {payload.get('dateFormat')!r}; dates are kept as found")

            procedures = payload.get("procedures")
            if payload.get("type") == ALL_PROCEDURES_TYPE and isinstance(procedures, list):
                generated_at = payload.get("generatedAt")
                app_name = payload.get("appName")
                return CurrentMulti(
                    procedures=procedures,
                    format_version=version,
                    count=_declared_count(payload.get("count")),
                    generated_at=str(generated_at) if generated_at is not None else None,
                    app_name=str(app_name) if app_name is not None else None,
                )
            procedure = payload.get("procedure")
            if isinstance(procedure, typing.Mapping):
                return CurrentSingle(procedure=procedure, format_version=version)
            # versioned but empty-handed; fall through to the legacy checks

    if isinstance(payload, list):
        return LegacyMulti(procedures=payload)

    if isinstance(payload, typing.Mapping) and payload.get("id") and payload.get("date"):
        # any object with an id and a date qualifies, so flag the match
        notepad.add_warning(
            f"Payload without formatVersion read as a legacy procedure (id={payload.get('id')!r})"
        )
        logger.info("Treating unversioned object with id and date as a legacy procedure")
        return LegacySingle(procedure=payload)

    return None


def build_single_envelope(procedure: Procedure) -> dict[str, typing.Any]:
    """Wrap one procedure (dates already in wire form) in the current envelope."""
    return {
        "formatVersion": FORMAT_VERSION,
        "dateFormat": DATE_FORMAT,
        "procedure": procedure.to_wire(),
    }


def build_collection_envelope(
    procedures: typing.Sequence[Procedure],
    generated_at: datetime.datetime,
    app_name: str = APP_NAME,
) -> dict[str, typing.Any]:
    """Wrap an ordered list of procedures in the current multi-procedure envelope."""
    return {
        "formatVersion": FORMAT_VERSION,
        "dateFormat": DATE_FORMAT,
        "type": ALL_PROCEDURES_TYPE,
        "count": len(procedures),
        "procedures": [procedure.to_wire() for procedure in procedures],
        "generatedAt": iso_timestamp(generated_at),
        "appName": app_name,
    }


def iso_timestamp(moment: datetime.datetime) -> str:
    """UTC timestamp with millisecond precision, e.g. '2024-03-01T12:00:00.000Z'."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=datetime.timezone.utc)
    moment = moment.astimezone(datetime.timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"
