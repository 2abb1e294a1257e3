"""
Procedure and Implant domain models.

Defines the in-memory records exchanged through the QR code:
- Implant: one implanted device/component.
- Procedure: one surgical event owning an ordered list of implants.

High-level role in implantpass:
- ProcedureMapper coerces decoded JSON objects (or spreadsheet rows) into
  these dataclasses.
- The encoder asks each record for its wire dict via to_wire().
"""

from __future__ import annotations

import dataclasses
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .dates import format_wire_date


class Side(Enum):
    """
    Laterality of a procedure.
    The value is the label written to the wire.
    """
    LEFT = "Left"
    RIGHT = "Right"
    NOT_APPLICABLE = "N/A"

    @classmethod
    def from_label(cls, label: str) -> "Side":
        """
        Convert a human-readable label into the corresponding enum.
        Normalizes casing, spacing and punctuation first.
        """
        key = str(label).strip().lower().replace("/", "").replace("-", " ").replace("_", " ")
        key = " ".join(key.split())
        mapping = {
            "left": cls.LEFT,
            "l": cls.LEFT,
            "right": cls.RIGHT,
            "r": cls.RIGHT,
            "na": cls.NOT_APPLICABLE,
            "not applicable": cls.NOT_APPLICABLE,
            "none": cls.NOT_APPLICABLE,
        }
        try:
            return mapping[key]
        except KeyError:
            raise ValueError(f"Unknown side label: {label!r}")


def new_record_id(prefix: str) -> str:
    """Opaque identifier for records that arrive without one, e.g. 'imp-3f2a…'."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _check_text(owner: str, attr: str, value: Any, optional: bool) -> None:
    if value is None and optional:
        return
    if not isinstance(value, str):
        raise ValueError(f"{owner}.{attr} must be a string, got {type(value).__name__}")


@dataclass
class Implant:
    """
    Represents a single implanted device.

    Attributes:
        id: Opaque identifier, unique within its procedure.
        name: Product name (e.g. “Acetabular Cup”).
        manufacturer: Manufacturer name.
        article_number: Catalogue/article number.
        lot_number: Lot or batch number (older payloads call it serialNumber).
        type: Material or device type.
        location: Optional anatomical location.
        notes: Optional free text.
        implant_date: Optional date the device was implanted.
    """

    id: str
    name: str
    manufacturer: str
    article_number: str
    lot_number: str
    type: str
    location: Optional[str] = None
    notes: Optional[str] = None
    implant_date: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise ValueError(f"Invalid implant id: {self.id!r}")
        for attr in ("name", "manufacturer", "article_number", "lot_number", "type"):
            _check_text("Implant", attr, getattr(self, attr), optional=False)
        for attr in ("location", "notes", "implant_date"):
            _check_text("Implant", attr, getattr(self, attr), optional=True)

    def with_wire_dates(self) -> "Implant":
        """Return a copy whose implant_date is in DD.MM.YYYY form."""
        if self.implant_date is None:
            return dataclasses.replace(self)
        return dataclasses.replace(self, implant_date=format_wire_date(self.implant_date))

    def to_wire(self) -> Dict[str, Any]:
        wire: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "manufacturer": self.manufacturer,
            "articleNumber": self.article_number,
            "lotNumber": self.lot_number,
            "type": self.type,
        }
        # absent optionals are left out rather than written as null
        if self.location is not None:
            wire["location"] = self.location
        if self.notes is not None:
            wire["notes"] = self.notes
        if self.implant_date is not None:
            wire["implantDate"] = self.implant_date
        return wire


@dataclass
class Procedure:
    """
    Represents one surgical event and the implants placed during it.

    Attributes:
        id: Opaque unique identifier.
        date: Procedure date (ISO YYYY-MM-DD or DD.MM.YYYY).
        surgeon: Operating surgeon.
        hospital: Hospital or clinic.
        procedure_type: Kind of procedure (e.g. “Total Hip Replacement”).
        location: Optional body location (e.g. “Hip”).
        side: Optional laterality.
        notes: Optional free text.
        implants: Implants in entry order; owned by this procedure only.
    """

    id: str
    date: str
    surgeon: str
    hospital: str
    procedure_type: str
    location: Optional[str] = None
    side: Optional[Side] = None
    notes: Optional[str] = None
    implants: List[Implant] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise ValueError(f"Invalid procedure id: {self.id!r}")
        for attr in ("date", "surgeon", "hospital", "procedure_type"):
            _check_text("Procedure", attr, getattr(self, attr), optional=False)
        for attr in ("location", "notes"):
            _check_text("Procedure", attr, getattr(self, attr), optional=True)
        if self.side is not None and not isinstance(self.side, Side):
            raise ValueError(f"Procedure.side must be a Side, got {self.side!r}")
        for implant in self.implants:
            if not isinstance(implant, Implant):
                raise TypeError(f"Procedure.implants must hold Implant objects, got {type(implant).__name__}")

    def with_wire_dates(self) -> "Procedure":
        """
        Return a deep copy with the procedure date and every implant date
        in DD.MM.YYYY form. The original record is left untouched.
        """
        return dataclasses.replace(
            self,
            date=format_wire_date(self.date),
            implants=[implant.with_wire_dates() for implant in self.implants],
        )

    def to_wire(self) -> Dict[str, Any]:
        wire: Dict[str, Any] = {
            "id": self.id,
            "date": self.date,
            "surgeon": self.surgeon,
            "hospital": self.hospital,
            "procedureType": self.procedure_type,
        }
        if self.location is not None:
            wire["location"] = self.location
        if self.side is not None:
            wire["side"] = self.side.value
        if self.notes is not None:
            wire["notes"] = self.notes
        wire["implants"] = [implant.to_wire() for implant in self.implants]
        return wire
