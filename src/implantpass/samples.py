"""
Demo data.

Defines the sample total hip replacement used for trying out the scanner
and for the `implantpass sample` command.
"""

import datetime
import typing

from .procedure import Implant, Procedure, Side, new_record_id


def sample_procedure(today: typing.Optional[datetime.date] = None) -> Procedure:
    """
    A total hip replacement with four Zimmer Biomet components,
    all dated `today` (defaults to the current date).
    """
    iso_today = (today or datetime.date.today()).isoformat()
    components = [
        ("Acetabular Cup", "ART-12345", "LOT-AC-12345", "Titanium Alloy", "Size 52mm"),
        ("Femoral Head", "ART-67890", "LOT-FH-67890", "Ceramic", "Size 32mm"),
        ("Acetabular Liner", "ART-24680", "LOT-AL-24680", "Polyethylene", "Highly cross-linked"),
        ("Femoral Stem", "ART-13579", "LOT-FS-13579", "Titanium Alloy", "Size 5, uncemented"),
    ]
    return Procedure(
        id=new_record_id("sample"),
        date=iso_today,
        surgeon="Dr. Jane Smith",
        hospital="General Hospital",
        procedure_type="Total Hip Replacement",
        location="Hip",
        side=Side.RIGHT,
        notes="Patient recovered well with no complications.",
        implants=[
            Implant(
                id=new_record_id("imp"),
                name=name,
                manufacturer="Zimmer Biomet",
                article_number=article_number,
                lot_number=lot_number,
                type=material,
                implant_date=iso_today,
                notes=notes,
            )
            for name, article_number, lot_number, material, notes in components
        ],
    )
