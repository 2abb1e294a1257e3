import datetime

import pytest

from implantpass.encoder import QrProcedureEncoder
from implantpass.procedure import Implant, Procedure, Side


@pytest.fixture
def hip_procedure() -> Procedure:
    """
    The reference hip procedure: one implant, ISO date.
    """
    return Procedure(
        id="p1",
        date="2023-05-15",
        surgeon="Dr. A",
        hospital="H",
        procedure_type="Hip",
        implants=[
            Implant(
                id="i1",
                name="Cup",
                manufacturer="Zimmer",
                article_number="A1",
                lot_number="L1",
                type="Hip Stem",
            )
        ],
    )


@pytest.fixture
def knee_procedure() -> Procedure:
    return Procedure(
        id="p2",
        date="2021-11-03",
        surgeon="Dr. Müller",
        hospital="Kantonsspital",
        procedure_type="Total Knee Replacement",
        location="Knee",
        side=Side.LEFT,
        notes="Uneventful",
        implants=[
            Implant(
                id="k1",
                name="Femoral Component",
                manufacturer="Smith & Nephew",
                article_number="SN-100",
                lot_number="LOT-9",
                type="Cobalt Chrome",
                location="Left Knee",
                implant_date="2021-11-03",
            ),
            Implant(
                id="k2",
                name="Tibial Insert",
                manufacturer="Smith & Nephew",
                article_number="SN-200",
                lot_number="LOT-10",
                type="Polyethylene",
                notes="10mm",
                implant_date="03.11.2021",
            ),
        ],
    )


@pytest.fixture
def fixed_clock():
    return lambda: datetime.datetime(2024, 3, 1, 12, 0, 0, 250000, tzinfo=datetime.timezone.utc)


@pytest.fixture
def encoder(fixed_clock) -> QrProcedureEncoder:
    return QrProcedureEncoder(clock=fixed_clock)
