from datetime import datetime
from pathlib import Path

import pytest

from data_contracts.models import (
    Prescription,
    PrescriptionFormula,
    PrescriptionModule,
    Formula,
    FormulaComposition,
    Module,
    Supply,
)

CURATED_DIR = Path(__file__).resolve().parent.parent / "data" / "curated"


@pytest.fixture
def curated_dir():
    return CURATED_DIR


@pytest.fixture
def formulas():
    return [
        Formula(
            id="f-std",
            code="STD-1",
            name="Standard Formula",
            presentations=[1000],
            billing_unit="ml",
            billing_price=0.02,
            composition=FormulaComposition(calories=100, protein=4, carbohydrates=12, fat=3.5),
        ),
        Formula(
            id="f-hp",
            code="HP-1",
            name="High Protein Formula",
            type="high-protein",
            presentations=[500],
            billing_unit="ml",
            billing_price=0.03,
            composition=FormulaComposition(calories=130, protein=7.5, carbohydrates=14, fat=4),
        ),
        Formula(
            id="f-unit",
            code="UNIT-1",
            name="Oral Supplement",
            presentations=[200],
            billing_unit="unit",
            billing_price=6.5,
        ),
    ]


@pytest.fixture
def modules():
    return [
        Module(id="m-prot", name="Protein Module", billing_unit="g", billing_price=0.15, calories=3.6, protein=0.9),
    ]


@pytest.fixture
def supplies():
    return [
        Supply(code="SUP-PUMP", name="Pump infusion set", type="set", unit_price=18.5),
        Supply(code="SUP-GRAV", name="Gravity infusion set", type="set", unit_price=6.9),
        Supply(code="SUP-BOT", name="Enteral bottle 300 ml", type="bottle", unit_price=2.4),
    ]


@pytest.fixture
def make_prescription():
    def _make(**overrides):
        data = {
            "id": "rx-1",
            "patient_id": "pat-1",
            "patient_name": "Ana Souza",
            "patient_bed": "01",
            "patient_ward": "ICU",
            "system_type": "closed",
            "start_date": datetime(2024, 1, 1),
            "formulas": [
                PrescriptionFormula(
                    formula_id="f-std",
                    formula_name="Standard Formula",
                    volume=300,
                    times_per_day=2,
                    schedules=["09:00", "21:00"],
                )
            ],
        }
        data.update(overrides)
        return Prescription(**data)

    return _make


@pytest.fixture
def protein_module_line():
    return PrescriptionModule(
        module_id="m-prot",
        module_name="Protein Module",
        amount=10,
        times_per_day=2,
        schedules=["09:00", "21:00"],
    )
