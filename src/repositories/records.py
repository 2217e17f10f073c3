import logging
from typing import List

import pandas as pd

from data_contracts.specs import LIST_SEPARATOR
from data_contracts.models import (
    Prescription,
    PrescriptionFormula,
    PrescriptionModule,
    Formula,
    FormulaComposition,
    Module,
    Supply,
)

logger = logging.getLogger(__name__)

COMPOSITION_COLUMNS = list(FormulaComposition.model_fields)

DATE_COLUMNS = ("start_date", "end_date")

# assembled here, never taken from the prescriptions table
NESTED_FIELDS = ("id", "formulas", "modules", "hydration_schedules")


def split_list(cell) -> List[str]:
    """ "09:00|21:00" -> ["09:00", "21:00"]; empty cells -> [] """
    if cell is None:
        return []
    return [part.strip() for part in str(cell).split(LIST_SEPARATOR) if part.strip()]


def to_records(df: pd.DataFrame) -> List[dict]:
    """DataFrame rows as dicts with NaN/NaT replaced by None."""
    if df.empty:
        return []
    clean = df.astype(object).where(pd.notna(df), None)
    return clean.to_dict(orient="records")


def parse_dates(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    for col in DATE_COLUMNS:
        if col in df.columns:
            df[col] = pd.to_datetime(df[col], errors="coerce")
    return df


def build_prescriptions(
    prescriptions: pd.DataFrame,
    formula_lines: pd.DataFrame,
    module_lines: pd.DataFrame,
) -> List[Prescription]:
    """Nests formula/module lines under their prescription (by prescription_id)."""

    formulas_by_id = {}
    for row in to_records(formula_lines):
        formulas_by_id.setdefault(row["prescription_id"], []).append(
            PrescriptionFormula(
                formula_id=row["formula_id"],
                formula_name=row["formula_name"],
                volume=row["volume"],
                times_per_day=row.get("times_per_day") or 0,
                schedules=split_list(row.get("schedules")),
            )
        )

    modules_by_id = {}
    for row in to_records(module_lines):
        schedules = row.get("schedules")
        modules_by_id.setdefault(row["prescription_id"], []).append(
            PrescriptionModule(
                module_id=row["module_id"],
                module_name=row["module_name"],
                amount=row["amount"],
                unit=row.get("unit"),
                times_per_day=row.get("times_per_day") or 0,
                schedules=split_list(schedules) if schedules is not None else None,
            )
        )

    result = []
    for row in to_records(parse_dates(prescriptions)):
        pid = row.pop("prescription_id")
        hydration = row.pop("hydration_schedules", None)

        fields = {
            k: v for k, v in row.items()
            if k in Prescription.model_fields and k not in NESTED_FIELDS and v is not None
        }
        result.append(Prescription(
            id=pid,
            formulas=formulas_by_id.get(pid, []),
            modules=modules_by_id.get(pid, []),
            hydration_schedules=split_list(hydration) if hydration is not None else None,
            **fields,
        ))

    logger.debug("assembled %d prescriptions", len(result))
    return result


def build_formulas(df: pd.DataFrame) -> List[Formula]:
    result = []
    for row in to_records(df):
        composition = {
            col: row.pop(col) for col in COMPOSITION_COLUMNS
            if col in row and row[col] is not None
        }
        for col in ("presentations", "indications", "contraindications", "special_features"):
            row[col] = split_list(row.get(col))

        fields = {k: v for k, v in row.items() if k in Formula.model_fields and v is not None}
        result.append(Formula(composition=FormulaComposition(**composition), **fields))
    return result


def build_modules(df: pd.DataFrame) -> List[Module]:
    return [
        Module(**{k: v for k, v in row.items() if k in Module.model_fields and v is not None})
        for row in to_records(df)
    ]


def build_supplies(df: pd.DataFrame) -> List[Supply]:
    return [
        Supply(**{k: v for k, v in row.items() if k in Supply.model_fields and v is not None})
        for row in to_records(df)
    ]
