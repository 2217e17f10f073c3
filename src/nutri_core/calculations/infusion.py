from typing import Optional

from data_contracts.models import FormulaComposition
from nutri_core.numeric import round_half_up

DROPS_PER_ML = 20  # macro drip set

# accepted spellings of each system
CLOSED_SYSTEM = ("closed", "fechado")
OPEN_SYSTEM = ("open", "aberto")


def calc_totals(composition: Optional[FormulaComposition], volume: float) -> dict:
    """
    Quick totals for the prescription form. Calories are per ml, protein
    per litre, as the form enters them.
    """
    if composition is None or not volume:
        return {"total_calories": 0, "total_protein": 0.0}

    calories = composition.calories * volume
    protein = composition.protein * (volume / 1000)

    return {
        "total_calories": round_half_up(calories),
        "total_protein": round_half_up(protein, 1),
    }


def calc_infusion_rate(volume, hours, system) -> int:
    """ml/h for closed systems (pump), drops/min for open ones (gravity)."""
    volume = float(volume or 0)
    hours = float(hours or 0)
    system = str(getattr(system, "value", system) or "").lower()

    if not volume or not hours or not system:
        return 0

    if system in CLOSED_SYSTEM:
        return round_half_up(volume / hours)

    if system in OPEN_SYSTEM:
        drops_per_hour = volume / hours * DROPS_PER_ML
        return round_half_up(drops_per_hour / 60)

    return 0
