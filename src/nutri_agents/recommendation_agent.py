import copy
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from data_contracts.models import PatientProfile, TherapyType
from nutri_core.numeric import round_half_up

logger = logging.getLogger(__name__)

# Reference formulas (per 100 ml)
REFERENCE_FORMULAS = [
    {"id": "f1", "name": "Nutrison Advanced Diason", "calories": 100, "protein": 4.0, "type": "diabetic", "fiber": True},
    {"id": "f2", "name": "Fresubin Original", "calories": 100, "protein": 3.8, "type": "standard", "fiber": False},
    {"id": "f3", "name": "Peptamen", "calories": 100, "protein": 4.0, "type": "peptide", "fiber": False},
    {"id": "f4", "name": "Nutridrink HP", "calories": 150, "protein": 6.0, "type": "high-protein", "fiber": False},
    {"id": "f5", "name": "Fresubin Energy Fibre", "calories": 150, "protein": 5.6, "type": "high-calorie", "fiber": True},
    {"id": "f6", "name": "Nepro", "calories": 200, "protein": 8.1, "type": "renal", "fiber": False},
    {"id": "f7", "name": "Glucerna", "calories": 100, "protein": 4.2, "type": "diabetic", "fiber": True},
    {"id": "f8", "name": "Ensure Plus", "calories": 150, "protein": 6.25, "type": "high-calorie", "fiber": False},
]

STRESS_FACTORS = {"low": 1.0, "moderate": 1.2, "high": 1.5, "severe": 1.8}
ACTIVITY_FACTOR = 1.2

INTERMITTENT_TIMES = ["06:00", "09:00", "12:00", "15:00", "18:00", "21:00"]


@dataclass
class FormulaRecommendation:
    formula_id: str
    formula_name: str
    volume: int
    percentage: int
    reason: str


@dataclass
class InfusionSchedule:
    method: str  # continuous | intermittent | bolus
    times: List[str]
    volume_per_time: int
    rate: Optional[int] = None


@dataclass
class NutritionRecommendation:
    recommended_formulas: List[FormulaRecommendation]
    total_calories: int
    total_protein: int
    calories_per_kg: int
    protein_per_kg: float
    infusion_schedule: InfusionSchedule
    system_type: str
    rationale: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    confidence: int = 0


def basal_energy_expenditure(weight: float, height: float, age: float, gender: str = "male") -> float:
    """Harris-Benedict."""
    if gender == "female":
        return 655.1 + 9.563 * weight + 1.850 * height - 4.676 * age
    return 66.5 + 13.75 * weight + 5.003 * height - 6.75 * age


def total_energy_expenditure(bee: float, stress_level: str, activity_factor: float = ACTIVITY_FACTOR) -> float:
    return bee * activity_factor * STRESS_FACTORS.get(stress_level, 1.2)


def protein_per_kg(condition: str, renal_function: str) -> float:
    if renal_function == "dialysis":
        return 1.5
    if renal_function == "impaired":
        return 0.8
    if condition == "critical":
        return 1.8
    if condition == "moderate":
        return 1.5
    return 1.2


class NutritionRecommendationAgent:
    """
    Rule-based prescription suggestion from anthropometric and clinical data.
    """

    def __init__(self, formulas: Optional[List[dict]] = None):
        self.formulas = REFERENCE_FORMULAS if formulas is None else formulas

    def _select_formulas(self, patient: PatientProfile, target_calories, target_protein) -> List[FormulaRecommendation]:
        restrictions = [r.lower() for r in patient.restrictions]

        def suitable(f):
            if patient.diabetic and f["type"] != "diabetic":
                return False
            if patient.renal_function == "dialysis" and f["type"] != "renal":
                return False
            if "lactose" in restrictions and "Ensure" in f["name"]:
                return False
            return True

        candidates = [f for f in self.formulas if suitable(f)]
        if not candidates:
            candidates = [f for f in self.formulas if f["type"] == "standard"]
        if not candidates:
            raise ValueError("no formula available for recommendation")

        def first_of(formula_type):
            return next((f for f in candidates if f["type"] == formula_type), candidates[0])

        if patient.clinical_condition == "critical" or target_protein / patient.weight > 1.5:
            primary = first_of("high-protein")
        elif patient.diabetic:
            primary = first_of("diabetic")
        elif patient.renal_function == "dialysis":
            primary = first_of("renal")
        else:
            primary = candidates[0]

        grounds = []
        if patient.diabetic:
            grounds.append("diabetes")
        if patient.clinical_condition == "critical":
            grounds.append("critical condition")
        grounds.append("caloric and protein needs")

        return [FormulaRecommendation(
            formula_id=primary["id"],
            formula_name=primary["name"],
            volume=round_half_up(target_calories / primary["calories"] * 100),
            percentage=100,
            reason="Formula selected based on: " + ", ".join(grounds),
        )]

    def _schedule(self, total_volume, route, condition) -> InfusionSchedule:
        if route == TherapyType.parenteral or condition == "critical":
            return InfusionSchedule(
                method="continuous",
                rate=round_half_up(total_volume / 24),
                times=["00:00"],
                volume_per_time=total_volume,
            )

        times = list(INTERMITTENT_TIMES)
        return InfusionSchedule(
            method="intermittent",
            times=times,
            volume_per_time=round_half_up(total_volume / len(times)),
        )

    def recommend(self, patient: PatientProfile) -> NutritionRecommendation:
        if patient.weight <= 0 or patient.height <= 0:
            raise ValueError("weight and height must be positive")

        rationale = []
        warnings = []

        bmi = patient.weight / (patient.height / 100) ** 2
        rationale.append(f"Calculated BMI: {bmi:.1f} kg/m²")

        bee = basal_energy_expenditure(patient.weight, patient.height, patient.age, patient.gender)
        target_calories = round_half_up(total_energy_expenditure(bee, patient.stress_level))
        kcal_per_kg = round_half_up(target_calories / patient.weight)

        rationale.append(f"Basal energy expenditure: {round_half_up(bee)} kcal/day")
        rationale.append(
            f"Total energy expenditure (stress factor {patient.stress_level}): {target_calories} kcal/day"
        )
        rationale.append(f"Caloric target: {kcal_per_kg} kcal/kg/day")

        target_protein = patient.weight * protein_per_kg(patient.clinical_condition, patient.renal_function)
        g_per_kg = round_half_up(target_protein / patient.weight, 1)
        rationale.append(f"Protein target: {g_per_kg} g/kg/day ({round_half_up(target_protein)}g/day)")

        if patient.renal_function == "impaired":
            warnings.append("Impaired renal function: monitor urea and creatinine")
        if patient.diabetic:
            warnings.append("Diabetic patient: monitor glycaemia and use specific formulas")
        if bmi < 18.5:
            warnings.append("Malnourished patient: consider a gradual increase in caloric intake")
        elif bmi > 30:
            warnings.append("Obese patient: base calculations on ideal or adjusted weight")
        if patient.clinical_condition == "critical":
            warnings.append("Critical patient: start at 50-70% of target and progress as tolerated")

        formulas = self._select_formulas(patient, target_calories, target_protein)
        total_volume = sum(f.volume for f in formulas)
        schedule = self._schedule(total_volume, patient.administration_route, patient.clinical_condition)

        # closed system in every case to reduce contamination risk
        system_type = "closed"
        rationale.append("Closed system recommended to reduce contamination risk")

        confidence = 85
        if len(patient.comorbidities) > 3:
            confidence -= 10
        if len(patient.restrictions) > 2:
            confidence -= 10
        if patient.clinical_condition == "critical":
            confidence -= 5
        confidence = max(60, confidence)

        logger.debug("recommendation: %s kcal, formula=%s", target_calories, formulas[0].formula_id)

        return NutritionRecommendation(
            recommended_formulas=formulas,
            total_calories=target_calories,
            total_protein=round_half_up(target_protein),
            calories_per_kg=kcal_per_kg,
            protein_per_kg=g_per_kg,
            infusion_schedule=schedule,
            system_type=system_type,
            rationale=rationale,
            warnings=warnings,
            confidence=confidence,
        )

    def adjust(self, recommendation: NutritionRecommendation, tolerance: str, days_on_therapy: int) -> NutritionRecommendation:
        """
        Returns an adjusted copy; `recommendation` is left untouched.
        """
        adjusted = copy.deepcopy(recommendation)

        if tolerance == "poor":
            for f in adjusted.recommended_formulas:
                f.volume = round_half_up(f.volume * 0.75)
            adjusted.rationale.append("Volume reduced by 25% due to poor tolerance")
        elif tolerance == "good" and days_on_therapy >= 3:
            adjusted.rationale.append("Adequate tolerance: maintain or progress to full target")

        return adjusted
