import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from data_contracts.models import FormulaComposition
from nutri_core.numeric import round_half_up

logger = logging.getLogger(__name__)

INFUSION_METHODS = ("continuous", "intermittent", "bolus")

# baseline targets used by the calculation report
TARGET_KCAL_PER_KG = 25
TARGET_PROTEIN_G_PER_KG = 1.2

PROTEIN_TO_NITROGEN = 6.25


# =========================
# RESULTS
# =========================

@dataclass
class NutritionalCalculation:
    calories: float
    protein: float
    carbohydrates: float
    fat: float
    fiber: Optional[float] = None
    sodium: Optional[float] = None
    potassium: Optional[float] = None
    calcium: Optional[float] = None
    phosphorus: Optional[float] = None


@dataclass
class VolumeCalculation:
    total_volume: float
    volume_per_time: float
    number_of_times: int
    infusion_rate: Optional[float] = None
    duration: Optional[float] = None


@dataclass
class CostCalculation:
    formula_cost: float
    equipment_cost: float
    labor_cost: float
    total_cost: float
    cost_per_day: float
    cost_per_ml: float


@dataclass
class PatientCalculation:
    patient_id: str
    bed_number: str
    nutritional: NutritionalCalculation
    volume: VolumeCalculation
    cost: CostCalculation
    date: datetime


@dataclass
class WardCalculation:
    ward_name: str
    total_patients: int
    total_volume: float
    total_calories: float
    total_protein: float
    total_cost: float
    average_cost_per_patient: float
    patients: List[PatientCalculation] = field(default_factory=list)


@dataclass
class Adequacy:
    percentage: int
    status: str  # below | adequate | above


@dataclass
class BMIResult:
    bmi: float
    classification: str
    nutritional_status: str


@dataclass
class FluidRequirements:
    minimum: int
    maximum: int
    recommended: int


@dataclass
class NitrogenBalance:
    nitrogen_intake: float
    nitrogen_output: float
    balance: float
    status: str


@dataclass
class Anthropometrics:
    bmi: BMIResult
    ideal_weight: int
    adjusted_weight: float
    fluid_requirements: FluidRequirements


@dataclass
class CalculationReport:
    anthropometric: Anthropometrics
    nutritional: NutritionalCalculation
    volume: VolumeCalculation
    cost: CostCalculation
    calorie_adequacy: Adequacy
    protein_adequacy: Adequacy
    summary: str


@dataclass
class CalculationValidation:
    is_valid: bool
    errors: List[str]
    warnings: List[str]


# =========================
# CALCULATIONS
# =========================

def calculate_nutrition(composition: FormulaComposition, volume: float) -> NutritionalCalculation:
    """
    Nutrients delivered by `volume` ml of a formula whose composition is
    given per 100 ml. Missing optional nutrients stay None.
    """
    factor = volume / 100

    def scaled(value, digits):
        return round_half_up(value * factor, digits) if value else None

    return NutritionalCalculation(
        calories=round_half_up(composition.calories * factor),
        protein=round_half_up(composition.protein * factor, 1),
        carbohydrates=scaled(composition.carbohydrates, 1) or 0,
        fat=scaled(composition.fat, 1) or 0,
        fiber=scaled(composition.fiber, 1),
        sodium=scaled(composition.sodium, 0),
        potassium=scaled(composition.potassium, 0),
        calcium=scaled(composition.calcium, 0),
        phosphorus=scaled(composition.phosphorus, 0),
    )


def calculate_volume(
    total_volume: float,
    infusion_times: List[str],
    method: str = "intermittent",
) -> VolumeCalculation:
    if method not in INFUSION_METHODS:
        raise ValueError(f"Unknown infusion method: {method}")

    n = len(infusion_times)
    volume_per_time = round_half_up(total_volume / n) if n > 0 else total_volume

    if method == "continuous":
        rate, duration = round_half_up(total_volume / 24), 24
    elif method == "intermittent":
        # one hour per administration
        rate, duration = volume_per_time, 1
    else:
        rate, duration = volume_per_time, 0.25

    return VolumeCalculation(
        total_volume=total_volume,
        volume_per_time=volume_per_time,
        number_of_times=n,
        infusion_rate=rate,
        duration=duration,
    )


def calculate_cost(
    volume: float,
    cost_per_ml: float,
    equipment_per_day: float,
    labor_per_day: float,
    days: int = 1,
) -> CostCalculation:
    if days <= 0:
        raise ValueError("days must be positive")
    if volume <= 0:
        raise ValueError("volume must be positive")

    formula_cost = volume * cost_per_ml * days
    equipment_cost = equipment_per_day * days
    labor_cost = labor_per_day * days
    total = formula_cost + equipment_cost + labor_cost

    return CostCalculation(
        formula_cost=round_half_up(formula_cost, 2),
        equipment_cost=round_half_up(equipment_cost, 2),
        labor_cost=round_half_up(labor_cost, 2),
        total_cost=round_half_up(total, 2),
        cost_per_day=round_half_up(total / days, 2),
        cost_per_ml=round_half_up(total / (volume * days), 3),
    )


def calculate_patient_metrics(
    patient_id: str,
    bed_number: str,
    composition: FormulaComposition,
    volume: float,
    infusion_times: List[str],
    cost_per_ml: float,
    equipment_per_day: float,
    labor_per_day: float,
    method: str = "intermittent",
    now: Optional[datetime] = None,
) -> PatientCalculation:
    return PatientCalculation(
        patient_id=patient_id,
        bed_number=bed_number,
        nutritional=calculate_nutrition(composition, volume),
        volume=calculate_volume(volume, infusion_times, method),
        cost=calculate_cost(volume, cost_per_ml, equipment_per_day, labor_per_day),
        date=now or datetime.now(),
    )


def calculate_ward_metrics(ward_name: str, patients: List[PatientCalculation]) -> WardCalculation:
    total_patients = len(patients)
    total_volume = sum(p.volume.total_volume for p in patients)
    total_calories = sum(p.nutritional.calories for p in patients)
    total_protein = sum(p.nutritional.protein for p in patients)
    total_cost = sum(p.cost.total_cost for p in patients)
    average = total_cost / total_patients if total_patients > 0 else 0

    return WardCalculation(
        ward_name=ward_name,
        total_patients=total_patients,
        total_volume=round_half_up(total_volume),
        total_calories=round_half_up(total_calories),
        total_protein=round_half_up(total_protein, 1),
        total_cost=round_half_up(total_cost, 2),
        average_cost_per_patient=round_half_up(average, 2),
        patients=list(patients),
    )


def calculate_adequacy(actual: float, target: float) -> Adequacy:
    percentage = round_half_up(actual / target * 100) if target > 0 else 0

    if percentage < 80:
        status = "below"
    elif percentage > 120:
        status = "above"
    else:
        status = "adequate"

    return Adequacy(percentage=percentage, status=status)


BMI_BANDS = [
    (16, "Severe thinness", "Severe malnutrition"),
    (17, "Moderate thinness", "Moderate malnutrition"),
    (18.5, "Mild thinness", "Mild malnutrition"),
    (25, "Normal", "Well nourished"),
    (30, "Overweight", "Overweight"),
    (35, "Obesity class I", "Obesity"),
    (40, "Obesity class II", "Severe obesity"),
]


def calculate_bmi(weight: float, height_cm: float) -> BMIResult:
    if height_cm <= 0:
        raise ValueError("height must be positive")

    height_m = height_cm / 100
    bmi = weight / (height_m * height_m)

    # classified on the unrounded value
    for upper, classification, status in BMI_BANDS:
        if bmi < upper:
            break
    else:
        classification, status = "Obesity class III", "Morbid obesity"

    return BMIResult(
        bmi=round_half_up(bmi, 1),
        classification=classification,
        nutritional_status=status,
    )


def calculate_ideal_weight(height_cm: float, gender: str) -> int:
    """Devine formula."""
    inches = height_cm / 2.54
    base = 50 if gender == "male" else 45.5
    return round_half_up(base + 2.3 * (inches - 60))


def calculate_adjusted_weight(actual: float, ideal: float, factor: float = 0.25):
    if actual <= ideal:
        return actual
    return round_half_up(ideal + (actual - ideal) * factor)


def calculate_fluid_requirements(weight: float, age: float) -> FluidRequirements:
    if age < 18:
        ml_per_kg = 50
    elif age >= 65:
        ml_per_kg = 25
    else:
        ml_per_kg = 30

    recommended = round_half_up(weight * ml_per_kg)
    return FluidRequirements(
        minimum=round_half_up(recommended * 0.8),
        maximum=round_half_up(recommended * 1.2),
        recommended=recommended,
    )


def calculate_nitrogen_balance(
    protein_intake: float,
    urinary_nitrogen: float,
    additional_losses: float = 4,
) -> NitrogenBalance:
    intake = protein_intake / PROTEIN_TO_NITROGEN
    output = urinary_nitrogen + additional_losses
    balance = intake - output

    if balance < -5:
        status = "Severe catabolism"
    elif balance < 0:
        status = "Mild catabolism"
    elif balance < 2:
        status = "Equilibrium"
    else:
        status = "Anabolism"

    return NitrogenBalance(
        nitrogen_intake=round_half_up(intake, 1),
        nitrogen_output=round_half_up(output, 1),
        balance=round_half_up(balance, 1),
        status=status,
    )


def generate_calculation_report(
    weight: float,
    height_cm: float,
    age: float,
    gender: str,
    composition: FormulaComposition,
    volume: float,
    infusion_times: List[str],
    cost_per_ml: float,
    equipment_per_day: float,
    labor_per_day: float,
) -> CalculationReport:
    bmi = calculate_bmi(weight, height_cm)
    ideal = calculate_ideal_weight(height_cm, gender)
    adjusted = calculate_adjusted_weight(weight, ideal)
    fluids = calculate_fluid_requirements(weight, age)

    nutritional = calculate_nutrition(composition, volume)
    volume_calc = calculate_volume(volume, infusion_times)
    cost = calculate_cost(volume, cost_per_ml, equipment_per_day, labor_per_day)

    calorie_adequacy = calculate_adequacy(nutritional.calories, weight * TARGET_KCAL_PER_KG)
    protein_adequacy = calculate_adequacy(nutritional.protein, weight * TARGET_PROTEIN_G_PER_KG)

    summary = "\n".join([
        f"Patient: {weight:g}kg, {height_cm:g}cm, {age:g} years",
        f"BMI: {bmi.bmi} kg/m² ({bmi.classification})",
        f"Ideal weight: {ideal}kg | Adjusted weight: {adjusted:g}kg",
        "",
        f"Prescription: {volume:g}ml/day",
        f"Calories: {nutritional.calories} kcal/day ({calorie_adequacy.percentage}% of target)",
        f"Protein: {nutritional.protein}g/day ({protein_adequacy.percentage}% of target)",
        "",
        f"Total cost: R$ {cost.total_cost:.2f}/day",
    ])

    logger.debug("calculation report: bmi=%s kcal=%s", bmi.bmi, nutritional.calories)

    return CalculationReport(
        anthropometric=Anthropometrics(
            bmi=bmi,
            ideal_weight=ideal,
            adjusted_weight=adjusted,
            fluid_requirements=fluids,
        ),
        nutritional=nutritional,
        volume=volume_calc,
        cost=cost,
        calorie_adequacy=calorie_adequacy,
        protein_adequacy=protein_adequacy,
        summary=summary,
    )


def validate_calculations(report: CalculationReport) -> CalculationValidation:
    errors = []
    warnings = []

    nutritional = report.nutritional
    total_volume = report.volume.total_volume

    if nutritional.calories <= 0:
        errors.append("Calories must be greater than zero")
    if nutritional.protein <= 0:
        errors.append("Protein must be greater than zero")
    if total_volume <= 0:
        errors.append("Total volume must be greater than zero")

    if nutritional.calories > 5000:
        warnings.append("Calories very high (>5000 kcal/day)")
    if nutritional.protein > 200:
        warnings.append("Protein very high (>200 g/day)")
    if total_volume > 3000:
        warnings.append("Volume very high (>3000 ml/day)")

    if report.calorie_adequacy.percentage < 70:
        warnings.append("Calorie intake below 70% of target")
    if report.protein_adequacy.percentage < 70:
        warnings.append("Protein intake below 70% of target")

    return CalculationValidation(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
    )
