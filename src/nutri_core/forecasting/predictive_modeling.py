import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional

from nutri_core.numeric import round_half_up

logger = logging.getLogger(__name__)

# ---------------------------------------------
# Historical patterns (reference cohort)
# ---------------------------------------------
DIAGNOSIS_PATTERNS = {
    "sepsis":    {"avg_volume": 1800, "protein_multiplier": 1.8, "avg_length_of_stay": 14, "complication_rate": 25},
    "pneumonia": {"avg_volume": 1500, "protein_multiplier": 1.5, "avg_length_of_stay": 10, "complication_rate": 15},
    "stroke":    {"avg_volume": 1400, "protein_multiplier": 1.3, "avg_length_of_stay": 12, "complication_rate": 20},
    "trauma":    {"avg_volume": 2000, "protein_multiplier": 1.8, "avg_length_of_stay": 15, "complication_rate": 30},
    "cancer":    {"avg_volume": 1600, "protein_multiplier": 1.6, "avg_length_of_stay": 20, "complication_rate": 35},
    "cardiac":   {"avg_volume": 1300, "protein_multiplier": 1.2, "avg_length_of_stay": 8,  "complication_rate": 12},
    "renal":     {"avg_volume": 1200, "protein_multiplier": 1.0, "avg_length_of_stay": 18, "complication_rate": 28},
    "hepatic":   {"avg_volume": 1400, "protein_multiplier": 1.1, "avg_length_of_stay": 16, "complication_rate": 32},
    "default":   {"avg_volume": 1500, "protein_multiplier": 1.2, "avg_length_of_stay": 10, "complication_rate": 15},
}

AGE_GROUP_PATTERNS = {
    "pediatric": {"volume_multiplier": 0.6, "metabolism_factor": 1.2, "recovery_factor": 1.3},
    "adult":     {"volume_multiplier": 1.0, "metabolism_factor": 1.0, "recovery_factor": 1.0},
    "elderly":   {"volume_multiplier": 0.85, "metabolism_factor": 0.9, "recovery_factor": 0.8},
}

ROUTE_PATTERNS = {
    "oral":       {"tolerance_factor": 0.9, "absorption_rate": 0.95, "cost_multiplier": 0.8},
    "enteral":    {"tolerance_factor": 0.85, "absorption_rate": 0.90, "cost_multiplier": 1.0},
    "parenteral": {"tolerance_factor": 1.0, "absorption_rate": 1.0, "cost_multiplier": 2.5},
}

SEVERITY_MULTIPLIERS = {"low": 0.9, "moderate": 1.0, "high": 1.2}

REFERENCE_WEIGHT_KG = 70
FORMULA_COST_PER_ML = 0.020
COMPLICATION_COST_PER_CASE = 5000
EQUIPMENT_COST_PER_DAY = {"parenteral": 50, "enteral": 15, "oral": 8}
LABOR_COST_PER_DAY = {"parenteral": 60, "enteral": 30, "oral": 15}


@dataclass(frozen=True)
class PredictiveInputs:
    diagnosis: str
    age_group: str  # pediatric | adult | elderly
    weight: float
    administration_route: str  # oral | enteral | parenteral
    length_of_stay: float
    clinical_severity: str  # low | moderate | high
    comorbidity_count: int = 0

    def __post_init__(self):
        if self.age_group not in AGE_GROUP_PATTERNS:
            raise ValueError(f"Unknown age group: {self.age_group}")
        if self.administration_route not in ROUTE_PATTERNS:
            raise ValueError(f"Unknown administration route: {self.administration_route}")
        if self.clinical_severity not in SEVERITY_MULTIPLIERS:
            raise ValueError(f"Unknown clinical severity: {self.clinical_severity}")


@dataclass
class ConsumptionPrediction:
    estimated_daily_volume: int
    estimated_total_volume: int
    formula_type: str
    confidence: int
    factors: List[str] = field(default_factory=list)


@dataclass
class NutritionalEvolution:
    expected_weight_change: float
    expected_albumin_change: float
    expected_prealbumin_change: float
    time_to_target: int  # days
    risk_of_complications: int  # %
    recommendations: List[str] = field(default_factory=list)


@dataclass
class EconomicImpact:
    estimated_daily_cost: float
    estimated_total_cost: float
    formulas: float
    equipment: float
    labor: float
    complications: float
    projected_monthly_cost: float
    projected_yearly_cost: float


@dataclass
class ScenarioComparison:
    volume_difference: float
    cost_difference: float
    outcome_difference: str


@dataclass
class ScenarioSimulation:
    name: str
    description: str
    consumption: ConsumptionPrediction
    evolution: NutritionalEvolution
    economics: EconomicImpact
    comparison: Optional[ScenarioComparison] = None


@dataclass
class PredictionReport:
    consumption: ConsumptionPrediction
    evolution: NutritionalEvolution
    economics: EconomicImpact
    scenarios: List[ScenarioSimulation]
    summary: str


def _diagnosis_pattern(diagnosis: str) -> dict:
    return DIAGNOSIS_PATTERNS.get(diagnosis.lower(), DIAGNOSIS_PATTERNS["default"])


def predict_consumption(inputs: PredictiveInputs) -> ConsumptionPrediction:
    factors = []

    diagnosis = _diagnosis_pattern(inputs.diagnosis)
    age = AGE_GROUP_PATTERNS[inputs.age_group]
    route = ROUTE_PATTERNS[inputs.administration_route]
    severity = SEVERITY_MULTIPLIERS[inputs.clinical_severity]

    volume = diagnosis["avg_volume"]

    volume *= age["volume_multiplier"]
    factors.append(f"Age group adjustment ({inputs.age_group}): {age['volume_multiplier'] * 100:.0f}%")

    # weight factor limited to 70%..150%
    weight_factor = inputs.weight / REFERENCE_WEIGHT_KG
    volume *= min(max(weight_factor, 0.7), 1.5)
    factors.append(f"Weight adjustment ({inputs.weight:g}kg): factor {weight_factor:.2f}")

    volume *= route["tolerance_factor"]
    factors.append(
        f"Administration route adjustment ({inputs.administration_route}): "
        f"{route['tolerance_factor'] * 100:.0f}%"
    )

    volume *= severity
    factors.append(f"Clinical severity adjustment ({inputs.clinical_severity}): {severity * 100:.0f}%")

    comorbidity_factor = 1 + inputs.comorbidity_count * 0.05
    volume *= min(comorbidity_factor, 1.3)
    if inputs.comorbidity_count > 0:
        factors.append(
            f"Comorbidity adjustment ({inputs.comorbidity_count}): {comorbidity_factor * 100:.0f}%"
        )

    diagnosis_text = inputs.diagnosis.lower()
    if diagnosis["protein_multiplier"] >= 1.6:
        formula_type = "High protein"
    elif "diabet" in diagnosis_text:
        formula_type = "Diabetes specific"
    elif "renal" in diagnosis_text:
        formula_type = "Renal specific"
    else:
        formula_type = "Standard"

    confidence = 85
    if inputs.comorbidity_count > 3:
        confidence -= 10
    if inputs.clinical_severity == "high":
        confidence -= 5
    confidence = max(60, confidence)

    return ConsumptionPrediction(
        estimated_daily_volume=round_half_up(volume),
        estimated_total_volume=round_half_up(volume * inputs.length_of_stay),
        formula_type=formula_type,
        confidence=confidence,
        factors=factors,
    )


def predict_nutritional_evolution(inputs: PredictiveInputs) -> NutritionalEvolution:
    recommendations = []

    diagnosis = _diagnosis_pattern(inputs.diagnosis)
    age = AGE_GROUP_PATTERNS[inputs.age_group]
    route = ROUTE_PATTERNS[inputs.administration_route]
    severity = inputs.clinical_severity

    weight_change = 0.0
    if inputs.length_of_stay >= 7:
        base = {"high": -2, "moderate": 0, "low": 1}[severity]
        weight_change = round_half_up(base * age["recovery_factor"] * route["absorption_rate"], 1)

    if weight_change < 0:
        recommendations.append("Risk of weight loss: consider increasing caloric intake")
    elif weight_change > 0:
        recommendations.append("Weight gain expected: maintain adequate nutrition therapy")

    albumin_change = {"high": -0.3, "moderate": 0.1, "low": 0.3}[severity]  # g/dL
    if albumin_change < 0:
        recommendations.append("Risk of hypoalbuminemia: monitor nutritional markers weekly")

    prealbumin_change = {"high": -2, "moderate": 1, "low": 3}[severity]  # mg/dL

    severity_delay = {"high": 7, "moderate": 3, "low": 0}[severity]
    time_to_target = min(7 + severity_delay + inputs.comorbidity_count * 2, 21)
    recommendations.append(f"Estimated time to reach nutritional target: {time_to_target} days")

    risk = diagnosis["complication_rate"] + inputs.comorbidity_count * 5
    if inputs.administration_route == "parenteral":
        risk += 10
    if inputs.age_group == "elderly":
        risk += 8
    risk = min(risk, 80)

    if risk > 30:
        recommendations.append("High risk of complications: intensive monitoring recommended")

    if inputs.administration_route == "enteral":
        recommendations.append("Enteral route: monitor gastric tolerance and gastric residual volume")

    return NutritionalEvolution(
        expected_weight_change=weight_change,
        expected_albumin_change=round_half_up(albumin_change, 1),
        expected_prealbumin_change=round_half_up(prealbumin_change, 1),
        time_to_target=time_to_target,
        risk_of_complications=round_half_up(risk),
        recommendations=recommendations,
    )


def predict_economic_impact(inputs: PredictiveInputs) -> EconomicImpact:
    consumption = predict_consumption(inputs)
    evolution = predict_nutritional_evolution(inputs)

    route = inputs.administration_route
    cost_multiplier = ROUTE_PATTERNS[route]["cost_multiplier"]
    equipment_per_day = EQUIPMENT_COST_PER_DAY[route]
    labor_per_day = LABOR_COST_PER_DAY[route]
    stay = inputs.length_of_stay

    daily_formula = consumption.estimated_daily_volume * FORMULA_COST_PER_ML * cost_multiplier
    total_formula = daily_formula * stay
    total_equipment = equipment_per_day * stay
    total_labor = labor_per_day * stay
    total_complications = COMPLICATION_COST_PER_CASE * evolution.risk_of_complications / 100

    daily = daily_formula + equipment_per_day + labor_per_day
    total = total_formula + total_equipment + total_labor + total_complications

    return EconomicImpact(
        estimated_daily_cost=round_half_up(daily, 2),
        estimated_total_cost=round_half_up(total, 2),
        formulas=round_half_up(total_formula, 2),
        equipment=round_half_up(total_equipment, 2),
        labor=round_half_up(total_labor, 2),
        complications=round_half_up(total_complications, 2),
        projected_monthly_cost=round_half_up(daily * 30, 2),
        projected_yearly_cost=round_half_up(daily * 365, 2),
    )


def _simulate(name, description, inputs) -> ScenarioSimulation:
    return ScenarioSimulation(
        name=name,
        description=description,
        consumption=predict_consumption(inputs),
        evolution=predict_nutritional_evolution(inputs),
        economics=predict_economic_impact(inputs),
    )


def simulate_scenarios(base_inputs: PredictiveInputs) -> List[ScenarioSimulation]:
    """
    Base scenario first, then: enteral -> oral transition (enteral only),
    +50% length of stay, and high clinical severity.
    """
    base = _simulate("Base scenario", "Current scenario with the provided parameters", base_inputs)
    scenarios = [base]

    if base_inputs.administration_route == "enteral":
        oral = _simulate(
            "Transition to oral route",
            "Switch from enteral to oral route",
            replace(base_inputs, administration_route="oral"),
        )
        oral.comparison = ScenarioComparison(
            volume_difference=oral.consumption.estimated_daily_volume - base.consumption.estimated_daily_volume,
            cost_difference=oral.economics.estimated_daily_cost - base.economics.estimated_daily_cost,
            outcome_difference="Lower cost, but requires good oral tolerance",
        )
        scenarios.append(oral)

    extended_inputs = replace(base_inputs, length_of_stay=base_inputs.length_of_stay * 1.5)
    extended = _simulate(
        "Extended stay (+50%)",
        f"Length of stay extended to {round_half_up(extended_inputs.length_of_stay)} days",
        extended_inputs,
    )
    extended.comparison = ScenarioComparison(
        volume_difference=extended.consumption.estimated_total_volume - base.consumption.estimated_total_volume,
        cost_difference=extended.economics.estimated_total_cost - base.economics.estimated_total_cost,
        outcome_difference="Higher total cost, better chance of nutritional recovery",
    )
    scenarios.append(extended)

    intensive = _simulate(
        "Intensive therapy (high severity)",
        "Higher protein and caloric supply",
        replace(base_inputs, clinical_severity="high"),
    )
    intensive.comparison = ScenarioComparison(
        volume_difference=intensive.consumption.estimated_daily_volume - base.consumption.estimated_daily_volume,
        cost_difference=intensive.economics.estimated_daily_cost - base.economics.estimated_daily_cost,
        outcome_difference="Higher cost, but appropriate for critical patients",
    )
    scenarios.append(intensive)

    return scenarios


def generate_prediction_report(inputs: PredictiveInputs) -> PredictionReport:
    consumption = predict_consumption(inputs)
    evolution = predict_nutritional_evolution(inputs)
    economics = predict_economic_impact(inputs)
    scenarios = simulate_scenarios(inputs)

    summary = "\n".join([
        f"Predictive analysis for {inputs.diagnosis} ({inputs.age_group}, {inputs.administration_route})",
        "",
        f"Estimated volume: {consumption.estimated_daily_volume}ml/day "
        f"({consumption.estimated_total_volume}ml total)",
        f"Recommended formula: {consumption.formula_type}",
        f"Estimated cost: R$ {economics.estimated_daily_cost:.2f}/day "
        f"(R$ {economics.estimated_total_cost:.2f} total)",
        f"Time to target: {evolution.time_to_target} days",
        f"Risk of complications: {evolution.risk_of_complications}%",
        "",
        f"Prediction confidence: {consumption.confidence}%",
    ])

    logger.debug("prediction report for %s: %d scenarios", inputs.diagnosis, len(scenarios))

    return PredictionReport(
        consumption=consumption,
        evolution=evolution,
        economics=economics,
        scenarios=scenarios,
        summary=summary,
    )
