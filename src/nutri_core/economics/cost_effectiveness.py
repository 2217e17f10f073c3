import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional

import pandas as pd

logger = logging.getLogger(__name__)

CONTAMINATION_COST_PER_CASE = 5000.0  # antibiotics, extended stay
DAYS_IN_MONTH = 30
DAYS_IN_YEAR = 365


@dataclass(frozen=True)
class SystemCostData:
    system_type: str  # open | closed
    formula_cost_per_ml: float
    equipment_cost_per_day: float
    administration_minutes: float  # per day
    nursing_cost_per_hour: float
    contamination_rate: float  # %
    waste_rate: float  # %
    reinfusion_rate: float  # %


DEFAULT_OPEN_SYSTEM = SystemCostData(
    system_type="open",
    formula_cost_per_ml=0.015,
    equipment_cost_per_day=5.0,
    administration_minutes=45,
    nursing_cost_per_hour=30.0,
    contamination_rate=3.5,
    waste_rate=15,
    reinfusion_rate=5,
)

DEFAULT_CLOSED_SYSTEM = SystemCostData(
    system_type="closed",
    formula_cost_per_ml=0.025,
    equipment_cost_per_day=15.0,
    administration_minutes=20,
    nursing_cost_per_hour=30.0,
    contamination_rate=0.5,
    waste_rate=5,
    reinfusion_rate=1,
)


@dataclass(frozen=True)
class CostScenario:
    days_of_use: int
    prescribed_volume: float
    infused_volume: float
    number_of_patients: int
    system_type: str = "closed"


@dataclass
class CostBreakdown:
    category: str
    amount: float
    percentage: float


@dataclass
class CostAnalysis:
    total_cost: float
    formula_cost: float
    equipment_cost: float
    labor_cost: float
    waste_cost: float
    contamination_cost: float
    cost_per_patient_day: float
    cost_per_ml_infused: float
    recommendation: str
    breakdown: List[CostBreakdown] = field(default_factory=list)


@dataclass
class Projection:
    open: float
    closed: float
    savings: float


@dataclass
class ComparativeAnalysis:
    open_system: CostAnalysis
    closed_system: CostAnalysis
    difference: float
    percentage_difference: float
    recommendation: str
    break_even_days: float
    monthly: Projection
    yearly: Projection


@dataclass
class ScenarioResult:
    name: str
    description: str
    analysis: ComparativeAnalysis


@dataclass
class ROIResult:
    roi: float
    payback_months: float
    net_savings: float
    recommendation: str


def _check_scenario(scenario: CostScenario):
    if scenario.days_of_use <= 0:
        raise ValueError("days_of_use must be positive")
    if scenario.number_of_patients <= 0:
        raise ValueError("number_of_patients must be positive")
    if scenario.infused_volume <= 0:
        raise ValueError("infused_volume must be positive")


def _contamination_cost(rate: float, patients: int) -> float:
    return rate / 100 * patients * CONTAMINATION_COST_PER_CASE


def _system_recommendation(system_type: str, cost_per_day: float) -> str:
    if system_type == "closed":
        return (
            "Closed system offers better microbiological safety and less handling time. "
            f"Cost: R$ {cost_per_day:.2f}/patient/day."
        )
    return (
        "Open system has a lower upfront cost but needs more handling time "
        f"and carries a higher contamination risk. Cost: R$ {cost_per_day:.2f}/patient/day."
    )


def analyze_cost(scenario: CostScenario, system_data: Optional[SystemCostData] = None) -> CostAnalysis:
    _check_scenario(scenario)

    data = system_data or (
        DEFAULT_OPEN_SYSTEM if scenario.system_type == "open" else DEFAULT_CLOSED_SYSTEM
    )
    days = scenario.days_of_use

    formula_cost = scenario.prescribed_volume * data.formula_cost_per_ml * days
    equipment_cost = data.equipment_cost_per_day * days
    labor_cost = data.administration_minutes / 60 * data.nursing_cost_per_hour * days
    waste_cost = scenario.prescribed_volume * days * (data.waste_rate / 100) * data.formula_cost_per_ml
    contamination_cost = _contamination_cost(data.contamination_rate, scenario.number_of_patients)

    total = formula_cost + equipment_cost + labor_cost + waste_cost + contamination_cost
    per_patient_day = total / (scenario.number_of_patients * days)

    components = [
        ("Formulas", formula_cost),
        ("Equipment", equipment_cost),
        ("Labor", labor_cost),
        ("Waste", waste_cost),
        ("Contamination", contamination_cost),
    ]
    breakdown = [
        CostBreakdown(
            category=name,
            amount=amount,
            percentage=amount / total * 100 if total else 0.0,
        )
        for name, amount in components
    ]

    return CostAnalysis(
        total_cost=total,
        formula_cost=formula_cost,
        equipment_cost=equipment_cost,
        labor_cost=labor_cost,
        waste_cost=waste_cost,
        contamination_cost=contamination_cost,
        cost_per_patient_day=per_patient_day,
        cost_per_ml_infused=total / (scenario.infused_volume * days),
        recommendation=_system_recommendation(data.system_type, per_patient_day),
        breakdown=breakdown,
    )


def compare_system_costs(scenario: CostScenario) -> ComparativeAnalysis:
    open_ = analyze_cost(replace(scenario, system_type="open"))
    closed = analyze_cost(replace(scenario, system_type="closed"))

    difference = open_.total_cost - closed.total_cost
    if open_.total_cost == 0:
        raise ValueError("open system total cost is zero")
    pct = difference / open_.total_cost * 100

    daily_difference = (open_.cost_per_patient_day - closed.cost_per_patient_day) * scenario.number_of_patients
    break_even = abs(difference / daily_difference) if daily_difference != 0 else 0.0

    if closed.total_cost < open_.total_cost:
        recommendation = (
            f"Closed system is more economical, saving R$ {difference:.2f} "
            f"({abs(pct):.1f}%) over the period analysed."
        )
    else:
        recommendation = (
            "Open system is more economical, but weigh the safety benefits of the closed system. "
            f"Additional cost: R$ {-difference:.2f} ({abs(pct):.1f}%)."
        )

    def project(days):
        o = open_.total_cost / scenario.days_of_use * days
        c = closed.total_cost / scenario.days_of_use * days
        return Projection(open=o, closed=c, savings=o - c)

    logger.debug("system comparison: difference=%.2f break_even=%.2f", difference, break_even)

    return ComparativeAnalysis(
        open_system=open_,
        closed_system=closed,
        difference=difference,
        percentage_difference=pct,
        recommendation=recommendation,
        break_even_days=break_even,
        monthly=project(DAYS_IN_MONTH),
        yearly=project(DAYS_IN_YEAR),
    )


def simulate_scenarios(base: CostScenario) -> List[ScenarioResult]:
    """
    Baseline plus four what-if variants. The baseline is always first.
    """
    variants = [
        ("Baseline", "Scenario as provided", base),
        (
            "Reduced infusion (75%)",
            "75% of the prescribed volume is actually infused",
            replace(base, infused_volume=base.prescribed_volume * 0.75),
        ),
        (
            "Long stay (30 days)",
            "Cost over an extended 30-day admission",
            replace(base, days_of_use=30),
        ),
        (
            "High demand (20 patients)",
            "Scenario with a larger number of patients",
            replace(base, number_of_patients=20),
        ),
        (
            "High volume (2000ml)",
            "High daily prescribed volume",
            replace(base, prescribed_volume=2000, infused_volume=2000),
        ),
    ]

    return [
        ScenarioResult(name=name, description=desc, analysis=compare_system_costs(s))
        for name, desc, s in variants
    ]


def scenario_table(results: List[ScenarioResult]) -> pd.DataFrame:
    """One row per scenario, for reports."""
    return pd.DataFrame([
        {
            "scenario": r.name,
            "open_total": round(r.analysis.open_system.total_cost, 2),
            "closed_total": round(r.analysis.closed_system.total_cost, 2),
            "difference": round(r.analysis.difference, 2),
            "pct_difference": round(r.analysis.percentage_difference, 1),
            "yearly_savings": round(r.analysis.yearly.savings, 2),
        }
        for r in results
    ])


def calculate_roi(
    current_system: str,
    proposed_system: str,
    scenario: CostScenario,
    implementation_cost: float,
) -> ROIResult:
    if implementation_cost <= 0:
        raise ValueError("implementation_cost must be positive")

    comparison = compare_system_costs(scenario)

    def total(system):
        if system == "open":
            return comparison.open_system.total_cost
        return comparison.closed_system.total_cost

    annual_savings = (total(current_system) - total(proposed_system)) / scenario.days_of_use * DAYS_IN_YEAR
    net_savings = annual_savings - implementation_cost
    roi = net_savings / implementation_cost * 100

    # no savings -> never pays back
    payback = implementation_cost / (annual_savings / 12) if annual_savings > 0 else float("inf")

    if roi > 20:
        recommendation = f"Excellent return on investment ({roi:.1f}%). Payback period: {payback:.1f} months."
    elif roi > 0:
        recommendation = f"Positive return on investment ({roi:.1f}%). Payback period: {payback:.1f} months."
    else:
        recommendation = f"Negative return on investment ({roi:.1f}%). Not recommended on economic grounds."

    return ROIResult(
        roi=roi,
        payback_months=payback,
        net_savings=net_savings,
        recommendation=recommendation,
    )
