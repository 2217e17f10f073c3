import pytest

from data_contracts.models import PatientProfile, HistoricalCase, CaseOutcome
from nutri_agents.recommendation_agent import (
    NutritionRecommendationAgent,
    basal_energy_expenditure,
    protein_per_kg,
)
from nutri_agents.similar_case_agent import SimilarCaseAgent, extract_features, FEATURE_NAMES


@pytest.fixture
def agent():
    return NutritionRecommendationAgent()


@pytest.fixture
def patient():
    return PatientProfile(age=40, weight=70, height=170, diagnosis="pneumonia")


def _case(patient_id, formula, age, weight, height, diagnosis, comorbidities=()):
    return HistoricalCase(
        patient_id=patient_id, age=age, weight=weight, height=height, diagnosis=diagnosis,
        comorbidities=list(comorbidities), prescribed_formula=formula,
        prescribed_volume=1500, infusion_rate=62, system_type="closed",
        administration_route="enteral", days_on_therapy=10,
        outcome=CaseOutcome(weight_change=0.5, albumin_change=0.2, complications=False,
                            length_of_stay=10, tolerance_score=8, success_score=8),
    )


# ---------------------------------------------
# Rule-based agent
# ---------------------------------------------
def test_energy_equations():
    assert basal_energy_expenditure(70, 170, 40) == pytest.approx(1609.51)
    assert basal_energy_expenditure(60, 160, 30, "female") == pytest.approx(1384.6)
    assert protein_per_kg("critical", "dialysis") == 1.5
    assert protein_per_kg("critical", "impaired") == 0.8
    assert protein_per_kg("critical", "normal") == 1.8


def test_stable_patient(agent, patient):
    rec = agent.recommend(patient)

    assert rec.total_calories == 2318
    assert rec.calories_per_kg == 33
    assert rec.total_protein == 84
    assert rec.protein_per_kg == 1.2
    assert rec.system_type == "closed"
    assert rec.confidence == 85

    schedule = rec.infusion_schedule
    assert schedule.method == "intermittent"
    assert len(schedule.times) == 6
    assert schedule.volume_per_time == 386


def test_critical_patient_gets_high_protein_continuous(agent):
    rec = agent.recommend(PatientProfile(age=40, weight=70, height=170, clinical_condition="critical"))

    assert rec.recommended_formulas[0].formula_id == "f4"
    assert rec.recommended_formulas[0].volume == 1545
    assert rec.infusion_schedule.method == "continuous"
    assert rec.infusion_schedule.rate == 64
    assert rec.confidence == 80
    assert any(w.startswith("Critical patient") for w in rec.warnings)


def test_formula_restrictions(agent):
    diabetic = agent.recommend(PatientProfile(age=60, weight=80, height=175, diabetic=True))
    assert diabetic.recommended_formulas[0].formula_id == "f1"

    dialysis = agent.recommend(PatientProfile(age=60, weight=80, height=175, renal_function="dialysis"))
    assert dialysis.recommended_formulas[0].formula_name == "Nepro"

    # nothing is both diabetic and renal: falls back to a standard formula
    both = agent.recommend(PatientProfile(age=60, weight=80, height=175, diabetic=True, renal_function="dialysis"))
    assert both.recommended_formulas[0].formula_id == "f2"


def test_invalid_anthropometrics(agent):
    with pytest.raises(ValueError):
        agent.recommend(PatientProfile(age=40, weight=0, height=170))


def test_adjust_returns_copy(agent, patient):
    rec = agent.recommend(patient)
    adjusted = agent.adjust(rec, "poor", 2)

    assert adjusted.recommended_formulas[0].volume == 1739
    assert rec.recommended_formulas[0].volume == 2318
    assert adjusted.rationale[-1] == "Volume reduced by 25% due to poor tolerance"
    assert len(rec.rationale) == len(adjusted.rationale) - 1


# ---------------------------------------------
# Similar-case agent
# ---------------------------------------------
def test_similar_case_recommendation():
    agent = SimilarCaseAgent()
    patient = PatientProfile(age=65, weight=70, height=170, diagnosis="sepsis",
                             comorbidities=["diabetes", "hypertension"])
    rec = agent.recommend(patient)

    assert rec.recommended_formula == "Glucerna"
    assert rec.similar_cases == 3
    assert rec.recommended_system_type == "closed"
    assert len(rec.alternatives) == 2
    assert rec.reasoning[0] == "Analysis based on 3 similar cases"

    neighbours = agent.similar_cases(patient)
    assert neighbours[0][0].patient_id == "P001"
    assert neighbours[0][1] == pytest.approx(1.0)


def test_defaults_without_history():
    agent = SimilarCaseAgent(cases=[])

    diabetic = agent.recommend(PatientProfile(age=50, weight=80, height=175, comorbidities=["Diabetes type 2"]))
    assert diabetic.recommended_formula == "Glucerna"
    assert diabetic.recommended_volume == 1500
    assert diabetic.similar_cases == 0
    assert diabetic.confidence == 42

    trauma = agent.recommend(PatientProfile(age=30, weight=80, height=175, diagnosis="Trauma"))
    assert trauma.recommended_formula == "Nutridrink HP"


def test_add_case():
    agent = SimilarCaseAgent()
    assert agent.add_case(_case("P004", "Peptamen", 50, 60, 165, "cancer")) == 4


def test_evaluate_leave_one_out():
    agent = SimilarCaseAgent(cases=[
        _case("A1", "Formula X", 20, 40, 150, "trauma"),
        _case("A2", "Formula X", 20, 40, 150, "trauma"),
        _case("B1", "Formula Y", 90, 140, 195, "renal", ["diabetes", "hypertension", "renal failure"]),
        _case("B2", "Formula Y", 90, 140, 195, "renal", ["diabetes", "hypertension", "renal failure"]),
    ])
    evaluation = agent.evaluate()

    assert evaluation.total_cases == 4
    assert evaluation.accuracy == 1.0
    assert evaluation.precision == 1.0
    assert evaluation.recall == 1.0


def test_features():
    features = extract_features(65, 70, 170, "Sepsis", ["Diabetes"], "enteral")

    assert len(features) == len(FEATURE_NAMES)
    assert features[4] == 1
    assert features[5] == 1
    assert features[9] == 2

    with pytest.raises(ValueError):
        extract_features(65, 70, 0, "sepsis", [])

    assert SimilarCaseAgent().feature_importance()[0] == {"feature": "diagnosis", "importance": 0.25}
