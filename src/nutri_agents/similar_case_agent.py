import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
from sklearn.metrics import accuracy_score, precision_score, recall_score
from sklearn.metrics.pairwise import euclidean_distances

from data_contracts.models import HistoricalCase, CaseOutcome, PatientProfile, SystemType
from nutri_core.numeric import round_half_up

logger = logging.getLogger(__name__)

DIAGNOSIS_CODES = {
    "sepsis": 1, "pneumonia": 2, "stroke": 3, "trauma": 4,
    "cancer": 5, "cardiac": 6, "renal": 7, "hepatic": 8,
}
ROUTE_CODES = {"oral": 1, "enteral": 2, "parenteral": 3}

FEATURE_NAMES = [
    "age", "weight", "height", "bmi", "diagnosis",
    "diabetes", "hypertension", "renal", "comorbidity_count", "route",
]

# fixed min-max ranges (typical clinical values), same order as FEATURE_NAMES
FEATURE_MIN = np.array([0, 30, 140, 15, 0, 0, 0, 0, 0, 0], dtype=float)
FEATURE_MAX = np.array([100, 150, 200, 40, 8, 1, 1, 1, 10, 3], dtype=float)

# reference weights shown alongside recommendations
FEATURE_IMPORTANCE = [
    ("diagnosis", 0.25),
    ("weight", 0.18),
    ("bmi", 0.15),
    ("comorbidity_count", 0.12),
    ("age", 0.10),
    ("route", 0.08),
    ("diabetes", 0.06),
    ("renal", 0.03),
    ("hypertension", 0.02),
    ("height", 0.01),
]

SUCCESS_THRESHOLD = 7
HIGH_SCORE = 8

SEED_CASES = [
    HistoricalCase(
        patient_id="P001", age=65, weight=70, height=170, diagnosis="sepsis",
        comorbidities=["diabetes", "hypertension"], prescribed_formula="Glucerna",
        prescribed_volume=1500, infusion_rate=62, system_type=SystemType.closed,
        administration_route="enteral", days_on_therapy=14,
        outcome=CaseOutcome(weight_change=-1.5, albumin_change=0.2, complications=False,
                            length_of_stay=14, tolerance_score=8, success_score=8),
    ),
    HistoricalCase(
        patient_id="P002", age=45, weight=85, height=175, diagnosis="trauma",
        comorbidities=[], prescribed_formula="Nutridrink HP",
        prescribed_volume=2000, infusion_rate=83, system_type=SystemType.closed,
        administration_route="enteral", days_on_therapy=10,
        outcome=CaseOutcome(weight_change=0.5, albumin_change=0.4, complications=False,
                            length_of_stay=10, tolerance_score=9, success_score=9),
    ),
    HistoricalCase(
        patient_id="P003", age=78, weight=55, height=160, diagnosis="stroke",
        comorbidities=["hypertension", "atrial fibrillation"], prescribed_formula="Fresubin Original",
        prescribed_volume=1200, infusion_rate=50, system_type=SystemType.closed,
        administration_route="enteral", days_on_therapy=12,
        outcome=CaseOutcome(weight_change=0.8, albumin_change=0.1, complications=False,
                            length_of_stay=12, tolerance_score=7, success_score=7),
    ),
]


@dataclass
class FormulaAlternative:
    formula: str
    confidence: float
    reason: str


@dataclass
class ExpectedOutcome:
    weight_change: float
    tolerance_score: float
    success_probability: float


@dataclass
class SimilarCaseRecommendation:
    recommended_formula: str
    recommended_volume: int
    recommended_infusion_rate: int
    recommended_system_type: str
    confidence: int
    reasoning: List[str]
    similar_cases: int
    expected_outcome: ExpectedOutcome
    alternatives: List[FormulaAlternative] = field(default_factory=list)


@dataclass
class ModelEvaluation:
    accuracy: float
    precision: float
    recall: float
    total_cases: int


def _value(x):
    return getattr(x, "value", x)


def extract_features(age, weight, height, diagnosis, comorbidities, route=None) -> np.ndarray:
    if height <= 0:
        raise ValueError("height must be positive")
    bmi = weight / (height / 100) ** 2
    lowered = [c.lower() for c in comorbidities]

    def has(term):
        return 1 if any(term in c for c in lowered) else 0

    return np.array([
        age,
        weight,
        height,
        bmi,
        DIAGNOSIS_CODES.get(diagnosis.lower(), 0),
        has("diabet"),
        has("hypertens"),
        has("renal"),
        len(comorbidities),
        ROUTE_CODES.get(_value(route), 0) if route else 0,
    ], dtype=float)


def normalize(features: np.ndarray) -> np.ndarray:
    return (features - FEATURE_MIN) / (FEATURE_MAX - FEATURE_MIN)


def _case_features(case: HistoricalCase) -> np.ndarray:
    return extract_features(
        case.age, case.weight, case.height, case.diagnosis,
        case.comorbidities, case.administration_route,
    )


def _profile_features(patient: PatientProfile) -> np.ndarray:
    return extract_features(
        patient.age, patient.weight, patient.height, patient.diagnosis,
        patient.comorbidities, patient.administration_route,
    )


class SimilarCaseAgent:
    """
    k-nearest-neighbour recommendation over historical cases.

    Similarity is 1 / (1 + euclidean distance) on min-max scaled features.
    Predictions are similarity-weighted averages of the k closest cases.
    """

    def __init__(self, cases: Optional[List[HistoricalCase]] = None, k: int = 5):
        self.cases = list(SEED_CASES if cases is None else cases)
        self.k = k

    def add_case(self, case: HistoricalCase) -> int:
        self.cases.append(case)
        logger.info("historical case %s added; %d cases", case.patient_id, len(self.cases))
        return len(self.cases)

    def similar_cases(self, patient: PatientProfile):
        return self._neighbours(_profile_features(patient))

    def _neighbours(self, features: np.ndarray):
        if not self.cases:
            return []

        query = normalize(features)
        matrix = normalize(np.vstack([_case_features(c) for c in self.cases]))

        distances = euclidean_distances(query.reshape(1, -1), matrix)[0]
        similarities = 1 / (1 + distances)

        # stable: ties keep case order
        order = np.argsort(-similarities, kind="stable")[: self.k]
        return [(self.cases[i], float(similarities[i])) for i in order]

    def _predict(self, neighbours):
        if not neighbours:
            return {
                "volume": 1500,
                "infusion_rate": 62,
                "weight_change": 0.0,
                "tolerance": 7.0,
                "success_probability": 0.7,
            }

        weights = np.array([s for _, s in neighbours])

        def weighted(values):
            return float(np.dot(weights, values) / weights.sum())

        cases = [c for c, _ in neighbours]
        successes = sum(1 for c in cases if c.outcome.success_score >= SUCCESS_THRESHOLD)

        return {
            # nearest 50 ml
            "volume": round_half_up(weighted([c.prescribed_volume for c in cases]) / 50) * 50,
            "infusion_rate": round_half_up(weighted([c.infusion_rate for c in cases])),
            "weight_change": round_half_up(weighted([c.outcome.weight_change for c in cases]), 1),
            "tolerance": round_half_up(weighted([c.outcome.tolerance_score for c in cases]), 1),
            "success_probability": round_half_up(successes / len(cases), 2),
        }

    def _vote_formula(self, neighbours, diagnosis: str, comorbidities: List[str]):
        scores = {}
        reasons = {}

        for case, similarity in neighbours:
            name = case.prescribed_formula
            scores[name] = scores.get(name, 0.0) + similarity
            reasons.setdefault(name, [])
            if case.outcome.success_score >= HIGH_SCORE:
                reasons[name].append("High success rate in similar cases")
            if case.outcome.tolerance_score >= HIGH_SCORE:
                reasons[name].append("Good tolerance in similar cases")

        if not scores:
            diagnosis = diagnosis.lower()
            if any("diabet" in c.lower() for c in comorbidities):
                formula = "Glucerna"
            elif "trauma" in diagnosis or "sepsis" in diagnosis:
                formula = "Nutridrink HP"
            else:
                formula = "Fresubin Original"
            return formula, 0.6, []

        ranked = sorted(scores.items(), key=lambda kv: kv[1], reverse=True)
        total = sum(scores.values())
        top, top_score = ranked[0]

        alternatives = [
            FormulaAlternative(
                formula=name,
                confidence=score / total,
                reason=(reasons[name] or ["Alternative based on similar cases"])[0],
            )
            for name, score in ranked[1:4]
        ]

        return top, round_half_up(top_score / total, 2), alternatives

    def recommend(self, patient: PatientProfile) -> SimilarCaseRecommendation:
        return self._recommend(_profile_features(patient), patient.diagnosis, patient.comorbidities)

    def _recommend(self, features, diagnosis, comorbidities) -> SimilarCaseRecommendation:
        neighbours = self._neighbours(features)
        prediction = self._predict(neighbours)
        formula, formula_confidence, alternatives = self._vote_formula(neighbours, diagnosis, comorbidities)

        closed = sum(1 for c, _ in neighbours if c.system_type == SystemType.closed)
        system_type = "closed" if closed >= len(neighbours) / 2 else "open"

        reasoning = [f"Analysis based on {len(neighbours)} similar cases"]
        if neighbours:
            mean_similarity = sum(s for _, s in neighbours) / len(neighbours)
            reasoning.append(f"Mean similarity: {mean_similarity * 100:.1f}%")

        success = prediction["success_probability"]
        if success >= 0.8:
            reasoning.append("High probability of success based on historical cases")
        elif success >= 0.6:
            reasoning.append("Moderate probability of success; monitoring recommended")
        else:
            reasoning.append("Variable probability of success; consider individual adjustments")

        tolerance = prediction["tolerance"]
        if tolerance >= 8:
            reasoning.append("Good tolerance expected")
        elif tolerance < 6:
            reasoning.append("Tolerance may be challenging; start with reduced volumes")

        if system_type == "closed":
            reasoning.append("Closed system recommended for greater safety")

        return SimilarCaseRecommendation(
            recommended_formula=formula,
            recommended_volume=prediction["volume"],
            recommended_infusion_rate=prediction["infusion_rate"],
            recommended_system_type=system_type,
            confidence=round_half_up(formula_confidence * success * 100),
            reasoning=reasoning,
            similar_cases=len(neighbours),
            expected_outcome=ExpectedOutcome(
                weight_change=prediction["weight_change"],
                tolerance_score=tolerance,
                success_probability=success,
            ),
            alternatives=alternatives,
        )

    def evaluate(self) -> ModelEvaluation:
        """
        Leave-one-out: each case's formula is predicted from all the
        others and compared with what was actually prescribed.
        """
        if not self.cases:
            return ModelEvaluation(accuracy=0.0, precision=0.0, recall=0.0, total_cases=0)

        actual = []
        predicted = []
        for i, case in enumerate(self.cases):
            others = self.cases[:i] + self.cases[i + 1:]
            agent = SimilarCaseAgent(others, k=self.k)
            result = agent._recommend(_case_features(case), case.diagnosis, case.comorbidities)
            predicted.append(result.recommended_formula)
            actual.append(case.prescribed_formula)

        return ModelEvaluation(
            accuracy=round(float(accuracy_score(actual, predicted)), 2),
            precision=round(float(precision_score(actual, predicted, average="macro", zero_division=0)), 2),
            recall=round(float(recall_score(actual, predicted, average="macro", zero_division=0)), 2),
            total_cases=len(self.cases),
        )

    def feature_importance(self) -> List[dict]:
        return [{"feature": name, "importance": weight} for name, weight in FEATURE_IMPORTANCE]
