import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pandas as pd

from data_contracts.models import Formula, FormulaComposition, FormulaType, FormulaSystemType
from nutri_core.numeric import round_half_up

logger = logging.getLogger(__name__)

TYPE_LABELS = {
    FormulaType.standard: "Standard",
    FormulaType.high_protein: "High protein",
    FormulaType.high_calorie: "High calorie",
    FormulaType.diabetic: "Diabetes",
    FormulaType.renal: "Renal",
    FormulaType.peptide: "Peptide",
    FormulaType.fiber: "With fiber",
    FormulaType.immune: "Immunomodulating",
}

HIGH_PROTEIN_G_100ML = 6.0
CRITICAL_CARE_PROTEIN_G_100ML = 5.0
HIGH_CALORIE_KCAL_100ML = 150

CSV_COLUMNS = [
    "id", "name", "manufacturer", "type", "system", "calories",
    "protein", "carbohydrates", "fat", "fiber",
]


@dataclass
class FormulaConditions:
    diabetic: bool = False
    renal_impairment: bool = False
    renal_dialysis: bool = False
    high_protein_needs: bool = False
    high_calorie_needs: bool = False
    malabsorption: bool = False
    needs_fiber: bool = False
    critical_care: bool = False
    immune_support: bool = False


@dataclass
class FormulaComparison:
    formula1: Formula
    formula2: Formula
    differences: Dict[str, float]
    recommendation: str


@dataclass
class FormulaValidation:
    is_valid: bool
    warnings: List[str] = field(default_factory=list)
    contraindications: List[str] = field(default_factory=list)


@dataclass
class GoalRecommendation:
    formula: Formula
    volume: int
    achieved_calories: int
    achieved_protein: float
    score: int


def _value(x):
    return getattr(x, "value", x)


class FormulaCatalog:
    """
    Read-only queries over a list of formulas.
    Lookups are first-match by id; filters keep catalog order.
    """

    def __init__(self, formulas: List[Formula]):
        self._formulas = list(formulas)

    def all(self) -> List[Formula]:
        return list(self._formulas)

    def get(self, formula_id: str) -> Optional[Formula]:
        return next((f for f in self._formulas if f.id == formula_id), None)

    def by_type(self, formula_type) -> List[Formula]:
        return [f for f in self._formulas if f.type == FormulaType(formula_type)]

    def by_manufacturer(self, manufacturer: str) -> List[Formula]:
        needle = manufacturer.lower()
        return [f for f in self._formulas if needle in f.manufacturer.lower()]

    def by_system(self, system_type) -> List[Formula]:
        """Formulas usable in `system_type`; `both` matches either."""
        system_type = FormulaSystemType(system_type)
        return [
            f for f in self._formulas
            if f.system_type in (system_type, FormulaSystemType.both)
        ]

    def search(self, query: str) -> List[Formula]:
        q = query.lower()
        return [
            f for f in self._formulas
            if q in f.name.lower()
            or q in f.manufacturer.lower()
            or any(q in feature.lower() for feature in f.special_features)
        ]

    def for_condition(self, conditions: FormulaConditions) -> List[Formula]:
        formulas = list(self._formulas)

        def keep(pred):
            return [f for f in formulas if pred(f)]

        if conditions.diabetic:
            formulas = keep(lambda f: f.type == FormulaType.diabetic)

        if conditions.renal_dialysis:
            formulas = keep(lambda f: f.type == FormulaType.renal)
        elif conditions.renal_impairment:
            # non-dialysis renal patients: no protein-dense formulas
            formulas = keep(
                lambda f: f.type not in (FormulaType.renal, FormulaType.high_protein)
                and f.composition.protein < HIGH_PROTEIN_G_100ML
            )

        if conditions.high_protein_needs and not conditions.renal_impairment:
            formulas = keep(
                lambda f: f.type == FormulaType.high_protein
                or f.composition.protein >= HIGH_PROTEIN_G_100ML
            )

        if conditions.high_calorie_needs:
            formulas = keep(
                lambda f: f.type == FormulaType.high_calorie
                or f.composition.calories >= HIGH_CALORIE_KCAL_100ML
            )

        if conditions.malabsorption:
            formulas = keep(lambda f: f.type == FormulaType.peptide)

        if conditions.needs_fiber:
            formulas = keep(lambda f: f.type == FormulaType.fiber or (f.composition.fiber or 0) > 0)

        if conditions.critical_care:
            formulas = keep(
                lambda f: f.type in (FormulaType.high_protein, FormulaType.immune, FormulaType.peptide)
                or f.composition.protein >= CRITICAL_CARE_PROTEIN_G_100ML
            )

        if conditions.immune_support:
            formulas = keep(lambda f: f.type == FormulaType.immune)

        return formulas

    def compare(self, id1: str, id2: str) -> Optional[FormulaComparison]:
        f1, f2 = self.get(id1), self.get(id2)
        if f1 is None or f2 is None:
            return None

        c1, c2 = f1.composition, f2.composition
        differences = {
            "calories": c1.calories - c2.calories,
            "protein": c1.protein - c2.protein,
            "carbohydrates": c1.carbohydrates - c2.carbohydrates,
            "fat": c1.fat - c2.fat,
            "fiber": (c1.fiber or 0) - (c2.fiber or 0),
            "sodium": (c1.sodium or 0) - (c2.sodium or 0),
            "potassium": (c1.potassium or 0) - (c2.potassium or 0),
        }

        kcal = differences["calories"]
        if abs(kcal) < 10:
            recommendation = "Formulas with similar caloric density."
        elif kcal > 0:
            recommendation = f"{f1.name} is more caloric (+{kcal:g} kcal/100ml)."
        else:
            recommendation = f"{f2.name} is more caloric (+{abs(kcal):g} kcal/100ml)."

        if abs(differences["protein"]) > 1:
            recommendation += (
                f" Significant protein difference: {abs(differences['protein']):.1f}g/100ml."
            )

        return FormulaComparison(
            formula1=f1,
            formula2=f2,
            differences=differences,
            recommendation=recommendation,
        )

    def manufacturers(self) -> List[str]:
        return sorted({f.manufacturer for f in self._formulas})

    def types(self) -> List[dict]:
        return [
            {"type": t.value, "label": TYPE_LABELS[t], "count": len(self.by_type(t))}
            for t in FormulaType
        ]

    def nutritional_values(self, formula_id: str, volume_ml: float) -> Optional[FormulaComposition]:
        formula = self.get(formula_id)
        if formula is None:
            return None

        factor = volume_ml / 100
        comp = formula.composition

        def scaled(value, digits=0):
            return round_half_up(value * factor, digits) if value else None

        return FormulaComposition(
            calories=round_half_up(comp.calories * factor),
            protein=round_half_up(comp.protein * factor, 1),
            carbohydrates=round_half_up(comp.carbohydrates * factor, 1),
            fat=round_half_up(comp.fat * factor, 1),
            fiber=scaled(comp.fiber, 1),
            sodium=scaled(comp.sodium),
            potassium=scaled(comp.potassium),
            calcium=scaled(comp.calcium),
            phosphorus=scaled(comp.phosphorus),
            osmolality=comp.osmolality,
            water_content=scaled(comp.water_content),
        )

    def total_nutrition(self, lines: List[dict]) -> FormulaComposition:
        """
        Sum over [{"id": ..., "volume": ...}]; unknown ids are skipped.
        """
        totals = dict.fromkeys(
            ["calories", "protein", "carbohydrates", "fat", "fiber",
             "sodium", "potassium", "calcium", "phosphorus"],
            0.0,
        )

        for line in lines:
            values = self.nutritional_values(line["id"], line["volume"])
            if values is None:
                logger.warning("total_nutrition: unknown formula %s", line["id"])
                continue
            for key in totals:
                totals[key] += getattr(values, key) or 0

        for key in ("protein", "carbohydrates", "fat", "fiber"):
            totals[key] = round_half_up(totals[key], 1)

        return FormulaComposition(**totals)

    def statistics(self) -> dict:
        return {
            "total": len(self._formulas),
            "by_type": self.types(),
            "by_manufacturer": {m: len(self.by_manufacturer(m)) for m in self.manufacturers()},
            "by_system": {
                "open": len(self.by_system("open")),
                "closed": len(self.by_system("closed")),
            },
        }

    def validate_for_patient(
        self,
        formula_id: str,
        diabetic: bool = False,
        renal_impairment: bool = False,
        hepatic_impairment: bool = False,
        allergies: Optional[List[str]] = None,
    ) -> FormulaValidation:
        formula = self.get(formula_id)
        if formula is None:
            return FormulaValidation(is_valid=False, contraindications=["Formula not found"])

        warnings = []
        contraindications = []
        allergies = [a.lower() for a in (allergies or [])]
        comp = formula.composition

        if any(a in ("lactose", "milk", "leite") for a in allergies):
            milk_terms = ("galactosemia", "milk", "leite")
            if any(term in c.lower() for c in formula.contraindications for term in milk_terms):
                contraindications.append("Patient allergic to milk protein")

        if diabetic and formula.type != FormulaType.diabetic:
            warnings.append("Diabetic patient: consider a diabetes-specific formula")

        if renal_impairment:
            if formula.type == FormulaType.high_protein or comp.protein > HIGH_PROTEIN_G_100ML:
                warnings.append("Renal impairment: high protein content may not be appropriate")
            if comp.potassium and comp.potassium > 150:
                warnings.append("Check potassium content for renal patient")
            if comp.phosphorus and comp.phosphorus > 100:
                warnings.append("Check phosphorus content for renal patient")

        if hepatic_impairment and formula.type == FormulaType.high_protein:
            warnings.append("Hepatic impairment: monitor protein tolerance")

        return FormulaValidation(
            is_valid=not contraindications,
            warnings=warnings,
            contraindications=contraindications,
        )

    def suggest_alternatives(self, formula_id: str, reason: str = "clinical", limit: int = 3) -> List[Formula]:
        """
        Same-type formulas closest in calories + protein. `reason` is
        informational only.
        """
        formula = self.get(formula_id)
        if formula is None:
            return []

        def distance(f):
            return (
                abs(f.composition.calories - formula.composition.calories)
                + abs(f.composition.protein - formula.composition.protein)
            )

        candidates = [
            f for f in self._formulas
            if f.id != formula_id and f.type == formula.type
        ]
        logger.debug("alternatives for %s (%s): %d candidates", formula_id, reason, len(candidates))
        return sorted(candidates, key=distance)[:limit]

    def to_frame(self) -> pd.DataFrame:
        rows = [
            {
                "id": f.id,
                "name": f.name,
                "manufacturer": f.manufacturer,
                "type": _value(f.type),
                "system": _value(f.system_type),
                "calories": f.composition.calories,
                "protein": f.composition.protein,
                "carbohydrates": f.composition.carbohydrates,
                "fat": f.composition.fat,
                "fiber": f.composition.fiber or 0,
            }
            for f in self._formulas
        ]
        return pd.DataFrame(rows, columns=CSV_COLUMNS)

    def to_csv(self) -> str:
        return self.to_frame().to_csv(index=False)

    def recommend_for_goals(
        self,
        target_calories: float,
        target_protein: float,
        max_volume: float,
        needs_fiber: bool = False,
        system_preference: Optional[str] = None,
        limit: int = 5,
    ) -> List[GoalRecommendation]:
        if target_calories <= 0 or target_protein <= 0 or max_volume <= 0:
            raise ValueError("targets and max_volume must be positive")

        formulas = list(self._formulas)
        if system_preference:
            formulas = [
                f for f in formulas
                if f.system_type in (FormulaSystemType(system_preference), FormulaSystemType.both)
            ]
        if needs_fiber:
            formulas = [f for f in formulas if (f.composition.fiber or 0) > 0]

        recommendations = []
        for formula in formulas:
            comp = formula.composition
            if comp.calories <= 0 or comp.protein <= 0:
                logger.debug("skipping %s: no calorie/protein density", formula.id)
                continue

            # enough volume to meet both goals, capped
            volume = max(target_calories / comp.calories * 100, target_protein / comp.protein * 100)
            volume = min(volume, max_volume)

            achieved_kcal = volume / 100 * comp.calories
            achieved_protein = volume / 100 * comp.protein

            score = (
                min(achieved_kcal / target_calories, 1) * 0.4
                + min(achieved_protein / target_protein, 1) * 0.4
                + (1 - volume / max_volume) * 0.2
            )

            recommendations.append(GoalRecommendation(
                formula=formula,
                volume=round_half_up(volume),
                achieved_calories=round_half_up(achieved_kcal),
                achieved_protein=round_half_up(achieved_protein, 1),
                score=round_half_up(score * 100),
            ))

        recommendations.sort(key=lambda r: r.score, reverse=True)
        return recommendations[:limit]
