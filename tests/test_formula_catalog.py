import pytest

from data_contracts.models import Formula, FormulaComposition
from nutri_core.formulas.formula_catalog import FormulaCatalog, FormulaConditions


def _formula(id, name, manufacturer, type, system_type, calories, protein, **extra):
    composition = {
        k: extra.pop(k) for k in ("fiber", "potassium", "phosphorus") if k in extra
    }
    return Formula(
        id=id,
        name=name,
        manufacturer=manufacturer,
        type=type,
        system_type=system_type,
        composition=FormulaComposition(calories=calories, protein=protein, **composition),
        **extra,
    )


@pytest.fixture
def catalog():
    return FormulaCatalog([
        _formula("f-std", "Standard Plus", "Fresenius", "standard", "both", 100, 3.8, potassium=125),
        _formula("f-hp", "Protein Max", "Danone", "high-protein", "closed", 125, 7.5, fiber=0),
        _formula("f-dia", "Diasip", "Danone", "diabetic", "both", 100, 4.3, fiber=1.5,
                 special_features=["Low glycemic index"]),
        _formula("f-ren", "Renal Care", "Nestle", "renal", "closed", 200, 7, potassium=80, phosphorus=70),
        _formula("f-pep", "Peptamen", "Nestle", "peptide", "closed", 100, 4, contraindications=["Galactosemia"]),
        _formula("f-fib", "Standard Fiber", "Fresenius", "standard", "open", 105, 4, fiber=1.5),
    ])


def ids(formulas):
    return [f.id for f in formulas]


def test_lookups(catalog):
    assert catalog.get("f-hp").name == "Protein Max"
    assert catalog.get("missing") is None
    assert ids(catalog.by_type("diabetic")) == ["f-dia"]
    assert ids(catalog.by_manufacturer("danone")) == ["f-hp", "f-dia"]
    assert ids(catalog.by_system("open")) == ["f-std", "f-dia", "f-fib"]
    assert ids(catalog.search("glycemic")) == ["f-dia"]
    assert ids(catalog.search("PEPTAMEN")) == ["f-pep"]


@pytest.mark.parametrize("conditions,expected", [
    (FormulaConditions(diabetic=True), ["f-dia"]),
    (FormulaConditions(renal_dialysis=True), ["f-ren"]),
    (FormulaConditions(renal_impairment=True), ["f-std", "f-dia", "f-pep", "f-fib"]),
    (FormulaConditions(malabsorption=True), ["f-pep"]),
    (FormulaConditions(needs_fiber=True), ["f-dia", "f-fib"]),
    (FormulaConditions(critical_care=True), ["f-hp", "f-ren", "f-pep"]),
    (FormulaConditions(high_calorie_needs=True), ["f-ren"]),
    (FormulaConditions(), ["f-std", "f-hp", "f-dia", "f-ren", "f-pep", "f-fib"]),
])
def test_for_condition(catalog, conditions, expected):
    assert ids(catalog.for_condition(conditions)) == expected


def test_compare(catalog):
    comparison = catalog.compare("f-hp", "f-std")

    assert comparison.differences["calories"] == 25
    assert comparison.recommendation == (
        "Protein Max is more caloric (+25 kcal/100ml). Significant protein difference: 3.7g/100ml."
    )
    assert catalog.compare("f-hp", "missing") is None


def test_manufacturers_and_types(catalog):
    assert catalog.manufacturers() == ["Danone", "Fresenius", "Nestle"]

    types = {t["type"]: t["count"] for t in catalog.types()}
    assert len(types) == 8
    assert types["standard"] == 2
    assert types["immune"] == 0


def test_nutritional_values(catalog):
    values = catalog.nutritional_values("f-std", 500)

    assert values.calories == 500
    assert values.protein == 19.0
    assert values.potassium == 625
    assert values.fiber is None
    assert catalog.nutritional_values("missing", 500) is None


def test_total_nutrition_skips_unknown(catalog):
    totals = catalog.total_nutrition([
        {"id": "f-std", "volume": 500},
        {"id": "f-hp", "volume": 200},
        {"id": "missing", "volume": 100},
    ])
    assert totals.calories == 750
    assert totals.protein == 34.0


def test_statistics(catalog):
    stats = catalog.statistics()

    assert stats["total"] == 6
    assert stats["by_system"] == {"open": 3, "closed": 5}
    assert stats["by_manufacturer"]["Nestle"] == 2


def test_validate_for_patient(catalog):
    allergy = catalog.validate_for_patient("f-pep", allergies=["Lactose"])
    assert not allergy.is_valid
    assert allergy.contraindications == ["Patient allergic to milk protein"]

    renal = catalog.validate_for_patient("f-hp", renal_impairment=True)
    assert renal.is_valid
    assert "Renal impairment: high protein content may not be appropriate" in renal.warnings

    diabetic = catalog.validate_for_patient("f-std", diabetic=True)
    assert diabetic.warnings == ["Diabetic patient: consider a diabetes-specific formula"]

    assert catalog.validate_for_patient("missing").contraindications == ["Formula not found"]


def test_suggest_alternatives(catalog):
    assert ids(catalog.suggest_alternatives("f-std")) == ["f-fib"]
    assert catalog.suggest_alternatives("missing") == []


def test_csv_export(catalog):
    lines = catalog.to_csv().strip().splitlines()

    assert lines[0] == "id,name,manufacturer,type,system,calories,protein,carbohydrates,fat,fiber"
    assert len(lines) == 7
    assert catalog.to_frame().loc[1, "type"] == "high-protein"


def test_recommend_for_goals(catalog):
    recommendations = catalog.recommend_for_goals(1500, 60, 2000)

    assert len(recommendations) == 5
    assert [r.formula.id for r in recommendations[:2]] == ["f-ren", "f-hp"]
    assert recommendations[0].volume == 857
    assert recommendations[0].score == 91
    assert recommendations[1].achieved_calories == 1500


def test_recommend_for_goals_filters(catalog):
    fiber = catalog.recommend_for_goals(1500, 60, 2000, needs_fiber=True)
    assert sorted(r.formula.id for r in fiber) == ["f-dia", "f-fib"]

    open_system = catalog.recommend_for_goals(1500, 60, 2000, system_preference="open")
    assert sorted(r.formula.id for r in open_system) == ["f-dia", "f-fib", "f-std"]

    with pytest.raises(ValueError):
        catalog.recommend_for_goals(0, 60, 2000)
