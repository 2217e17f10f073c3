import os

import pytest
from fastapi.testclient import TestClient

from apps.backend import settings
from apps.backend.main import create_app
from apps.backend.api import requisition
from nutri_core.requisition.requisition_generator import SCHEDULE_TIMES
from repositories.csv_repo import CSVPrescriptionRepository, CSVCatalogRepository

PATIENT = {"age": 40, "weight": 70, "height": 170, "diagnosis": "pneumonia"}
SCENARIO = {"days_of_use": 10, "prescribed_volume": 1500, "infused_volume": 1500, "number_of_patients": 1}


@pytest.fixture
def app(curated_dir):
    app = create_app()
    app.dependency_overrides[requisition.prescription_repository] = lambda: CSVPrescriptionRepository(curated_dir)
    app.dependency_overrides[requisition.catalog_repository] = lambda: CSVCatalogRepository(curated_dir)
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def requisition_body(**overrides):
    body = {
        "prescriptions": [{
            "id": "rx-1",
            "patient_id": "pat-1",
            "patient_name": "Ana Souza",
            "patient_bed": "01",
            "patient_ward": "ICU",
            "start_date": "2024-01-01T00:00:00",
            "formulas": [{
                "formula_id": "f-std",
                "formula_name": "Standard Formula",
                "volume": 300,
                "schedules": ["09:00", "21:00"],
            }],
        }],
        "formulas": [{
            "id": "f-std",
            "name": "Standard Formula",
            "presentations": [1000],
            "billing_unit": "ml",
            "billing_price": 0.02,
        }],
        "unit_name": "all",
        "start_date": "2024-01-01",
        "end_date": "2024-01-03",
        "selected_times": ["09:00", "21:00"],
        "signatures": {"technician": "J. Silva"},
    }
    body.update(overrides)
    return body


def test_root(client):
    assert client.get("/").json()["status"] == "ok"


def test_schedule_times(client):
    assert client.get("/requisition/schedule-times").json() == {"schedule_times": SCHEDULE_TIMES}


def test_generate(client):
    r = client.post("/requisition/generate", json=requisition_body())
    assert r.status_code == 200

    data = r.json()
    assert data["unit_name"] == "All Units"
    assert data["signatures"]["technician"] == "J. Silva"
    assert len(data["diet_map"]) == 1
    assert data["consolidated"][0]["total_quantity"] == 2
    assert data["consolidated"][0]["subtotal"] == pytest.approx(40)


def test_generate_rejects_inverted_range(client):
    r = client.post("/requisition/generate", json=requisition_body(start_date="2024-01-05"))
    assert r.status_code == 400


def test_generate_from_repository(client):
    r = client.post("/requisition/from-repository", json={
        "unit_name": "ICU",
        "start_date": "2024-01-02",
        "end_date": "2024-01-02",
        "selected_times": SCHEDULE_TIMES,
    })
    assert r.status_code == 200
    data = r.json()

    assert [(row["patient_name"], row["type"]) for row in data["diet_map"]] == [
        ("Ana Souza", "formula"),
        ("Ana Souza", "module"),
        ("Carlos Lima", "formula"),
        ("Carlos Lima", "water"),
    ]

    consolidated = {item["name"]: item for item in data["consolidated"]}
    assert list(consolidated) == [
        "Enteral bottle 300 ml",
        "Fresubin Original",
        "Gravity infusion set",
        "Nutrison Advanced Diason",
        "Protein Module",
        "Pump infusion set",
    ]
    assert consolidated["Fresubin Original"]["total_quantity"] == 3
    assert consolidated["Fresubin Original"]["subtotal"] == pytest.approx(30)
    assert consolidated["Enteral bottle 300 ml"]["total_quantity"] == 4


def test_repository_unavailable(app, tmp_path, monkeypatch):
    app.dependency_overrides.clear()
    monkeypatch.setattr(settings, "DATA_DIR", str(tmp_path))

    r = TestClient(app).post("/requisition/from-repository", json={
        "start_date": "2024-01-02",
        "end_date": "2024-01-02",
        "selected_times": ["09:00"],
    })
    assert r.status_code == 500
    assert "unavailable" in r.json()["detail"]


def test_calculations(client):
    r = client.post("/calculations/bmi", json={"weight": 70, "height": 170})
    assert r.json()["classification"] == "Normal"
    assert client.post("/calculations/bmi", json={"weight": 70, "height": 0}).status_code == 400

    r = client.post("/calculations/report", json={
        "weight": 70,
        "height": 170,
        "age": 40,
        "composition": {"calories": 100, "protein": 4},
        "volume": 1500,
        "infusion_times": ["06:00", "12:00", "18:00"],
        "cost_per_ml": 0.02,
        "equipment_per_day": 10,
        "labor_per_day": 20,
    })
    assert r.status_code == 200
    assert "Total cost: R$ 60.00/day" in r.json()["report"]["summary"]
    assert r.json()["validation"]["is_valid"] is True


def test_economics(client):
    compare = client.post("/economics/compare", json=SCENARIO).json()
    assert compare["difference"] == pytest.approx(40)

    scenarios = client.post("/economics/scenarios", json=SCENARIO).json()
    assert len(scenarios["scenarios"]) == 5
    assert scenarios["summary"][0]["scenario"] == "Baseline"

    roi = client.post("/economics/roi", json={
        "current_system": "closed",
        "proposed_system": "open",
        "scenario": SCENARIO,
        "implementation_cost": 1000,
    })
    assert roi.status_code == 200
    assert roi.json()["payback_months"] is None

    bad = client.post("/economics/compare", json={**SCENARIO, "days_of_use": 0})
    assert bad.status_code == 400


def test_forecasting(client):
    body = {
        "diagnosis": "pneumonia",
        "age_group": "adult",
        "weight": 70,
        "administration_route": "enteral",
        "length_of_stay": 10,
        "clinical_severity": "moderate",
    }
    r = client.post("/forecasting/report", json=body)
    assert r.json()["consumption"]["estimated_daily_volume"] == 1275

    assert client.post("/forecasting/report", json={**body, "age_group": "toddler"}).status_code == 400


def test_recommendations(client):
    rule = client.post("/recommendations/rule-based", json=PATIENT).json()
    assert rule["total_calories"] == 2318

    similar = client.post("/recommendations/similar-cases", json=PATIENT).json()
    assert similar["recommendation"]["similar_cases"] == 3
    assert len(similar["feature_importance"]) == 10

    invalid = {**PATIENT, "height": 0}
    assert client.post("/recommendations/rule-based", json=invalid).status_code == 400
    assert client.post("/recommendations/similar-cases", json=invalid).status_code == 400


def test_product_data(client, tmp_path, monkeypatch):
    assert client.get("/product-data/status").json()["needs_refresh"] is True

    synced = client.post("/product-data/sync").json()
    assert synced["success"] is True
    assert synced["items_added"] == 10

    status = client.get("/product-data/status").json()
    assert status["source"] == "static"
    assert status["pricing_items"] == 5

    cost = client.get("/product-data/cost-per-ml/f1", params={"preferred_size": 500}).json()
    assert cost["cost_per_ml"] == pytest.approx(0.025)
    assert cost["priced"] is True

    monkeypatch.setattr(settings, "PRODUCT_CACHE_DIR", str(tmp_path))
    path = client.post("/product-data/export").json()["path"]
    assert os.path.exists(path)
