from datetime import datetime

import pandas as pd
import pytest

from data_contracts.validate import validate_df
from repositories.csv_repo import CSVPrescriptionRepository, CSVCatalogRepository
from repositories.duckdb_repo import DuckDBPrescriptionRepository
from repositories.factory import get_prescription_repository, get_catalog_repository
from repositories.records import split_list


def test_split_list():
    assert split_list("09:00| 21:00|") == ["09:00", "21:00"]
    assert split_list(None) == []


def test_validate_df():
    df = pd.DataFrame({"code": ["S1"], "name": ["Set"], "type": ["set"], "unit_price": ["-1"]})
    validate_df(df, "supplies")

    with pytest.raises(ValueError, match="missing columns"):
        validate_df(df.drop(columns="type"), "supplies")
    with pytest.raises(ValueError, match="is empty"):
        validate_df(df.iloc[0:0], "supplies")
    with pytest.raises(ValueError, match="Unknown dataset"):
        validate_df(df, "lots")


@pytest.mark.parametrize("repo_class", [CSVPrescriptionRepository, DuckDBPrescriptionRepository])
def test_prescriptions_are_assembled(repo_class, curated_dir):
    repo = repo_class(curated_dir)
    prescriptions = {p.id: p for p in repo.get_prescriptions()}

    assert set(prescriptions) == {"RX-001", "RX-002", "RX-003", "RX-004"}

    rx = prescriptions["RX-001"]
    assert rx.patient_bed == "01"
    assert rx.patient_record == "000123"
    assert rx.infusion_rate_ml_h == 62.5
    assert rx.start_date == datetime(2024, 1, 1)
    assert rx.end_date is None
    assert rx.formulas[0].schedules == ["06:00", "12:00", "18:00", "00:00"]
    assert rx.formulas[0].volume == 300
    assert rx.modules[0].amount == 10

    open_rx = prescriptions["RX-002"]
    assert open_rx.system_type == "open"
    assert open_rx.hydration_schedules == ["09:00", "21:00"]
    assert open_rx.end_date == datetime(2024, 1, 10)
    assert open_rx.modules == []


@pytest.mark.parametrize("repo_class", [CSVPrescriptionRepository, DuckDBPrescriptionRepository])
def test_prescription_filters(repo_class, curated_dir):
    repo = repo_class(curated_dir)

    icu = repo.get_prescriptions(ward="ICU")
    assert sorted(p.id for p in icu) == ["RX-001", "RX-002"]

    active = repo.get_prescriptions(status="active")
    assert "RX-004" not in {p.id for p in active}

    ward_a = repo.get_prescriptions(ward="Ward A", status="active")
    assert [p.id for p in ward_a] == ["RX-003"]
    assert [m.module_id for m in ward_a[0].modules] == ["m2"]


def test_catalog(curated_dir):
    repo = CSVCatalogRepository(curated_dir)

    formulas = {f.id: f for f in repo.get_formulas()}
    assert formulas["f1"].presentations == [500, 1000]
    assert formulas["f1"].billing_price == 0.022
    assert formulas["f1"].composition.fiber == 1.5
    assert formulas["f1"].indications == ["Diabetes", "Glycemic control"]
    assert formulas["f2"].composition.fiber is None
    assert formulas["f4"].billing_unit == "unit"
    assert formulas["f4"].contraindications == ["Renal failure"]

    assert [m.id for m in repo.get_modules()] == ["m1", "m2"]

    supplies = repo.get_supplies()
    assert [s.type for s in supplies] == ["set", "set", "bottle"]
    assert supplies[2].capacity_ml == 300


def test_missing_prescriptions_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        CSVPrescriptionRepository(tmp_path)
    with pytest.raises(FileNotFoundError):
        DuckDBPrescriptionRepository(tmp_path)


def test_optional_datasets_may_be_missing(tmp_path):
    (tmp_path / "prescriptions.csv").write_text(
        "prescription_id,patient_id,patient_name,status,system_type,start_date\n"
        "RX-9,PAT-9,Maria,active,closed,2024-03-01\n"
    )

    prescriptions = CSVPrescriptionRepository(tmp_path).get_prescriptions()
    assert prescriptions[0].formulas == []
    assert DuckDBPrescriptionRepository(tmp_path).get_prescriptions()[0].patient_name == "Maria"
    assert CSVCatalogRepository(tmp_path).get_formulas() == []


def test_missing_columns_are_rejected(tmp_path):
    (tmp_path / "prescriptions.csv").write_text("prescription_id,patient_id\nRX-9,PAT-9\n")

    with pytest.raises(ValueError, match="missing columns"):
        CSVPrescriptionRepository(tmp_path)


def test_factory(curated_dir):
    assert isinstance(get_prescription_repository("csv", curated_dir), CSVPrescriptionRepository)
    assert isinstance(get_prescription_repository("duckdb", curated_dir), DuckDBPrescriptionRepository)
    assert isinstance(get_catalog_repository("duckdb", curated_dir), CSVCatalogRepository)

    with pytest.raises(NotImplementedError):
        get_prescription_repository("parquet", curated_dir)
