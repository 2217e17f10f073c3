import logging
from pathlib import Path
from typing import List, Optional

import pandas as pd

from data_contracts.specs import DATASET_SPECS
from data_contracts.validate import validate_df
from data_contracts.models import Prescription, Formula, Module, Supply
from repositories.base import PrescriptionRepository, CatalogRepository
from repositories.records import (
    build_prescriptions,
    build_formulas,
    build_modules,
    build_supplies,
)

logger = logging.getLogger(__name__)

DATA_DIR = Path("data/curated")


def read_dataset(data_dir: Path, name: str, required: bool = True) -> pd.DataFrame:
    """
    Reads <data_dir>/<name>.csv as strings; pydantic does the typing.
    Optional datasets that are missing come back empty.
    """
    path = Path(data_dir) / f"{name}.csv"

    if not path.exists():
        if required:
            raise FileNotFoundError(f"dataset {name} not found at {path}")
        logger.warning("dataset %s not found at %s; using empty", name, path)
        return pd.DataFrame(columns=DATASET_SPECS[name])

    df = pd.read_csv(path, dtype=str)
    validate_df(df, name, allow_empty=True)
    return df


class CSVPrescriptionRepository(PrescriptionRepository):

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir or DATA_DIR)

        self.prescriptions = read_dataset(self.data_dir, "prescriptions")
        self.formula_lines = read_dataset(self.data_dir, "prescription_formulas", required=False)
        self.module_lines = read_dataset(self.data_dir, "prescription_modules", required=False)

    def get_prescriptions(
        self,
        ward: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[Prescription]:

        df = self.prescriptions

        if ward and "patient_ward" in df.columns:
            df = df[df["patient_ward"] == ward]
        if status:
            df = df[df["status"] == status]

        ids = set(df["prescription_id"])
        formula_lines = self.formula_lines[self.formula_lines["prescription_id"].isin(ids)]
        module_lines = self.module_lines[self.module_lines["prescription_id"].isin(ids)]

        return build_prescriptions(df, formula_lines, module_lines)


class CSVCatalogRepository(CatalogRepository):

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir or DATA_DIR)

        self.formulas = read_dataset(self.data_dir, "formulas", required=False)
        self.modules = read_dataset(self.data_dir, "modules", required=False)
        self.supplies = read_dataset(self.data_dir, "supplies", required=False)

    def get_formulas(self) -> List[Formula]:
        return build_formulas(self.formulas)

    def get_modules(self) -> List[Module]:
        return build_modules(self.modules)

    def get_supplies(self) -> List[Supply]:
        return build_supplies(self.supplies)
