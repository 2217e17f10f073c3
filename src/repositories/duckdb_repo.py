import logging
from pathlib import Path
from typing import List, Optional

import duckdb
import pandas as pd

from data_contracts.specs import DATASET_SPECS
from data_contracts.validate import validate_df
from data_contracts.models import Prescription
from repositories.base import PrescriptionRepository
from repositories.records import build_prescriptions

logger = logging.getLogger(__name__)

DATA_DIR = Path("data/curated")


class DuckDBPrescriptionRepository(PrescriptionRepository):
    """
    Same curated CSV files as the CSV backend, filtered in SQL so only the
    matching prescriptions and their lines are materialised.
    """

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir or DATA_DIR)
        self.con = duckdb.connect()

        if not self._path("prescriptions").exists():
            raise FileNotFoundError(f"dataset prescriptions not found at {self._path('prescriptions')}")

    def _path(self, name: str) -> Path:
        return self.data_dir / f"{name}.csv"

    def _source(self, name: str) -> str:
        path = self._path(name).as_posix().replace("'", "''")
        return f"read_csv_auto('{path}', all_varchar=true, header=true)"

    def _where(self, ward, status):
        conditions = []
        params = []
        if ward:
            conditions.append("p.patient_ward = ?")
            params.append(ward)
        if status:
            conditions.append("p.status = ?")
            params.append(status)
        clause = ("WHERE " + " AND ".join(conditions)) if conditions else ""
        return clause, params

    def _lines(self, name: str, ward, status) -> pd.DataFrame:
        if not self._path(name).exists():
            logger.warning("dataset %s not found; using empty", name)
            return pd.DataFrame(columns=DATASET_SPECS[name])

        where, params = self._where(ward, status)
        query = f"""
        SELECT l.*
        FROM {self._source(name)} AS l
        JOIN {self._source("prescriptions")} AS p
          ON l.prescription_id = p.prescription_id
        {where}
        """
        df = self.con.execute(query, params).df()
        validate_df(df, name, allow_empty=True)
        return df

    def get_prescriptions(
        self,
        ward: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[Prescription]:

        where, params = self._where(ward, status)
        query = f"""
        SELECT p.*
        FROM {self._source("prescriptions")} AS p
        {where}
        """
        prescriptions = self.con.execute(query, params).df()
        validate_df(prescriptions, "prescriptions", allow_empty=True)

        formula_lines = self._lines("prescription_formulas", ward, status)
        module_lines = self._lines("prescription_modules", ward, status)

        logger.debug("duckdb: %d prescriptions for ward=%s status=%s", len(prescriptions), ward, status)
        return build_prescriptions(prescriptions, formula_lines, module_lines)
