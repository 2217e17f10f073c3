import os

from repositories.csv_repo import CSVPrescriptionRepository, CSVCatalogRepository
from repositories.duckdb_repo import DuckDBPrescriptionRepository

DATA_BACKEND = os.getenv("DATA_BACKEND", "csv")
DATA_DIR = os.getenv("DATA_DIR", "data/curated")


def get_prescription_repository(backend: str = None, data_dir: str = None):
    backend = backend or DATA_BACKEND
    data_dir = data_dir or DATA_DIR

    if backend == "csv":
        return CSVPrescriptionRepository(data_dir)
    if backend == "duckdb":
        return DuckDBPrescriptionRepository(data_dir)
    raise NotImplementedError(f"{backend} repository not implemented yet")


def get_catalog_repository(backend: str = None, data_dir: str = None):
    backend = backend or DATA_BACKEND
    data_dir = data_dir or DATA_DIR

    # catalogs are small; both backends read them from the curated CSVs
    if backend in ("csv", "duckdb"):
        return CSVCatalogRepository(data_dir)
    raise NotImplementedError(f"{backend} repository not implemented yet")
