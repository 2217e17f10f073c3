import logging

import pandas as pd
from .specs import DATASET_SPECS

logger = logging.getLogger(__name__)


def validate_df(df: pd.DataFrame, dataset_name: str, allow_empty: bool = False) -> None:
    if dataset_name not in DATASET_SPECS:
        raise ValueError(f"Unknown dataset: {dataset_name}")

    required_cols = set(DATASET_SPECS[dataset_name])
    missing = required_cols - set(df.columns)

    if missing:
        raise ValueError(
            f"{dataset_name} missing columns: {sorted(missing)}"
        )

    if df.empty and not allow_empty:
        raise ValueError(f"{dataset_name} is empty")

    # soft checks
    for col in ("volume", "amount", "unit_price"):
        if col in df.columns:
            values = pd.to_numeric(df[col], errors="coerce")
            if (values < 0).any():
                logger.warning("negative %s detected in %s", col, dataset_name)

    if "start_date" in df.columns and "end_date" in df.columns:
        start = pd.to_datetime(df["start_date"], errors="coerce")
        end = pd.to_datetime(df["end_date"], errors="coerce")
        if (end < start).any():
            logger.warning("end_date before start_date detected in %s", dataset_name)
