import logging
import math
import unicodedata
from datetime import datetime
from typing import Dict, List, Optional

import pandas as pd

from data_contracts.models import (
    Prescription,
    PrescriptionStatus,
    SystemType,
    Formula,
    Module,
    Supply,
    DietMapItem,
    ConsolidatedItem,
    Signatures,
    RequisitionData,
)
from nutri_core.requisition.supply_matcher import SupplyMatcher

logger = logging.getLogger(__name__)

# Daily administration slots offered by the billing page
SCHEDULE_TIMES = ["06:00", "09:00", "12:00", "15:00", "18:00", "21:00", "00:00", "03:00"]

ALL_UNITS = "all"
ALL_UNITS_LABEL = "All Units"

WATER_CODE = "WATER-001"
WATER_NAME = "FILTERED WATER"

DEFAULT_BAG_SIZE = 1000
BAG_UNIT = "bag"
SUPPLY_UNIT = "unit"

TYPE_ORDER = {"formula": 1, "water": 2, "module": 3, "supplement": 4}

DATE_FORMAT = "%d/%m/%Y"
DATETIME_FORMAT = "%d/%m/%Y %H:%M"


def collation_key(value) -> str:
    """Accent- and case-insensitive sort key."""
    text = unicodedata.normalize("NFKD", str(value))
    return "".join(c for c in text if not unicodedata.combining(c)).casefold()


def format_rate(rate) -> Optional[str]:
    if not rate:
        return None
    return f"{rate:.15g} ml/h"


def _sort_key(series: pd.Series) -> pd.Series:
    if pd.api.types.is_numeric_dtype(series):
        return series
    return series.map(collation_key)


def _naive(ts: pd.Timestamp) -> pd.Timestamp:
    if ts.tzinfo is not None:
        return ts.tz_convert(None)
    return ts


def _value(x):
    return getattr(x, "value", x)


def _first_by_id(items) -> Dict[str, object]:
    index = {}
    for item in items:
        index.setdefault(item.id, item)
    return index


def _bag_size(presentations) -> Optional[float]:
    if presentations and presentations[0] > 0:
        return presentations[0]
    return None


class RequisitionGenerator:
    """
    Builds the printable diet map and the billing consolidation for a
    ward, a day range and a subset of administration times.

    Pure: inputs are never modified and nothing is written anywhere.
    Catalog misses fall back to zero price / default units.
    """

    def generate(
        self,
        prescriptions: List[Prescription],
        formulas: List[Formula],
        modules: List[Module],
        supplies: List[Supply],
        unit_name: str,
        start_date,
        end_date,
        selected_times: List[str],
        signatures: Optional[Signatures] = None,
        now: Optional[datetime] = None,
    ) -> RequisitionData:

        start_ts = _naive(pd.Timestamp(start_date))
        end_ts = _naive(pd.Timestamp(end_date))

        if end_ts < start_ts:
            raise ValueError(
                f"end_date {end_ts.date()} is before start_date {start_ts.date()}"
            )

        range_start = start_ts.normalize()
        range_end = end_ts.normalize() + pd.Timedelta(days=1) - pd.Timedelta(milliseconds=1)

        day_diff = max(1, math.ceil((end_ts - start_ts) / pd.Timedelta(days=1)))

        selected = set(selected_times)
        formula_index = _first_by_id(formulas)
        module_index = _first_by_id(modules)
        matcher = SupplyMatcher(supplies)

        in_scope = [
            p for p in prescriptions
            if self._in_scope(p, unit_name, range_start, range_end)
        ]

        logger.debug(
            "requisition: %d of %d prescriptions in scope, day_diff=%d",
            len(in_scope), len(prescriptions), day_diff
        )

        diet_rows = []
        billing_rows = []

        def bill(code, name, quantity, unit, price, item_type):
            billing_rows.append({
                "code": code,
                "name": name,
                "billing_unit": unit,
                "quantity": quantity,
                "unit_price": price,
                "type": item_type,
            })

        for p in in_scope:
            patient = {
                "patient_id": p.patient_id,
                "patient_name": p.patient_name,
                "bed": p.patient_bed or "-",
                "ward": p.patient_ward or "-",
                "dob": None,
                "route": p.feeding_route or _value(p.therapy_type),
            }
            open_system = p.system_type == SystemType.open
            daily_bottles = 0

            # --- Formulas ---
            for line in p.formulas:
                matching = [t for t in line.schedules if t in selected]
                if not matching:
                    continue

                diet_rows.append({
                    **patient,
                    "type": "formula",
                    "product_name": line.formula_name,
                    "volume_or_amount": line.volume,
                    "unit": "ml",
                    "rate": format_rate(p.infusion_rate_ml_h),
                    "times": matching,
                    "product_code": line.formula_id,
                })

                formula = formula_index.get(line.formula_id)
                if formula is None:
                    logger.warning(
                        "formula %s (%s) not in catalog; billed at zero",
                        line.formula_id, line.formula_name
                    )

                price = (formula.billing_price if formula else None) or 0.0
                billing_unit = (formula.billing_unit if formula else None) or "ml"
                bag_size = _bag_size(formula.presentations) if formula else None
                daily_volume = line.volume * len(matching)

                if billing_unit == "ml" and bag_size:
                    # Bags are always rounded up
                    total_bags = math.ceil(daily_volume / bag_size) * day_diff
                    bill(line.formula_id, line.formula_name, total_bags, BAG_UNIT, price * bag_size, "formula")
                elif billing_unit == "unit":
                    bag_size = bag_size or DEFAULT_BAG_SIZE
                    total_bags = math.ceil(daily_volume / bag_size) * day_diff
                    bill(line.formula_id, line.formula_name, total_bags, BAG_UNIT, price, "formula")
                else:
                    bill(line.formula_id, line.formula_name, daily_volume * day_diff, billing_unit, price, "formula")

                if open_system:
                    daily_bottles += len(matching)

            # --- Modules ---
            for line in p.modules:
                matching = [t for t in (line.schedules or []) if t in selected]
                if not matching:
                    continue

                unit = line.unit or "g"
                diet_rows.append({
                    **patient,
                    "type": "module",
                    "product_name": line.module_name,
                    "volume_or_amount": line.amount,
                    "unit": unit,
                    "rate": None,
                    "times": matching,
                    "product_code": line.module_id,
                })

                module = module_index.get(line.module_id)
                if module is None:
                    logger.warning(
                        "module %s (%s) not in catalog; billed at zero",
                        line.module_id, line.module_name
                    )
                price = (module.billing_price if module else None) or 0.0
                bill(line.module_id, line.module_name, line.amount * len(matching) * day_diff, unit, price, "module")

            # --- Hydration (diet map only, never billed) ---
            if p.hydration_volume and p.hydration_schedules is not None:
                matching = [t for t in p.hydration_schedules if t in selected]
                if matching:
                    diet_rows.append({
                        **patient,
                        "type": "water",
                        "product_name": WATER_NAME,
                        "volume_or_amount": p.hydration_volume,
                        "unit": "ml",
                        "rate": None,
                        "times": matching,
                        "product_code": WATER_CODE,
                    })
                    if open_system:
                        daily_bottles += len(matching)

            # --- Supplies ---
            if selected:
                infusion_set = matcher.infusion_set(p.infusion_mode)
                if infusion_set is not None:
                    bill(infusion_set.code, infusion_set.name, 1 * day_diff, SUPPLY_UNIT, infusion_set.unit_price, "supply")

                if daily_bottles > 0:
                    bottle = matcher.bottle()
                    if bottle is not None:
                        bill(bottle.code, bottle.name, daily_bottles * day_diff, SUPPLY_UNIT, bottle.unit_price, "supply")

        return RequisitionData(
            unit_name=ALL_UNITS_LABEL if unit_name == ALL_UNITS else unit_name,
            start_date=start_ts.strftime(DATE_FORMAT),
            end_date=end_ts.strftime(DATE_FORMAT),
            print_date=(now or datetime.now()).strftime(DATETIME_FORMAT),
            selected_times=sorted(selected_times),
            diet_map=self._sort_diet_map(diet_rows),
            consolidated=self._consolidate(billing_rows),
            signatures=signatures or Signatures(),
        )

    def _in_scope(self, p: Prescription, unit_name, range_start, range_end) -> bool:
        if p.status != PrescriptionStatus.active:
            return False
        if unit_name != ALL_UNITS and p.patient_ward != unit_name:
            return False

        p_start = _naive(pd.Timestamp(p.start_date))
        if p_start > range_end:
            return False

        if p.end_date is not None:
            p_end = _naive(pd.Timestamp(p.end_date))
            if p_end < range_start:
                return False

        return True

    def _sort_diet_map(self, rows) -> List[DietMapItem]:
        if not rows:
            return []

        # single composite key: ward, bed, name, then type within the patient
        ordered = sorted(rows, key=lambda r: (
            collation_key(r["ward"]),
            collation_key(r["bed"]),
            collation_key(r["patient_name"]),
            TYPE_ORDER.get(r["type"], 99),
        ))
        return [DietMapItem(**r) for r in ordered]

    def _consolidate(self, rows) -> List[ConsolidatedItem]:
        if not rows:
            return []

        df = pd.DataFrame(rows)
        df["key"] = df["code"].astype(str) + "-" + df["name"].astype(str)

        # first occurrence fixes unit, price and type for the product
        agg = (
            df.groupby("key", sort=False)
            .agg(
                code=("code", "first"),
                name=("name", "first"),
                billing_unit=("billing_unit", "first"),
                total_quantity=("quantity", "sum"),
                unit_price=("unit_price", "first"),
                type=("type", "first"),
            )
            .reset_index(drop=True)
        )
        agg["subtotal"] = agg["total_quantity"] * agg["unit_price"]
        agg = agg.sort_values("name", key=_sort_key, kind="stable")

        return [ConsolidatedItem(**r) for r in agg.to_dict(orient="records")]
