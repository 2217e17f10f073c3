import logging
from datetime import datetime
from typing import List, Optional

import requests

from data_contracts.models import (
    NutritionalData,
    PricingData,
    Presentation,
    FormulaComposition,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------
# Reference data (manufacturer / supplier sheets)
# ---------------------------------------------
REFERENCE_NUTRITIONAL = [
    {
        "product_id": "f1",
        "product_name": "Nutrison Advanced Diason",
        "manufacturer": "Danone Nutricia",
        "composition": {
            "calories": 100, "protein": 4.0, "carbohydrates": 10.6, "fat": 3.9,
            "fiber": 1.5, "sodium": 100, "potassium": 140, "calcium": 80, "phosphorus": 80,
        },
    },
    {
        "product_id": "f2",
        "product_name": "Fresubin Original",
        "manufacturer": "Fresenius Kabi",
        "composition": {
            "calories": 100, "protein": 3.8, "carbohydrates": 13.8, "fat": 3.4,
            "sodium": 120, "potassium": 150, "calcium": 100, "phosphorus": 90,
        },
    },
    {
        "product_id": "f3",
        "product_name": "Peptamen",
        "manufacturer": "Nestlé Health Science",
        "composition": {
            "calories": 100, "protein": 4.0, "carbohydrates": 12.7, "fat": 3.9,
            "sodium": 110, "potassium": 130, "calcium": 85, "phosphorus": 85,
        },
    },
    {
        "product_id": "f4",
        "product_name": "Nutridrink HP",
        "manufacturer": "Danone Nutricia",
        "composition": {
            "calories": 150, "protein": 6.0, "carbohydrates": 18.4, "fat": 4.9,
            "sodium": 130, "potassium": 180, "calcium": 120, "phosphorus": 110,
        },
    },
    {
        "product_id": "f7",
        "product_name": "Glucerna",
        "manufacturer": "Abbott",
        "composition": {
            "calories": 100, "protein": 4.2, "carbohydrates": 9.4, "fat": 5.4,
            "fiber": 1.5, "sodium": 105, "potassium": 145, "calcium": 95, "phosphorus": 95,
        },
    },
]

REFERENCE_PRICING = [
    {
        "product_id": "f1",
        "product_name": "Nutrison Advanced Diason",
        "presentations": [
            {"size": 500, "unit_price": 12.50, "supplier": "Distribuidora ABC", "internal_code": "NUT-001"},
            {"size": 1000, "unit_price": 22.00, "supplier": "Distribuidora ABC", "internal_code": "NUT-002"},
        ],
    },
    {
        "product_id": "f2",
        "product_name": "Fresubin Original",
        "presentations": [
            {"size": 500, "unit_price": 11.00, "supplier": "Distribuidora XYZ", "internal_code": "FRE-001"},
            {"size": 1000, "unit_price": 20.00, "supplier": "Distribuidora XYZ", "internal_code": "FRE-002"},
        ],
    },
    {
        "product_id": "f3",
        "product_name": "Peptamen",
        "presentations": [
            {"size": 500, "unit_price": 15.00, "supplier": "Distribuidora ABC", "internal_code": "PEP-001"},
        ],
    },
    {
        "product_id": "f4",
        "product_name": "Nutridrink HP",
        "presentations": [
            {"size": 200, "unit_price": 6.50, "supplier": "Distribuidora ABC", "internal_code": "NDR-001"},
            {"size": 500, "unit_price": 14.00, "supplier": "Distribuidora ABC", "internal_code": "NDR-002"},
        ],
    },
    {
        "product_id": "f7",
        "product_name": "Glucerna",
        "presentations": [
            {"size": 237, "unit_price": 7.00, "supplier": "Distribuidora XYZ", "internal_code": "GLU-001"},
            {"size": 500, "unit_price": 13.50, "supplier": "Distribuidora XYZ", "internal_code": "GLU-002"},
        ],
    },
]


def _filter_ids(items, ids):
    if not ids:
        return items
    wanted = set(ids)
    return [i for i in items if i.product_id in wanted]


class StaticProductSource:
    """
    Serves the bundled reference sheets. Used when no product API is
    configured, and in tests.
    """

    name = "static"

    def __init__(self, nutritional: Optional[List[dict]] = None, pricing: Optional[List[dict]] = None):
        self._nutritional = REFERENCE_NUTRITIONAL if nutritional is None else nutritional
        self._pricing = REFERENCE_PRICING if pricing is None else pricing

    def fetch_nutritional(self, ids: Optional[List[str]] = None) -> List[NutritionalData]:
        now = datetime.now()
        items = [
            NutritionalData(
                product_id=row["product_id"],
                product_name=row["product_name"],
                manufacturer=row["manufacturer"],
                composition=FormulaComposition(**row["composition"]),
                last_updated=now,
                source="manufacturer_reference",
            )
            for row in self._nutritional
        ]
        return _filter_ids(items, ids)

    def fetch_pricing(self, ids: Optional[List[str]] = None) -> List[PricingData]:
        now = datetime.now()
        items = [
            PricingData(
                product_id=row["product_id"],
                product_name=row["product_name"],
                presentations=[Presentation(**p) for p in row["presentations"]],
                last_updated=now,
                source="supplier_reference",
            )
            for row in self._pricing
        ]
        return _filter_ids(items, ids)

    def ping(self) -> bool:
        return True


class HttpProductSource:
    """
    Client for the external product API:
      GET <base>/formulas -> [NutritionalData]
      GET <base>/pricing  -> [PricingData]
    Both accept an optional comma-separated `ids` query parameter.
    """

    name = "http"

    def __init__(self, base_url: str, api_key: Optional[str] = None, timeout: int = 30, session=None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _get(self, path: str, ids: Optional[List[str]] = None):
        url = f"{self.base_url}{path}"
        params = {"ids": ",".join(ids)} if ids else None

        r = self.session.get(url, params=params, headers=self._headers(), timeout=self.timeout)
        if r.status_code != 200:
            raise RuntimeError(f"API {path} failed ({r.status_code}): {r.text}")
        return r.json()

    def fetch_nutritional(self, ids: Optional[List[str]] = None) -> List[NutritionalData]:
        return [NutritionalData.model_validate(item) for item in self._get("/formulas", ids)]

    def fetch_pricing(self, ids: Optional[List[str]] = None) -> List[PricingData]:
        return [PricingData.model_validate(item) for item in self._get("/pricing", ids)]

    def ping(self) -> bool:
        try:
            r = self.session.get(self.base_url, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("product API unreachable at %s: %s", self.base_url, e)
            return False
        return r.status_code < 500
