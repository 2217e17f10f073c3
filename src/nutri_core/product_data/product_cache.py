import logging
import os
from datetime import datetime
from typing import Callable, Dict, Optional

import joblib
import requests

from data_contracts.models import NutritionalData, PricingData, SyncResult

logger = logging.getLogger(__name__)

DEFAULT_COST_PER_ML = 0.02

# failures a source may raise while fetching (pydantic errors are ValueErrors)
FETCH_ERRORS = (RuntimeError, requests.RequestException, ValueError)


class ProductDataCache:
    """
    Nutritional and pricing data keyed by product id, with a freshness
    window. The caller owns the instance; nothing here is module-level.

    `clock` returns "now" and exists so tests can move time.
    """

    def __init__(self, source, ttl_minutes: float = 60, clock: Optional[Callable[[], datetime]] = None):
        self.source = source
        self.ttl_minutes = ttl_minutes
        self._clock = clock or datetime.now
        self._nutritional: Dict[str, NutritionalData] = {}
        self._pricing: Dict[str, PricingData] = {}
        self._last_sync: Optional[datetime] = None

    # ---------------------------------------------
    # Sync
    # ---------------------------------------------
    def sync(self) -> SyncResult:
        """
        Pulls everything from the source. Never raises: failures are
        reported in the returned SyncResult and the last sync time is
        left unchanged.
        """
        added = updated = failed = 0
        errors = []

        try:
            nutritional = {item.product_id: item for item in self.source.fetch_nutritional()}
            pricing = {item.product_id: item for item in self.source.fetch_pricing()}
        except FETCH_ERRORS as e:
            logger.error("product data sync failed: %s", e)
            errors.append(str(e))
            failed += 1
            return SyncResult(
                success=False,
                items_updated=updated,
                items_added=added,
                items_failed=failed,
                errors=errors,
                last_sync=self._clock(),
            )

        # merge only once both fetches succeeded
        for store, fetched in ((self._nutritional, nutritional), (self._pricing, pricing)):
            for product_id, item in fetched.items():
                if product_id in store:
                    updated += 1
                else:
                    added += 1
                store[product_id] = item

        self._last_sync = self._clock()
        logger.info("product data synced: %d added, %d updated", added, updated)

        return SyncResult(
            success=True,
            items_updated=updated,
            items_added=added,
            items_failed=failed,
            errors=errors,
            last_sync=self._last_sync,
        )

    @property
    def last_sync(self) -> Optional[datetime]:
        return self._last_sync

    def needs_refresh(self, max_age_minutes: Optional[float] = None) -> bool:
        max_age = self.ttl_minutes if max_age_minutes is None else max_age_minutes
        if self._last_sync is None:
            return True
        age_minutes = (self._clock() - self._last_sync).total_seconds() / 60
        return age_minutes >= max_age

    def refresh_if_stale(self) -> Optional[SyncResult]:
        if self.needs_refresh():
            return self.sync()
        return None

    # ---------------------------------------------
    # Lookups
    # ---------------------------------------------
    def get_nutritional(self, product_id: str) -> Optional[NutritionalData]:
        if product_id in self._nutritional:
            return self._nutritional[product_id]

        try:
            items = self.source.fetch_nutritional([product_id])
        except FETCH_ERRORS as e:
            logger.warning("nutritional data for %s unavailable: %s", product_id, e)
            return None

        if not items:
            return None
        self._nutritional[product_id] = items[0]
        return items[0]

    def get_pricing(self, product_id: str) -> Optional[PricingData]:
        if product_id in self._pricing:
            return self._pricing[product_id]

        try:
            items = self.source.fetch_pricing([product_id])
        except FETCH_ERRORS as e:
            logger.warning("pricing for %s unavailable: %s", product_id, e)
            return None

        if not items:
            return None
        self._pricing[product_id] = items[0]
        return items[0]

    def cost_per_ml(self, product_id: str, preferred_size: Optional[float] = None) -> float:
        """
        Price per ml of the presentation closest to `preferred_size`, or
        of the cheapest per ml when no size is given.
        """
        pricing = self.get_pricing(product_id)
        presentations = [p for p in (pricing.presentations if pricing else []) if p.size > 0]

        if not presentations:
            return DEFAULT_COST_PER_ML

        if preferred_size:
            # ties keep the earlier presentation
            chosen = min(presentations, key=lambda p: abs(p.size - preferred_size))
        else:
            chosen = min(presentations, key=lambda p: p.unit_price / p.size)

        return chosen.unit_price / chosen.size

    # ---------------------------------------------
    # Snapshots
    # ---------------------------------------------
    def snapshot(self) -> dict:
        return {
            "nutritional": [n.model_dump() for n in self._nutritional.values()],
            "pricing": [p.model_dump() for p in self._pricing.values()],
            "export_date": self._clock(),
        }

    def export_snapshot(self, path: str) -> str:
        folder = os.path.dirname(path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        joblib.dump(self.snapshot(), path)
        logger.info("product data snapshot written to %s", path)
        return path

    def load(self, data: dict) -> None:
        """Replaces the cache contents and marks it fresh."""
        self._nutritional = {}
        self._pricing = {}

        for item in data.get("nutritional", []):
            n = NutritionalData.model_validate(item)
            self._nutritional[n.product_id] = n

        for item in data.get("pricing", []):
            p = PricingData.model_validate(item)
            self._pricing[p.product_id] = p

        self._last_sync = self._clock()

    def import_snapshot(self, path: str) -> None:
        if not os.path.exists(path):
            raise FileNotFoundError(path)
        self.load(joblib.load(path))

    def status(self) -> dict:
        return {
            "source": getattr(self.source, "name", type(self.source).__name__),
            "nutritional_items": len(self._nutritional),
            "pricing_items": len(self._pricing),
            "last_sync": self._last_sync,
            "needs_refresh": self.needs_refresh(),
            "ttl_minutes": self.ttl_minutes,
        }
