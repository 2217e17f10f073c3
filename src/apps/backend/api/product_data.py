# src/apps/backend/api/product_data.py

import os
from typing import Optional

from fastapi import APIRouter, Request

from apps.backend import settings

router = APIRouter()

SNAPSHOT_FILE = "product_data.joblib"


def _cache(request: Request):
    return request.app.state.product_cache


@router.post("/sync")
def sync(request: Request):
    return _cache(request).sync()


@router.get("/status")
def status(request: Request):
    return _cache(request).status()


@router.post("/export")
def export_snapshot(request: Request):
    path = os.path.join(settings.PRODUCT_CACHE_DIR, SNAPSHOT_FILE)
    return {"path": _cache(request).export_snapshot(path)}


@router.get("/cost-per-ml/{product_id}")
def cost_per_ml(product_id: str, request: Request, preferred_size: Optional[float] = None):
    cache = _cache(request)
    return {
        "product_id": product_id,
        "preferred_size": preferred_size,
        "cost_per_ml": cache.cost_per_ml(product_id, preferred_size),
        "priced": cache.get_pricing(product_id) is not None,
    }
