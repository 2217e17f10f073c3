# src/apps/backend/main.py

import logging

from fastapi import FastAPI

from apps.backend import settings
from apps.backend.api.requisition import router as requisition_router
from apps.backend.api.calculations import router as calculations_router
from apps.backend.api.economics import router as economics_router
from apps.backend.api.forecasting import router as forecasting_router
from apps.backend.api.recommendations import router as recommendations_router
from apps.backend.api.product_data import router as product_data_router
from nutri_core.product_data.product_cache import ProductDataCache
from nutri_core.product_data.product_client import HttpProductSource, StaticProductSource

logger = logging.getLogger(__name__)


def build_product_cache() -> ProductDataCache:
    if settings.PRODUCT_API_URL:
        source = HttpProductSource(settings.PRODUCT_API_URL, api_key=settings.PRODUCT_API_KEY)
    else:
        source = StaticProductSource()

    logger.info("product data source: %s", source.name)
    return ProductDataCache(source, ttl_minutes=settings.PRODUCT_CACHE_TTL_MINUTES)


def create_app() -> FastAPI:
    settings.configure_logging()

    app = FastAPI(
        title="Enteral Nutrition API",
        description="Requisitions, clinical calculations and nutrition decision support",
        version="0.1.0",
    )
    app.state.product_cache = build_product_cache()

    app.include_router(requisition_router, prefix="/requisition")
    app.include_router(calculations_router, prefix="/calculations")
    app.include_router(economics_router, prefix="/economics")
    app.include_router(forecasting_router, prefix="/forecasting")
    app.include_router(recommendations_router, prefix="/recommendations")
    app.include_router(product_data_router, prefix="/product-data")

    @app.get("/")
    def root():
        return {
            "status": "ok",
            "service": "Enteral Nutrition API",
            "version": "0.1.0",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("apps.backend.main:app", host=settings.API_HOST, port=settings.API_PORT)
