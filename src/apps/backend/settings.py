import logging
import os

DATA_BACKEND = os.getenv("DATA_BACKEND", "csv")
DATA_DIR = os.getenv("DATA_DIR", "data/curated")

PRODUCT_API_URL = os.getenv("PRODUCT_API_URL")
PRODUCT_API_KEY = os.getenv("PRODUCT_API_KEY")
PRODUCT_CACHE_TTL_MINUTES = float(os.getenv("PRODUCT_CACHE_TTL_MINUTES", "60"))
PRODUCT_CACHE_DIR = os.getenv("PRODUCT_CACHE_DIR", "models/cache")

API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "8000"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = None):
    root = logging.getLogger()
    root.setLevel((level or LOG_LEVEL).upper())

    # one handler, even if the app is created more than once
    if not any(getattr(h, "_nutri_handler", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._nutri_handler = True
        root.addHandler(handler)
