# config/settings/prod.py
from .base import *  # noqa

DEBUG = False

CORS_ALLOW_ALL_ORIGINS = False
CORS_ALLOWED_ORIGINS = [
    origin.strip() for origin in os.getenv("CORS_ALLOWED_ORIGINS", "").split(",") if origin.strip()
]
CORS_ALLOW_CREDENTIALS = True

# tag sets in redis let a flush drop exactly the tagged entries
METADATA_CACHE_BACKEND = os.getenv("METADATA_CACHE_BACKEND", "dr_core.cache.backends.RedisTagBackend")
