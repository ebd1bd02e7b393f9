from .base import BaseModel, DbState
from .errors import ModelCacheError, ModelConfigurationError, UnknownModelError
from .group import CacheGroup
from .model_cache import ModelCache
from .query import DBQuery, query_key, query_matches
from .repository import ModelRepository, WriteBackStats
from .update import UpdateModel

__all__ = [
    "BaseModel",
    "CacheGroup",
    "DBQuery",
    "DbState",
    "ModelCache",
    "ModelCacheError",
    "ModelConfigurationError",
    "ModelRepository",
    "UnknownModelError",
    "UpdateModel",
    "WriteBackStats",
    "query_key",
    "query_matches",
]
