from .adapter import DbAdapter, QueryResult
from .factory import build_db_adapter
from .sqlite import SqliteAdapter

__all__ = ["DbAdapter", "QueryResult", "SqliteAdapter", "build_db_adapter"]
