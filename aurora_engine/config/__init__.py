from .settings import Settings, get_settings
from .tables import DEFAULT_TABLES, GeologyTables

__all__ = ["Settings", "get_settings", "DEFAULT_TABLES", "GeologyTables"]
