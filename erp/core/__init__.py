"""Core application modules."""
from erp.core.config import settings, get_settings
from erp.core.database import Base, get_db, init_db, close_db
from erp.core.security import create_access_token, get_current_actor

__all__ = [
    "settings",
    "get_settings",
    "Base",
    "get_db",
    "init_db",
    "close_db",
    "create_access_token",
    "get_current_actor",
]
