from .models import Base, Lead
from .connection import get_engine, get_session_factory, connect_redis
from .migrations import create_tables, create_search_indexes, run_migrations
from .repository import LeadRepository

__all__ = [
    "Base",
    "Lead",
    "get_engine",
    "get_session_factory",
    "connect_redis",
    "create_tables",
    "create_search_indexes",
    "run_migrations",
    "LeadRepository",
]
