"""
Database migration utilities for lead search
"""
from typing import Sequence

from sqlalchemy import text
import logging

from ..models.search import IndexDescriptor
from ..search.indexes import DEFAULT_INDEX_CATALOG
from .models import Base

# Columns filtered case-insensitively are indexed on the folded expression
INDEX_EXPRESSIONS = {
    "city": "lower(city)",
    "business_category": "lower(business_category)",
    "state": "upper(state)",
}


def create_tables(engine):
    """Create all database tables"""
    Base.metadata.create_all(bind=engine)
    logging.info("Database tables created successfully")


def index_statement(index: IndexDescriptor, table: str = "leads") -> str:
    columns = ", ".join(INDEX_EXPRESSIONS.get(column, column) for column in index.columns)
    return f"CREATE INDEX IF NOT EXISTS {index.name} ON {table} ({columns})"


def create_search_indexes(engine, catalog: Sequence[IndexDescriptor] = DEFAULT_INDEX_CATALOG):
    """Create the btree indexes the search plan guard assumes exist"""

    migrations = [index_statement(index) for index in catalog]

    with engine.connect() as conn:
        for i, migration in enumerate(migrations):
            try:
                conn.execute(text(migration))
                conn.commit()
                logging.info(f"Migration {i+1}/{len(migrations)} executed successfully")
            except Exception as e:
                logging.error(f"Migration {i+1}/{len(migrations)} failed: {e}")
                logging.error(f"Failed migration SQL: {migration[:200]}...")
                conn.rollback()

                if "already exists" in str(e).lower():
                    logging.warning(f"Skipping migration {i+1} - index already exists")
                    continue
                else:
                    raise


def run_migrations(engine, catalog: Sequence[IndexDescriptor] = DEFAULT_INDEX_CATALOG) -> bool:
    """Create tables and search indexes"""
    try:
        create_tables(engine)
        create_search_indexes(engine, catalog)
        logging.info("All migrations completed successfully")
        return True
    except Exception as e:
        logging.error(f"Migration failed: {e}")
        return False
