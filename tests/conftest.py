"""
Shared fixtures: an in-memory SQLite leads table and a row factory
"""
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from datetime import datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from leadsearch.database.models import Base, Lead


@pytest.fixture
def db_engine():
    """SQLite engine shared across threads"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def add_leads(session_factory):
    """Insert leads built from keyword overrides; returns their ids in order"""
    base_time = datetime(2024, 1, 1, 12, 0, 0)

    def _add(count=1, **overrides):
        ids = []
        with session_factory() as db:
            existing = db.query(Lead).count()
            for i in range(count):
                position = existing + i
                fields = {
                    "business_name": f"Business {position:03d}",
                    "city": "Austin",
                    "state": "TX",
                    "business_category": "plumber",
                    "status": "new",
                    "has_website": False,
                    "google_rating": 4.0,
                    "review_count": 10,
                    "created_at": base_time + timedelta(minutes=position),
                }
                fields.update(overrides)
                lead = Lead(**fields)
                db.add(lead)
                db.flush()
                ids.append(lead.id)
            db.commit()
        return ids

    return _add
