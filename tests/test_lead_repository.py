"""
Tests for the SQLAlchemy lead repository against SQLite
"""
from datetime import datetime

import pytest
from sqlalchemy import text

from leadsearch.database.migrations import create_search_indexes, index_statement
from leadsearch.database.repository import LeadRepository
from leadsearch.errors import LeadNotFoundError
from leadsearch.models.lead import LeadStatus
from leadsearch.models.search import IndexDescriptor
from leadsearch.search.indexes import DEFAULT_INDEX_CATALOG
from leadsearch.search.normalizer import normalize


class TestLeadQuery:
    """Test filtering, sorting and paging"""

    @pytest.fixture
    def repository(self, session_factory):
        return LeadRepository(session_factory)

    def test_city_page_two_of_three(self, repository, add_leads):
        add_leads(45, city="Austin")
        add_leads(5, city="Dallas")

        page = repository.query(normalize({"city": "Austin", "page": 2, "limit": 20}))

        assert page.total == 45
        assert len(page.rows) == 20
        assert all(row.city == "Austin" for row in page.rows)

    def test_out_of_range_page_reads_first_page(self, repository, add_leads):
        add_leads(3)

        page = repository.query(normalize({"page": "1e20"}))

        assert page.total == 3
        assert len(page.rows) == 3

    def test_city_match_is_case_insensitive(self, repository, add_leads):
        add_leads(2, city="AUSTIN")
        assert repository.query(normalize({"city": "austin"})).total == 2

    def test_default_sort_is_newest_first(self, repository, add_leads):
        ids = add_leads(3)
        page = repository.query(normalize({}))
        assert [row.id for row in page.rows] == list(reversed(ids))

    def test_sort_by_rating_ascending(self, repository, add_leads):
        add_leads(1, google_rating=4.8, business_name="High")
        add_leads(1, google_rating=3.1, business_name="Low")

        page = repository.query(normalize({"sort_by": "google_rating", "sort_order": "asc"}))
        assert [row.business_name for row in page.rows] == ["Low", "High"]

    def test_status_and_boolean_filters(self, repository, add_leads):
        add_leads(2, status="validated", has_website=True)
        add_leads(3, status="validated", has_website=False)
        add_leads(4, status="new", has_website=True)

        page = repository.query(normalize({"status": "validated", "has_website": "true"}))
        assert page.total == 2

    def test_has_phone_filter(self, repository, add_leads):
        add_leads(2, phone="(555) 123-4567")
        add_leads(1, phone=None)
        add_leads(1, phone="")

        assert repository.query(normalize({"has_phone": "true"})).total == 2
        assert repository.query(normalize({"has_phone": "false"})).total == 2

    def test_rating_range(self, repository, add_leads):
        add_leads(1, google_rating=2.0)
        add_leads(1, google_rating=4.2)
        add_leads(1, google_rating=4.9)

        assert repository.query(normalize({"min_rating": 4, "max_rating": 4.5})).total == 1

    def test_created_range(self, repository, add_leads):
        add_leads(1, created_at=datetime(2023, 6, 1))
        add_leads(1, created_at=datetime(2024, 6, 1))

        page = repository.query(normalize({"created_after": "2024-01-01T00:00:00Z"}))
        assert page.total == 1

    def test_name_contains_escapes_wildcards(self, repository, add_leads):
        add_leads(1, business_name="Acme 100% Plumbing")
        add_leads(1, business_name="Acme 1000 Plumbing")

        assert repository.query(normalize({"business_name_contains": "acme"})).total == 2
        assert repository.query(normalize({"business_name_contains": "100%"})).total == 1


class TestLeadMutations:
    """Test mutations used by the lead service"""

    @pytest.fixture
    def repository(self, session_factory):
        return LeadRepository(session_factory)

    def test_update_status(self, repository, add_leads):
        lead_id = add_leads(1)[0]

        lead = repository.update_status(lead_id, LeadStatus.VALIDATED)

        assert lead.status == "validated"
        assert repository.get(lead_id).status == "validated"

    def test_apply_enrichment(self, repository, add_leads):
        lead_id = add_leads(1)[0]

        lead = repository.apply_enrichment(lead_id, {"website_url": "https://acme.example.com", "has_website": True})

        assert lead.website_url == "https://acme.example.com"
        assert lead.has_website is True

    def test_unknown_lead(self, repository):
        with pytest.raises(LeadNotFoundError):
            repository.get("missing")
        with pytest.raises(LeadNotFoundError):
            repository.update_status("missing", LeadStatus.ARCHIVED)


class TestSearchIndexMigrations:
    """Test index creation from the catalog"""

    def test_index_statement_folds_case_insensitive_columns(self):
        statement = index_statement(IndexDescriptor(name="idx_leads_location", columns=("state", "city")))
        assert statement == "CREATE INDEX IF NOT EXISTS idx_leads_location ON leads (upper(state), lower(city))"

    def test_catalog_indexes_created(self, db_engine):
        create_search_indexes(db_engine)
        # Running twice is a no-op
        create_search_indexes(db_engine)

        with db_engine.connect() as conn:
            rows = conn.execute(text("SELECT name FROM sqlite_master WHERE type = 'index' AND tbl_name = 'leads'"))
            names = {row[0] for row in rows}
        assert {index.name for index in DEFAULT_INDEX_CATALOG} <= names
