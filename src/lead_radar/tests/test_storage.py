# src/lead_radar/tests/test_storage.py
"""
Unit tests for Lead Radar persistence.

Tests cover:
- exists/get on empty and populated tables
- Upsert insert and replace on the conflict key
- Table isolation
- Generated ids on insert
- Field filters and insertion order on query
- Error wrapping
"""
import pytest
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from lead_radar.storage import (
    CODEUR_PROJECTS,
    GOOGLE_MAPS_LEADS,
    LEADS,
    LeadStore,
    StorageError,
)


@pytest.fixture
def store():
    lead_store = LeadStore("sqlite://")
    yield lead_store
    lead_store.close()


class TestLeadStore:
    """Tests for LeadStore."""

    @pytest.mark.unit
    def test_empty_store(self, store):
        assert store.exists(GOOGLE_MAPS_LEADS, "place-1") is False
        assert store.get(GOOGLE_MAPS_LEADS, "place-1") is None
        assert store.query(GOOGLE_MAPS_LEADS) == []

    @pytest.mark.unit
    def test_upsert_then_exists(self, store):
        record = {"google_place_id": "place-1", "business_name": "Café", "score": 7}

        returned = store.upsert(GOOGLE_MAPS_LEADS, record, "google_place_id")

        assert returned == record
        assert store.exists(GOOGLE_MAPS_LEADS, "place-1") is True
        assert store.get(GOOGLE_MAPS_LEADS, "place-1") == record

    @pytest.mark.unit
    def test_upsert_replaces_on_conflict(self, store):
        store.upsert(GOOGLE_MAPS_LEADS, {"google_place_id": "p", "score": 6}, "google_place_id")
        store.upsert(GOOGLE_MAPS_LEADS, {"google_place_id": "p", "score": 9}, "google_place_id")

        records = store.query(GOOGLE_MAPS_LEADS)

        assert len(records) == 1
        assert records[0]["score"] == 9

    @pytest.mark.unit
    def test_tables_are_isolated(self, store):
        store.upsert(CODEUR_PROJECTS, {"url": "shared-key"}, "url")

        assert store.exists(CODEUR_PROJECTS, "shared-key") is True
        assert store.exists(GOOGLE_MAPS_LEADS, "shared-key") is False

    @pytest.mark.unit
    def test_missing_conflict_key_raises(self, store):
        with pytest.raises(StorageError):
            store.upsert(CODEUR_PROJECTS, {"title": "Sans lien"}, "url")

    @pytest.mark.unit
    def test_insert_generates_id(self, store):
        first = store.insert(LEADS, {"company_name": "A", "status": "qualified"})
        second = store.insert(LEADS, {"company_name": "B", "status": "archived"})

        assert first["id"] != second["id"]
        assert store.get(LEADS, first["id"])["company_name"] == "A"

    @pytest.mark.unit
    def test_query_filters_in_insertion_order(self, store):
        for name, status in [("A", "qualified"), ("B", "archived"), ("C", "qualified")]:
            store.insert(LEADS, {"company_name": name, "status": status})

        qualified = store.query(LEADS, status="qualified")

        assert [r["company_name"] for r in qualified] == ["A", "C"]

    @pytest.mark.unit
    def test_integer_keys_are_stringified(self, store):
        store.upsert(LEADS, {"id": 42, "company_name": "X"}, "id")
        assert store.exists(LEADS, 42) is True
        assert store.exists(LEADS, "42") is True

    @pytest.mark.unit
    def test_database_errors_are_wrapped(self, store):
        with patch.object(
            store, "_find", side_effect=OperationalError("SELECT", {}, Exception("boom"))
        ):
            with pytest.raises(StorageError, match="Database operation failed"):
                store.exists(LEADS, "x")
