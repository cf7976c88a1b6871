"""
Tests for Repository Pattern

Tests property upsert, source persistence and collection run history.
"""
from datetime import datetime, timedelta, timezone

import pytest

from src.taxsale.db.models import Property
from src.taxsale.db.repository import (
    CollectionRunRepository,
    PropertyRepository,
    SourceRepository,
)
from src.taxsale.models.collection import CollectionResult, CollectionStatus
from src.taxsale.models.source import SourceStatus


def property_data(**overrides):
    data = {
        'record_key': "MD|ST. MARY'S|parcel:08-012083",
        'parcel_id': '08-012083',
        'tax_account_number': '08-012083',
        'owner_name': 'Jane Doe',
        'property_address': '123 MAIN STREET, LEONARDTOWN, MD 20650',
        'city': 'LEONARDTOWN',
        'state': 'MD',
        'county': "St. Mary's",
        'zip_code': '20650',
        'property_details': {},
        'tax_info': {},
        'sale_info': {'sale_amount': 1200.5},
        'raw_data': {},
        'last_updated': datetime.now(timezone.utc),
    }
    data.update(overrides)
    return data


class TestPropertyRepository:
    """Tests for PropertyRepository."""

    def test_upsert_insert(self, db_session):
        repo = PropertyRepository()

        prop, created = repo.upsert(db_session, property_data())
        db_session.commit()

        assert created is True
        assert prop.parcel_id == '08-012083'
        assert repo.count(db_session) == 1

    def test_upsert_update_keeps_single_row(self, db_session):
        repo = PropertyRepository()

        repo.upsert(db_session, property_data())
        db_session.commit()
        prop, created = repo.upsert(
            db_session,
            property_data(owner_name='John Roe', sale_info={'sale_amount': 900.0}),
        )
        db_session.commit()

        assert created is False
        assert prop.owner_name == 'John Roe'
        assert prop.sale_info == {'sale_amount': 900.0}
        assert repo.count(db_session) == 1

    def test_upsert_requires_record_key(self, db_session):
        repo = PropertyRepository()
        data = property_data()
        data.pop('record_key')

        with pytest.raises(ValueError, match="record_key"):
            repo.upsert(db_session, data)

    def test_list_by_source(self, db_session):
        repo = PropertyRepository()
        repo.upsert(db_session, property_data(source_id='src-1'))
        repo.upsert(db_session, property_data(record_key='MD|X|parcel:2', parcel_id='2', source_id='src-2'))
        db_session.commit()

        found = repo.list_by_source(db_session, 'src-1')

        assert [p.parcel_id for p in found] == ['08-012083']
        assert isinstance(found[0], Property)


class TestSourceRepository:
    """Tests for SourceRepository."""

    def test_save_and_get_round_trip(self, db_session, make_source):
        repo = SourceRepository()
        source = make_source(metadata={'year': 2025})

        repo.save(db_session, source)
        db_session.commit()
        loaded = repo.get(db_session, 'src-1')

        assert loaded.name == source.name
        assert loaded.region.county == "St. Mary's"
        assert loaded.metadata == {'year': 2025}
        assert loaded.schedule.frequency == source.schedule.frequency

    def test_list_active_excludes_inactive(self, db_session, make_source):
        repo = SourceRepository()
        repo.save(db_session, make_source('a'))
        repo.save(db_session, make_source('b', status=SourceStatus.INACTIVE))
        repo.save(db_session, make_source('c', status=SourceStatus.ERROR))
        db_session.commit()

        assert [s.id for s in repo.list_active(db_session)] == ['a', 'c']

    def test_record_collection_replaces_messages(self, db_session, make_source):
        repo = SourceRepository()
        repo.save(db_session, make_source(metadata={'warningMessage': 'old', 'year': 2025}))
        collected_at = datetime(2025, 5, 1, tzinfo=timezone.utc)

        updated = repo.record_collection(
            db_session,
            'src-1',
            status=SourceStatus.ERROR,
            collected_at=collected_at,
            error_message='listing unreachable',
        )

        assert updated.status == SourceStatus.ERROR
        assert updated.last_collected == collected_at
        assert updated.metadata == {'year': 2025, 'errorMessage': 'listing unreachable'}

    def test_record_collection_unknown_source(self, db_session):
        repo = SourceRepository()
        assert repo.record_collection(
            db_session, 'missing', SourceStatus.ACTIVE, datetime.now(timezone.utc)
        ) is None


class TestCollectionRunRepository:
    """Tests for CollectionRunRepository."""

    def test_create_from_result_and_recent(self, db_session):
        repo = CollectionRunRepository()
        now = datetime.now(timezone.utc)
        old = CollectionResult(
            source_id='src-1',
            collector_name='static',
            success=True,
            timestamp=now - timedelta(days=3),
        )
        recent = CollectionResult.failure('static', 'listing unreachable', source_id='src-1')

        repo.create_from_result(db_session, old)
        run = repo.create_from_result(db_session, recent)
        db_session.commit()

        assert run.status == CollectionStatus.ERROR.value
        assert run.error_log[0]['message'] == 'listing unreachable'

        runs = repo.get_recent_runs(db_session, now - timedelta(hours=24))
        assert [r.id for r in runs] == [run.id]
        assert len(repo.get_runs_for_source(db_session, 'src-1')) == 2
