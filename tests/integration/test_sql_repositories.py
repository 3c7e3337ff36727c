"""
Integration tests for the SQL repositories and stores (SQLite)
"""

import dataclasses
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from app.domain.errors import ConflictError, NotFound
from app.domain.models import CommitmentEntry
from app.infrastructure.db.repositories.commitment_repository import CommitmentRepository
from app.infrastructure.db.repositories.decision_record_repository import DecisionRecordRepository
from app.infrastructure.fixtures.demo_decisions import demo_records, seed_demo_decisions
from app.infrastructure.stores.sql import SqlCommitmentStore, SqlDecisionStore

pytestmark = [pytest.mark.asyncio, pytest.mark.integration]

T0 = datetime(2026, 2, 3, 12, 0, tzinfo=timezone.utc)


def entry(digest, minutes=0, trace=None, commitment=None):
    return CommitmentEntry(
        hash=digest,
        trace=trace or {"agent": "SolanaYield", "action": {"type": "hold"}},
        commitment=commitment,
        recorded_at=T0 + timedelta(minutes=minutes),
    )


class TestDecisionRecordRepository:
    async def test_create_and_get_preserves_record(self, db_session):
        repo = DecisionRecordRepository(db_session)
        record = demo_records()[0]

        stored_id = await repo.create(record)
        await db_session.commit()

        assert stored_id == record.id
        fetched = await repo.get_by_id(record.id)
        assert fetched == record
        assert fetched.risk_analysis.proposed_risk_score == 25

    async def test_list_all_newest_first(self, db_session):
        repo = DecisionRecordRepository(db_session)
        records = demo_records()
        for record in reversed(records):
            await repo.create(record)
        await db_session.commit()

        listed = await repo.list_all()
        assert [r.id for r in listed] == [r.id for r in records]
        assert await repo.count() == 4

    async def test_duplicate_id_conflicts(self, db_session):
        repo = DecisionRecordRepository(db_session)
        record = demo_records()[0]
        await repo.create(record)

        with pytest.raises(ConflictError):
            await repo.create(dataclasses.replace(record, reasoning_preview="Different"))
        assert (await repo.get_by_id(record.id)).reasoning_preview == record.reasoning_preview

    async def test_other_integrity_errors_are_not_conflicts(self, db_session):
        repo = DecisionRecordRepository(db_session)
        record = demo_records()[0]
        object.__setattr__(record, "reasoning_preview", None)

        with pytest.raises(IntegrityError):
            await repo.create(record)

    async def test_get_unknown_returns_none(self, db_session):
        assert await DecisionRecordRepository(db_session).get_by_id("1-missing") is None


class TestSqlDecisionStore:
    async def test_seed_and_query(self, session_factory):
        store = SqlDecisionStore(session_factory)

        assert await seed_demo_decisions(store) == 4
        assert await seed_demo_decisions(store) == 0
        assert await store.count() == 4
        assert (await store.list_all())[0].id == "1706918400000-rf2k8m"

    async def test_duplicate_append_conflicts(self, session_factory):
        store = SqlDecisionStore(session_factory)
        record = demo_records()[1]
        await store.append(record)

        with pytest.raises(ConflictError):
            await store.append(record)
        assert await store.count() == 1

    async def test_get_unknown_raises(self, session_factory):
        with pytest.raises(NotFound):
            await SqlDecisionStore(session_factory).get("1-missing")


class TestCommitmentRepository:
    async def test_insert_then_get(self, db_session):
        repo = CommitmentRepository(db_session)

        replaced = await repo.put(entry("h1", commitment="sig"))
        await db_session.commit()

        assert replaced is False
        stored = await repo.get("h1")
        assert stored.trace == {"agent": "SolanaYield", "action": {"type": "hold"}}
        assert stored.commitment == "sig"
        assert stored.recorded_at_iso == "2026-02-03T12:00:00Z"

    async def test_overwrite_replaces(self, db_session):
        repo = CommitmentRepository(db_session)
        await repo.put(entry("h1"))

        replaced = await repo.put(entry("h1", minutes=5, trace={"agent": "Other"}), overwrite=True)
        await db_session.commit()

        assert replaced is True
        assert (await repo.get("h1")).trace == {"agent": "Other"}
        assert await repo.count() == 1

    async def test_reject_keeps_original(self, db_session):
        repo = CommitmentRepository(db_session)
        await repo.put(entry("h1"))

        with pytest.raises(ConflictError):
            await repo.put(entry("h1", trace={"agent": "Other"}), overwrite=False)
        assert (await repo.get("h1")).trace["agent"] == "SolanaYield"

    async def test_list_recent_orders_by_recorded_at(self, db_session):
        repo = CommitmentRepository(db_session)
        for minutes, digest in enumerate(["h1", "h2", "h3"]):
            await repo.put(entry(digest, minutes=minutes))
        await db_session.commit()

        assert [e.hash for e in await repo.list_recent(2)] == ["h3", "h2"]

    async def test_get_unknown_returns_none(self, db_session):
        assert await CommitmentRepository(db_session).get("missing") is None


async def test_sql_commitment_store_round_trip(session_factory):
    store = SqlCommitmentStore(session_factory)

    assert await store.put(entry("h1")) is False
    assert await store.put(entry("h1", minutes=1, commitment="sig")) is True
    with pytest.raises(ConflictError):
        await store.put(entry("h1", minutes=2), overwrite=False)

    stored = await store.get("h1")
    assert stored.commitment == "sig"
    assert await store.count() == 1
    assert [e.hash for e in await store.list_recent(10)] == ["h1"]
