"""Tests for the profile store - merge policy, commits, persistence and reset."""

import asyncio
from unittest.mock import AsyncMock, patch

from factories import make_assessment, make_extraction, vital

from medaid import errors
from medaid.database import read_record
from medaid.models.profile import Medication, PatientProfile
from medaid.services import profile_store as store_mod
from medaid.services.profile_store import (
    ProfileStore,
    deserialize_profile,
    merge_extraction,
    serialize_profile,
)

# --- merge_extraction ---


class TestMergeExtraction:
    def test_accumulates_vitals_in_order(self):
        r1 = make_extraction(vitals=[vital("BP", "Normal"), vital("Glucose", "Elevated")])
        r2 = make_extraction(vitals=[vital("Sodium", "Critical")])

        merged = merge_extraction(merge_extraction(PatientProfile(), r1, now_ms=1000), r2, now_ms=2000)

        assert [v.parameter for v in merged.vitals] == ["BP", "Glucose", "Sodium"]
        ids = [v.id for v in merged.vitals]
        assert len(set(ids)) == 3
        assert [v.timestamp for v in merged.vitals] == [1000, 1000, 2000]

    def test_timestamps_never_go_backwards(self):
        first = merge_extraction(PatientProfile(), make_extraction(vitals=[vital("BP", "Normal")]), now_ms=5000)
        second = merge_extraction(first, make_extraction(vitals=[vital("HR", "Normal")]), now_ms=4000)
        assert second.vitals[-1].timestamp == 5000

    def test_same_report_twice_appends_twice(self):
        r = make_extraction(vitals=[vital("BP", "Elevated")], history=[{"condition": "Asthma"}])
        merged = merge_extraction(merge_extraction(PatientProfile(), r), r)
        assert len(merged.vitals) == 2
        assert len(merged.history) == 2
        assert merged.vitals[0].id != merged.vitals[1].id
        assert merged.history[0].id != merged.history[1].id

    def test_history_not_overwritten_for_recurring_condition(self):
        p = merge_extraction(PatientProfile(), make_extraction(history=[{"condition": "Asthma", "status": "Active"}]))
        p = merge_extraction(p, make_extraction(history=[{"condition": "Asthma", "status": "Resolved"}]))
        assert [h.status for h in p.history] == ["Active", "Resolved"]

    def test_name_replaced_only_when_non_blank(self):
        p = merge_extraction(PatientProfile(), make_extraction(name="Jane Doe"))
        assert p.name == "Jane Doe"
        assert merge_extraction(p, make_extraction(name="")).name == "Jane Doe"
        assert merge_extraction(p, make_extraction(name="   ")).name == "Jane Doe"
        assert merge_extraction(p, make_extraction()).name == "Jane Doe"

    def test_age_replaced_only_when_present(self):
        p = merge_extraction(PatientProfile(), make_extraction(age=54))
        assert p.age == 54
        assert merge_extraction(p, make_extraction()).age == 54
        assert merge_extraction(p, make_extraction(age=0)).age == 0

    def test_medications_replace_never_merge(self):
        p = merge_extraction(PatientProfile(), make_extraction(medications=[{"name": "A"}]))
        p = merge_extraction(p, make_extraction(medications=[{"name": "B", "dosage": "5mg"}]))
        assert p.medications == [Medication(name="B", dosage="5mg")]

    def test_empty_medication_list_clears(self):
        p = merge_extraction(PatientProfile(), make_extraction(medications=[{"name": "A"}]))
        assert merge_extraction(p, make_extraction(medications=[])).medications == []

    def test_absent_medications_keep_existing(self):
        p = merge_extraction(PatientProfile(), make_extraction(medications=[{"name": "A"}]))
        assert merge_extraction(p, make_extraction(vitals=[])).medications == [Medication(name="A")]

    def test_inputs_not_mutated(self):
        profile = PatientProfile(name="Jane")
        result = make_extraction(name="John", vitals=[vital("BP", "Critical")], medications=[{"name": "A"}])
        before_result = result.model_dump()
        before_profile = profile.model_dump()

        merge_extraction(profile, result)

        assert result.model_dump() == before_result
        assert profile.model_dump() == before_profile

    def test_assessment_untouched_by_merge(self):
        p = PatientProfile(assessment=make_assessment())
        merged = merge_extraction(p, make_extraction(vitals=[vital("BP", "Normal")]))
        assert merged.assessment == make_assessment()


class TestSerialization:
    def test_round_trip(self):
        p = merge_extraction(
            PatientProfile(),
            make_extraction(
                name="Jane Doe",
                age=61,
                vitals=[vital("BP", "Critical", "180/110", "mmHg")],
                history=[{"condition": "Hypertension", "status": "Chronic", "date": "2019"}],
                medications=[{"name": "Lisinopril", "dosage": "10mg", "frequency": "daily"}],
            ),
        )
        p = p.model_copy(update={"assessment": make_assessment()})

        raw = serialize_profile(p)
        assert '"nextSteps"' in raw
        assert deserialize_profile(raw) == p

    def test_default_round_trip(self):
        assert deserialize_profile(serialize_profile(PatientProfile())) == PatientProfile()


# --- ProfileStore ---


def _store(extraction=None, assessment=None, **kwargs) -> ProfileStore:
    return ProfileStore(
        record_key="test_profile",
        extractor=AsyncMock(return_value=extraction) if extraction is not None else AsyncMock(),
        assessor=AsyncMock(return_value=assessment) if assessment is not None else AsyncMock(),
        **kwargs,
    )


class TestIngestDocument:
    async def test_commit_merges_and_persists(self, db):
        store = _store(make_extraction(name="Jane", vitals=[vital("BP", "Critical")]))

        result = await store.ingest_document(b"%PDF-1.4", "application/pdf")

        assert result.status == "committed"
        assert result.error is None
        assert result.profile.name == "Jane"
        assert store.health_score() == 85
        store._extractor.assert_awaited_once_with(b"%PDF-1.4", "application/pdf")

        stored = deserialize_profile(await read_record("test_profile"))
        assert stored == store.snapshot()

    async def test_parse_error_leaves_profile_untouched(self, db):
        store = _store(make_extraction(vitals=[vital("BP", "Normal")]))
        await store.ingest_document(b"img", "image/png")
        before = store.snapshot()
        stored_before = await read_record("test_profile")

        store._extractor = AsyncMock(side_effect=errors.ParseError("severity 'Severe' not allowed"))
        result = await store.ingest_document(b"img", "image/png")

        assert result.status == "rejected"
        assert result.error == errors.ErrorKind.PARSE_ERROR
        assert len(store.snapshot().vitals) == len(before.vitals) == 1
        assert store.snapshot() == before
        assert await read_record("test_profile") == stored_before

    async def test_transport_failure_rejected(self, db):
        store = _store()
        store._extractor = AsyncMock(side_effect=errors.TransportFailure("timeout"))
        result = await store.ingest_document(b"img", "image/jpeg")
        assert result.status == "rejected"
        assert result.error == errors.ErrorKind.TRANSPORT_FAILURE
        assert result.profile == PatientProfile()
        assert await read_record("test_profile") is None

    async def test_persist_failure_keeps_memory_unchanged(self, db):
        store = _store(make_extraction(vitals=[vital("BP", "Critical")]))
        with patch.object(store_mod, "write_record", AsyncMock(side_effect=RuntimeError("disk full"))):
            result = await store.ingest_document(b"img", "image/png")
        assert result.status == "rejected"
        assert result.error == errors.ErrorKind.TRANSPORT_FAILURE
        assert store.snapshot().vitals == []

    async def test_concurrent_uploads_are_serialized(self, db):
        order: list[str] = []
        active = 0

        async def extractor(document: bytes, mime_type: str):
            nonlocal active
            active += 1
            assert active == 1
            await asyncio.sleep(0.01 if document == b"first" else 0)
            order.append(document.decode())
            active -= 1
            return make_extraction(vitals=[vital(document.decode(), "Normal")])

        store = ProfileStore(record_key="test_profile", extractor=extractor, assessor=AsyncMock())
        await asyncio.gather(
            store.ingest_document(b"first", "image/png"),
            store.ingest_document(b"second", "image/png"),
        )

        assert order == ["first", "second"]
        assert [v.parameter for v in store.snapshot().vitals] == ["first", "second"]


class TestAssessment:
    async def test_replaces_prior_assessment(self, db):
        store = _store(assessment=make_assessment("A1"))
        await store.refresh_assessment()

        store._assessor = AsyncMock(return_value=make_assessment("A2"))
        result = await store.refresh_assessment()

        assert result.status == "committed"
        assert store.snapshot().assessment == make_assessment("A2")

    async def test_validation_error_keeps_prior_assessment(self, db):
        store = _store(assessment=make_assessment("A1"))
        await store.refresh_assessment()

        store._assessor = AsyncMock(side_effect=errors.ValidationError("missing risks"))
        result = await store.refresh_assessment()

        assert result.status == "rejected"
        assert result.error == errors.ErrorKind.VALIDATION_ERROR
        assert store.snapshot().assessment == make_assessment("A1")

    async def test_assessor_receives_snapshot(self, db):
        store = _store(make_extraction(name="Jane"), assessment=make_assessment())
        await store.ingest_document(b"x", "image/png")
        await store.refresh_assessment()
        profile_arg = store._assessor.await_args.args[0]
        assert profile_arg.name == "Jane"
        assert profile_arg is not store._profile

    async def test_attach_assessment(self, db):
        store = _store()
        result = await store.attach_assessment(make_assessment("A3"))
        assert result.status == "committed"
        assert store.snapshot().assessment.summary == "Summary A3"


class TestLifecycle:
    async def test_load_missing_record_gives_default(self, db):
        store = _store()
        assert await store.load() == PatientProfile()

    async def test_load_restores_committed_profile(self, db):
        store = _store(make_extraction(name="Jane", vitals=[vital("BP", "Elevated")]))
        await store.ingest_document(b"x", "image/png")

        reloaded = _store()
        assert await reloaded.load() == store.snapshot()

    async def test_load_corrupt_record_gives_default(self, db):
        await db.execute(
            "INSERT INTO records (key, value, updated_at) VALUES (?, ?, ?)",
            ("test_profile", "not-json{", "2026-01-01T00:00:00Z"),
        )
        await db.commit()
        assert await _store().load() == PatientProfile()

    async def test_reset_clears_durable_record(self, db):
        store = _store(make_extraction(name="Jane", vitals=[vital("BP", "Critical")]))
        await store.ingest_document(b"x", "image/png")

        profile = await store.reset()

        assert profile == PatientProfile()
        assert store.health_score() == 100
        assert await read_record("test_profile") is None

    async def test_snapshot_is_a_copy(self, db):
        store = _store(make_extraction(medications=[{"name": "A"}]))
        await store.ingest_document(b"x", "image/png")
        snap = store.snapshot()
        snap.medications.clear()
        assert store.snapshot().medications == [Medication(name="A")]

    async def test_merge_commits_result(self, db):
        store = _store()
        result = await store.merge(make_extraction(vitals=[vital("BP", "Elevated")]))
        assert result.status == "committed"
        assert store.health_score() == 95
