"""Canonical patient record: merge policy, commits, durable persistence.

All mutations go through ``ProfileStore`` under a single lock. Each one is
all-or-nothing: on any pipeline failure the in-memory profile and the durable
record are left exactly as they were and a rejected ``OperationResult`` is
returned instead of an exception.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable

from pydantic import ValidationError

from medaid import errors
from medaid.config import PROFILE_RECORD_KEY
from medaid.database import delete_record, read_record, write_record
from medaid.models.api import OperationResult
from medaid.models.extraction import ExtractionResult
from medaid.models.profile import (
    ClinicalAssessment,
    MedicalHistoryEntry,
    Medication,
    PatientProfile,
    VitalsRecord,
)
from medaid.services.assessment import generate_assessment
from medaid.services.extractor import extract_document
from medaid.services.health_score import compute_health_score

logger = logging.getLogger(__name__)

Extractor = Callable[[bytes, str], Awaitable[ExtractionResult]]
AssessmentGenerator = Callable[[PatientProfile], Awaitable[ClinicalAssessment]]


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_id(taken: set[str]) -> str:
    while True:
        candidate = uuid.uuid4().hex
        if candidate not in taken:
            taken.add(candidate)
            return candidate


def merge_extraction(
    profile: PatientProfile,
    result: ExtractionResult,
    now_ms: int | None = None,
) -> PatientProfile:
    """Return a new profile with ``result`` folded in.

    - name: replaced only by a non-blank extracted name
    - age: replaced only when extracted
    - vitals / history: appended with fresh ids, no deduplication
    - medications: replaced wholesale whenever the extraction carries a list,
      even an empty one

    Neither argument is mutated. Repeated uploads of the same document append
    repeated vitals; that is the time-series behavior, not a bug.
    """
    timestamp = _now_ms() if now_ms is None else now_ms
    if profile.vitals:
        # timestamps never go backwards relative to what is already stored
        timestamp = max(timestamp, profile.vitals[-1].timestamp)

    vital_ids = {v.id for v in profile.vitals}
    new_vitals = [
        VitalsRecord(
            id=_new_id(vital_ids),
            parameter=candidate.parameter,
            reading=candidate.reading,
            unit=candidate.unit,
            severity=candidate.severity,
            timestamp=timestamp,
        )
        for candidate in result.vitals or []
    ]

    history_ids = {h.id for h in profile.history}
    new_history = [
        MedicalHistoryEntry(
            id=_new_id(history_ids),
            condition=candidate.condition,
            status=candidate.status,
            date=candidate.date,
        )
        for candidate in result.history or []
    ]

    if result.medications is not None:
        medications = [Medication(**m.model_dump()) for m in result.medications]
    else:
        medications = list(profile.medications)

    name = profile.name
    if result.name and result.name.strip():
        name = result.name.strip()

    return profile.model_copy(
        update={
            "name": name,
            "age": result.age if result.age is not None else profile.age,
            "vitals": [*profile.vitals, *new_vitals],
            "history": [*profile.history, *new_history],
            "medications": medications,
        },
        deep=True,
    )


def serialize_profile(profile: PatientProfile) -> str:
    return profile.model_dump_json(by_alias=True)


def deserialize_profile(raw: str) -> PatientProfile:
    return PatientProfile.model_validate_json(raw)


class ProfileStore:
    """Owner of the single patient profile and its durable record."""

    def __init__(
        self,
        record_key: str = PROFILE_RECORD_KEY,
        extractor: Extractor = extract_document,
        assessor: AssessmentGenerator = generate_assessment,
    ) -> None:
        self.record_key = record_key
        self._extractor = extractor
        self._assessor = assessor
        self._profile = PatientProfile()
        self._lock = asyncio.Lock()

    async def load(self) -> PatientProfile:
        """Initialize from the durable record; fall back to the default profile."""
        async with self._lock:
            raw = await read_record(self.record_key)
            if raw is None:
                self._profile = PatientProfile()
                logger.info("No stored profile under %s, starting fresh", self.record_key)
            else:
                try:
                    self._profile = deserialize_profile(raw)
                    logger.info(
                        "Loaded profile with %d vital(s), %d history entr(ies)",
                        len(self._profile.vitals),
                        len(self._profile.history),
                    )
                except ValidationError as e:
                    logger.error("Stored profile under %s is unreadable, starting fresh: %s", self.record_key, e)
                    self._profile = PatientProfile()
            return self.snapshot()

    def snapshot(self) -> PatientProfile:
        return self._profile.model_copy(deep=True)

    def health_score(self) -> int:
        return compute_health_score(self._profile.vitals)

    async def _commit(self, updated: PatientProfile) -> None:
        """Persist first, then swap in. Caller must hold the lock."""
        try:
            await write_record(self.record_key, serialize_profile(updated))
        except Exception as e:
            logger.error("Failed to persist profile under %s: %s", self.record_key, e)
            raise errors.TransportFailure("Profile could not be persisted") from e
        self._profile = updated

    def _rejected(self, operation: str, error: errors.PipelineError) -> OperationResult:
        logger.warning("%s rejected (%s): %s", operation, error.kind.value, error.detail)
        return OperationResult(
            status="rejected",
            error=error.kind,
            detail=error.detail,
            profile=self.snapshot(),
        )

    async def ingest_document(self, document: bytes, mime_type: str) -> OperationResult:
        """Extract, merge and commit one document.

        The lock is held across the extraction call so concurrent uploads are
        applied in order, one at a time.
        """
        async with self._lock:
            try:
                result = await self._extractor(document, mime_type)
                updated = merge_extraction(self._profile, result)
                await self._commit(updated)
            except errors.PipelineError as e:
                return self._rejected("Document ingestion", e)
            logger.info(
                "Document committed: %d vital(s), %d history entr(ies) total",
                len(updated.vitals),
                len(updated.history),
            )
            return OperationResult(status="committed", profile=self.snapshot())

    async def merge(self, result: ExtractionResult) -> OperationResult:
        """Commit an already-validated extraction result."""
        async with self._lock:
            try:
                await self._commit(merge_extraction(self._profile, result))
            except errors.PipelineError as e:
                return self._rejected("Merge", e)
            return OperationResult(status="committed", profile=self.snapshot())

    async def attach_assessment(self, assessment: ClinicalAssessment) -> OperationResult:
        async with self._lock:
            return await self._attach(assessment)

    async def _attach(self, assessment: ClinicalAssessment) -> OperationResult:
        updated = self._profile.model_copy(update={"assessment": assessment.model_copy(deep=True)}, deep=True)
        try:
            await self._commit(updated)
        except errors.PipelineError as e:
            return self._rejected("Assessment", e)
        return OperationResult(status="committed", profile=self.snapshot())

    async def refresh_assessment(self) -> OperationResult:
        """Generate a new assessment from the current profile and replace the old one."""
        async with self._lock:
            try:
                assessment = await self._assessor(self.snapshot())
            except errors.PipelineError as e:
                return self._rejected("Assessment generation", e)
            return await self._attach(assessment)

    async def reset(self) -> PatientProfile:
        """Clear the durable record and return to the default profile."""
        async with self._lock:
            await delete_record(self.record_key)
            self._profile = PatientProfile()
            logger.info("Profile reset, durable record %s cleared", self.record_key)
            return self.snapshot()


_store: ProfileStore | None = None


def get_profile_store() -> ProfileStore:
    global _store
    if _store is None:
        _store = ProfileStore()
    return _store
