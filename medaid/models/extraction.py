"""Shape of a single document extraction, validated before it touches the profile."""

from pydantic import BaseModel

from medaid.models.profile import Severity


class VitalCandidate(BaseModel):
    parameter: str = ""
    reading: str = ""
    unit: str = ""
    severity: Severity  # required; anything outside the enum is a malformed response


class HistoryCandidate(BaseModel):
    condition: str = ""
    status: str = ""
    date: str = ""


class MedicationCandidate(BaseModel):
    name: str = ""
    dosage: str = ""
    frequency: str = ""


class ExtractionResult(BaseModel):
    """Candidate fields pulled from one uploaded document.

    ``None`` means the document did not mention the field at all. For
    ``medications`` an explicit empty list is meaningful: it replaces the
    stored list.
    """

    name: str | None = None
    age: int | None = None
    vitals: list[VitalCandidate] | None = None
    history: list[HistoryCandidate] | None = None
    medications: list[MedicationCandidate] | None = None
