from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_PATIENT_NAME = "Unregistered Patient"


class Severity(str, Enum):
    CRITICAL = "Critical"
    ELEVATED = "Elevated"
    NORMAL = "Normal"


class VitalsRecord(BaseModel):
    """One vital reading. Appended at ingestion, never edited."""

    model_config = ConfigDict(frozen=True)

    id: str
    parameter: str = ""
    reading: str = ""
    unit: str = ""
    severity: Severity
    timestamp: int  # epoch milliseconds, assigned at ingestion


class MedicalHistoryEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    condition: str = ""
    status: str = ""
    date: str = ""


class Medication(BaseModel):
    name: str = ""
    dosage: str = ""
    frequency: str = ""


class ClinicalAssessment(BaseModel):
    """Narrative risk / recommendation bundle. All four fields are required."""

    model_config = ConfigDict(populate_by_name=True)

    summary: str
    risks: list[str]
    recommendations: list[str]
    next_steps: list[str] = Field(alias="nextSteps")


class PatientProfile(BaseModel):
    """Root aggregate for the single patient record."""

    name: str = DEFAULT_PATIENT_NAME
    age: int | None = None
    history: list[MedicalHistoryEntry] = []
    vitals: list[VitalsRecord] = []
    medications: list[Medication] = []
    assessment: ClinicalAssessment | None = None


class ConversationTurn(BaseModel):
    role: Literal["user", "assistant"]
    text: str
