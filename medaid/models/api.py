from typing import Literal

from pydantic import BaseModel, Field

from medaid.errors import ErrorKind
from medaid.models.profile import ConversationTurn, PatientProfile


class OperationResult(BaseModel):
    """Outcome of one pipeline run: committed or rejected, never partial."""

    status: Literal["committed", "rejected"]
    error: ErrorKind | None = None
    detail: str = ""
    profile: PatientProfile


class ProfileView(BaseModel):
    profile: PatientProfile
    health_score: int
    health_status: str


class TrendPoint(BaseModel):
    timestamp: int
    parameter: str
    value: float


class ChatRequest(BaseModel):
    query: str = Field(..., min_length=1)
    facility_category: str | None = None
    latitude: float | None = Field(None, ge=-90.0, le=90.0)
    longitude: float | None = Field(None, ge=-180.0, le=180.0)


class ChatResponse(BaseModel):
    status: Literal["committed", "rejected"]
    reply: str | None = None
    error: ErrorKind | None = None
    detail: str = ""
    turns: list[ConversationTurn] = []
