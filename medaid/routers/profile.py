
from fastapi import APIRouter, HTTPException, Query, Request

from medaid.models.api import OperationResult, ProfileView, TrendPoint
from medaid.models.profile import PatientProfile
from medaid.services.health_score import compute_health_score, health_status, trend_points
from medaid.services.profile_store import get_profile_store

router = APIRouter(prefix="/api/profile", tags=["profile"])

ACCEPTED_MEDIA_PREFIXES = ("image/",)
ACCEPTED_MEDIA_TYPES = ("application/pdf",)


def _is_supported_media(mime_type: str) -> bool:
    return mime_type in ACCEPTED_MEDIA_TYPES or mime_type.startswith(ACCEPTED_MEDIA_PREFIXES)


def _view(profile: PatientProfile) -> ProfileView:
    score = compute_health_score(profile.vitals)
    return ProfileView(profile=profile, health_score=score, health_status=health_status(score))


@router.get("", response_model=ProfileView)
async def get_profile():
    """Current profile with the health score recomputed from its vitals."""
    return _view(get_profile_store().snapshot())


@router.get("/vitals/trend", response_model=list[TrendPoint])
async def get_vitals_trend(limit: int = Query(12, ge=1, le=500)):
    """Most recent vitals in timestamp order with numeric values for charting."""
    return trend_points(get_profile_store().snapshot().vitals, limit=limit)


@router.post("/documents", response_model=OperationResult)
async def upload_document(request: Request):
    """Ingest one clinical document sent as the raw request body."""
    mime_type = (request.headers.get("content-type") or "").split(";")[0].strip().lower()
    if not _is_supported_media(mime_type):
        raise HTTPException(status_code=415, detail="Only images and PDF documents are supported")

    document = await request.body()
    if not document:
        raise HTTPException(status_code=400, detail="Empty document")

    return await get_profile_store().ingest_document(document, mime_type)


@router.post("/assessment", response_model=OperationResult)
async def create_assessment():
    """Generate a fresh clinical assessment, replacing the previous one on success."""
    return await get_profile_store().refresh_assessment()


@router.delete("", response_model=ProfileView)
async def reset_profile():
    """Clear the stored record and start over with an unregistered patient."""
    return _view(await get_profile_store().reset())
