from fastapi import APIRouter, HTTPException

from medaid import errors
from medaid.models.facility import FacilitySearchRequest, FacilitySearchResult
from medaid.services.facility_locator import FACILITY_CATEGORIES, locate

router = APIRouter(prefix="/api/facilities", tags=["facilities"])


@router.get("/categories", response_model=list[str])
async def get_categories():
    return FACILITY_CATEGORIES


@router.post("/search", response_model=FacilitySearchResult)
async def search_facilities(body: FacilitySearchRequest):
    """Find care facilities, near the caller when coordinates are supplied."""
    try:
        return await locate(body.category, body.coordinates())
    except errors.PipelineError as e:
        raise HTTPException(status_code=502, detail=f"{e.kind.value}: {e.detail}") from None
