from fastapi import APIRouter, HTTPException

from medaid.models.api import ChatRequest, ChatResponse
from medaid.models.facility import Coordinates
from medaid.models.profile import ConversationTurn
from medaid.services.assistant import get_conversation_log
from medaid.services.profile_store import get_profile_store

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.get("", response_model=list[ConversationTurn])
async def get_turns():
    return get_conversation_log().turns


@router.post("", response_model=ChatResponse)
async def ask(body: ChatRequest):
    """Ask the assistant a question grounded in the current profile.

    Set ``facility_category`` (plus optional coordinates) to give the
    assistant a facility search as extra context.
    """
    query = body.query.strip()
    if not query:
        raise HTTPException(status_code=422, detail="Query must not be blank")

    coordinates = None
    if body.latitude is not None and body.longitude is not None:
        coordinates = Coordinates(latitude=body.latitude, longitude=body.longitude)

    return await get_conversation_log().ask(
        query,
        get_profile_store(),
        facility_category=body.facility_category,
        coordinates=coordinates,
    )


@router.delete("")
async def clear_turns():
    await get_conversation_log().clear()
    return {"turns": []}
