import asyncio
import logging
from collections.abc import Awaitable, Callable

from medaid import errors
from medaid.config import ASSISTANT_NAME
from medaid.models.api import ChatResponse
from medaid.models.facility import Coordinates, FacilitySearchResult
from medaid.models.profile import ConversationTurn, PatientProfile
from medaid.services.facility_locator import locate
from medaid.services.llm import get_llm_client
from medaid.services.profile_store import ProfileStore

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are {name}, a highly accurate clinical assistant.
You have access to the patient's full records:
{profile}

Answer questions concisely and professionally, grounded in the records above.
If a patient asks about symptoms that sound like an emergency (chest pain, difficulty
breathing, stroke signs, severe bleeding, loss of consciousness), advise them to call
emergency services immediately.
Always remind the user that you are an AI assistant and they should consult a real
medical professional for diagnosis."""

FACILITY_CONTEXT = """

Nearby care options found for "{category}":
{narrative}
{links}"""

FacilitySearch = Callable[[str, Coordinates | None], Awaitable[FacilitySearchResult]]


def build_system_prompt(profile: PatientProfile, facilities: FacilitySearchResult | None = None) -> str:
    prompt = SYSTEM_PROMPT.format(
        name=ASSISTANT_NAME,
        profile=profile.model_dump_json(by_alias=True),
    )
    if facilities is not None:
        links = "\n".join(f"- {f.title}: {f.uri}" for f in facilities.facilities)
        prompt += FACILITY_CONTEXT.format(
            category=facilities.category,
            narrative=facilities.narrative or "(no description)",
            links=links or "- no listings returned",
        )
    return prompt


async def respond(
    query: str,
    profile: PatientProfile,
    prior_turns: list[ConversationTurn],
    facilities: FacilitySearchResult | None = None,
) -> str:
    """Answer ``query`` with the whole profile as grounding context.

    ``prior_turns`` are the turns before this exchange; the current query is
    not in them. Raises TransportFailure, including for an empty reply.
    """
    messages = [{"role": turn.role, "content": turn.text} for turn in prior_turns]
    messages.append({"role": "user", "content": query})

    client = get_llm_client()
    reply = await client.generate_text(
        system=build_system_prompt(profile, facilities),
        messages=messages,
        tier="high",
    )
    if not reply:
        raise errors.TransportFailure("Assistant returned an empty reply")
    return reply


class ConversationLog:
    """Append-only chat turns for the current session, kept outside the profile."""

    def __init__(
        self,
        responder: Callable[..., Awaitable[str]] = respond,
        facility_search: FacilitySearch = locate,
    ) -> None:
        self._turns: list[ConversationTurn] = []
        self._responder = responder
        self._facility_search = facility_search
        self._lock = asyncio.Lock()

    @property
    def turns(self) -> list[ConversationTurn]:
        return list(self._turns)

    async def clear(self) -> None:
        """Drop all turns once any in-flight exchange has finished."""
        async with self._lock:
            self._turns = []

    async def ask(
        self,
        query: str,
        store: ProfileStore,
        facility_category: str | None = None,
        coordinates: Coordinates | None = None,
    ) -> ChatResponse:
        """Run one exchange. Turns are appended only once a reply exists."""
        async with self._lock:
            profile = store.snapshot()
            prior = list(self._turns)

            facilities = None
            if facility_category:
                try:
                    facilities = await self._facility_search(facility_category, coordinates)
                except errors.PipelineError as e:
                    # optional context; answer without it
                    logger.warning("Facility context unavailable (%s): %s", e.kind.value, e.detail)

            try:
                reply = await self._responder(query, profile, prior, facilities=facilities)
            except errors.PipelineError as e:
                logger.warning("Chat rejected (%s): %s", e.kind.value, e.detail)
                return ChatResponse(status="rejected", error=e.kind, detail=e.detail, turns=self.turns)

            self._turns.append(ConversationTurn(role="user", text=query))
            self._turns.append(ConversationTurn(role="assistant", text=reply))
            return ChatResponse(status="committed", reply=reply, turns=self.turns)


_log: ConversationLog | None = None


def get_conversation_log() -> ConversationLog:
    global _log
    if _log is None:
        _log = ConversationLog()
    return _log
