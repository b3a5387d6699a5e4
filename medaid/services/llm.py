import base64
import json
import logging
import re
from dataclasses import dataclass
from typing import TypeVar

import anthropic
import openai
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from medaid import errors
from medaid.config import (
    ANTHROPIC_API_KEY,
    LLM_DEFAULT_TIER,
    LLM_MAX_TOKENS,
    LLM_MODEL_FAST,
    LLM_MODEL_HIGH,
    LLM_MODEL_STANDARD,
    LLM_PROVIDER,
    OPENAI_API_KEY,
)

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


_ANTHROPIC_DEFAULTS = {
    "fast": "claude-3-5-haiku-latest",
    "standard": "claude-sonnet-4-5",
    "high": "claude-sonnet-4-5",
}

_OPENAI_DEFAULTS = {
    "fast": "gpt-4o-mini",
    "standard": "gpt-4o",
    "high": "gpt-4o",
}

PDF_MIME_TYPE = "application/pdf"


@dataclass(frozen=True)
class Attachment:
    """Binary document sent alongside a prompt (image or PDF)."""

    data: bytes
    mime_type: str

    @property
    def is_pdf(self) -> bool:
        return self.mime_type.lower() == PDF_MIME_TYPE

    def b64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


def _strip_json(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*", "", text)
        text = re.sub(r"\s*```$", "", text)
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and end > start:
        return text[start:end + 1]
    return text


def validate_payload(raw: str, response_model: type[T]) -> T:
    """Parse raw model output into ``response_model``.

    Raises ParseError when the text is not JSON or does not fit the schema,
    and ValidationError when the only problem is missing top-level required
    fields. A field missing inside a nested item is a malformed item.
    """
    try:
        payload = json.loads(_strip_json(raw))
    except json.JSONDecodeError as e:
        raise errors.ParseError(f"{response_model.__name__}: response is not JSON ({e.msg})") from e
    if not isinstance(payload, dict):
        raise errors.ParseError(f"{response_model.__name__}: expected a JSON object")

    try:
        return response_model.model_validate(payload)
    except ValidationError as e:
        problems = e.errors()
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in problems)
        if all(err["type"] == "missing" and len(err["loc"]) == 1 for err in problems):
            raise errors.ValidationError(
                f"{response_model.__name__}: missing required field(s) {fields}"
            ) from e
        raise errors.ParseError(f"{response_model.__name__}: invalid field(s) {fields}") from e


def _anthropic_content(user: str, attachments: list[Attachment]) -> list[dict]:
    content: list[dict] = []
    for item in attachments:
        block_type = "document" if item.is_pdf else "image"
        content.append({
            "type": block_type,
            "source": {"type": "base64", "media_type": item.mime_type, "data": item.b64()},
        })
    content.append({"type": "text", "text": user})
    return content


def _openai_content(user: str, attachments: list[Attachment]) -> list[dict]:
    content: list[dict] = []
    for item in attachments:
        data_uri = f"data:{item.mime_type};base64,{item.b64()}"
        if item.is_pdf:
            content.append({"type": "file", "file": {"filename": "document.pdf", "file_data": data_uri}})
        else:
            content.append({"type": "image_url", "image_url": {"url": data_uri}})
    content.append({"type": "text", "text": user})
    return content


class LLMClient:
    def __init__(self) -> None:
        provider = (LLM_PROVIDER or "auto").lower()
        if provider == "auto":
            if ANTHROPIC_API_KEY:
                provider = "anthropic"
            elif OPENAI_API_KEY:
                provider = "openai"
            else:
                provider = "none"
        self.provider = provider

        self._anthropic = AsyncAnthropic(api_key=ANTHROPIC_API_KEY) if ANTHROPIC_API_KEY else None
        self._openai = AsyncOpenAI(api_key=OPENAI_API_KEY) if OPENAI_API_KEY else None

    def available(self) -> bool:
        if self.provider == "anthropic":
            return self._anthropic is not None
        if self.provider == "openai":
            return self._openai is not None
        return False

    def model_for_tier(self, tier: str | None) -> str:
        tier = (tier or LLM_DEFAULT_TIER or "fast").lower()
        if tier not in ("fast", "standard", "high"):
            tier = "standard"

        if tier == "fast" and LLM_MODEL_FAST:
            return LLM_MODEL_FAST
        if tier == "standard" and LLM_MODEL_STANDARD:
            return LLM_MODEL_STANDARD
        if tier == "high" and LLM_MODEL_HIGH:
            return LLM_MODEL_HIGH

        if self.provider == "anthropic":
            return _ANTHROPIC_DEFAULTS[tier]
        return _OPENAI_DEFAULTS[tier]

    async def _complete(
        self,
        *,
        system: str,
        messages: list[dict],
        attachments: list[Attachment],
        json_mode: bool,
        max_tokens: int,
        tier: str | None,
    ) -> str:
        """Send one request and return the raw text of the reply.

        ``messages`` is a list of {"role", "content"} dicts with plain-text
        content; attachments are added to the final (user) message.
        """
        if not self.available():
            raise errors.TransportFailure("LLM provider unavailable")

        model = self.model_for_tier(tier)
        history, last = messages[:-1], messages[-1]

        try:
            if self.provider == "anthropic":
                message = await self._anthropic.messages.create(
                    model=model,
                    max_tokens=max_tokens,
                    system=system,
                    messages=[
                        *history,
                        {"role": "user", "content": _anthropic_content(last["content"], attachments)},
                    ],
                )
                raw = ""
                for block in message.content:
                    if hasattr(block, "text"):
                        raw += block.text
                return raw

            kwargs: dict = {}
            if json_mode:
                kwargs["response_format"] = {"type": "json_object"}
            response = await self._openai.chat.completions.create(
                model=model,
                max_tokens=max_tokens,
                messages=[
                    {"role": "system", "content": system},
                    *history,
                    {"role": "user", "content": _openai_content(last["content"], attachments)},
                ],
                **kwargs,
            )
            return response.choices[0].message.content or ""
        except (anthropic.APIError, openai.APIError) as e:
            logger.error("LLM request to %s (%s) failed: %s", self.provider, model, e)
            raise errors.TransportFailure(f"{self.provider} request failed: {e}") from e

    async def generate_json(
        self,
        *,
        system: str,
        user: str,
        response_model: type[T],
        attachments: list[Attachment] | None = None,
        max_tokens: int = LLM_MAX_TOKENS,
        tier: str | None = None,
    ) -> T:
        raw = await self._complete(
            system=system,
            messages=[{"role": "user", "content": user}],
            attachments=attachments or [],
            json_mode=True,
            max_tokens=max_tokens,
            tier=tier,
        )
        return validate_payload(raw, response_model)

    async def generate_text(
        self,
        *,
        system: str,
        messages: list[dict],
        max_tokens: int = LLM_MAX_TOKENS,
        tier: str | None = None,
    ) -> str:
        raw = await self._complete(
            system=system,
            messages=messages,
            attachments=[],
            json_mode=False,
            max_tokens=max_tokens,
            tier=tier,
        )
        return raw.strip()


_client: LLMClient | None = None


def get_llm_client() -> LLMClient:
    global _client
    if _client is None:
        _client = LLMClient()
    return _client
