import json
import logging

from medaid.models.extraction import ExtractionResult
from medaid.services.llm import Attachment, get_llm_client

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a clinical document extraction AI.

Your task: Analyze the attached medical document (lab report, prescription, discharge
letter, photo of a chart) and extract:
1. Patient name and age.
2. Clinical Vitals (BP, Glucose, Cholesterol, Sodium, etc.) with readings and units.
3. Medical History (past conditions or diagnoses) with their status and date.
4. Current Medications mentioned, with dosage and frequency.

Rules:
- Only fill fields you can confidently read from the document.
- Omit name and age if they are not present. Age is a whole number of years.
- Omit a list entirely if the document says nothing about it.
- Keep readings as written on the document (e.g. "120/80", "5.4").
- Assign a severity to each vital: "Critical", "Elevated", or "Normal" based on
  standard clinical thresholds. No other severity values are allowed.

You must respond with ONLY a single JSON object that matches this schema. No markdown, no explanation, only the JSON.
Schema:"""


def _json_schema_prompt() -> str:
    """Return the JSON schema for ExtractionResult so the model can output valid JSON."""
    schema = ExtractionResult.model_json_schema()
    return json.dumps(schema, indent=2)


async def extract_document(document: bytes, mime_type: str) -> ExtractionResult:
    """Turn one uploaded document into candidate profile fields.

    Single best-effort call with no retry. Raises ParseError when the reply
    does not fit ``ExtractionResult`` (including an out-of-enum severity) and
    TransportFailure when the provider call fails.
    """
    client = get_llm_client()
    result = await client.generate_json(
        system=SYSTEM_PROMPT + "\n" + _json_schema_prompt(),
        user="Extract the clinical fields from this document. Respond with ONLY a JSON object matching the schema above.",
        response_model=ExtractionResult,
        attachments=[Attachment(data=document, mime_type=mime_type)],
        tier="fast",
    )
    logger.info(
        "Extracted %d vital(s), %d history entr(ies), medications %s",
        len(result.vitals or []),
        len(result.history or []),
        "absent" if result.medications is None else len(result.medications),
    )
    return result
