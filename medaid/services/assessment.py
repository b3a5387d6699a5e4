import logging

from medaid.models.profile import ClinicalAssessment, PatientProfile
from medaid.services.llm import get_llm_client

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a clinical review assistant summarizing a patient's accumulated record.

Review the patient data and provide a professional clinical summary, risk assessment,
and personalized recommendations. This is a summarization aid, not a diagnosis.

Return ONLY a JSON object with exactly these keys:
- summary: 2-4 sentence narrative of the patient's current clinical picture.
- risks: list of short strings, most significant first.
- recommendations: list of short, personalized lifestyle or follow-up recommendations.
- nextSteps: list of concrete next steps (tests, referrals, monitoring).
All four keys are required. Use an empty list when there is nothing to report."""


async def generate_assessment(profile: PatientProfile) -> ClinicalAssessment:
    """Produce a narrative assessment grounded in the full profile.

    Raises ParseError, ValidationError (a required key missing) or
    TransportFailure; the caller commits only on success.
    """
    user_content = (
        "Patient Profile:\n"
        f"{profile.model_dump_json(by_alias=True, exclude={'assessment'}, indent=2)}\n\n"
        "Return the assessment in the structured format described above."
    )

    client = get_llm_client()
    assessment = await client.generate_json(
        system=SYSTEM_PROMPT,
        user=user_content,
        response_model=ClinicalAssessment,
        tier="high",
    )
    logger.info(
        "Generated assessment with %d risk(s), %d recommendation(s), %d next step(s)",
        len(assessment.risks),
        len(assessment.recommendations),
        len(assessment.next_steps),
    )
    return assessment
