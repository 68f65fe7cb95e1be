# chess_review/services/coach_service.py
"""
Provides the optional coach that explains weak moves in plain language.

The coach is best-effort: it asks a text-generation oracle for a short
rationale and one better idea, and degrades to an empty note on any problem.
Whether a coach is available at all is decided once, at wiring time, by
`create_coach`: without credentials the pipeline gets a `DisabledCoach`,
which is a valid configuration rather than an error.
"""

import json
import re
from typing import Any, Optional, TYPE_CHECKING

import structlog

from chess_review.types import Coach, CoachNote, TextGenerator, Verdict
from chess_review.utils import metrics

if TYPE_CHECKING:
    from chess_review.config.settings import CoachSettings

logger = structlog.get_logger(__name__)

_CODE_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$", re.IGNORECASE)

PROMPT_TEMPLATE = (
    "Explain in <=2 short sentences why {san} was bad given eval change "
    "({eval_before_cp} -> {eval_after_cp}, delta={delta_cp}cp, verdict: {verdict}), "
    "and suggest one better idea. "
    'Return strict JSON: {{"note": string, "better": string}}'
)


def build_prompt(san: str, eval_before_cp: int, eval_after_cp: int, delta_cp: int, verdict: Verdict) -> str:
    return PROMPT_TEMPLATE.format(
        san=san, eval_before_cp=eval_before_cp, eval_after_cp=eval_after_cp,
        delta_cp=delta_cp, verdict=verdict.value,
    )


def _clean_field(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def parse_coach_response(text: Optional[str]) -> CoachNote:
    """
    Parses the oracle's answer permissively.

    A surrounding code fence is stripped; anything that is not a JSON object
    with string fields yields an empty note instead of an error.
    """
    if not text:
        return CoachNote()
    body = _CODE_FENCE_RE.sub("", text)
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        return CoachNote()
    if not isinstance(data, dict):
        return CoachNote()
    return CoachNote(note=_clean_field(data.get("note")), better=_clean_field(data.get("better")))


class DisabledCoach(Coach):
    """The coach used when no text-generation oracle is configured."""

    async def explain(
        self, san: str, eval_before_cp: int, eval_after_cp: int, delta_cp: int, verdict: Verdict
    ) -> CoachNote:
        return CoachNote()


class LlmCoach(Coach):
    """A coach backed by a text-generation oracle."""

    def __init__(self, generator: TextGenerator):
        self._generator = generator

    async def explain(
        self, san: str, eval_before_cp: int, eval_after_cp: int, delta_cp: int, verdict: Verdict
    ) -> CoachNote:
        """
        Returns a short note and a better idea for a weak move.

        `Okay` moves are never sent to the oracle. Errors of any kind (network,
        quota, malformed output) produce an empty note and are only logged.
        """
        if verdict == Verdict.OKAY:
            return CoachNote()

        prompt = build_prompt(san, eval_before_cp, eval_after_cp, delta_cp, verdict)
        try:
            text = await self._generator.generate(prompt)
            note = parse_coach_response(text)
        except Exception as e:
            metrics.COACH_NOTES_TOTAL.labels(outcome="error").inc()
            logger.warning("Coach annotation failed; continuing without a note.", san=san, error=str(e))
            return CoachNote()

        metrics.COACH_NOTES_TOTAL.labels(outcome="empty" if note.is_empty else "annotated").inc()
        return note


class GeminiTextGenerator(TextGenerator):
    """Text-generation oracle over the Google Gen AI SDK."""

    def __init__(self, client: Any, model: str):
        self._client = client
        self._model = model

    async def generate(self, prompt: str) -> str:
        from google.genai import types

        response = await self._client.aio.models.generate_content(
            model=self._model,
            contents=prompt,
            config=types.GenerateContentConfig(response_mime_type="application/json"),
        )
        return response.text or ""


def create_coach(settings: "CoachSettings") -> Coach:
    """
    Chooses the coach for this process.

    Returns a `DisabledCoach` when no API key is configured or the client
    cannot be constructed; otherwise an `LlmCoach` over Gemini.
    """
    if not settings.api_key:
        logger.warning("No coach API key configured; coach notes are disabled.")
        return DisabledCoach()

    try:
        from google import genai

        client = genai.Client(api_key=settings.api_key)
    except Exception as e:
        logger.error("Failed to initialize the Gemini client; coach notes are disabled.", error=str(e))
        return DisabledCoach()

    logger.info("Coach enabled.", model=settings.model)
    return LlmCoach(GeminiTextGenerator(client, settings.model))
