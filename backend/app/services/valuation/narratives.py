"""
narratives.py — Value Ledger Narratives

Every ledger entry gets a one-sentence narrative:
- Template layer: deterministic text built from the event and its deltas.
- AI layer: a short buyer-framed sentence from the OpenAI Chat Completions
  API, only for TASK_COMPLETED and ASSESSMENT_COMPLETED events.

The AI call has a per-request timeout and a bounded number of attempts.
Any failure, timeout or unusable answer falls back to the template; callers
always receive a NarrativeResult and never branch on which path produced it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from openai import APIConnectionError, APITimeoutError, OpenAI, RateLimitError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.core.config import settings
from app.core.logging import get_logger
from app.models.enums import LedgerEventType

logger = get_logger(__name__)

AI_ELIGIBLE_EVENTS = frozenset({
    LedgerEventType.TASK_COMPLETED.value,
    LedgerEventType.ASSESSMENT_COMPLETED.value,
})

CATEGORY_DISPLAY = {
    "FINANCIAL": "Financial",
    "TRANSFERABILITY": "Transferability",
    "OPERATIONAL": "Operational",
    "MARKET": "Market",
    "LEGAL_TAX": "Legal & Tax",
    "PERSONAL": "Personal",
}

MAX_NARRATIVE_LENGTH = 300
MIN_NARRATIVE_LENGTH = 10

NARRATIVE_SYSTEM_PROMPT = """You are a concise M&A advisor writing value ledger entries for a business exit platform.

Write a single sentence (max 200 characters) that captures the business impact of this event. The tone should be:
- Professional and encouraging (not salesy)
- Buyer-framed: connect actions to how buyers will perceive the business
- Specific: reference actual numbers, categories, or task names
- Grounded in data: only state what the data supports

Do NOT use bullet points, markdown, or multiple sentences. Return only the narrative text."""


@dataclass
class NarrativeParams:
    event_type: str
    title: Optional[str] = None
    category: Optional[str] = None
    delta_value_recovered: float = 0.0
    delta_value_at_risk: float = 0.0
    bri_score_before: Optional[float] = None
    bri_score_after: Optional[float] = None


@dataclass
class NarrativeContext:
    company_name: str
    industry: str
    current_value: Optional[float] = None
    value_gap: Optional[float] = None
    bri_score: Optional[float] = None


@dataclass
class NarrativeResult:
    narrative: str
    source: str  # "ai" | "template"


def format_dollars(amount: float) -> str:
    if amount >= 1_000_000:
        return f"${amount / 1_000_000:.1f}M"
    if amount >= 1_000:
        return f"${amount / 1_000:.0f}K"
    return f"${amount:.0f}"


def _bri_points(score: float) -> str:
    return f"{score * 100:.1f}"


# -----------------------------------------------------------------------------
# Template layer
# -----------------------------------------------------------------------------

def generate_template_narrative(params: NarrativeParams) -> str:
    """
    Deterministic narrative for any ledger event.
    """
    category = CATEGORY_DISPLAY.get(params.category or "", params.category)
    bri_change = ""
    if params.bri_score_before is not None and params.bri_score_after is not None:
        if abs(params.bri_score_after - params.bri_score_before) >= 0.0005:
            bri_change = (
                f" BRI moved from {_bri_points(params.bri_score_before)}"
                f" to {_bri_points(params.bri_score_after)}."
            )

    if params.delta_value_recovered > 0:
        movement = f"recovered {format_dollars(params.delta_value_recovered)} in buyer-perceived value"
    elif params.delta_value_at_risk > 0:
        movement = f"put {format_dollars(params.delta_value_at_risk)} of value at risk"
    else:
        movement = "left the current valuation unchanged"

    event = params.event_type
    if event == LedgerEventType.TASK_COMPLETED.value:
        subject = f'Completing "{params.title}"' if params.title else "Completing a task"
        if category:
            subject += f" ({category})"
        text = f"{subject} {movement}."
    elif event == LedgerEventType.ASSESSMENT_COMPLETED.value:
        text = f"Assessment update {movement}."
    elif event == LedgerEventType.MULTIPLES_UPDATED.value:
        text = f"Updated industry multiples {movement}."
    elif event == LedgerEventType.DRIFT_DETECTED.value:
        text = f"Detected drift in business signals {movement}."
    elif event == LedgerEventType.ONBOARDING.value:
        text = "Initial valuation established from onboarding."
    else:
        text = f"Valuation recalculation {movement}."

    return text + bri_change


# -----------------------------------------------------------------------------
# AI layer
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class NarrativeClientSettings:
    model: str
    timeout_seconds: float
    max_attempts: int

    @classmethod
    def from_app_settings(cls) -> "NarrativeClientSettings":
        return cls(
            model=settings.OPENAI_MODEL,
            timeout_seconds=settings.NARRATIVE_TIMEOUT_SECONDS,
            max_attempts=max(1, settings.NARRATIVE_MAX_ATTEMPTS),
        )


class NarrativeClient:
    """
    Thin wrapper over the OpenAI client with a bounded timeout and attempts.
    """

    def __init__(self, client: Optional[OpenAI] = None, config: Optional[NarrativeClientSettings] = None):
        self._config = config or NarrativeClientSettings.from_app_settings()
        self._client = client or OpenAI(
            api_key=settings.OPENAI_API_KEY,
            timeout=self._config.timeout_seconds,
            max_retries=0,
        )

    def complete(self, prompt: str) -> str:
        retrying = Retrying(
            stop=stop_after_attempt(self._config.max_attempts),
            wait=wait_exponential(multiplier=0.2, min=0.1, max=1),
            retry=retry_if_exception_type((APITimeoutError, APIConnectionError, RateLimitError)),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                response = self._client.chat.completions.create(
                    model=self._config.model,
                    messages=[
                        {"role": "system", "content": NARRATIVE_SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                    temperature=0.7,
                    max_tokens=256,
                    timeout=self._config.timeout_seconds,
                )
        return response.choices[0].message.content or ""


def build_narrative_prompt(params: NarrativeParams, context: NarrativeContext) -> str:
    parts = [f"Company: {context.company_name} ({context.industry})"]

    if context.current_value is not None:
        parts.append(f"Current Valuation: {format_dollars(context.current_value)}")
    if context.value_gap is not None:
        parts.append(f"Value Gap: {format_dollars(context.value_gap)}")
    if context.bri_score is not None:
        parts.append(f"BRI Score: {_bri_points(context.bri_score)}/100")

    parts.append(f"\nEvent: {params.event_type}")
    if params.category:
        parts.append(f"Category: {CATEGORY_DISPLAY.get(params.category, params.category)}")
    if params.title:
        parts.append(f'Task/Event: "{params.title}"')
    if params.delta_value_recovered > 0:
        parts.append(f"Value Recovered: {format_dollars(params.delta_value_recovered)}")
    if params.delta_value_at_risk > 0:
        parts.append(f"Value at Risk: {format_dollars(params.delta_value_at_risk)}")
    if params.bri_score_before is not None and params.bri_score_after is not None:
        parts.append(f"BRI: {_bri_points(params.bri_score_before)} -> {_bri_points(params.bri_score_after)}")

    parts.append("\nWrite a single narrative sentence (max 200 chars) capturing the business impact.")
    return "\n".join(parts)


def clean_narrative(text: str) -> str:
    return text.strip().strip("\"'").strip()[:MAX_NARRATIVE_LENGTH]


def ai_narratives_available() -> bool:
    return settings.LLM_ENABLED and bool(settings.OPENAI_API_KEY)


def generate_ledger_narrative(
    params: NarrativeParams,
    context: Optional[NarrativeContext] = None,
    client: Optional[NarrativeClient] = None,
) -> NarrativeResult:
    """
    Narrative for a ledger entry. Never raises.

    Args:
        params: Event and deltas
        context: Company context for the AI prompt (template is used without it)
        client: Injected narrative client; built from settings when LLM is enabled
    """
    template = NarrativeResult(narrative=generate_template_narrative(params), source="template")

    if params.event_type not in AI_ELIGIBLE_EVENTS or context is None:
        return template
    if client is None:
        if not ai_narratives_available():
            return template
        client = NarrativeClient()

    try:
        text = clean_narrative(client.complete(build_narrative_prompt(params, context)))
    except Exception as exc:  # any provider failure degrades to the template
        logger.warning("AI ledger narrative failed, using template: %s", exc)
        return template

    if len(text) < MIN_NARRATIVE_LENGTH:
        logger.warning("AI ledger narrative too short (%d chars), using template", len(text))
        return template

    return NarrativeResult(narrative=text, source="ai")
