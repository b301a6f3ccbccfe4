"""
Tests for ledger narratives: template layer, AI layer and fallback.
"""

import logging
from types import SimpleNamespace

import httpx
import pytest
from openai import APITimeoutError

from app.services.valuation.narratives import (
    NarrativeClient,
    NarrativeClientSettings,
    NarrativeContext,
    NarrativeParams,
    format_dollars,
    generate_ledger_narrative,
    generate_template_narrative,
)


class FakeNarrativeClient:
    """Stands in for NarrativeClient; records prompts."""

    def __init__(self, answer=None, error=None):
        self.answer = answer
        self.error = error
        self.prompts = []

    def complete(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.answer


def _openai_response(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


@pytest.fixture
def task_params():
    return NarrativeParams(
        event_type="TASK_COMPLETED",
        title="Document SOPs",
        category="OPERATIONAL",
        delta_value_recovered=105_000,
        bri_score_before=0.70,
        bri_score_after=0.72,
    )


@pytest.fixture
def context():
    return NarrativeContext(company_name="Acme Widgets", industry="Widgets",
                            current_value=3_185_000, value_gap=315_000, bri_score=0.72)


def test_format_dollars():
    assert format_dollars(105_000) == "$105K"
    assert format_dollars(1_234_567) == "$1.2M"
    assert format_dollars(950) == "$950"


def test_task_template(task_params):
    text = generate_template_narrative(task_params)
    assert text == (
        'Completing "Document SOPs" (Operational) recovered $105K in buyer-perceived value.'
        " BRI moved from 70.0 to 72.0."
    )


def test_template_for_value_at_risk_and_no_change():
    at_risk = generate_template_narrative(
        NarrativeParams(event_type="MULTIPLES_UPDATED", delta_value_at_risk=40_000)
    )
    assert at_risk == "Updated industry multiples put $40K of value at risk."

    unchanged = generate_template_narrative(NarrativeParams(event_type="MANUAL"))
    assert unchanged == "Valuation recalculation left the current valuation unchanged."


def test_template_when_llm_disabled(task_params, context):
    result = generate_ledger_narrative(task_params, context)
    assert result.source == "template"
    assert "Document SOPs" in result.narrative


def test_ai_narrative_is_cleaned(task_params, context):
    client = FakeNarrativeClient(answer='  "Documented SOPs make the business easier for a buyer to run."  ')

    result = generate_ledger_narrative(task_params, context, client=client)

    assert result.source == "ai"
    assert result.narrative == "Documented SOPs make the business easier for a buyer to run."
    assert "Acme Widgets" in client.prompts[0]
    assert "Value Recovered: $105K" in client.prompts[0]


def test_ai_failure_falls_back_to_template(task_params, context, caplog):
    client = FakeNarrativeClient(error=RuntimeError("provider down"))

    with caplog.at_level(logging.WARNING):
        result = generate_ledger_narrative(task_params, context, client=client)

    assert result.source == "template"
    assert result.narrative == generate_template_narrative(task_params)
    assert "provider down" in caplog.text


def test_short_ai_answer_falls_back(task_params, context):
    result = generate_ledger_narrative(task_params, context, client=FakeNarrativeClient(answer="OK"))
    assert result.source == "template"


def test_ineligible_events_never_call_client(context):
    client = FakeNarrativeClient(answer="This should never be used for a multiples update.")
    params = NarrativeParams(event_type="MULTIPLES_UPDATED", delta_value_recovered=1_000)

    result = generate_ledger_narrative(params, context, client=client)

    assert result.source == "template"
    assert client.prompts == []


def test_client_retries_timeouts():
    calls = []

    def create(**kwargs):
        calls.append(kwargs)
        if len(calls) == 1:
            raise APITimeoutError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
        return _openai_response("Buyers will value the cleaner books.")

    fake = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    client = NarrativeClient(client=fake, config=NarrativeClientSettings("test-model", 1.0, 2))

    assert client.complete("prompt") == "Buyers will value the cleaner books."
    assert len(calls) == 2
    assert calls[0]["model"] == "test-model"
    assert calls[0]["timeout"] == 1.0


def test_client_gives_up_after_max_attempts():
    def create(**kwargs):
        raise APITimeoutError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))

    fake = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    client = NarrativeClient(client=fake, config=NarrativeClientSettings("test-model", 1.0, 1))

    with pytest.raises(APITimeoutError):
        client.complete("prompt")
