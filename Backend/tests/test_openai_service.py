from __future__ import annotations

from types import SimpleNamespace

import pytest

from app.config import Settings
from app.models.records import QuestionSuggestions, SummaryPayload
from services.openai_service import OpenAIService


class FakeCompletions:
    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=reply))],
            usage={"total_tokens": 42},
        )


def _service(replies, **kwargs):
    completions = FakeCompletions(replies)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    service = OpenAIService(settings=Settings(OPENAI_MODEL="gpt-test"), client=client, **kwargs)
    return service, completions


def test_generate_json_validates_model():
    service, completions = _service(
        ['{"translatedTitle": "訳題", "journal": "J Physiother", "summary": "要約",}']
    )

    payload, meta = service.generate_json(
        system_prompt="sys",
        user_prompt="user",
        response_model=SummaryPayload,
        action_type="pubmed.summarize",
    )

    assert payload.translated_title == "訳題"
    assert payload.journal == "J Physiother"
    assert meta["ok"] is True
    assert meta["usage"] == {"total_tokens": 42}
    call = completions.calls[0]
    assert call["model"] == "gpt-test"
    assert call["response_format"] == {"type": "json_object"}
    assert call["messages"][0]["role"] == "system"


def test_text_around_json_is_tolerated():
    service, _ = _service(['ok: {"actions": [{"q": "問い1"}, {"q": null}]} done'])

    payload, _ = service.generate_json("sys", "user", QuestionSuggestions)

    assert [a.q for a in payload.actions] == ["問い1", ""]


def test_invalid_json_raises_after_single_attempt():
    service, completions = _service(["not json at all"])

    with pytest.raises(RuntimeError, match="1 attempt"):
        service.generate_json("sys", "user", SummaryPayload)

    assert len(completions.calls) == 1


def test_retry_recovers_from_transport_error():
    service, completions = _service(
        [ConnectionError("reset"), '{"translatedTitle": "t", "journal": "j", "summary": "s"}'],
        max_retries=1,
    )

    payload, _ = service.generate_json("sys", "user", SummaryPayload)

    assert payload.summary == "s"
    assert len(completions.calls) == 2


def test_missing_api_key_is_reported():
    with pytest.raises(RuntimeError, match="OPENAI_API_KEY"):
        OpenAIService(settings=Settings(OPENAI_API_KEY=None))
