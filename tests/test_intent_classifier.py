import pytest

from app.errors import LLMServiceError
from app.services.rag.intent_classifier import IntentClassifier, parse_intent_label

from conftest import ScriptedLLM


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("RELATED", "RELATED"),
        ("UNRELATED", "UNRELATED"),
        (" unrelated\n", "UNRELATED"),
        ("UNRELATED.", "RELATED"),
        ("Label: UNRELATED", "RELATED"),
        ("", "RELATED"),
        (None, "RELATED"),
    ],
)
def test_parse_intent_label_fails_open(raw, expected):
    assert parse_intent_label(raw) == expected


def test_classify_sends_message_only():
    llm = ScriptedLLM(intent="UNRELATED")

    assert IntentClassifier(llm).classify("  what's the weather?  ") == "UNRELATED"
    call = llm.calls[0]
    assert '"what\'s the weather?"' in call["prompt"]
    assert call["temperature"] == 0.0
    assert call["system_prompt"] is None


def test_classify_propagates_call_failures():
    llm = ScriptedLLM(intent=LLMServiceError("connection reset"))

    with pytest.raises(LLMServiceError):
        IntentClassifier(llm).classify("tuition waiver?")
