from types import SimpleNamespace

import pytest
from openai import OpenAIError

from app.errors import LLMServiceError
from app.services import openai_service
from app.services.openai_service import AzureOpenAIService


class RecordingAzureOpenAI:
    instances = []

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        RecordingAzureOpenAI.instances.append(self)


class FakeCompletions:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error:
            raise self.error
        return self.response


def _client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def _response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def test_client_disables_sdk_retries(monkeypatch):
    monkeypatch.setattr(openai_service, "AzureOpenAI", RecordingAzureOpenAI)
    monkeypatch.setattr(openai_service.settings, "azure_openai_endpoint", "https://example.openai.azure.com")

    service = AzureOpenAIService()
    client = service.client

    assert client.kwargs["max_retries"] == 0
    assert client.kwargs["azure_endpoint"] == "https://example.openai.azure.com/"
    assert service.client is client


def test_complete_passes_stage_options():
    completions = FakeCompletions(response=_response('  {"scores": []}  '))
    service = AzureOpenAIService(client=_client(completions))

    text = service.complete("score these", temperature=0.0, structured_output=True, timeout=20, system_prompt="persona")

    assert text == '{"scores": []}'
    sent = completions.requests[0]
    assert sent["timeout"] == 20
    assert sent["response_format"] == {"type": "json_object"}
    assert [m["role"] for m in sent["messages"]] == ["system", "user"]


def test_complete_wraps_sdk_errors():
    service = AzureOpenAIService(client=_client(FakeCompletions(error=OpenAIError("Request timed out."))))

    with pytest.raises(LLMServiceError):
        service.complete("hello")


def test_complete_without_choices_returns_empty_text():
    service = AzureOpenAIService(client=_client(FakeCompletions(response=SimpleNamespace(choices=[]))))

    assert service.complete("hello") == ""
