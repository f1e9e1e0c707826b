from types import SimpleNamespace

import pytest

import gemini_client
from config import AppConfig
from credentials import CredentialStore


class FakeModels:
    def __init__(self, owner):
        self.owner = owner

    def generate_content(self, model, contents, config=None):
        self.owner.calls.append({"model": model, "contents": contents, "config": config})
        if not self.owner.responses:
            raise AssertionError("unexpected generate_content call")
        result = self.owner.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return SimpleNamespace(text=result)


class FakeGenai:
    """Stands in for ``genai.Client``; queue responses (or exceptions) up front."""

    def __init__(self):
        self.responses = []
        self.calls = []
        self.clients = []

    def __call__(self, api_key=None, http_options=None):
        self.clients.append({"api_key": api_key, "http_options": http_options})
        return SimpleNamespace(models=FakeModels(self))

    def reply(self, *responses):
        self.responses.extend(responses)


@pytest.fixture
def fake_genai(monkeypatch):
    fake = FakeGenai()
    monkeypatch.setattr(gemini_client.genai, "Client", fake)
    return fake


@pytest.fixture
def config(tmp_path):
    return AppConfig(
        credentials_file=tmp_path / "credentials.json",
        default_api_key="",
    )


@pytest.fixture
def credentials(config):
    store = CredentialStore(config.credentials_file)
    store.set("test-key")
    return store
