import json
import stat

from config import AppConfig
from credentials import API_KEY_NAME, CredentialStore, credential_store_for


def test_unset_store_returns_empty(tmp_path):
    store = CredentialStore(tmp_path / "creds.json")
    assert store.get() == ""


def test_set_persists_and_survives_reload(tmp_path):
    path = tmp_path / "nested" / "creds.json"
    store = CredentialStore(path)
    store.set("abc123")

    assert store.get() == "abc123"
    assert json.loads(path.read_text())[API_KEY_NAME] == "abc123"
    assert CredentialStore(path).get() == "abc123"


def test_set_replaces_previous_value(tmp_path):
    store = CredentialStore(tmp_path / "creds.json")
    store.set("first")
    store.set("second")
    assert CredentialStore(tmp_path / "creds.json").get() == "second"


def test_empty_value_deletes_persisted_entry(tmp_path):
    path = tmp_path / "creds.json"
    store = CredentialStore(path)
    store.set("abc123")
    store.set("")

    assert store.get() == ""
    assert API_KEY_NAME not in json.loads(path.read_text())


def test_clear_removes_value(tmp_path):
    store = CredentialStore(tmp_path / "creds.json")
    store.set("abc123")
    store.clear()
    assert CredentialStore(tmp_path / "creds.json").get() == ""


def test_fallback_only_used_when_nothing_persisted(tmp_path):
    path = tmp_path / "creds.json"
    assert CredentialStore(path, fallback="from-env").get() == "from-env"

    CredentialStore(path).set("stored")
    assert CredentialStore(path, fallback="from-env").get() == "stored"


def test_unreadable_file_is_ignored(tmp_path):
    path = tmp_path / "creds.json"
    path.write_text("{not json")
    assert CredentialStore(path, fallback="x").get() == "x"


def test_memory_only_store_writes_nothing(tmp_path):
    store = CredentialStore()
    store.set("abc")
    assert store.get() == "abc"
    assert not store.persistent
    assert list(tmp_path.iterdir()) == []


def test_store_per_credential_source(tmp_path):
    path = tmp_path / "creds.json"

    storage = credential_store_for(AppConfig(credentials_file=path, default_api_key="env-key"))
    assert storage.persistent and storage.get() == "env-key"

    env = credential_store_for(AppConfig(credential_source="env", credentials_file=path, default_api_key="env-key"))
    assert not env.persistent and env.get() == "env-key"

    prompt = credential_store_for(AppConfig(credential_source="prompt", credentials_file=path, default_api_key="env-key"))
    assert not prompt.persistent and prompt.get() == ""


def test_credentials_file_is_private(tmp_path):
    path = tmp_path / "creds.json"
    CredentialStore(path).set("secret")
    assert stat.S_IMODE(path.stat().st_mode) == 0o600
