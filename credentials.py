import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

API_KEY_NAME = "gemini_api_key"


class CredentialStore:
    """Holds the single Gemini API key.

    With a ``path`` the key is persisted in a small JSON key-value file and
    mirrored in memory; without one it only lives for the current process.
    ``fallback`` is used at construction time when nothing is persisted.
    """

    def __init__(self, path=None, fallback=""):
        self.path = Path(path) if path else None
        self._value = self._read() or (fallback or "")

    def _load_file(self):
        if self.path is None or not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.warning("Ignoring unreadable credentials file %s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _read(self):
        value = self._load_file().get(API_KEY_NAME, "")
        return value if isinstance(value, str) else ""

    def _write(self, data):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        os.chmod(self.path, 0o600)

    def get(self):
        return self._value

    def set(self, value):
        value = (value or "").strip()
        if self.path is not None:
            data = self._load_file()
            if value:
                data[API_KEY_NAME] = value
                self._write(data)
            elif API_KEY_NAME in data:
                del data[API_KEY_NAME]
                self._write(data)
        self._value = value
        logger.info("API key %s", "updated" if value else "cleared")

    def clear(self):
        self.set("")

    @property
    def persistent(self):
        return self.path is not None


def credential_store_for(config):
    if config.credential_source == "storage":
        return CredentialStore(config.credentials_file, fallback=config.default_api_key)
    if config.credential_source == "env":
        return CredentialStore(fallback=config.default_api_key)
    return CredentialStore()
