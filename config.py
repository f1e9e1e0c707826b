import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

AVAILABLE_MODELS = [
    "gemini-2.5-flash",
    "gemini-2.5-pro",
    "gemini-2.0-flash",
    "gemini-3-flash-preview",
    "gemini-3-pro-preview",
    "gemini-3.1-pro-preview",
]

CREDENTIAL_SOURCES = ("env", "storage", "prompt")

DEFAULT_CREDENTIALS_FILE = Path.home() / ".svg_icon_chat" / "credentials.json"


@dataclass
class AppConfig:
    """Runtime options; one instance serves both the history and the settings-modal UI modes."""

    persist_history: bool = True
    credential_source: str = "storage"
    model: str = AVAILABLE_MODELS[0]
    default_api_key: str = ""
    credentials_file: Path = DEFAULT_CREDENTIALS_FILE
    http_timeout_ms: int = 300_000

    def __post_init__(self):
        if self.credential_source not in CREDENTIAL_SOURCES:
            raise ValueError(
                f"Unknown credential source: {self.credential_source} "
                f"(expected one of {', '.join(CREDENTIAL_SOURCES)})"
            )
        if self.model not in AVAILABLE_MODELS:
            raise ValueError(f"Unknown model: {self.model}")
        if self.http_timeout_ms <= 0:
            raise ValueError("HTTP timeout must be positive")


def _env_bool(name, default):
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def load_config():
    load_dotenv()

    timeout = os.environ.get("SVG_CHAT_HTTP_TIMEOUT_MS", "300000")
    try:
        timeout_ms = int(timeout)
    except ValueError:
        raise ValueError(f"SVG_CHAT_HTTP_TIMEOUT_MS must be an integer, got {timeout!r}") from None

    credentials_file = os.environ.get("SVG_CHAT_CREDENTIALS_FILE")

    return AppConfig(
        persist_history=_env_bool("SVG_CHAT_PERSIST_HISTORY", True),
        credential_source=os.environ.get("SVG_CHAT_CREDENTIAL_SOURCE", "storage").strip().lower(),
        model=os.environ.get("GEMINI_MODEL", AVAILABLE_MODELS[0]).strip(),
        default_api_key=os.environ.get("GEMINI_API_KEY", "").strip(),
        credentials_file=Path(credentials_file).expanduser() if credentials_file else DEFAULT_CREDENTIALS_FILE,
        http_timeout_ms=timeout_ms,
    )
