import logging

from google import genai
from google.genai import types

logger = logging.getLogger(__name__)


class SvgChatError(Exception):
    """Base class for errors reported to the user in the conversation."""


class MissingCredential(SvgChatError):
    def __init__(self, message="No API key provided. Please configure your Gemini API key in settings."):
        super().__init__(message)


class GenerationFailed(SvgChatError):
    def __init__(self, message, cause=None):
        super().__init__(message)
        self.cause = cause


class EmptyGenerationResult(SvgChatError):
    pass


class CompletionClient:
    """One Gemini model behind a plain ``complete()`` call."""

    def __init__(self, api_key, model, timeout_ms=300_000):
        if not api_key:
            raise MissingCredential()
        self.model = model
        self.client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=timeout_ms),
        )

    def complete(self, contents, system_instruction=None, temperature=None):
        """Send ``contents`` (a string or a list of ``types.Part``) and return the response text."""
        kwargs = {}
        if system_instruction is not None:
            kwargs["system_instruction"] = system_instruction
        if temperature is not None:
            kwargs["temperature"] = temperature
        config = types.GenerateContentConfig(**kwargs) if kwargs else None

        try:
            response = self.client.models.generate_content(
                model=self.model, contents=contents, config=config,
            )
        except Exception as e:
            logger.error("Gemini request to %s failed: %s", self.model, e)
            raise GenerationFailed(str(e), cause=e) from e
        return response.text or ""


def image_part(data, mime_type):
    return types.Part.from_bytes(data=data, mime_type=mime_type)


def text_part(text):
    return types.Part.from_text(text=text)
