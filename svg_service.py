import base64
import binascii
import logging
import re

from gemini_client import CompletionClient, EmptyGenerationResult, GenerationFailed, image_part, text_part
from system_prompt import (
    IMAGE_TRACE_PROMPT,
    OPTIMIZE_PROMPT_PROMPT,
    OPTIMIZE_PROMPT_REQUEST,
    OPTIMIZE_SVG_PROMPT,
    OPTIMIZE_SVG_REQUEST,
    TEXT_TO_SVG_PROMPT,
    TEXT_TO_SVG_REQUEST,
)

logger = logging.getLogger(__name__)

# Textual, not structural: the earliest <svg up to the first </svg> after it.
SVG_RE = re.compile(r"<svg[\s\S]*?</svg>")

TEXT_TEMPERATURE = 0.2
OPTIMIZE_SVG_TEMPERATURE = 0
OPTIMIZE_PROMPT_TEMPERATURE = 0.3


def extract_svg_code(text):
    """Return the first ``<svg>...</svg>`` block in ``text``.

    Falls back to the trimmed text when it starts with ``<``, and to ``""``
    when nothing looks like markup.
    """
    match = SVG_RE.search(text)
    if match:
        return match.group(0)
    stripped = text.strip()
    if stripped.startswith("<"):
        return stripped
    return ""


def split_data_uri(data_uri):
    """Split a base64 image data URI into ``(mime_type, raw_bytes)``."""
    mime_type = "image/jpeg" if data_uri.startswith("data:image/jpeg") else "image/png"
    try:
        _header, payload = data_uri.split(",", 1)
        data = base64.b64decode(payload, validate=True)
    except (ValueError, binascii.Error):
        raise ValueError("Invalid image data") from None
    return mime_type, data


class SvgService:
    """The four Gemini-backed operations behind the chat."""

    def __init__(self, credentials, config):
        self.credentials = credentials
        self.config = config

    def _client(self):
        return CompletionClient(
            self.credentials.get(),
            model=self.config.model,
            timeout_ms=self.config.http_timeout_ms,
        )

    def _complete(self, failure_message, contents, **options):
        client = self._client()
        try:
            return client.complete(contents, **options)
        except GenerationFailed as e:
            raise GenerationFailed(failure_message, cause=e.cause or e) from e

    def _extract(self, raw_text, empty_message):
        svg_code = extract_svg_code(raw_text)
        if not svg_code:
            logger.error("AI Response (no SVG found): %s", raw_text)
            raise EmptyGenerationResult(empty_message)
        return svg_code

    def generate_from_text(self, message, conversation_history, current_svg):
        prompt = TEXT_TO_SVG_REQUEST.format(
            history=conversation_history, svg=current_svg, message=message,
        )
        raw_text = self._complete(
            "The AI service failed to process the text prompt.",
            prompt,
            system_instruction=TEXT_TO_SVG_PROMPT,
            temperature=TEXT_TEMPERATURE,
        )
        return self._extract(
            raw_text, "Failed to generate valid SVG. The AI response did not contain SVG code.",
        )

    def generate_from_image(self, image_data_uri, prompt):
        try:
            mime_type, data = split_data_uri(image_data_uri)
        except ValueError as e:
            raise GenerationFailed("The AI service failed to process the image.", cause=e) from e
        contents = [
            image_part(data, mime_type),
            text_part(IMAGE_TRACE_PROMPT.format(prompt=prompt)),
        ]
        raw_text = self._complete("The AI service failed to process the image.", contents)
        return self._extract(
            raw_text, "Failed to convert image to SVG. The AI response did not contain SVG code.",
        )

    def optimize_svg(self, current_svg, instruction):
        prompt = OPTIMIZE_SVG_REQUEST.format(instruction=instruction, svg=current_svg)
        raw_text = self._complete(
            "The AI service failed to optimize the SVG.",
            prompt,
            system_instruction=OPTIMIZE_SVG_PROMPT,
            temperature=OPTIMIZE_SVG_TEMPERATURE,
        )
        return self._extract(
            raw_text, "Failed to optimize SVG. The AI response did not contain SVG code.",
        )

    def optimize_prompt(self, original_prompt):
        prompt = OPTIMIZE_PROMPT_REQUEST.format(prompt=original_prompt)
        raw_text = self._complete(
            "Failed to optimize the prompt.",
            prompt,
            system_instruction=OPTIMIZE_PROMPT_PROMPT,
            temperature=OPTIMIZE_PROMPT_TEMPERATURE,
        )
        return raw_text.strip()
