import logging
import re
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import List, Optional

from gemini_client import EmptyGenerationResult, GenerationFailed, MissingCredential, SvgChatError

logger = logging.getLogger(__name__)

INITIAL_SVG = '<svg width="100" height="100" viewBox="0 0 100 100" xmlns="http://www.w3.org/2000/svg"></svg>'
GREETING = (
    'Hello! Describe the SVG you want to create, or upload an image to start. '
    'For example, try "a simple sun with rays".'
)

ANALYZING_IMAGE = "Analyzing image and converting to SVG..."
OPTIMIZING_SVG = "Optimizing the current SVG..."
GENERATING_SVG = "Generating SVG from your description..."
DONE = "Done! Here is the new SVG."

OPTIMIZE_KEYWORDS = ("optimize", "simplify")

FENCE_RE = re.compile(r"```svg\n|```")

ERROR_KINDS = {
    MissingCredential: "missing_credential",
    EmptyGenerationResult: "empty_result",
    GenerationFailed: "generation_failed",
}


class OperationInProgress(Exception):
    def __init__(self):
        super().__init__("Another request is still running. Please wait for it to finish.")


@dataclass(frozen=True)
class ChatMessage:
    role: str
    text: str
    image: Optional[str] = None
    placeholder: bool = False

    def to_dict(self):
        return {"role": self.role, "text": self.text, "image": self.image}


@dataclass(frozen=True)
class HistoryEntry:
    id: int
    timestamp: str
    code: str

    def to_dict(self):
        return asdict(self)


@dataclass
class Conversation:
    messages: List[ChatMessage] = field(default_factory=list)

    def append(self, role, text, image=None, placeholder=False):
        message = ChatMessage(role=role, text=text, image=image, placeholder=placeholder)
        self.messages.append(message)
        return message

    def finish(self, text):
        """Replace the trailing AI placeholder with ``text``, or append it."""
        message = ChatMessage(role="ai", text=text)
        if self.messages and self.messages[-1].role == "ai" and self.messages[-1].placeholder:
            self.messages[-1] = message
        else:
            self.messages.append(message)
        return message

    def transcript(self):
        return "\n".join(f"{m.role}: {m.text}" for m in self.messages)


class VersionHistory:
    """Append-only SVG snapshots; a save equal to the latest one is skipped."""

    def __init__(self):
        self.entries: List[HistoryEntry] = []
        self._next_id = 0

    def save(self, code):
        latest = self.entries[-1].code if self.entries else ""
        if code.strip() == latest.strip():
            return None
        self._next_id += 1
        entry = HistoryEntry(
            id=self._next_id,
            timestamp=datetime.now().strftime("%H:%M:%S"),
            code=code,
        )
        self.entries.append(entry)
        return entry

    def get(self, entry_id):
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        raise KeyError(entry_id)

    def newest_first(self):
        return list(reversed(self.entries))

    def __len__(self):
        return len(self.entries)


class AppState:
    """Everything one chat session owns, passed explicitly to every handler."""

    def __init__(self, config, credentials):
        self.config = config
        self.credentials = credentials
        self.conversation = Conversation()
        self.conversation.append("ai", GREETING)
        self.svg_code = INITIAL_SVG
        self.history = VersionHistory() if config.persist_history else None
        self.is_loading = False
        self.last_error = None
        self.last_error_kind = None
        self._lock = threading.Lock()
        if self.history is not None:
            self.history.save(self.svg_code)

    def begin(self):
        with self._lock:
            if self.is_loading:
                raise OperationInProgress()
            self.is_loading = True

    def end(self):
        with self._lock:
            self.is_loading = False

    def fail(self, error):
        self.last_error = str(error)
        self.last_error_kind = next(
            (kind for cls, kind in ERROR_KINDS.items() if isinstance(error, cls)),
            "generation_failed",
        )

    def clear_error(self):
        self.last_error = None
        self.last_error_kind = None

    def to_dict(self):
        return {
            "messages": [m.to_dict() for m in self.conversation.messages],
            "svg_code": self.svg_code,
            "is_loading": self.is_loading,
            "error": self.last_error,
            "error_kind": self.last_error_kind,
            "history": (
                [e.to_dict() for e in self.history.newest_first()]
                if self.history is not None else None
            ),
            "settings": {
                "credential_source": self.config.credential_source,
                "has_api_key": bool(self.credentials.get()),
                "persist_history": self.config.persist_history,
                "model": self.config.model,
            },
        }


def route_message(text):
    lowered = text.lower()
    if any(keyword in lowered for keyword in OPTIMIZE_KEYWORDS):
        return "optimize"
    return "generate"


def strip_fences(svg_code):
    return FENCE_RE.sub("", svg_code).strip()


def send_message(state, service, text, image=None):
    """Run one chat turn. Returns False when there was nothing to send."""
    if not text.strip() and not image:
        return False

    state.begin()
    try:
        state.clear_error()
        transcript = state.conversation.transcript()
        state.conversation.append("user", text, image=image)

        try:
            if image:
                state.conversation.append("ai", ANALYZING_IMAGE, placeholder=True)
                svg_code = service.generate_from_image(image, text)
            elif route_message(text) == "optimize":
                state.conversation.append("ai", OPTIMIZING_SVG, placeholder=True)
                svg_code = service.optimize_svg(state.svg_code, text)
            else:
                state.conversation.append("ai", GENERATING_SVG, placeholder=True)
                svg_code = service.generate_from_text(text, transcript, state.svg_code)

            svg_code = strip_fences(svg_code)
            if not svg_code:
                raise EmptyGenerationResult("The AI did not return valid SVG code.")
        except SvgChatError as e:
            logger.warning("Chat turn failed: %s", e)
            state.fail(e)
            state.conversation.append("ai", f"Sorry, something went wrong: {e}")
            return True
        except Exception as e:
            logger.exception("Chat turn crashed")
            state.fail(e)
            state.conversation.append("ai", f"Sorry, something went wrong: {e}")
            raise

        state.svg_code = svg_code
        if state.history is not None:
            state.history.save(svg_code)
        state.conversation.finish(DONE)
        return True
    finally:
        state.end()


def optimize_prompt(state, service, prompt):
    """Ask for a richer version of ``prompt``; returns it, or None on failure."""
    state.begin()
    try:
        try:
            optimized = service.optimize_prompt(prompt)
        except SvgChatError as e:
            logger.warning("Prompt optimization failed: %s", e)
            state.fail(e)
            state.conversation.append("ai", f"Sorry, couldn't optimize the prompt: {e}")
            return None
        state.conversation.append("user", f'Optimize this prompt: "{prompt}"')
        state.conversation.append("ai", f'Here\'s an optimized version: "{optimized}"')
        return optimized
    finally:
        state.end()


def edit_svg(state, code):
    state.svg_code = code


def save_version(state):
    entry = state.history.save(state.svg_code)
    state.conversation.append("ai", "Manually saved current SVG as a new version.")
    return entry


def revert_to_version(state, entry_id):
    entry = state.history.get(entry_id)
    state.svg_code = entry.code
    state.conversation.append("ai", "Reverted to a previous version.")
    return entry
