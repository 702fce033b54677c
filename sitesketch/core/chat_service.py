"""
Chat service for SiteSketch.

Holds the Gemini chat session and the visible transcript. Every user turn
may carry one annotated screenshot; the model answers with conversational
text plus a complete HTML document, which is extracted and announced via
html_generated.

The SDK call blocks, so it runs on a daemon thread. Its result is handed
back to the Qt thread through a queued signal before any state changes.
"""

import threading
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from google import genai
from google.genai import types
from PySide6.QtCore import QObject, Qt, Signal, Slot

from sitesketch.annotation.region_extractor import EncodedImage
from sitesketch.core.html_extractor import extract_html_content
from sitesketch.services.logging_service import get_logger


SYSTEM_INSTRUCTION = """
You are an expert web developer who builds modern, responsive single-page
websites using only HTML and Tailwind CSS.

With each user message, produce a new, complete version of the HTML document
that incorporates the request. Never answer with fragments.

The user may attach an image: a screenshot of the current version of the
site with their drawings on it (for example a circled element). Treat the
marked region as the primary context for the request.

Requirements:
- A valid HTML5 document that includes <script src="https://cdn.tailwindcss.com"></script>
- Tailwind classes only; no inline styles, <style> tags or other JavaScript
- Placeholder images from https://picsum.photos/seed/{keyword}/{width}/{height}

Reply with a short conversational sentence followed by the full document in
a single ```html fenced block. If a request is ambiguous, ask a clarifying
question instead.
""".strip()


class ChatError(Exception):
    """Raised when a chat session cannot be started."""


@dataclass
class ChatMessage:
    """One transcript entry."""
    role: str  # "user" or "model"
    text: str
    image: Optional[EncodedImage] = None
    is_error: bool = False


class ChatService(QObject):
    """
    Conversation with the model that generates the site.

    Signals:
        message_added: Emitted with each ChatMessage appended to the history.
        response_received: Emitted with the raw reply text.
        html_generated: Emitted with the extracted HTML when a reply has one.
        request_failed: Emitted with an error message when a turn fails.
        busy_changed: Emitted with True/False around each request.
    """

    message_added = Signal(object)
    response_received = Signal(str)
    html_generated = Signal(str)
    request_failed = Signal(str)
    busy_changed = Signal(bool)

    # Worker thread -> Qt thread: (session generation, reply text, error)
    _reply_ready = Signal(int, object, object)

    def __init__(
        self,
        client_factory: Optional[Callable[..., Any]] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        """
        Args:
            client_factory: Builds the SDK client from api_key=...;
                defaults to genai.Client.
            parent: Optional parent QObject.
        """
        super().__init__(parent)
        self._logger = get_logger(__name__)
        self._client_factory = client_factory or genai.Client

        self._chat: Optional[Any] = None
        self._model: Optional[str] = None
        self._history: List[ChatMessage] = []
        self._busy = False
        self._worker: Optional[threading.Thread] = None

        # Bumped by every start_session; replies from older sessions are dropped
        self._generation = 0

        self._reply_ready.connect(self._on_reply_ready, Qt.ConnectionType.QueuedConnection)

    # ─── Properties ───────────────────────────────────────────────────────

    @property
    def history(self) -> List[ChatMessage]:
        return list(self._history)

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def has_session(self) -> bool:
        return self._chat is not None

    # ─── Session ──────────────────────────────────────────────────────────

    def start_session(self, api_key: str, model: str) -> None:
        """
        Create a fresh chat session and clear the transcript.

        A request still in flight is abandoned: its reply is dropped when
        it arrives.

        Raises:
            ChatError: If no key is given or the SDK rejects the setup.
        """
        if not api_key:
            raise ChatError("Gemini API key not provided.")

        self._generation += 1
        self._set_busy(False)

        try:
            client = self._client_factory(api_key=api_key)
            self._chat = client.chats.create(
                model=model,
                config=types.GenerateContentConfig(
                    system_instruction=SYSTEM_INSTRUCTION,
                ),
            )
        except Exception as e:
            self._chat = None
            raise ChatError(f"Failed to start chat session: {e}") from e

        self._model = model
        self._history.clear()
        self._logger.info(f"Chat session started with model {model}")

    # ─── Messaging ────────────────────────────────────────────────────────

    def send_message(self, text: str, image: Optional[EncodedImage] = None) -> bool:
        """
        Send one user turn.

        Args:
            text: The instruction; blank text is not sent.
            image: Optional annotated screenshot sent before the text.

        Returns:
            True if the request was started.
        """
        text = text.strip()
        if not text or self._busy or self._chat is None:
            return False

        message = ChatMessage(role="user", text=text, image=image)
        self._history.append(message)
        self.message_added.emit(message)

        parts = []
        if image is not None:
            parts.append(types.Part.from_bytes(data=image.to_bytes(), mime_type=image.mime_type))
        parts.append(types.Part.from_text(text=text))

        self._set_busy(True)
        self._logger.info(
            f"Sending message ({len(text)} chars"
            f"{', with annotation' if image is not None else ''})"
        )

        self._worker = threading.Thread(
            target=self._request,
            args=(self._generation, self._chat, parts),
            daemon=True,
        )
        self._worker.start()
        return True

    def _request(self, generation: int, chat: Any, parts: list) -> None:
        """Blocking SDK call; runs on the worker thread."""
        try:
            response = chat.send_message(parts)
            self._reply_ready.emit(generation, response.text or "", None)
        except Exception as e:
            self._reply_ready.emit(generation, None, e)

    @Slot(int, object, object)
    def _on_reply_ready(
        self,
        generation: int,
        text: Optional[str],
        error: Optional[Exception],
    ) -> None:
        if generation != self._generation:
            self._logger.info("Discarding reply from a previous chat session")
            return

        self._set_busy(False)

        if error is not None:
            message = str(error) or "An unknown error occurred."
            self._logger.error(f"Chat request failed: {message}")
            reply = ChatMessage(
                role="model",
                text=f"Sorry, I encountered an error: {message}",
                is_error=True,
            )
            self._history.append(reply)
            self.message_added.emit(reply)
            self.request_failed.emit(message)
            return

        reply = ChatMessage(role="model", text=text)
        self._history.append(reply)
        self.message_added.emit(reply)
        self.response_received.emit(text)

        html = extract_html_content(text)
        if html:
            self._logger.info(f"Received HTML document ({len(html)} chars)")
            self.html_generated.emit(html)
        else:
            self._logger.debug("Reply contained no HTML block")

    def _set_busy(self, busy: bool) -> None:
        if busy != self._busy:
            self._busy = busy
            self.busy_changed.emit(busy)
