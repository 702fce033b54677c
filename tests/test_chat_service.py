import threading
from types import SimpleNamespace

import pytest
from google.genai import types

from sitesketch.annotation.region_extractor import encode_image
from sitesketch.core.chat_service import (
    SYSTEM_INSTRUCTION,
    ChatError,
    ChatService,
)


class FakeChat:
    def __init__(self, replies):
        self.replies = list(replies)
        self.sent = []
        self.gate = None

    def send_message(self, parts):
        self.sent.append(parts)
        if self.gate is not None:
            self.gate.wait(5)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(text=reply)


class FakeClient:
    def __init__(self, chat):
        self.created = []
        self.chats = SimpleNamespace(create=self._create)
        self._chat = chat

    def _create(self, model, config):
        self.created.append((model, config))
        return self._chat


@pytest.fixture
def chat():
    return FakeChat([])


@pytest.fixture
def client(chat):
    return FakeClient(chat)


@pytest.fixture
def service(qapp, client):
    keys = []

    def factory(api_key):
        keys.append(api_key)
        return client

    service = ChatService(client_factory=factory)
    service.keys = keys
    return service


def collect(signal):
    received = []
    signal.connect(received.append)
    return received


def test_start_session_requires_key(service):
    with pytest.raises(ChatError, match="API key"):
        service.start_session("", "gemini-2.5-pro")
    assert not service.has_session


def test_start_session_configures_model_and_instruction(service, client):
    service.start_session("secret", "gemini-2.5-pro")

    assert service.keys == ["secret"]
    model, config = client.created[0]
    assert model == "gemini-2.5-pro"
    assert config.system_instruction == SYSTEM_INSTRUCTION
    assert service.has_session


def test_start_session_wraps_sdk_errors(qapp):
    def factory(api_key):
        raise ValueError("bad key")

    service = ChatService(client_factory=factory)
    with pytest.raises(ChatError, match="bad key"):
        service.start_session("secret", "model")


def test_reply_with_html_is_announced(service, chat, qtbot):
    chat.replies.append("Done!\n```html\n<html>page</html>\n```")
    service.start_session("secret", "model")
    html = collect(service.html_generated)

    with qtbot.waitSignal(service.response_received, timeout=5000):
        assert service.send_message("Build a bakery site") is True

    assert html == ["<html>page</html>"]
    assert [m.role for m in service.history] == ["user", "model"]
    assert not service.is_busy


def test_clarifying_reply_has_no_html(service, chat, qtbot):
    chat.replies.append("Which colors do you prefer?")
    service.start_session("secret", "model")
    html = collect(service.html_generated)

    with qtbot.waitSignal(service.response_received, timeout=5000):
        service.send_message("Make it pretty")

    assert html == []


def test_image_part_precedes_text(service, chat, qtbot, make_image):
    chat.replies.append("ok")
    service.start_session("secret", "model")
    image = encode_image(make_image(40, 30))

    with qtbot.waitSignal(service.response_received, timeout=5000):
        service.send_message("Make this bigger", image)

    parts = chat.sent[0]
    assert len(parts) == 2
    assert isinstance(parts[0], types.Part)
    assert parts[0].inline_data.mime_type == "image/jpeg"
    assert parts[0].inline_data.data == image.to_bytes()
    assert parts[1].text == "Make this bigger"
    assert service.history[0].image is image


def test_blank_or_sessionless_messages_are_not_sent(service, chat):
    assert service.send_message("hello") is False
    service.start_session("secret", "model")
    assert service.send_message("   ") is False
    assert chat.sent == []


def test_one_request_at_a_time(service, chat, qtbot):
    chat.gate = threading.Event()
    chat.replies.append("first")
    service.start_session("secret", "model")
    busy = collect(service.busy_changed)

    assert service.send_message("one") is True
    assert service.is_busy
    assert service.send_message("two") is False

    with qtbot.waitSignal(service.response_received, timeout=5000):
        chat.gate.set()

    assert busy == [True, False]
    assert len(chat.sent) == 1


def test_errors_become_transcript_entries(service, chat, qtbot):
    chat.replies.append(RuntimeError("quota exceeded"))
    service.start_session("secret", "model")

    with qtbot.waitSignal(service.request_failed, timeout=5000) as blocker:
        service.send_message("hello")

    assert blocker.args == ["quota exceeded"]
    last = service.history[-1]
    assert last.is_error
    assert last.text == "Sorry, I encountered an error: quota exceeded"
    assert not service.is_busy


def test_new_session_clears_history(service, chat, qtbot):
    chat.replies.append("hi")
    service.start_session("secret", "model")
    with qtbot.waitSignal(service.response_received, timeout=5000):
        service.send_message("hello")

    service.start_session("secret", "model")
    assert service.history == []


def test_reply_from_replaced_session_is_dropped(service, chat, qtbot):
    chat.gate = threading.Event()
    chat.replies.append("old reply\n```html\n<p>old</p>\n```")
    service.start_session("k1", "model")
    assert service.send_message("hello") is True

    service.start_session("k2", "model")
    assert not service.is_busy
    html = collect(service.html_generated)
    replies = collect(service.response_received)

    chat.gate.set()
    service._worker.join(5)
    qtbot.wait(50)

    assert service.history == []
    assert html == []
    assert replies == []
    assert not service.is_busy


def test_new_session_is_usable_while_old_reply_is_pending(service, chat, qtbot):
    chat.gate = threading.Event()
    chat.replies.extend(["old", "new"])
    service.start_session("k1", "model")
    service.send_message("first")
    old_worker = service._worker

    service.start_session("k2", "model")
    chat.gate.set()
    old_worker.join(5)

    with qtbot.waitSignal(service.response_received, timeout=5000) as blocker:
        assert service.send_message("second") is True

    assert blocker.args == ["new"]
    assert [m.text for m in service.history] == ["second", "new"]
