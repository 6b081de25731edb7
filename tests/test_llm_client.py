import threading
import time
from types import SimpleNamespace

import pytest

from docformat.cancel import CancelToken
from docformat.errors import CancellationError
from docformat.llm.client import ClaudeModelService, LLMConfig
from docformat.llm.prompts import FORMAT_ANALYSIS_TOOL_NAME


class FakeMessages:
    def __init__(self, reply=None, release=None):
        self.reply = reply
        self.release = release
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.release is not None:
            self.release.wait(5)
        return self.reply


def _service(messages):
    service = ClaudeModelService(LLMConfig(api_key="test-key", poll_interval=0.01))
    service._client = SimpleNamespace(messages=messages)
    return service


def test_tool_use_reply_is_returned_as_json_text():
    reply = SimpleNamespace(content=[
        SimpleNamespace(type="text", text="ignored"),
        SimpleNamespace(type="tool_use", input={"formatSpec": {}}),
    ])
    messages = FakeMessages(reply)
    response = _service(messages).invoke("prompt", "system", structured_schema={"type": "object"})

    assert response.content == '{"formatSpec": {}}'
    sent = messages.calls[0]
    assert sent["tools"][0]["input_schema"] == {"type": "object"}
    assert sent["tool_choice"] == {"type": "tool", "name": FORMAT_ANALYSIS_TOOL_NAME}


def test_text_reply_without_schema():
    reply = SimpleNamespace(content=[SimpleNamespace(type="text", text="  {\"shouldUnify\": false} ")])
    messages = FakeMessages(reply)
    response = _service(messages).invoke("prompt", "system")

    assert response.content == '{"shouldUnify": false}'
    assert "tools" not in messages.calls[0]
    assert messages.calls[0]["system"] == "system"


def test_cancel_abandons_in_flight_request():
    release = threading.Event()
    messages = FakeMessages(SimpleNamespace(content=[]), release=release)
    token = CancelToken()
    timer = threading.Timer(0.05, token.cancel)
    timer.start()
    start = time.time()
    try:
        with pytest.raises(CancellationError):
            _service(messages).invoke("prompt", "system", cancel_token=token)
        assert time.time() - start < 2
    finally:
        release.set()
        timer.cancel()


def test_already_cancelled_token_sends_nothing():
    messages = FakeMessages(SimpleNamespace(content=[]))
    token = CancelToken()
    token.cancel()
    with pytest.raises(CancellationError):
        _service(messages).invoke("prompt", "system", cancel_token=token)
    assert messages.calls == []
