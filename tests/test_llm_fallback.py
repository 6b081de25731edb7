import pytest

from conftest import ScriptedModelService
from docformat.errors import CancellationError, ParseError, SchemaUnsupportedError
from docformat.ir import ParagraphInfo
from docformat.llm.analysis import (
    build_format_samples,
    call_ai_for_format_analysis,
    error_status,
    invoke_with_schema_fallback,
    is_schema_unsupported,
)

SCHEMA = {"type": "object"}


class APIError(Exception):
    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


def test_schema_rejection_falls_back_once_without_schema():
    service = ScriptedModelService(APIError("response_format json_schema is not supported", 400), '{"a": 1}')
    result = invoke_with_schema_fallback(service, "p", "s", SCHEMA)
    assert result.used_fallback is True
    assert result.content == '{"a": 1}'
    assert len(service.calls) == 2
    assert service.calls[0]["structured_schema"] == SCHEMA
    assert service.calls[1]["structured_schema"] is None


def test_structured_success_makes_one_call():
    service = ScriptedModelService('{"a": 1}')
    result = invoke_with_schema_fallback(service, "p", "s", SCHEMA)
    assert result.used_fallback is False
    assert len(service.calls) == 1


def test_rate_limit_is_not_a_schema_problem():
    service = ScriptedModelService(APIError("rate limited", 429), "{}")
    with pytest.raises(APIError):
        invoke_with_schema_fallback(service, "p", "s", SCHEMA)
    assert len(service.calls) == 1


def test_schema_hint_with_server_error_is_raised():
    service = ScriptedModelService(APIError("schema validation service unavailable", 500), "{}")
    with pytest.raises(APIError):
        invoke_with_schema_fallback(service, "p", "s", SCHEMA)


def test_fallback_failure_is_raised():
    service = ScriptedModelService(SchemaUnsupportedError("no schemas"), RuntimeError("down"))
    with pytest.raises(RuntimeError, match="down"):
        invoke_with_schema_fallback(service, "p", "s", SCHEMA)
    assert len(service.calls) == 2


def test_cancellation_is_never_retried():
    service = ScriptedModelService(CancellationError(), "{}")
    with pytest.raises(CancellationError):
        invoke_with_schema_fallback(service, "p", "s", SCHEMA)
    assert len(service.calls) == 1
    assert not is_schema_unsupported(CancellationError())


def test_error_status_sources():
    assert error_status(APIError("x", 422)) == 422
    assert error_status(RuntimeError("Error code: status 404 - schema not found")) == 404
    assert error_status(RuntimeError("no code here")) is None
    assert is_schema_unsupported(RuntimeError("json_schema unsupported"))


def test_format_analysis_reads_fenced_reply():
    reply = '```json\n{"formatSpec": {"heading1": {"font": {"size": 16, "bold": true}}}}\n```'
    service = ScriptedModelService(reply)
    result = call_ai_for_format_analysis(service, {"headings": [], "bodyText": [], "lists": []})
    assert result.format_spec.heading1.font.size == 16.0
    assert result.format_spec.heading1.font.bold is True
    assert result.format_spec.body_text is None


def test_format_analysis_without_json_raises_parse_error():
    service = ScriptedModelService("Sorry, no analysis today.")
    with pytest.raises(ParseError):
        call_ai_for_format_analysis(service, {"headings": [], "bodyText": [], "lists": []})


def test_format_samples_limits_and_truncation():
    paragraphs = [ParagraphInfo(index=0, text="   ")]
    paragraphs += [ParagraphInfo(index=i, text=f"标题{i}", outline_level=1) for i in range(1, 4)]
    paragraphs += [ParagraphInfo(index=4, text="子标题", outline_level=2)]
    paragraphs += [ParagraphInfo(index=5, text="x" * 80)]
    paragraphs += [ParagraphInfo(index=6, text="项", is_list_item=True)]

    samples = build_format_samples(paragraphs, per_class=2, text_limit=10)
    assert [s["index"] for s in samples["headings"]] == [1, 2, 4]
    assert samples["bodyText"][0]["text"] == "x" * 10 + "..."
    assert [s["index"] for s in samples["lists"]] == [6]
