from __future__ import annotations

from docformat.llm.client import ClaudeModelService, LLMConfig, ModelResponse, ModelService
from docformat.llm.analysis import (
    call_ai_for_format_analysis,
    call_ai_for_header_footer_analysis,
    invoke_with_schema_fallback,
)

__all__ = [
    "ClaudeModelService",
    "LLMConfig",
    "ModelResponse",
    "ModelService",
    "call_ai_for_format_analysis",
    "call_ai_for_header_footer_analysis",
    "invoke_with_schema_fallback",
]
