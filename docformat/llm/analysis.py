from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence
import json
import logging
import re

from docformat.cancel import CancelToken, check_cancelled
from docformat.errors import CancellationError, SchemaUnsupportedError
from docformat.ir import FormatAnalysisResult, HeaderFooterUnifyPlan, ParagraphInfo, SectionHeaderFooter
from docformat.llm.client import ModelService
from docformat.llm.parse import parse_format_analysis_result, parse_header_footer_plan
from docformat.llm.prompts import (
    FORMAT_ANALYSIS_PROMPT_TEMPLATE,
    FORMAT_ANALYSIS_SCHEMA,
    FORMAT_ANALYSIS_SYSTEM_PROMPT,
    HEADER_FOOTER_PROMPT_TEMPLATE,
    HEADER_FOOTER_SYSTEM_PROMPT,
)
from docformat.rules.load_rules import FormatPolicy

logger = logging.getLogger(__name__)

SCHEMA_HINT_RE = re.compile(r"response[_\s-]?format|response[_\s-]?schema|json[_\s-]?schema|schema", re.IGNORECASE)
STATUS_IN_MESSAGE_RE = re.compile(r"\bstatus(?:[_\s-]?code)?\s*[:=]?\s*(\d{3})\b", re.IGNORECASE)
SCHEMA_REJECT_STATUSES = {400, 404, 415, 422}


# ============================================================================
# Schema fallback
# ============================================================================

def error_status(error: BaseException) -> Optional[int]:
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(error, "status", None)
    if isinstance(status, int):
        return status
    m = STATUS_IN_MESSAGE_RE.search(str(error))
    return int(m.group(1)) if m else None


def is_schema_unsupported(error: BaseException) -> bool:
    if isinstance(error, CancellationError):
        return False
    if isinstance(error, SchemaUnsupportedError):
        return True
    if not SCHEMA_HINT_RE.search(str(error)):
        return False
    status = error_status(error)
    return status is None or status in SCHEMA_REJECT_STATUSES


@dataclass
class InvocationResult:
    content: Optional[str] = None
    error: Optional[BaseException] = None
    schema_unsupported: bool = False
    used_fallback: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and self.content is not None


def try_structured(service: ModelService, prompt: str, system_prompt: str, schema: Dict[str, Any],
                   cancel_token: Optional[CancelToken] = None) -> InvocationResult:
    try:
        response = service.invoke(prompt, system_prompt, cancel_token=cancel_token, structured_schema=schema)
    except CancellationError:
        raise
    except Exception as e:
        if is_schema_unsupported(e):
            err = e if isinstance(e, SchemaUnsupportedError) else SchemaUnsupportedError(str(e), error_status(e))
            return InvocationResult(error=err, schema_unsupported=True)
        return InvocationResult(error=e)
    return InvocationResult(content=response.content)


def invoke_with_schema_fallback(service: ModelService, prompt: str, system_prompt: str, schema: Dict[str, Any],
                                cancel_token: Optional[CancelToken] = None) -> InvocationResult:
    """Structured call first; exactly one unstructured retry when the schema is rejected.

    Cancellation propagates immediately. A non-schema failure of the
    structured call, or any failure of the retry, is raised.
    """
    first = try_structured(service, prompt, system_prompt, schema, cancel_token)
    if first.ok:
        return first
    if not first.schema_unsupported:
        raise first.error
    logger.warning(f"Structured output rejected ({first.error}); retrying without schema")
    check_cancelled(cancel_token)
    response = service.invoke(prompt, system_prompt, cancel_token=cancel_token)
    return InvocationResult(content=response.content, used_fallback=True)


# ============================================================================
# Format sampling
# ============================================================================

def _sample(p: ParagraphInfo, text_limit: int) -> Dict[str, Any]:
    text = p.text or ""
    if len(text) > text_limit:
        text = text[:text_limit] + "..."
    return {
        "index": p.index,
        "text": text,
        "styleId": p.style_id,
        "outlineLevel": p.outline_level,
        "font": p.font.to_dict(),
        "paragraph": p.paragraph.to_dict(),
    }


def build_format_samples(paragraphs: Sequence[ParagraphInfo], per_class: int = 5,
                         text_limit: int = 50) -> Dict[str, List[Dict[str, Any]]]:
    """Headings (per level), body and list samples for the model prompt. Blank paragraphs are skipped."""
    headings: List[Dict[str, Any]] = []
    per_level: Dict[int, int] = {}
    body: List[Dict[str, Any]] = []
    lists: List[Dict[str, Any]] = []
    for p in paragraphs:
        if not (p.text or "").strip():
            continue
        if p.is_heading:
            level = p.outline_level
            if per_level.get(level, 0) < per_class:
                per_level[level] = per_level.get(level, 0) + 1
                headings.append(_sample(p, text_limit))
        elif p.is_list_item:
            if len(lists) < per_class:
                lists.append(_sample(p, text_limit))
        elif len(body) < per_class:
            body.append(_sample(p, text_limit))
    return {"headings": headings, "bodyText": body, "lists": lists}


def compress_samples(samples: Dict[str, List[Dict[str, Any]]], max_samples: int) -> Dict[str, List[Dict[str, Any]]]:
    return {k: list(v[:max_samples]) for k, v in samples.items()}


# ============================================================================
# AI calls
# ============================================================================

def call_ai_for_format_analysis(
    service: ModelService,
    samples: Dict[str, List[Dict[str, Any]]],
    cancel_token: Optional[CancelToken] = None,
    policy: Optional[FormatPolicy] = None,
) -> FormatAnalysisResult:
    policy = policy or FormatPolicy()
    compressed = compress_samples(samples, policy.max_compressed_samples)
    prompt = FORMAT_ANALYSIS_PROMPT_TEMPLATE.format(samples=json.dumps(compressed, ensure_ascii=False, indent=2))
    result = invoke_with_schema_fallback(service, prompt, FORMAT_ANALYSIS_SYSTEM_PROMPT,
                                         FORMAT_ANALYSIS_SCHEMA, cancel_token)
    parsed = parse_format_analysis_result(result.content, policy)
    logger.info(f"AI format analysis: {len(parsed.format_spec.present_classes())} classes, "
                f"{len(parsed.color_analysis)} color findings, {len(parsed.format_mark_analysis)} mark findings")
    return parsed


def call_ai_for_header_footer_analysis(
    service: ModelService,
    sections: Sequence[SectionHeaderFooter],
    cancel_token: Optional[CancelToken] = None,
) -> HeaderFooterUnifyPlan:
    payload = json.dumps([s.to_dict() for s in sections], ensure_ascii=False, indent=2)
    prompt = HEADER_FOOTER_PROMPT_TEMPLATE.format(sections=payload)
    response = service.invoke(prompt, HEADER_FOOTER_SYSTEM_PROMPT, cancel_token=cancel_token)
    return parse_header_footer_plan(response.content)
