from __future__ import annotations
from typing import Any, Dict, List, Optional
import json
import math
import re

from docformat.errors import ParseError
from docformat.ir import (
    ColorAnalysisItem,
    FORMAT_MARK_TYPES,
    FormatAnalysisResult,
    FormatMarkAnalysisItem,
    FormatSpecification,
    HeaderFooterUnifyPlan,
)
from docformat.rules.load_rules import FormatPolicy
from docformat.sanitize import sanitize_format_spec

FORMAT_PARSE_ERROR = "cannot parse AI format specification"
HEADER_FOOTER_PARSE_REASON = "cannot parse AI header/footer plan"

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


def _parse_candidate(candidate: str) -> Optional[Dict[str, Any]]:
    text = candidate.strip()
    if not text:
        return None
    try:
        # NaN and Infinity tokens read as null so the field is dropped
        parsed = json.loads(text, parse_constant=lambda _: None)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def extract_balanced_json_object(content: str) -> Optional[str]:
    """First balanced top-level {...}; braces inside string literals don't count."""
    start = content.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(content)):
            ch = content[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return content[start:i + 1]
        start = content.find("{", start + 1)
    return None


def parse_json_object_from_content(content: str) -> Optional[Dict[str, Any]]:
    direct = _parse_candidate(content)
    if direct is not None:
        return direct
    for block in _FENCE_RE.findall(content):
        parsed = _parse_candidate(block)
        if parsed is not None:
            return parsed
    balanced = extract_balanced_json_object(content)
    if balanced is not None:
        return _parse_candidate(balanced)
    return None


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [s.strip() for s in value if isinstance(s, str) and s.strip()]


def _paragraph_index(record: Dict[str, Any]) -> Optional[int]:
    raw = record.get("paragraphIndex", record.get("paragraph_index"))
    if isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value < 0 or value != int(value):
        return None
    return int(value)


def _str(record: Dict[str, Any], key: str, default: str = "") -> str:
    value = record.get(key)
    return value if isinstance(value, str) else default


def _color_items(value: Any) -> List[ColorAnalysisItem]:
    out: List[ColorAnalysisItem] = []
    if not isinstance(value, list):
        return out
    for record in value:
        if not isinstance(record, dict):
            continue
        idx = _paragraph_index(record)
        if idx is None:
            continue
        out.append(ColorAnalysisItem(
            paragraph_index=idx,
            text=_str(record, "text"),
            current_color=_str(record, "currentColor"),
            is_reasonable=record.get("isReasonable") is True,
            reason=_str(record, "reason"),
            suggested_color=_str(record, "suggestedColor", "#000000"),
        ))
    return out


def _format_mark_items(value: Any) -> List[FormatMarkAnalysisItem]:
    out: List[FormatMarkAnalysisItem] = []
    if not isinstance(value, list):
        return out
    for record in value:
        if not isinstance(record, dict):
            continue
        idx = _paragraph_index(record)
        format_type = record.get("formatType")
        if idx is None or format_type not in FORMAT_MARK_TYPES:
            continue
        out.append(FormatMarkAnalysisItem(
            paragraph_index=idx,
            format_type=format_type,
            text=_str(record, "text"),
            is_reasonable=record.get("isReasonable") is True,
            reason=_str(record, "reason"),
            should_keep=record.get("shouldKeep") is True,
        ))
    return out


def parse_format_analysis_result(content: str, policy: Optional[FormatPolicy] = None) -> FormatAnalysisResult:
    result = parse_json_object_from_content(content)
    if result is None:
        raise ParseError(FORMAT_PARSE_ERROR)
    spec = FormatSpecification.from_dict(result.get("formatSpec"))
    return FormatAnalysisResult(
        format_spec=sanitize_format_spec(spec, policy),
        inconsistencies=_string_list(result.get("inconsistencies")),
        suggestions=_string_list(result.get("suggestions")),
        color_analysis=_color_items(result.get("colorAnalysis")),
        format_mark_analysis=_format_mark_items(result.get("formatMarkAnalysis")),
    )


def parse_header_footer_plan(content: str) -> HeaderFooterUnifyPlan:
    result = parse_json_object_from_content(content)
    if result is None:
        return HeaderFooterUnifyPlan(should_unify=False, reason=HEADER_FOOTER_PARSE_REASON)
    header = result.get("headerText")
    footer = result.get("footerText")
    return HeaderFooterUnifyPlan(
        should_unify=result.get("shouldUnify") is True,
        reason=_str(result, "reason"),
        header_text=header if isinstance(header, str) else None,
        footer_text=footer if isinstance(footer, str) else None,
    )


_MD_RULES = [
    (re.compile(r"```[a-zA-Z]*\n?([\s\S]*?)```"), r"\1"),
    (re.compile(r"`([^`]+)`"), r"\1"),
    (re.compile(r"!\[([^\]]*)\]\([^)]*\)"), r"\1"),
    (re.compile(r"\[([^\]]+)\]\([^)]*\)"), r"\1"),
    (re.compile(r"^\s{0,3}#{1,6}\s+", re.MULTILINE), ""),
    (re.compile(r"^\s{0,3}>\s?", re.MULTILINE), ""),
    (re.compile(r"^\s*[-*+]\s+", re.MULTILINE), ""),
    (re.compile(r"(\*\*|__)(.+?)\1"), r"\2"),
    (re.compile(r"(?<!\w)(\*|_)(?!\s)(.+?)(?<!\s)\1(?!\w)"), r"\2"),
    (re.compile(r"~~(.+?)~~"), r"\1"),
]


def strip_markdown(text: str) -> str:
    """Reduce model-written markdown to plain text for headers and footers."""
    out = text
    for pattern, repl in _MD_RULES:
        out = pattern.sub(repl, out)
    return re.sub(r"[ \t]{2,}", " ", out).strip()
