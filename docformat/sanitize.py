from __future__ import annotations
from dataclasses import replace
from typing import Optional, Tuple
import math

from docformat.ir import ClassFormat, FormatSpecification, LINE_SPACING_RULES
from docformat.rules.load_rules import FormatPolicy

HEADING_CLASSES = ("heading1", "heading2", "heading3")
LINE_SPACING_PRIORITY = ("body_text", "list_item", "heading1", "heading2", "heading3")
MAX_BODY_INDENT = 2.0  # characters


def _clamp(value: Optional[float], low: float, high: float) -> Optional[float]:
    if value is None:
        return None
    return max(low, min(value, high))


def _positive(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and value > 0


def _non_negative(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and value >= 0


def infer_line_spacing_rule(value: float, rule: Optional[str]) -> str:
    if rule in LINE_SPACING_RULES:
        return rule
    # values above 6 can only be points
    return "exactly" if value > 6 else "multiple"


def unified_line_spacing(spec: FormatSpecification, policy: FormatPolicy) -> Tuple[float, str]:
    for cls_name in LINE_SPACING_PRIORITY:
        fmt = spec.get(cls_name)
        if fmt is None:
            continue
        value = fmt.paragraph.line_spacing
        if _positive(value):
            return value, infer_line_spacing_rule(value, fmt.paragraph.line_spacing_rule)
    return policy.default_line_spacing, policy.default_line_spacing_rule


def sanitize_format_spec(spec: FormatSpecification, policy: Optional[FormatPolicy] = None) -> FormatSpecification:
    """Normalize an AI-derived spec.

    Headings get zero indentation, body and list indentation is clamped to
    [0, 2] characters, a single line spacing is applied to every present
    class, and paragraph spacing is fixed (headings keep non-negative AI
    values or fall back to the policy table, body and list are 0/0).
    Absent classes stay absent.
    """
    policy = policy or FormatPolicy()
    line_spacing, line_rule = unified_line_spacing(spec, policy)
    out = FormatSpecification()

    for cls_name in spec.present_classes():
        fmt: ClassFormat = spec.get(cls_name)
        para = replace(fmt.paragraph)
        if cls_name in HEADING_CLASSES:
            para.first_line_indent = 0.0
            para.left_indent = 0.0
            default_before, default_after = policy.heading_spacing.get(cls_name, (0.0, 0.0))
            if not _non_negative(para.space_before):
                para.space_before = default_before
            if not _non_negative(para.space_after):
                para.space_after = default_after
        else:
            para.first_line_indent = _clamp(para.first_line_indent, 0.0, MAX_BODY_INDENT)
            para.left_indent = _clamp(para.left_indent, 0.0, MAX_BODY_INDENT)
            para.space_before = 0.0
            para.space_after = 0.0
        para.line_spacing = line_spacing
        para.line_spacing_rule = line_rule
        setattr(out, cls_name, ClassFormat(font=replace(fmt.font), paragraph=para))
    return out
