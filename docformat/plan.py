from __future__ import annotations
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence
import logging
import re

from docformat.changeops import ChangeItem, ChangePlan, ChangeType, make_change_item
from docformat.detect import (
    CAPTION_RE,
    detect_heading_level_fixes,
    find_caption_paragraphs,
    is_figure_prefix,
    split_by_class,
)
from docformat.ir import (
    ColorAnalysisItem,
    FormatMarkAnalysisItem,
    FormatSpecification,
    IssueCategory,
    ParagraphInfo,
)
from docformat.rules.load_rules import FormatPolicy

logger = logging.getLogger(__name__)

HEADING_NUMBER_RE = re.compile(r"^\s*\d+(\.\d+)*\s+")
MAX_HEADING_DEPTH = 6

# ChangeType -> issue categories whose findings justify pre-selecting the item
ISSUE_CATEGORIES_BY_TYPE: Dict[ChangeType, tuple] = {
    ChangeType.HEADING_LEVEL_FIX: ("hierarchy",),
    ChangeType.HEADING_STYLE: ("heading-consistency",),
    ChangeType.BODY_STYLE: ("body-consistency",),
    ChangeType.LIST_STYLE: ("list-consistency",),
    ChangeType.HEADING_NUMBERING: ("hierarchy",),
    ChangeType.COLOR_CORRECTION: ("color-highlight",),
    ChangeType.CAPTION_STYLE: ("caption-style",),
    ChangeType.TABLE_STYLE: ("table-style",),
    ChangeType.IMAGE_ALIGNMENT: (),
    ChangeType.HEADER_FOOTER_TEMPLATE: ("header-footer",),
    ChangeType.MIXED_TYPOGRAPHY: ("mixed-typography",),
    ChangeType.PUNCTUATION_SPACING: ("punctuation-spacing",),
    ChangeType.PAGINATION_CONTROL: ("pagination-control",),
    ChangeType.SPECIAL_CONTENT: ("special-content",),
    ChangeType.UNDERLINE_REMOVAL: ("underline",),
    ChangeType.ITALIC_REMOVAL: ("italic",),
    ChangeType.STRIKETHROUGH_REMOVAL: ("strikethrough",),
}

_MARK_REMOVALS = (
    ("underline", ChangeType.UNDERLINE_REMOVAL, "Smart underline removal"),
    ("italic", ChangeType.ITALIC_REMOVAL, "Smart italic removal"),
    ("strikethrough", ChangeType.STRIKETHROUGH_REMOVAL, "Smart strikethrough removal"),
)


def strip_heading_number(text: str) -> str:
    return HEADING_NUMBER_RE.sub("", text).strip()


def build_heading_numbering_map(headings: Sequence[ParagraphInfo]) -> List[Dict[str, object]]:
    counters = [0] * MAX_HEADING_DEPTH
    changes: List[Dict[str, object]] = []
    for h in headings:
        level = h.outline_level or 1
        if level < 1 or level > MAX_HEADING_DEPTH:
            continue
        counters[level - 1] += 1
        for i in range(level, MAX_HEADING_DEPTH):
            counters[i] = 0
        number = ".".join(str(n) for n in counters[:level] if n > 0)
        new_text = f"{number} {strip_heading_number(h.text)}".strip()
        if new_text != h.text.strip():
            changes.append({"index": h.index, "new_text": new_text})
    return changes


def build_caption_fix_map(captions: Sequence[ParagraphInfo]) -> List[Dict[str, object]]:
    figures = tables = 0
    changes: List[Dict[str, object]] = []
    for p in captions:
        text = p.text.strip()
        m = CAPTION_RE.match(text)
        if not m:
            continue
        prefix = m.group(1)
        rest = text[m.end():].strip()
        if is_figure_prefix(prefix):
            figures += 1
            counter = figures
        else:
            tables += 1
            counter = tables
        new_text = f"{prefix}{counter}：{rest}".strip()
        if new_text != text:
            changes.append({"index": p.index, "new_text": new_text})
    return changes


def _mark_removal_items(marks: Sequence[FormatMarkAnalysisItem]) -> List[ChangeItem]:
    items: List[ChangeItem] = []
    for format_type, change_type, title in _MARK_REMOVALS:
        of_type = [m for m in marks if m.format_type == format_type]
        to_clear = [m.paragraph_index for m in of_type if not m.should_keep]
        if not to_clear:
            continue
        kept = len(of_type) - len(to_clear)
        if kept:
            description = f"Clear {len(to_clear)} unjustified {format_type} mark(s), keeping {kept} justified use(s)"
        else:
            description = f"Clear {format_type} formatting from {len(to_clear)} paragraph(s)"
        items.append(make_change_item(
            change_type.value, title, description, change_type, to_clear,
            {"format_mark_items": of_type},
        ))
    return items


def build_change_plan(
    paragraphs: Sequence[ParagraphInfo],
    format_spec: Optional[FormatSpecification],
    color_analysis: Sequence[ColorAnalysisItem] = (),
    format_mark_analysis: Sequence[FormatMarkAnalysisItem] = (),
    policy: Optional[FormatPolicy] = None,
) -> ChangePlan:
    policy = policy or FormatPolicy()
    items: List[ChangeItem] = []
    has_spec = format_spec is not None and not format_spec.is_empty()
    headings, body, lists = split_by_class(paragraphs)
    all_indices = [p.index for p in paragraphs]

    fixes = detect_heading_level_fixes(headings)
    if fixes:
        items.append(make_change_item(
            "heading-level-fix", "Fix heading hierarchy", f"Fix {len(fixes)} skipped heading level(s)",
            ChangeType.HEADING_LEVEL_FIX, [f["index"] for f in fixes], {"level_changes": fixes},
        ))

    if has_spec:
        for level in (1, 2, 3):
            level_headings = [h for h in headings if h.outline_level == level]
            paragraph_type = f"heading{level}"
            if not level_headings or format_spec.get(paragraph_type) is None:
                continue
            items.append(make_change_item(
                f"heading-style-{level}", f"Unify level {level} heading style",
                f"Apply the level {level} heading format", ChangeType.HEADING_STYLE,
                [h.index for h in level_headings], {"paragraph_type": paragraph_type},
            ))
        if body and format_spec.body_text is not None:
            items.append(make_change_item(
                "body-style", "Unify body text style", "Apply body font and paragraph format",
                ChangeType.BODY_STYLE, [p.index for p in body], {"paragraph_type": "body_text"},
            ))
        if lists and format_spec.list_item is not None:
            items.append(make_change_item(
                "list-style", "Unify list style", "Apply list indentation and spacing",
                ChangeType.LIST_STYLE, [p.index for p in lists], {"paragraph_type": "list_item"},
            ))

    if headings:
        numbering = build_heading_numbering_map(headings)
        if numbering:
            items.append(make_change_item(
                "heading-numbering", "Number headings and refresh TOC",
                "Derive multi-level heading numbers and refresh the table of contents",
                ChangeType.HEADING_NUMBERING, [n["index"] for n in numbering],
                {"numbering_map": numbering}, requires_content_change=True,
            ))

    unreasonable = [c for c in color_analysis if not c.is_reasonable]
    if unreasonable:
        items.append(make_change_item(
            "color-correction", "Correct text colors", f"Fix {len(unreasonable)} unjustified color(s)",
            ChangeType.COLOR_CORRECTION, [c.paragraph_index for c in unreasonable],
            {"color_items": unreasonable},
        ))

    captions = find_caption_paragraphs(paragraphs)
    if captions:
        items.append(make_change_item(
            "caption-style", "Unify figure/table captions", "Unify caption style and numbering",
            ChangeType.CAPTION_STYLE, [c.index for c in captions],
            {"caption_fix_map": build_caption_fix_map(captions)}, requires_content_change=True,
        ))

    items.append(make_change_item(
        "table-style", "Unify table style", "Unify header row, borders, alignment and row height",
        ChangeType.TABLE_STYLE, [],
    ))
    items.append(make_change_item(
        "image-alignment", "Align images", "Center images and normalize their spacing",
        ChangeType.IMAGE_ALIGNMENT, [],
    ))
    items.append(make_change_item(
        "header-footer-template", "Apply header/footer template",
        "Unify headers and footers with first-page/odd-even support and fields",
        ChangeType.HEADER_FOOTER_TEMPLATE, [], {"template": replace(policy.header_footer)},
    ))
    items.append(make_change_item(
        "mixed-typography", "Normalize mixed CJK/Latin text", "Unify CJK/Latin spacing and font mapping",
        ChangeType.MIXED_TYPOGRAPHY, all_indices, {"typography": replace(policy.typography)},
        requires_content_change=True,
    ))
    items.append(make_change_item(
        "punctuation-spacing", "Normalize punctuation spacing",
        "Remove spaces after CJK punctuation and before Latin punctuation",
        ChangeType.PUNCTUATION_SPACING, all_indices,
        {"typography": replace(policy.typography, enforce_spacing=True, enforce_punctuation=True)},
        requires_content_change=True,
    ))
    items.append(make_change_item(
        "special-content", "Format special content", "Unify quote and code formatting",
        ChangeType.SPECIAL_CONTENT, all_indices,
    ))

    items.extend(_mark_removal_items(format_mark_analysis))

    items.append(make_change_item(
        "pagination-control", "Paragraph pagination control",
        "Keep headings with the next paragraph and remove page breaks and blank lines",
        ChangeType.PAGINATION_CONTROL, all_indices, requires_content_change=True,
    ))

    logger.info(f"Built change plan with {len(items)} items")
    return ChangePlan(items=items, format_spec=format_spec)


def default_selected_ids(
    plan: ChangePlan,
    issues: Iterable[IssueCategory],
    policy: Optional[FormatPolicy] = None,
) -> List[str]:
    """Pre-select only issue-driven, low-risk items."""
    policy = policy or FormatPolicy()
    with_findings = {c.id for c in issues if c.has_findings}
    selected: List[str] = []
    for item in plan.items:
        if item.requires_content_change or item.type in policy.high_impact_types:
            continue
        if any(cat in with_findings for cat in ISSUE_CATEGORIES_BY_TYPE.get(item.type, ())):
            selected.append(item.id)
    return selected
