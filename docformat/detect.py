from __future__ import annotations
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import logging
import math
import re

from docformat.ir import IssueCategory, IssueItem, ParagraphInfo, SectionHeaderFooter
from docformat.rules.load_rules import FormatPolicy

logger = logging.getLogger(__name__)

CJK_RE = re.compile(r"[\u4e00-\u9fff]")
LATIN_RE = re.compile(r"[A-Za-z]")
CJK_LATIN_ADJACENT_RE = re.compile(r"[\u4e00-\u9fff][A-Za-z]|[A-Za-z][\u4e00-\u9fff]")
PUNCTUATION_SPACING_RE = re.compile(r"[，。？！；：、]\s+|\s+[,.!?;:]")
CAPTION_RE = re.compile(r"^(图|表|图表|Figure|Table)\s*([0-9]+)?[.：:]", re.IGNORECASE)
HEADING_SENTENCE_PUNCT_RE = re.compile(r"[。！？；]")
SPECIAL_CONTENT_RES = (re.compile(r"^>"), re.compile(r"```"), re.compile(r"`[^`]+`"))
BLACK_COLORS = {"#000000", "#000", "black", "000000", "auto"}

Signature = Tuple[object, ...]


def _r(value: Optional[float]) -> float:
    # halves round up, not to even
    return math.floor((value or 0) * 10 + 0.5) / 10


def paragraph_signature(p: ParagraphInfo) -> Signature:
    return (
        p.font.name or "",
        p.font.size or 0,
        1 if p.font.bold else 0,
        p.paragraph.alignment or "",
        _r(p.paragraph.first_line_indent),
        _r(p.paragraph.left_indent),
        _r(p.paragraph.line_spacing),
        p.paragraph.line_spacing_rule or "exactly",
        _r(p.paragraph.space_before),
        _r(p.paragraph.space_after),
    )


def dominant_paragraph(paragraphs: Sequence[ParagraphInfo]) -> Optional[ParagraphInfo]:
    """First member of the most frequent signature group; ties go to the group seen first."""
    if not paragraphs:
        return None
    counts: Dict[Signature, List] = {}
    for p in paragraphs:
        sig = paragraph_signature(p)
        if sig in counts:
            counts[sig][0] += 1
        else:
            counts[sig] = [1, p]
    best = None
    for entry in counts.values():  # dicts keep first-seen order
        if best is None or entry[0] > best[0]:
            best = entry
    return best[1]


def format_mismatch(p: ParagraphInfo, ref: ParagraphInfo, tolerance: float = 0.5) -> bool:
    def differs(a: Optional[float], b: Optional[float]) -> bool:
        return abs((a or 0) - (b or 0)) > tolerance

    return (
        (p.font.name or "") != (ref.font.name or "")
        or differs(p.font.size, ref.font.size)
        or bool(p.font.bold) != bool(ref.font.bold)
        or (p.paragraph.alignment or "") != (ref.paragraph.alignment or "")
        or differs(p.paragraph.space_before, ref.paragraph.space_before)
        or differs(p.paragraph.space_after, ref.paragraph.space_after)
        or differs(p.paragraph.line_spacing, ref.paragraph.line_spacing)
        or differs(p.paragraph.first_line_indent, ref.paragraph.first_line_indent)
    )


def split_by_class(paragraphs: Sequence[ParagraphInfo]) -> Tuple[List[ParagraphInfo], List[ParagraphInfo], List[ParagraphInfo]]:
    headings = [p for p in paragraphs if p.is_heading]
    body = [p for p in paragraphs if not p.is_heading and not p.is_list_item]
    lists = [p for p in paragraphs if not p.is_heading and p.is_list_item]
    return headings, body, lists


# ============================================================================
# Hierarchy
# ============================================================================

def detect_heading_level_fixes(headings: Sequence[ParagraphInfo]) -> List[Dict[str, int]]:
    fixes: List[Dict[str, int]] = []
    last_level = 0
    for h in headings:
        level = h.outline_level or 1
        if last_level == 0:
            last_level = level
            continue
        if level > last_level + 1:
            last_level += 1
            fixes.append({"index": h.index, "level": last_level})
        else:
            last_level = level
    return fixes


def detect_hierarchy_issues(headings: Sequence[ParagraphInfo], suspect_length: int = 60,
                            sample_length: int = 40) -> List[IssueItem]:
    issues: List[IssueItem] = []
    last_level = 0
    for h in headings:
        level = h.outline_level or 1
        if last_level > 0 and level > last_level + 1:
            issues.append(IssueItem(
                id=f"heading-skip-{h.index}",
                description=f"Heading level jumps from {last_level} to {level}",
                paragraph_indices=[h.index],
                severity="warning",
                sample=h.text[:sample_length],
            ))
        text = h.text or ""
        if len(text) > suspect_length or HEADING_SENTENCE_PUNCT_RE.search(text):
            issues.append(IssueItem(
                id=f"heading-suspect-{h.index}",
                description="Heading looks like body text",
                paragraph_indices=[h.index],
                severity="info",
                sample=text[:sample_length],
            ))
        last_level = level
    return issues


def detect_list_in_body_issues(paragraphs: Sequence[ParagraphInfo], sample_length: int = 40) -> List[IssueItem]:
    issues: List[IssueItem] = []
    for i, p in enumerate(paragraphs):
        if not p.is_list_item:
            continue
        prev_list = i > 0 and paragraphs[i - 1].is_list_item
        next_list = i + 1 < len(paragraphs) and paragraphs[i + 1].is_list_item
        if not prev_list and not next_list:
            issues.append(IssueItem(
                id=f"list-isolated-{p.index}",
                description="Isolated list item mixed into body text",
                paragraph_indices=[p.index],
                severity="info",
                sample=p.text[:sample_length],
            ))
    return issues


# ============================================================================
# Consistency
# ============================================================================

def _consistency_issue(group: Sequence[ParagraphInfo], issue_id: str, description: str,
                       tolerance: float, sample_length: int) -> List[IssueItem]:
    ref = dominant_paragraph(group)
    if ref is None:
        return []
    bad = [p for p in group if format_mismatch(p, ref, tolerance)]
    if not bad:
        return []
    return [IssueItem(
        id=issue_id,
        description=description,
        paragraph_indices=[p.index for p in bad],
        severity="warning",
        sample=(bad[0].text or "")[:sample_length],
    )]


def detect_heading_consistency_issues(headings: Sequence[ParagraphInfo], level: int,
                                      tolerance: float = 0.5, sample_length: int = 40) -> List[IssueItem]:
    group = [h for h in headings if h.outline_level == level]
    return _consistency_issue(group, f"heading-consistency-{level}",
                              f"Level {level} headings are formatted inconsistently", tolerance, sample_length)


def detect_body_consistency_issues(body: Sequence[ParagraphInfo], tolerance: float = 0.5,
                                   sample_length: int = 40) -> List[IssueItem]:
    return _consistency_issue(body, "body-consistency", "Body paragraphs are formatted inconsistently",
                              tolerance, sample_length)


def detect_list_consistency_issues(list_items: Sequence[ParagraphInfo], tolerance: float = 0.5,
                                   sample_length: int = 40) -> List[IssueItem]:
    return _consistency_issue(list_items, "list-consistency", "List indentation or style is inconsistent",
                              tolerance, sample_length)


# ============================================================================
# Text scans
# ============================================================================

def _aggregate(paragraphs: Sequence[ParagraphInfo], pred: Callable[[ParagraphInfo], bool],
               issue_id: str, description: str, severity: str = "info") -> List[IssueItem]:
    indices = [p.index for p in paragraphs if pred(p)]
    if not indices:
        return []
    return [IssueItem(id=issue_id, description=description, paragraph_indices=indices, severity=severity)]


def _has_color(p: ParagraphInfo) -> bool:
    color = (p.font.color or "").strip().lower()
    return bool(color) and color not in BLACK_COLORS


def detect_color_highlight_issues(paragraphs: Sequence[ParagraphInfo]) -> List[IssueItem]:
    return _aggregate(paragraphs, _has_color, "color-highlight",
                      "Non-black text colors or highlights", severity="warning")


def _mixed_typography(p: ParagraphInfo) -> bool:
    text = p.text or ""
    return bool(CJK_RE.search(text) and LATIN_RE.search(text) and CJK_LATIN_ADJACENT_RE.search(text))


def detect_mixed_typography_issues(paragraphs: Sequence[ParagraphInfo]) -> List[IssueItem]:
    return _aggregate(paragraphs, _mixed_typography, "mixed-typography",
                      "CJK and Latin text run together without spacing")


def detect_punctuation_issues(paragraphs: Sequence[ParagraphInfo]) -> List[IssueItem]:
    return _aggregate(paragraphs, lambda p: bool(PUNCTUATION_SPACING_RE.search(p.text or "")),
                      "punctuation-spacing", "Irregular spaces around punctuation")


def detect_pagination_issues(paragraphs: Sequence[ParagraphInfo]) -> List[IssueItem]:
    return _aggregate(paragraphs, lambda p: p.page_break_before or not (p.text or "").strip(),
                      "pagination-control", "Manual page breaks or blank paragraphs")


def _special_content(p: ParagraphInfo) -> bool:
    text = p.text or ""
    return any(rx.search(text) for rx in SPECIAL_CONTENT_RES)


def detect_special_content_issues(paragraphs: Sequence[ParagraphInfo]) -> List[IssueItem]:
    return _aggregate(paragraphs, _special_content, "special-content",
                      "Quotes or code are formatted inconsistently")


def detect_underline_issues(paragraphs: Sequence[ParagraphInfo]) -> List[IssueItem]:
    return _aggregate(paragraphs, lambda p: bool(p.font.underline) and p.font.underline.lower() != "none",
                      "underline-issues", "Paragraphs carry underline formatting")


def detect_italic_issues(paragraphs: Sequence[ParagraphInfo]) -> List[IssueItem]:
    return _aggregate(paragraphs, lambda p: bool(p.font.italic),
                      "italic-issues", "Paragraphs carry italic formatting")


def detect_strikethrough_issues(paragraphs: Sequence[ParagraphInfo]) -> List[IssueItem]:
    return _aggregate(paragraphs, lambda p: bool(p.font.strikethrough),
                      "strikethrough-issues", "Paragraphs carry strikethrough formatting")


def is_figure_prefix(prefix: str) -> bool:
    return prefix.startswith("图") or prefix.lower().startswith("figure")


def find_caption_paragraphs(paragraphs: Sequence[ParagraphInfo]) -> List[ParagraphInfo]:
    return [p for p in paragraphs if CAPTION_RE.match((p.text or "").strip())]


def detect_caption_issues(paragraphs: Sequence[ParagraphInfo]) -> List[IssueItem]:
    indices: List[int] = []
    figures = tables = 0
    for p in paragraphs:
        m = CAPTION_RE.match((p.text or "").strip())
        if not m:
            continue
        number = int(m.group(2)) if m.group(2) else None
        if is_figure_prefix(m.group(1)):
            figures += 1
            expected = figures
        else:
            tables += 1
            expected = tables
        if number != expected:
            indices.append(p.index)
    if not indices:
        return []
    return [IssueItem(id="caption-issues", description="Figure/table caption numbering or style is off",
                      paragraph_indices=indices, severity="warning")]


# ============================================================================
# Section / table metadata
# ============================================================================

def detect_header_footer_issues(sections: Sequence[SectionHeaderFooter]) -> List[IssueItem]:
    if len(sections) <= 1:
        return []
    first = sections[0]

    def key(s: SectionHeaderFooter):
        return (s.header.get("primary"), s.footer.get("primary"),
                s.header.get("first_page"), s.header.get("even_pages"))

    if all(key(s) == key(first) for s in sections[1:]):
        return []
    return [IssueItem(id="header-footer-diff", description="Header/footer templates differ between sections",
                      severity="warning")]


def detect_table_issues(table_styles: Sequence[Optional[str]]) -> List[IssueItem]:
    if not any(not s or s == "Normal Table" for s in table_styles):
        return []
    return [IssueItem(id="table-style", description="Tables lack a consistent style or borders",
                      severity="warning")]


# ============================================================================
# All detectors
# ============================================================================

CATEGORY_TITLES = {
    "hierarchy": "Paragraph hierarchy",
    "heading-consistency": "Heading consistency",
    "body-consistency": "Body consistency",
    "list-consistency": "List formatting",
    "color-highlight": "Color and highlight",
    "mixed-typography": "Mixed CJK/Latin typography",
    "punctuation-spacing": "Punctuation and spacing",
    "pagination-control": "Pagination control",
    "header-footer": "Header/footer differences",
    "table-style": "Table style",
    "caption-style": "Figure/table captions",
    "special-content": "Special content",
    "underline": "Underline",
    "italic": "Italic",
    "strikethrough": "Strikethrough",
}


def _guarded(category_id: str, fn: Callable[[], List[IssueItem]]) -> IssueCategory:
    try:
        items = fn()
    except Exception as e:
        logger.warning(f"Detector '{category_id}' failed, reporting no findings: {type(e).__name__}: {e}")
        items = []
    return IssueCategory(
        id=category_id,
        title=CATEGORY_TITLES[category_id],
        summary=f"{len(items)} item(s)",
        items=items,
    )


def detect_all(
    paragraphs: Sequence[ParagraphInfo],
    sections: Sequence[SectionHeaderFooter],
    table_styles: Sequence[Optional[str]],
    policy: Optional[FormatPolicy] = None,
) -> List[IssueCategory]:
    policy = policy or FormatPolicy()
    tol = policy.mismatch_tolerance
    n = policy.sample_length
    headings, body, lists = split_by_class(paragraphs)

    detectors: List[Tuple[str, Callable[[], List[IssueItem]]]] = [
        ("hierarchy", lambda: detect_hierarchy_issues(headings, policy.heading_suspect_length, n)
            + detect_list_in_body_issues(paragraphs, n)),
        ("heading-consistency", lambda: [i for lvl in (1, 2, 3)
                                         for i in detect_heading_consistency_issues(headings, lvl, tol, n)]),
        ("body-consistency", lambda: detect_body_consistency_issues(body, tol, n)),
        ("list-consistency", lambda: detect_list_consistency_issues(lists, tol, n)),
        ("color-highlight", lambda: detect_color_highlight_issues(paragraphs)),
        ("mixed-typography", lambda: detect_mixed_typography_issues(paragraphs)),
        ("punctuation-spacing", lambda: detect_punctuation_issues(paragraphs)),
        ("pagination-control", lambda: detect_pagination_issues(paragraphs)),
        ("header-footer", lambda: detect_header_footer_issues(sections)),
        ("table-style", lambda: detect_table_issues(table_styles)),
        ("caption-style", lambda: detect_caption_issues(paragraphs)),
        ("special-content", lambda: detect_special_content_issues(paragraphs)),
        ("underline", lambda: detect_underline_issues(paragraphs)),
        ("italic", lambda: detect_italic_issues(paragraphs)),
        ("strikethrough", lambda: detect_strikethrough_issues(paragraphs)),
    ]
    categories = [_guarded(cid, fn) for cid, fn in detectors]
    found = sum(len(c.items) for c in categories)
    logger.info(f"Detection complete: {found} findings across {len(categories)} categories")
    return categories
