from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING
import math

if TYPE_CHECKING:
    from docformat.changeops import ChangePlan

LINE_SPACING_RULES = ("multiple", "exactly", "atLeast")
PARAGRAPH_CLASSES = ("heading1", "heading2", "heading3", "body_text", "list_item")
FORMAT_MARK_TYPES = ("underline", "italic", "strikethrough")

# JSON (model / UI) keys <-> dataclass attributes
_CLASS_KEYS = {
    "heading1": "heading1",
    "heading2": "heading2",
    "heading3": "heading3",
    "bodyText": "body_text",
    "listItem": "list_item",
}
_FONT_KEYS = {
    "name": "name",
    "size": "size",
    "bold": "bold",
    "italic": "italic",
    "underline": "underline",
    "strikeThrough": "strikethrough",
    "strikethrough": "strikethrough",
    "color": "color",
    "highlightColor": "highlight_color",
}
_PARAGRAPH_KEYS = {
    "alignment": "alignment",
    "firstLineIndent": "first_line_indent",
    "leftIndent": "left_indent",
    "rightIndent": "right_indent",
    "lineSpacing": "line_spacing",
    "lineSpacingRule": "line_spacing_rule",
    "spaceBefore": "space_before",
    "spaceAfter": "space_after",
}


def _pick(raw: Dict[str, Any], keys: Dict[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for json_key, attr in keys.items():
        if json_key in raw and raw[json_key] is not None:
            out[attr] = raw[json_key]
        elif attr in raw and raw[attr] is not None:
            out[attr] = raw[attr]
    return out


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


@dataclass
class FontFormat:
    name: Optional[str] = None
    size: Optional[float] = None
    bold: Optional[bool] = None
    italic: Optional[bool] = None
    underline: Optional[str] = None      # "none" | "single" | "double" | ...
    strikethrough: Optional[bool] = None
    color: Optional[str] = None          # "#RRGGBB"
    highlight_color: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Any) -> "FontFormat":
        if not isinstance(raw, dict):
            return cls()
        vals = _pick(raw, _FONT_KEYS)
        if "size" in vals:
            vals["size"] = _as_number(vals["size"])
        for key in ("bold", "italic", "strikethrough"):
            if key in vals and not isinstance(vals[key], bool):
                vals.pop(key)
        for key in ("name", "underline", "color", "highlight_color"):
            if key in vals and not isinstance(vals[key], str):
                vals.pop(key)
        return cls(**vals)

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class ParagraphFormat:
    alignment: Optional[str] = None          # left|centered|right|justified
    first_line_indent: Optional[float] = None  # characters
    left_indent: Optional[float] = None        # characters
    right_indent: Optional[float] = None       # characters
    line_spacing: Optional[float] = None
    line_spacing_rule: Optional[str] = None    # multiple|exactly|atLeast
    space_before: Optional[float] = None       # points
    space_after: Optional[float] = None        # points

    @classmethod
    def from_dict(cls, raw: Any) -> "ParagraphFormat":
        if not isinstance(raw, dict):
            return cls()
        vals = _pick(raw, _PARAGRAPH_KEYS)
        for key in ("first_line_indent", "left_indent", "right_indent",
                    "line_spacing", "space_before", "space_after"):
            if key in vals:
                vals[key] = _as_number(vals[key])
        if "alignment" in vals and not isinstance(vals["alignment"], str):
            vals.pop("alignment")
        if vals.get("line_spacing_rule") not in LINE_SPACING_RULES:
            vals.pop("line_spacing_rule", None)
        return cls(**vals)

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class ClassFormat:
    font: FontFormat = field(default_factory=FontFormat)
    paragraph: ParagraphFormat = field(default_factory=ParagraphFormat)


@dataclass
class FormatSpecification:
    """Target font/paragraph attributes per paragraph class. Absent classes are left untouched."""
    heading1: Optional[ClassFormat] = None
    heading2: Optional[ClassFormat] = None
    heading3: Optional[ClassFormat] = None
    body_text: Optional[ClassFormat] = None
    list_item: Optional[ClassFormat] = None

    def get(self, paragraph_class: str) -> Optional[ClassFormat]:
        if paragraph_class not in PARAGRAPH_CLASSES:
            paragraph_class = _CLASS_KEYS.get(paragraph_class, paragraph_class)
        return getattr(self, paragraph_class, None)

    def present_classes(self) -> List[str]:
        return [c for c in PARAGRAPH_CLASSES if getattr(self, c) is not None]

    def is_empty(self) -> bool:
        return not self.present_classes()

    @classmethod
    def from_dict(cls, raw: Any) -> "FormatSpecification":
        spec = cls()
        if not isinstance(raw, dict):
            return spec
        for json_key, attr in _CLASS_KEYS.items():
            entry = raw.get(json_key, raw.get(attr))
            if not isinstance(entry, dict):
                continue
            setattr(spec, attr, ClassFormat(
                font=FontFormat.from_dict(entry.get("font")),
                paragraph=ParagraphFormat.from_dict(entry.get("paragraph")),
            ))
        return spec

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for json_key, attr in _CLASS_KEYS.items():
            fmt = getattr(self, attr)
            if fmt is None:
                continue
            out[json_key] = {"font": fmt.font.to_dict(), "paragraph": fmt.paragraph.to_dict()}
        return out


@dataclass
class ParagraphInfo:
    index: int                 # position at read time
    text: str
    style_id: str = ""
    outline_level: Optional[int] = None  # heading depth, None for non-headings
    is_list_item: bool = False
    list_level: Optional[int] = None
    page_break_before: bool = False
    font: FontFormat = field(default_factory=FontFormat)
    paragraph: ParagraphFormat = field(default_factory=ParagraphFormat)

    @property
    def is_heading(self) -> bool:
        return bool(self.outline_level and self.outline_level > 0)

    @property
    def paragraph_class(self) -> str:
        if self.is_heading:
            return f"heading{self.outline_level}" if self.outline_level <= 3 else "heading3"
        return "list_item" if self.is_list_item else "body_text"


@dataclass
class SectionHeaderFooter:
    section_index: int
    header: Dict[str, Optional[str]] = field(default_factory=dict)  # primary|first_page|even_pages
    footer: Dict[str, Optional[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class IssueItem:
    id: str
    description: str
    paragraph_indices: List[int] = field(default_factory=list)
    severity: str = "info"  # info|warning|error
    sample: Optional[str] = None


@dataclass
class IssueCategory:
    id: str
    title: str
    summary: str
    items: List[IssueItem] = field(default_factory=list)

    @property
    def has_findings(self) -> bool:
        return len(self.items) > 0


@dataclass
class ColorAnalysisItem:
    paragraph_index: int
    text: str = ""
    current_color: str = ""
    is_reasonable: bool = False
    reason: str = ""
    suggested_color: str = "#000000"


@dataclass
class FormatMarkAnalysisItem:
    paragraph_index: int
    format_type: str  # underline|italic|strikethrough
    text: str = ""
    is_reasonable: bool = False
    reason: str = ""
    should_keep: bool = False


@dataclass
class FormatAnalysisResult:
    format_spec: FormatSpecification
    inconsistencies: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    color_analysis: List[ColorAnalysisItem] = field(default_factory=list)
    format_mark_analysis: List[FormatMarkAnalysisItem] = field(default_factory=list)


@dataclass
class HeaderFooterUnifyPlan:
    should_unify: bool
    reason: str = ""
    header_text: Optional[str] = None
    footer_text: Optional[str] = None


SCOPE_TYPES = ("selection", "currentSection", "document", "headings", "bodyText", "paragraphs")


@dataclass(frozen=True)
class FormatScope:
    type: str = "document"
    paragraph_indices: Tuple[int, ...] = ()

    def __post_init__(self):
        if self.type not in SCOPE_TYPES:
            raise ValueError(f"Unknown scope type: {self.type}")

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "paragraph_indices": list(self.paragraph_indices)}


@dataclass
class FormatAnalysisSession:
    scope: FormatScope
    paragraph_count: int
    section_count: int
    issues: List[IssueCategory]
    format_spec: Optional[FormatSpecification]
    color_analysis: List[ColorAnalysisItem]
    format_mark_analysis: List[FormatMarkAnalysisItem]
    suggestions: List[str]
    inconsistencies: List[str]
    change_plan: "ChangePlan"
    default_selected_ids: List[str] = field(default_factory=list)

    def issue_category(self, category_id: str) -> Optional[IssueCategory]:
        for cat in self.issues:
            if cat.id == category_id:
                return cat
        return None
