from __future__ import annotations
from dataclasses import dataclass, field, asdict, replace
from enum import Enum
from typing import Any, Dict, List, Optional
import re

from docformat.ir import FormatSpecification


def _snake_keys(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {re.sub(r"(?<!^)(?=[A-Z])", "_", k).lower(): v for k, v in raw.items()}


class ChangeType(str, Enum):
    HEADING_LEVEL_FIX = "heading-level-fix"
    HEADING_STYLE = "heading-style"
    BODY_STYLE = "body-style"
    LIST_STYLE = "list-style"
    HEADING_NUMBERING = "heading-numbering"
    TABLE_STYLE = "table-style"
    CAPTION_STYLE = "caption-style"
    IMAGE_ALIGNMENT = "image-alignment"
    HEADER_FOOTER_TEMPLATE = "header-footer-template"
    COLOR_CORRECTION = "color-correction"
    MIXED_TYPOGRAPHY = "mixed-typography"
    PUNCTUATION_SPACING = "punctuation-spacing"
    PAGINATION_CONTROL = "pagination-control"
    SPECIAL_CONTENT = "special-content"
    UNDERLINE_REMOVAL = "underline-removal"
    ITALIC_REMOVAL = "italic-removal"
    STRIKETHROUGH_REMOVAL = "strikethrough-removal"


# Types that may delete paragraphs and shift every later index
STRUCTURAL_TYPES = frozenset({ChangeType.PAGINATION_CONTROL})
TYPOGRAPHY_TYPES = frozenset({ChangeType.MIXED_TYPOGRAPHY, ChangeType.PUNCTUATION_SPACING})


@dataclass
class TypographyOptions:
    chinese_font: str = "宋体"
    english_font: str = "Times New Roman"
    enforce_spacing: bool = True
    enforce_punctuation: bool = True
    apply_font_mapping: bool = False
    font_application_mode: str = "defaultText"  # defaultText|paragraph
    skip_sensitive_content: bool = True

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "TypographyOptions":
        base = cls()
        if not raw:
            return base
        known = {k: v for k, v in _snake_keys(raw).items() if k in base.__dataclass_fields__}
        return replace(base, **known)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class HeaderFooterTemplate:
    primary_header: str = "{documentName}"
    primary_footer: str = "第 {pageNumber} 页"
    first_page_header: Optional[str] = None
    first_page_footer: Optional[str] = None
    even_page_header: Optional[str] = None
    even_page_footer: Optional[str] = None
    use_different_first_page: bool = False
    use_different_odd_even: bool = False
    include_page_number: bool = True
    include_date: bool = False
    include_document_name: bool = True

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "HeaderFooterTemplate":
        base = cls()
        if not raw:
            return base
        known = {k: v for k, v in _snake_keys(raw).items() if k in base.__dataclass_fields__}
        return replace(base, **known)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ChangeItem:
    id: str                      # stable per detection source; "a+b" for merged items
    title: str
    description: str
    type: ChangeType
    paragraph_indices: List[int] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)
    requires_content_change: bool = False  # execution may alter text, not just formatting

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "type": self.type.value,
            "paragraph_indices": list(self.paragraph_indices),
            "requires_content_change": self.requires_content_change,
        }


@dataclass
class ChangePlan:
    items: List[ChangeItem] = field(default_factory=list)
    format_spec: Optional[FormatSpecification] = None

    def get(self, item_id: str) -> Optional[ChangeItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def ids(self) -> List[str]:
        return [item.id for item in self.items]


def make_change_item(
    id: str,
    title: str,
    description: str,
    type: ChangeType,
    paragraph_indices: List[int],
    data: Optional[Dict[str, Any]] = None,
    requires_content_change: bool = False,
) -> ChangeItem:
    return ChangeItem(
        id=id,
        title=title,
        description=description,
        type=type,
        paragraph_indices=list(paragraph_indices),
        data=dict(data or {}),
        requires_content_change=requires_content_change,
    )
