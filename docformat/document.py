from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple
import time

from docformat.changeops import HeaderFooterTemplate, TypographyOptions
from docformat.ir import ColorAnalysisItem, FormatSpecification, ParagraphInfo, SectionHeaderFooter

ProgressCallback = Callable[[int, int, str], None]

# (paragraph index, paragraph class) pairs for format application
FormatTarget = Tuple[int, str]


@dataclass
class DocumentSnapshot:
    """Opaque serialized document, used only for undo."""
    ooxml: bytes
    created_at: float = field(default_factory=time.time)
    description: str = ""


class DocumentAccess(Protocol):
    """Everything the engine reads from or writes to a live document.

    Every mutation addresses the current index space; the engine remaps
    indices itself after structural edits.
    """

    def list_paragraphs(self) -> List[ParagraphInfo]: ...

    def paragraph_texts(self) -> List[str]: ...

    def read_section_headers_footers(self) -> List[SectionHeaderFooter]: ...

    def list_table_styles(self) -> List[Optional[str]]: ...

    def paragraph_indices_in_selection(self) -> List[int]: ...

    def paragraph_indices_in_current_section(self) -> List[int]: ...

    def apply_format_batch(
        self,
        spec: FormatSpecification,
        targets: Sequence[FormatTarget],
        batch_size: int = 20,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> None: ...

    def apply_heading_level_fix(self, changes: Sequence[Dict[str, int]]) -> None: ...

    def apply_heading_numbering(self, numbering_map: Sequence[Dict[str, object]]) -> None: ...

    def update_table_of_contents(self) -> None: ...

    def apply_table_formatting(self) -> None: ...

    def apply_caption_formatting(self, caption_fix_map: Sequence[Dict[str, object]]) -> None: ...

    def apply_image_alignment(self) -> None: ...

    def apply_header_footer_template(self, template: HeaderFooterTemplate) -> None: ...

    def apply_header_footer_text(self, header: Optional[str], footer: Optional[str]) -> None: ...

    def apply_color_corrections(
        self,
        items: Sequence[ColorAnalysisItem],
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> None: ...

    def apply_typography_normalization(self, indices: Sequence[int], options: TypographyOptions) -> None: ...

    def apply_pagination_control(self, indices: Sequence[int]) -> List[int]: ...

    def apply_special_content_formatting(self, indices: Sequence[int]) -> None: ...

    def remove_underline(self, indices: Sequence[int]) -> None: ...

    def remove_italic(self, indices: Sequence[int]) -> None: ...

    def remove_strikethrough(self, indices: Sequence[int]) -> None: ...

    def get_document_ooxml(self) -> DocumentSnapshot: ...

    def restore_document_ooxml(self, snapshot: DocumentSnapshot) -> None: ...

    def get_document_name(self) -> str: ...
