from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence
import json

import pytest

from docformat.changeops import ChangeItem, ChangePlan
from docformat.document import DocumentSnapshot
from docformat.ir import FormatAnalysisSession, FormatScope, ParagraphInfo, SectionHeaderFooter
from docformat.llm.client import ModelResponse
from docformat.typography import normalize_typography_text


class FakeDocument:
    """In-memory DocumentAccess that records every primitive call.

    Paragraph text lives in ``texts``; snapshots serialize it so undo can be
    observed. ``fail_on`` names a primitive that raises, ``pagination_deletes``
    lists the indices pagination control removes.
    """

    def __init__(self, texts: Sequence[str], infos: Optional[List[ParagraphInfo]] = None,
                 sections: Optional[List[SectionHeaderFooter]] = None,
                 table_styles: Optional[List[Optional[str]]] = None):
        self.texts = list(texts)
        self.infos = infos
        self.sections = sections if sections is not None else [
            SectionHeaderFooter(0, header={"primary": "H"}, footer={"primary": "F"})
        ]
        self.table_styles = table_styles or []
        self.selection: List[int] = []
        self.current_section: List[int] = []
        self.calls: List[tuple] = []
        self.fail_on: Optional[str] = None
        self.pagination_deletes: List[int] = []
        self.snapshots_taken = 0

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if self.fail_on == name:
            raise RuntimeError(f"{name} exploded")

    def call_names(self) -> List[str]:
        return [c[0] for c in self.calls]

    def args_of(self, name: str) -> tuple:
        for call in self.calls:
            if call[0] == name:
                return call[1]
        raise AssertionError(f"{name} was not called")

    # reads
    def list_paragraphs(self) -> List[ParagraphInfo]:
        if self.infos is not None:
            return list(self.infos)
        return [ParagraphInfo(index=i, text=t) for i, t in enumerate(self.texts)]

    def paragraph_texts(self) -> List[str]:
        return list(self.texts)

    def read_section_headers_footers(self) -> List[SectionHeaderFooter]:
        return list(self.sections)

    def list_table_styles(self):
        return list(self.table_styles)

    def paragraph_indices_in_selection(self) -> List[int]:
        return list(self.selection)

    def paragraph_indices_in_current_section(self) -> List[int]:
        return list(self.current_section)

    # mutations
    def apply_format_batch(self, spec, targets, batch_size=20, on_progress=None):
        self._record("apply_format_batch", list(targets), batch_size)
        if on_progress:
            on_progress(len(targets), len(targets))

    def apply_heading_level_fix(self, changes):
        self._record("apply_heading_level_fix", list(changes))

    def apply_heading_numbering(self, numbering_map):
        self._record("apply_heading_numbering", list(numbering_map))
        for entry in numbering_map:
            self.texts[entry["index"]] = entry["new_text"]

    def update_table_of_contents(self):
        self._record("update_table_of_contents")

    def apply_table_formatting(self):
        self._record("apply_table_formatting")

    def apply_caption_formatting(self, caption_fix_map):
        self._record("apply_caption_formatting", list(caption_fix_map))

    def apply_image_alignment(self):
        self._record("apply_image_alignment")

    def apply_header_footer_template(self, template):
        self._record("apply_header_footer_template", template)

    def apply_header_footer_text(self, header, footer):
        self._record("apply_header_footer_text", header, footer)

    def apply_color_corrections(self, items, on_progress=None):
        self._record("apply_color_corrections", list(items))

    def apply_typography_normalization(self, indices, options):
        self._record("apply_typography_normalization", list(indices), options)
        for i in indices:
            if 0 <= i < len(self.texts):
                self.texts[i], _ = normalize_typography_text(self.texts[i], options)

    def apply_pagination_control(self, indices):
        self._record("apply_pagination_control", list(indices))
        deleted = sorted(i for i in set(self.pagination_deletes) if i in set(indices))
        for i in reversed(deleted):
            del self.texts[i]
        return deleted

    def apply_special_content_formatting(self, indices):
        self._record("apply_special_content_formatting", list(indices))

    def remove_underline(self, indices):
        self._record("remove_underline", list(indices))

    def remove_italic(self, indices):
        self._record("remove_italic", list(indices))

    def remove_strikethrough(self, indices):
        self._record("remove_strikethrough", list(indices))

    # snapshots
    def get_document_ooxml(self) -> DocumentSnapshot:
        self.snapshots_taken += 1
        return DocumentSnapshot(ooxml=json.dumps(self.texts, ensure_ascii=False).encode("utf-8"))

    def restore_document_ooxml(self, snapshot: DocumentSnapshot) -> None:
        self.texts = json.loads(snapshot.ooxml.decode("utf-8"))

    def get_document_name(self) -> str:
        return "Fake"


class ScriptedModelService:
    """ModelService returning (or raising) scripted outcomes in order."""

    def __init__(self, *outcomes: Any):
        self.outcomes = list(outcomes)
        self.calls: List[Dict[str, Any]] = []

    def invoke(self, prompt, system_prompt, *, cancel_token=None, structured_schema=None):
        self.calls.append({"prompt": prompt, "system_prompt": system_prompt,
                           "structured_schema": structured_schema})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return ModelResponse(content=outcome)


def make_session(items: List[ChangeItem], scope: Optional[FormatScope] = None, **kwargs) -> FormatAnalysisSession:
    values = dict(
        scope=scope or FormatScope(),
        paragraph_count=0,
        section_count=1,
        issues=[],
        format_spec=None,
        color_analysis=[],
        format_mark_analysis=[],
        suggestions=[],
        inconsistencies=[],
        change_plan=ChangePlan(items=list(items)),
    )
    values.update(kwargs)
    return FormatAnalysisSession(**values)


@pytest.fixture
def fake_doc():
    return FakeDocument(["中文English", "第二段", "", "第四段"])
