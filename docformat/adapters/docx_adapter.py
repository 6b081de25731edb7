"""
python-docx implementation of the document access layer.

Paragraph indices address ``Document.paragraphs`` (body paragraphs, tables
excluded), so every read and every mutation shares one index space.
"""
from __future__ import annotations
from datetime import date
from io import BytesIO
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Sequence
import logging
import re

from docx import Document
from docx.enum.table import WD_ROW_HEIGHT_RULE
from docx.enum.text import WD_ALIGN_PARAGRAPH, WD_LINE_SPACING
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Length, Pt, RGBColor

from docformat.changeops import HeaderFooterTemplate, TypographyOptions
from docformat.document import DocumentSnapshot, FormatTarget
from docformat.ir import (
    ColorAnalysisItem,
    FontFormat,
    FormatSpecification,
    ParagraphFormat,
    ParagraphInfo,
    SectionHeaderFooter,
)
from docformat.typography import has_sensitive_content, normalize_typography_text

logger = logging.getLogger(__name__)

HEADING_STYLE_RE = re.compile(r"^(?:heading|标题)\s*(\d)$", re.IGNORECASE)
HEX_COLOR_RE = re.compile(r"^#?([0-9A-Fa-f]{6})$")
PAGE_TOKEN = "{pageNumber}"
DEFAULT_FONT_SIZE = 10.5  # pt, used to convert twips indents to characters

_ALIGN_NAMES = {
    WD_ALIGN_PARAGRAPH.LEFT: "left",
    WD_ALIGN_PARAGRAPH.CENTER: "centered",
    WD_ALIGN_PARAGRAPH.RIGHT: "right",
    WD_ALIGN_PARAGRAPH.JUSTIFY: "justified",
    WD_ALIGN_PARAGRAPH.DISTRIBUTE: "justified",
}
_ALIGN_VALUES = {
    "left": WD_ALIGN_PARAGRAPH.LEFT,
    "centered": WD_ALIGN_PARAGRAPH.CENTER,
    "center": WD_ALIGN_PARAGRAPH.CENTER,
    "right": WD_ALIGN_PARAGRAPH.RIGHT,
    "justified": WD_ALIGN_PARAGRAPH.JUSTIFY,
    "justify": WD_ALIGN_PARAGRAPH.JUSTIFY,
}

# (key in SectionHeaderFooter, header attribute, footer attribute)
_HF_KINDS = (
    ("primary", "header", "footer"),
    ("first_page", "first_page_header", "first_page_footer"),
    ("even_pages", "even_page_header", "even_page_footer"),
)


# ============================================================================
# Low-level helpers
# ============================================================================

def _style_chain(style) -> Iterator:
    seen = 0
    while style is not None and seen < 16:
        yield style
        style = style.base_style
        seen += 1


def _first_set(*values):
    for v in values:
        if v is not None:
            return v
    return None


def _has_drawing(paragraph) -> bool:
    return bool(paragraph._element.findall('.//' + qn('w:drawing')))


def _has_section_break(paragraph) -> bool:
    pPr = paragraph._p.pPr
    return pPr is not None and pPr.find(qn('w:sectPr')) is not None


def _outline_level(paragraph) -> Optional[int]:
    pPr = paragraph._p.pPr
    if pPr is not None:
        lvl = pPr.find(qn('w:outlineLvl'))
        if lvl is not None:
            val = int(lvl.get(qn('w:val'), "9"))
            return val + 1 if val < 9 else None
    for style in _style_chain(paragraph.style):
        m = HEADING_STYLE_RE.match((style.name or "").strip())
        if m:
            return int(m.group(1))
        style_pPr = style.element.pPr
        if style_pPr is not None:
            lvl = style_pPr.find(qn('w:outlineLvl'))
            if lvl is not None:
                val = int(lvl.get(qn('w:val'), "9"))
                return val + 1 if val < 9 else None
    return None


def _num_pr(paragraph):
    pPr = paragraph._p.pPr
    if pPr is not None and pPr.find(qn('w:numPr')) is not None:
        return pPr.find(qn('w:numPr'))
    for style in _style_chain(paragraph.style):
        style_pPr = style.element.pPr
        if style_pPr is not None and style_pPr.find(qn('w:numPr')) is not None:
            return style_pPr.find(qn('w:numPr'))
    return None


def _list_info(paragraph):
    num_pr = _num_pr(paragraph)
    if num_pr is not None:
        ilvl = num_pr.find(qn('w:ilvl'))
        level = int(ilvl.get(qn('w:val'), "0")) if ilvl is not None else 0
        return True, level
    style_name = paragraph.style.name if paragraph.style is not None else ""
    if style_name.lower().startswith("list"):
        return True, 0
    return False, None


def _underline_name(value) -> Optional[str]:
    if value is None:
        return None
    if value is True:
        return "single"
    if value is False:
        return "none"
    return getattr(value, "name", str(value)).lower()


def _run_font_name(run) -> Optional[str]:
    rPr = run._element.rPr
    if rPr is not None and rPr.rFonts is not None:
        east_asia = rPr.rFonts.get(qn('w:eastAsia'))
        if east_asia:
            return east_asia
    return run.font.name


def _style_font(paragraph, attr: str):
    for style in _style_chain(paragraph.style):
        value = getattr(style.font, attr)
        if value is not None:
            return value
    return None


def _style_paragraph_format(paragraph, attr: str):
    for style in _style_chain(paragraph.style):
        value = getattr(style.paragraph_format, attr)
        if value is not None:
            return value
    return None


def _read_font(paragraph) -> FontFormat:
    runs = [r for r in paragraph.runs if r.text.strip()] or paragraph.runs
    run = runs[0] if runs else None
    font = run.font if run is not None else None

    size = _first_set(font.size if font else None, _style_font(paragraph, "size"))
    color = None
    highlight = None
    if font is not None:
        rgb = font.color.rgb if font.color.type is not None else None
        if rgb is not None:
            color = f"#{rgb}"
        if font.highlight_color is not None:
            highlight = getattr(font.highlight_color, "name", str(font.highlight_color)).lower()

    return FontFormat(
        name=_first_set(_run_font_name(run) if run else None, _style_font(paragraph, "name")),
        size=size.pt if size is not None else None,
        bold=_first_set(font.bold if font else None, _style_font(paragraph, "bold")),
        italic=_first_set(font.italic if font else None, _style_font(paragraph, "italic")),
        underline=_underline_name(_first_set(font.underline if font else None, _style_font(paragraph, "underline"))),
        strikethrough=_first_set(font.strike if font else None, _style_font(paragraph, "strike")),
        color=color,
        highlight_color=highlight,
    )


def _chars_attr(ind, name: str) -> Optional[float]:
    if ind is None:
        return None
    raw = ind.get(qn(name))
    return int(raw) / 100.0 if raw is not None else None


def _to_chars(length: Optional[Length], font_size: Optional[float]) -> Optional[float]:
    if length is None:
        return None
    return round(length.pt / (font_size or DEFAULT_FONT_SIZE), 2)


def _read_paragraph_format(paragraph, font_size: Optional[float]) -> ParagraphFormat:
    pf = paragraph.paragraph_format
    pPr = paragraph._p.pPr
    ind = pPr.find(qn('w:ind')) if pPr is not None else None

    first_line = _chars_attr(ind, 'w:firstLineChars')
    hanging = _chars_attr(ind, 'w:hangingChars')
    if first_line is None and hanging is not None:
        first_line = -hanging
    if first_line is None:
        first_line = _to_chars(_first_set(pf.first_line_indent, _style_paragraph_format(paragraph, "first_line_indent")),
                               font_size)
    left = _chars_attr(ind, 'w:leftChars')
    if left is None:
        left = _to_chars(_first_set(pf.left_indent, _style_paragraph_format(paragraph, "left_indent")), font_size)
    right = _chars_attr(ind, 'w:rightChars')
    if right is None:
        right = _to_chars(_first_set(pf.right_indent, _style_paragraph_format(paragraph, "right_indent")), font_size)

    line_spacing = _first_set(pf.line_spacing, _style_paragraph_format(paragraph, "line_spacing"))
    line_rule = _first_set(pf.line_spacing_rule, _style_paragraph_format(paragraph, "line_spacing_rule"))
    spacing_value: Optional[float] = None
    spacing_rule: Optional[str] = None
    if isinstance(line_spacing, Length):
        spacing_value = round(line_spacing.pt, 2)
        spacing_rule = "atLeast" if line_rule == WD_LINE_SPACING.AT_LEAST else "exactly"
    elif line_spacing is not None:
        spacing_value = float(line_spacing)
        spacing_rule = "multiple"

    alignment = _first_set(pf.alignment, _style_paragraph_format(paragraph, "alignment"))
    before = _first_set(pf.space_before, _style_paragraph_format(paragraph, "space_before"))
    after = _first_set(pf.space_after, _style_paragraph_format(paragraph, "space_after"))
    return ParagraphFormat(
        alignment=_ALIGN_NAMES.get(alignment) if alignment is not None else None,
        first_line_indent=first_line,
        left_indent=left,
        right_indent=right,
        line_spacing=spacing_value,
        line_spacing_rule=spacing_rule,
        space_before=before.pt if before is not None else None,
        space_after=after.pt if after is not None else None,
    )


def _set_east_asia_font(run, name: str) -> None:
    rPr = run._element.get_or_add_rPr()
    rFonts = rPr.get_or_add_rFonts()
    rFonts.set(qn('w:eastAsia'), name)


def _set_paragraph_text(paragraph, text: str) -> None:
    """Replace the visible text, keeping the first text run's formatting and any drawings."""
    runs = paragraph.runs
    keep = next((r for r in runs if not _has_drawing(r)), None)
    for child in list(paragraph._p):
        if child.tag not in (qn('w:r'), qn('w:hyperlink')):
            continue
        if keep is not None and child is keep._element:
            continue
        if child.findall('.//' + qn('w:drawing')):
            continue
        paragraph._p.remove(child)
    if keep is None:
        paragraph.add_run(text)
    else:
        keep.text = text


def _add_page_field(paragraph) -> None:
    run = paragraph.add_run()
    fld_char_begin = OxmlElement('w:fldChar')
    fld_char_begin.set(qn('w:fldCharType'), 'begin')

    instr_text = OxmlElement('w:instrText')
    instr_text.set(qn('xml:space'), 'preserve')
    instr_text.text = ' PAGE '

    fld_char_separate = OxmlElement('w:fldChar')
    fld_char_separate.set(qn('w:fldCharType'), 'separate')

    run._r.append(fld_char_begin)
    run._r.append(instr_text)
    run._r.append(fld_char_separate)

    paragraph.add_run("1")

    fld_char_end = OxmlElement('w:fldChar')
    fld_char_end.set(qn('w:fldCharType'), 'end')
    run2 = paragraph.add_run()
    run2._r.append(fld_char_end)


def _header_footer_text(hf) -> str:
    return "\n".join(p.text for p in hf.paragraphs)


def _fill_header_footer(hf, text: str) -> None:
    """Clear a header/footer and write ``text``; ``{pageNumber}`` becomes a PAGE field."""
    hf.is_linked_to_previous = False
    for table in hf.tables:
        table._tbl.getparent().remove(table._tbl)
    paragraphs = hf.paragraphs
    target = paragraphs[0] if paragraphs else hf.add_paragraph()
    for extra in paragraphs[1:]:
        extra._p.getparent().remove(extra._p)
    for child in list(target._p):
        if child.tag != qn('w:pPr'):
            target._p.remove(child)

    parts = text.split(PAGE_TOKEN)
    for pos, part in enumerate(parts):
        if part:
            target.add_run(part)
        if pos < len(parts) - 1:
            _add_page_field(target)


def render_header_footer_text(text: Optional[str], template: HeaderFooterTemplate,
                              document_name: str, today: Optional[str] = None) -> str:
    """Expand a header/footer template line. ``{pageNumber}`` is left in place for the field."""
    final = text or ""
    if template.include_document_name and "{documentName}" not in final:
        final = f"{{documentName}} {final}".strip()
    if template.include_date and "{date}" not in final:
        final = f"{final} {{date}}".strip()
    if template.include_page_number:
        if PAGE_TOKEN not in final:
            final = f"{final} {PAGE_TOKEN}".strip()
    else:
        final = final.replace(PAGE_TOKEN, "")
    final = re.sub(r"\s{2,}", " ", final).strip()
    return (final
            .replace("{documentName}", document_name)
            .replace("{date}", today or date.today().isoformat()))


def _rgb(value: str) -> RGBColor:
    m = HEX_COLOR_RE.match((value or "").strip())
    return RGBColor.from_string(m.group(1).upper() if m else "000000")


# ============================================================================
# Document access
# ============================================================================

class DocxDocument:
    """A .docx file opened with python-docx.

    ``selection`` stands in for the editor selection and ``cursor_index`` for
    the caret paragraph; both are plain paragraph indices.
    """

    def __init__(self, source=None, selection: Optional[Sequence[int]] = None,
                 cursor_index: int = 0, name: Optional[str] = None):
        if source is None or isinstance(source, (str, Path)):
            self.doc = Document(str(source) if source is not None else None)
            self.path = str(source) if source is not None else None
        else:
            self.doc = source
            self.path = None
        self.selection: List[int] = list(selection or [])
        self.cursor_index = cursor_index
        self._name = name

    def save(self, path: str) -> None:
        self.doc.save(path)
        logger.info(f"Saved document to {path}")

    @property
    def paragraphs(self):
        return self.doc.paragraphs

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_paragraphs(self) -> List[ParagraphInfo]:
        out: List[ParagraphInfo] = []
        for idx, p in enumerate(self.doc.paragraphs):
            is_list, list_level = _list_info(p)
            font = _read_font(p)
            page_break = p.paragraph_format.page_break_before
            out.append(ParagraphInfo(
                index=idx,
                text=p.text,
                style_id=p.style.style_id if p.style is not None else "",
                outline_level=_outline_level(p),
                is_list_item=is_list,
                list_level=list_level,
                page_break_before=bool(page_break),
                font=font,
                paragraph=_read_paragraph_format(p, font.size),
            ))
        return out

    def paragraph_texts(self) -> List[str]:
        return [p.text for p in self.doc.paragraphs]

    def read_section_headers_footers(self) -> List[SectionHeaderFooter]:
        out: List[SectionHeaderFooter] = []
        prev_header: Dict[str, Optional[str]] = {}
        prev_footer: Dict[str, Optional[str]] = {}
        for idx, section in enumerate(self.doc.sections):
            header: Dict[str, Optional[str]] = {}
            footer: Dict[str, Optional[str]] = {}
            for kind, header_attr, footer_attr in _HF_KINDS:
                # linked parts inherit the previous section's text
                h = getattr(section, header_attr)
                f = getattr(section, footer_attr)
                header[kind] = prev_header.get(kind) if h.is_linked_to_previous else _header_footer_text(h)
                footer[kind] = prev_footer.get(kind) if f.is_linked_to_previous else _header_footer_text(f)
            prev_header, prev_footer = header, footer
            out.append(SectionHeaderFooter(section_index=idx, header=header, footer=footer))
        return out

    def list_table_styles(self) -> List[Optional[str]]:
        return [t.style.name if t.style is not None else None for t in self.doc.tables]

    def paragraph_indices_in_selection(self) -> List[int]:
        count = len(self.doc.paragraphs)
        return sorted({i for i in self.selection if 0 <= i < count})

    def section_ranges(self) -> List[range]:
        """Paragraph index ranges per section; a section ends at the paragraph carrying its break."""
        paragraphs = self.doc.paragraphs
        ranges: List[range] = []
        start = 0
        for idx, p in enumerate(paragraphs):
            if _has_section_break(p):
                ranges.append(range(start, idx + 1))
                start = idx + 1
        ranges.append(range(start, len(paragraphs)))
        return ranges

    def paragraph_indices_in_current_section(self) -> List[int]:
        for r in self.section_ranges():
            if self.cursor_index in r:
                return list(r)
        return []

    # ------------------------------------------------------------------
    # Paragraph formatting
    # ------------------------------------------------------------------

    def _apply_font(self, paragraph, font: FontFormat) -> None:
        for run in paragraph.runs:
            if font.name:
                run.font.name = font.name
                _set_east_asia_font(run, font.name)
            if font.size:
                run.font.size = Pt(font.size)
            if font.bold is not None:
                run.font.bold = font.bold
            if font.italic is not None:
                run.font.italic = font.italic
            if font.underline is not None:
                run.font.underline = font.underline.lower() != "none"
            if font.strikethrough is not None:
                run.font.strike = font.strikethrough
            if font.color:
                run.font.color.rgb = _rgb(font.color)

    def _apply_paragraph(self, paragraph, fmt: ParagraphFormat, font_size: Optional[float]) -> None:
        pf = paragraph.paragraph_format
        if fmt.alignment and fmt.alignment.lower() in _ALIGN_VALUES:
            pf.alignment = _ALIGN_VALUES[fmt.alignment.lower()]
        size = font_size or DEFAULT_FONT_SIZE
        if fmt.first_line_indent is not None:
            pf.first_line_indent = Pt(fmt.first_line_indent * size)
            ind = paragraph._p.get_or_add_pPr().get_or_add_ind()
            ind.attrib.pop(qn('w:hangingChars'), None)
            ind.set(qn('w:firstLineChars'), str(int(round(fmt.first_line_indent * 100))))
        if fmt.left_indent is not None:
            pf.left_indent = Pt(fmt.left_indent * size)
            paragraph._p.get_or_add_pPr().get_or_add_ind().set(
                qn('w:leftChars'), str(int(round(fmt.left_indent * 100))))
        if fmt.right_indent is not None:
            pf.right_indent = Pt(fmt.right_indent * size)
            paragraph._p.get_or_add_pPr().get_or_add_ind().set(
                qn('w:rightChars'), str(int(round(fmt.right_indent * 100))))
        if fmt.line_spacing is not None:
            if fmt.line_spacing_rule == "exactly":
                pf.line_spacing = Pt(fmt.line_spacing)
                pf.line_spacing_rule = WD_LINE_SPACING.EXACTLY
            elif fmt.line_spacing_rule == "atLeast":
                pf.line_spacing = Pt(fmt.line_spacing)
                pf.line_spacing_rule = WD_LINE_SPACING.AT_LEAST
            else:
                pf.line_spacing = float(fmt.line_spacing)
        if fmt.space_before is not None:
            pf.space_before = Pt(fmt.space_before)
        if fmt.space_after is not None:
            pf.space_after = Pt(fmt.space_after)

    def apply_format_batch(
        self,
        spec: FormatSpecification,
        targets: Sequence[FormatTarget],
        batch_size: int = 20,
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> None:
        paragraphs = self.doc.paragraphs
        total = len(targets)
        step = max(1, batch_size)
        for start in range(0, total, step):
            for idx, paragraph_class in targets[start:start + step]:
                fmt = spec.get(paragraph_class)
                if fmt is None or not 0 <= idx < len(paragraphs):
                    continue
                p = paragraphs[idx]
                self._apply_font(p, fmt.font)
                self._apply_paragraph(p, fmt.paragraph, fmt.font.size)
            if on_progress:
                on_progress(min(start + step, total), total)
        logger.debug(f"Applied class formats to {total} paragraph(s)")

    def apply_heading_level_fix(self, changes: Sequence[Dict[str, int]]) -> None:
        paragraphs = self.doc.paragraphs
        for change in changes:
            idx, level = change["index"], change["level"]
            if not 0 <= idx < len(paragraphs):
                continue
            try:
                paragraphs[idx].style = f"Heading {level}"
            except KeyError:
                paragraphs[idx].style = f"标题 {level}"

    def apply_heading_numbering(self, numbering_map: Sequence[Dict[str, object]]) -> None:
        paragraphs = self.doc.paragraphs
        for entry in numbering_map:
            idx = int(entry["index"])
            if 0 <= idx < len(paragraphs):
                _set_paragraph_text(paragraphs[idx], str(entry["new_text"]))

    def update_table_of_contents(self) -> None:
        settings = self.doc.settings.element
        update = settings.find(qn('w:updateFields'))
        if update is None:
            update = OxmlElement('w:updateFields')
            settings.append(update)
        update.set(qn('w:val'), 'true')

    def apply_table_formatting(self) -> None:
        for table in self.doc.tables:
            try:
                table.style = "Table Grid"
            except KeyError:
                logger.warning("Style 'Table Grid' missing from document; table borders left as-is")
            if not table.rows:
                continue
            header = table.rows[0]
            header.height = Pt(18)
            header.height_rule = WD_ROW_HEIGHT_RULE.AT_LEAST
            for cell in header.cells:
                for para in cell.paragraphs:
                    for run in para.runs:
                        run.font.bold = True
                tcPr = cell._tc.get_or_add_tcPr()
                for old in tcPr.findall(qn('w:shd')):
                    tcPr.remove(old)
                shd = OxmlElement('w:shd')
                shd.set(qn('w:val'), 'clear')
                shd.set(qn('w:color'), 'auto')
                shd.set(qn('w:fill'), 'F2F2F2')
                tcPr.append(shd)

    def apply_caption_formatting(self, caption_fix_map: Sequence[Dict[str, object]]) -> None:
        paragraphs = self.doc.paragraphs
        for entry in caption_fix_map:
            idx = int(entry["index"])
            if not 0 <= idx < len(paragraphs):
                continue
            p = paragraphs[idx]
            _set_paragraph_text(p, str(entry["new_text"]))
            p.alignment = WD_ALIGN_PARAGRAPH.CENTER
            for run in p.runs:
                run.font.bold = False
                run.font.size = Pt(10.5)

    def apply_image_alignment(self) -> None:
        count = 0
        for p in self.doc.paragraphs:
            if _has_drawing(p):
                p.alignment = WD_ALIGN_PARAGRAPH.CENTER
                p.paragraph_format.space_before = Pt(6)
                p.paragraph_format.space_after = Pt(6)
                count += 1
        logger.debug(f"Centered {count} image paragraph(s)")

    # ------------------------------------------------------------------
    # Headers and footers
    # ------------------------------------------------------------------

    def apply_header_footer_template(self, template: HeaderFooterTemplate) -> None:
        name = self.get_document_name()
        today = date.today().isoformat()
        self.doc.settings.odd_and_even_pages_header_footer = bool(template.use_different_odd_even)

        def render(text: Optional[str]) -> str:
            return render_header_footer_text(text, template, name, today)

        for section in self.doc.sections:
            section.different_first_page_header_footer = bool(template.use_different_first_page)
            _fill_header_footer(section.header, render(template.primary_header))
            _fill_header_footer(section.footer, render(template.primary_footer))
            if template.use_different_first_page:
                _fill_header_footer(section.first_page_header,
                                    render(_first_set(template.first_page_header, template.primary_header)))
                _fill_header_footer(section.first_page_footer,
                                    render(_first_set(template.first_page_footer, template.primary_footer)))
            if template.use_different_odd_even:
                _fill_header_footer(section.even_page_header,
                                    render(_first_set(template.even_page_header, template.primary_header)))
                _fill_header_footer(section.even_page_footer,
                                    render(_first_set(template.even_page_footer, template.primary_footer)))
        logger.info(f"Applied header/footer template to {len(self.doc.sections)} section(s)")

    def apply_header_footer_text(self, header: Optional[str], footer: Optional[str]) -> None:
        for section in self.doc.sections:
            if header is not None:
                _fill_header_footer(section.header, header)
            if footer is not None:
                _fill_header_footer(section.footer, footer)

    # ------------------------------------------------------------------
    # Text-level corrections
    # ------------------------------------------------------------------

    def apply_color_corrections(
        self,
        items: Sequence[ColorAnalysisItem],
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> None:
        paragraphs = self.doc.paragraphs
        total = len(items)
        for pos, item in enumerate(items):
            if 0 <= item.paragraph_index < len(paragraphs):
                color = _rgb(item.suggested_color)
                for run in paragraphs[item.paragraph_index].runs:
                    run.font.color.rgb = color
            if on_progress:
                on_progress(pos + 1, total)

    def _apply_font_mapping(self, paragraph, options: TypographyOptions) -> None:
        for run in paragraph.runs:
            rFonts = run._element.get_or_add_rPr().get_or_add_rFonts()
            rFonts.set(qn('w:ascii'), options.english_font)
            rFonts.set(qn('w:eastAsia'), options.chinese_font)
            if options.font_application_mode == "paragraph":
                rFonts.set(qn('w:hAnsi'), options.chinese_font)
            else:
                rFonts.set(qn('w:hAnsi'), options.english_font)

    def apply_typography_normalization(self, indices: Sequence[int], options: TypographyOptions) -> None:
        paragraphs = self.doc.paragraphs
        changed = skipped = 0
        for idx in sorted(set(indices)):
            if not 0 <= idx < len(paragraphs):
                continue
            p = paragraphs[idx]
            text = p.text
            if options.skip_sensitive_content and has_sensitive_content(text):
                skipped += 1
                continue
            target, dirty = normalize_typography_text(text, options)
            if dirty:
                # per-run first keeps inline formatting; fall back when a fix spans runs
                for run in p.runs:
                    new_text, run_dirty = normalize_typography_text(run.text, options)
                    if run_dirty:
                        run.text = new_text
                if p.text != target:
                    _set_paragraph_text(p, target)
                changed += 1
            if options.apply_font_mapping:
                self._apply_font_mapping(p, options)
        logger.debug(f"Typography normalized {changed} paragraph(s), skipped {skipped} sensitive")

    def apply_pagination_control(self, indices: Sequence[int]) -> List[int]:
        """Keep headings with their content, enable widow control and drop blank paragraphs.

        Returns the deleted indices in ascending order.
        """
        paragraphs = self.doc.paragraphs
        to_delete: List[int] = []
        for idx in sorted(set(indices)):
            if not 0 <= idx < len(paragraphs):
                continue
            p = paragraphs[idx]
            if not p.text.strip():
                if idx > 0 and not _has_drawing(p) and not _has_section_break(p):
                    to_delete.append(idx)
                continue
            pf = p.paragraph_format
            if _outline_level(p):
                pf.keep_with_next = True
                pf.keep_together = True
            pf.widow_control = True
            if pf.page_break_before:
                pf.page_break_before = False
        for idx in reversed(to_delete):
            element = paragraphs[idx]._element
            element.getparent().remove(element)
        if to_delete:
            logger.info(f"Removed {len(to_delete)} blank paragraph(s)")
        return to_delete

    def apply_special_content_formatting(self, indices: Sequence[int]) -> None:
        paragraphs = self.doc.paragraphs
        for idx in sorted(set(indices)):
            if not 0 <= idx < len(paragraphs):
                continue
            p = paragraphs[idx]
            text = p.text.strip()
            pf = p.paragraph_format
            if text.startswith(">"):
                pf.left_indent = Pt(12)
                pf.space_before = Pt(6)
                pf.space_after = Pt(6)
                for run in p.runs:
                    run.font.italic = True
            elif "`" in text:
                pf.space_before = Pt(6)
                pf.space_after = Pt(6)
                for run in p.runs:
                    run.font.name = "Consolas"
                    run.font.size = Pt(10)

    def _for_runs(self, indices: Sequence[int], fn: Callable) -> None:
        paragraphs = self.doc.paragraphs
        for idx in sorted(set(indices)):
            if 0 <= idx < len(paragraphs):
                for run in paragraphs[idx].runs:
                    fn(run)

    def remove_underline(self, indices: Sequence[int]) -> None:
        def clear(run):
            run.font.underline = False
        self._for_runs(indices, clear)

    def remove_italic(self, indices: Sequence[int]) -> None:
        def clear(run):
            run.font.italic = False
        self._for_runs(indices, clear)

    def remove_strikethrough(self, indices: Sequence[int]) -> None:
        def clear(run):
            run.font.strike = False
        self._for_runs(indices, clear)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def get_document_ooxml(self) -> DocumentSnapshot:
        buf = BytesIO()
        self.doc.save(buf)
        return DocumentSnapshot(ooxml=buf.getvalue(), description=self.get_document_name())

    def restore_document_ooxml(self, snapshot: DocumentSnapshot) -> None:
        self.doc = Document(BytesIO(snapshot.ooxml))
        logger.info(f"Restored document snapshot ({len(snapshot.ooxml)} bytes)")

    def get_document_name(self) -> str:
        if self._name:
            return self._name
        if self.path:
            return Path(self.path).stem
        title = (self.doc.core_properties.title or "").strip()
        return title or "Document"
