from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Pt, RGBColor

from docformat.adapters.docx_adapter import DocxDocument, render_header_footer_text
from docformat.changeops import HeaderFooterTemplate, TypographyOptions
from docformat.ir import ColorAnalysisItem, FormatSpecification
from docformat.llm.parse import parse_format_analysis_result


def _basic_doc():
    doc = Document()
    doc.add_heading("总则", 1)
    doc.add_paragraph("这是正文。")
    doc.add_paragraph("第一项", style="List Bullet")
    return doc


def test_list_paragraphs_classifies_headings_lists_and_body():
    infos = DocxDocument(_basic_doc()).list_paragraphs()
    assert [p.text for p in infos] == ["总则", "这是正文。", "第一项"]
    assert [p.paragraph_class for p in infos] == ["heading1", "body_text", "list_item"]
    assert infos[2].is_list_item is True


def test_format_batch_round_trip():
    doc = _basic_doc()
    adapter = DocxDocument(doc)
    spec = FormatSpecification.from_dict({
        "heading1": {"font": {"size": 16, "bold": True},
                     "paragraph": {"lineSpacing": 20, "lineSpacingRule": "exactly"}},
        "bodyText": {"font": {"name": "宋体", "size": 12},
                     "paragraph": {"firstLineIndent": 2, "lineSpacing": 1.5, "lineSpacingRule": "multiple",
                                   "spaceBefore": 0, "spaceAfter": 0}},
    })
    progress = []
    adapter.apply_format_batch(spec, [(0, "heading1"), (1, "body_text"), (2, "list_item")], 2,
                               lambda current, total: progress.append((current, total)))

    heading, body, _ = adapter.list_paragraphs()
    assert body.font.name == "宋体"
    assert body.font.size == 12.0
    assert body.paragraph.first_line_indent == 2.0
    assert body.paragraph.line_spacing == 1.5
    assert body.paragraph.line_spacing_rule == "multiple"
    assert body.paragraph.space_before == 0.0
    assert heading.font.bold is True
    assert heading.paragraph.line_spacing == 20.0
    assert heading.paragraph.line_spacing_rule == "exactly"
    assert progress == [(2, 3), (3, 3)]


def test_pagination_removes_blank_paragraphs_only():
    doc = Document()
    doc.add_paragraph("")
    heading = doc.add_heading("章节", 1)
    heading.paragraph_format.page_break_before = True
    doc.add_paragraph("")
    doc.add_paragraph("正文")
    doc.add_paragraph("   ")
    doc.add_section()
    doc.add_paragraph("尾")
    adapter = DocxDocument(doc)

    deleted = adapter.apply_pagination_control(range(7))

    assert deleted == [2, 4]
    assert adapter.paragraph_texts() == ["", "章节", "正文", "", "尾"]
    kept = adapter.paragraphs[1].paragraph_format
    assert kept.keep_with_next is True
    assert not kept.page_break_before
    assert adapter.paragraphs[2].paragraph_format.widow_control is True


def test_pagination_keeps_image_paragraphs():
    doc = Document()
    doc.add_paragraph("正文")
    image = doc.add_paragraph()
    image.add_run()._r.append(OxmlElement("w:drawing"))
    assert DocxDocument(doc).apply_pagination_control([0, 1]) == []


def test_snapshot_restores_text():
    adapter = DocxDocument(_basic_doc())
    snapshot = adapter.get_document_ooxml()
    adapter.apply_heading_numbering([{"index": 0, "new_text": "1 总则"}])
    assert adapter.paragraph_texts()[0] == "1 总则"
    adapter.restore_document_ooxml(snapshot)
    assert adapter.paragraph_texts() == ["总则", "这是正文。", "第一项"]


def test_heading_numbering_keeps_first_run_formatting():
    doc = Document()
    p = doc.add_paragraph()
    p.add_run("旧").bold = True
    p.add_run("标题")
    adapter = DocxDocument(doc)
    adapter.apply_heading_numbering([{"index": 0, "new_text": "1 标题"}])
    assert [r.text for r in adapter.paragraphs[0].runs] == ["1 标题"]
    assert adapter.paragraphs[0].runs[0].bold is True


def test_heading_level_fix_sets_heading_style():
    adapter = DocxDocument(_basic_doc())
    adapter.apply_heading_level_fix([{"index": 1, "level": 2}])
    assert adapter.paragraphs[1].style.name == "Heading 2"
    assert adapter.list_paragraphs()[1].outline_level == 2


def test_header_footer_template_writes_page_field():
    doc = Document()
    doc.add_paragraph("正文")
    adapter = DocxDocument(doc, name="报告")
    adapter.apply_header_footer_template(HeaderFooterTemplate())

    section = adapter.doc.sections[0]
    assert adapter.read_section_headers_footers()[0].header["primary"] == "报告 1"
    assert adapter.read_section_headers_footers()[0].footer["primary"] == "报告 第 1 页"
    instr = section.header._element.findall(".//" + qn("w:instrText"))
    assert [i.text for i in instr] == [" PAGE "]
    assert adapter.doc.settings.odd_and_even_pages_header_footer is False


def test_header_footer_text_replaces_every_section():
    doc = Document()
    doc.add_paragraph("a")
    doc.add_section()
    doc.add_paragraph("b")
    adapter = DocxDocument(doc)
    adapter.apply_header_footer_text("年度报告", None)
    sections = adapter.read_section_headers_footers()
    assert [s.header["primary"] for s in sections] == ["年度报告", "年度报告"]


def test_render_header_footer_text():
    template = HeaderFooterTemplate()
    assert render_header_footer_text("第 {pageNumber} 页", template, "报告") == "报告 第 {pageNumber} 页"
    assert render_header_footer_text(None, template, "报告") == "报告 {pageNumber}"

    bare = HeaderFooterTemplate(include_page_number=False, include_document_name=False)
    assert render_header_footer_text("{documentName} 第 {pageNumber} 页", bare, "报告") == "报告 第 页"

    dated = HeaderFooterTemplate(include_page_number=False, include_document_name=False, include_date=True)
    assert render_header_footer_text("", dated, "报告", today="2026-01-02") == "2026-01-02"


def test_update_table_of_contents_requests_field_refresh():
    adapter = DocxDocument(Document())
    adapter.update_table_of_contents()
    adapter.update_table_of_contents()
    updates = adapter.doc.settings.element.findall(qn("w:updateFields"))
    assert len(updates) == 1
    assert updates[0].get(qn("w:val")) == "true"


def test_table_formatting():
    doc = Document()
    table = doc.add_table(rows=2, cols=2)
    table.cell(0, 0).text = "名称"
    table.cell(1, 0).text = "值"
    adapter = DocxDocument(doc)
    assert adapter.list_table_styles() == ["Normal Table"]

    adapter.apply_table_formatting()

    assert adapter.list_table_styles() == ["Table Grid"]
    header_cell = adapter.doc.tables[0].cell(0, 0)
    assert header_cell.paragraphs[0].runs[0].bold is True
    shading = header_cell._tc.tcPr.find(qn("w:shd"))
    assert shading.get(qn("w:fill")) == "F2F2F2"
    assert adapter.doc.tables[0].cell(1, 0).paragraphs[0].runs[0].bold is None


def test_caption_formatting():
    doc = Document()
    doc.add_paragraph("图 3：示意").runs[0].bold = True
    adapter = DocxDocument(doc)
    adapter.apply_caption_formatting([{"index": 0, "new_text": "图1：示意"}])
    p = adapter.paragraphs[0]
    assert p.text == "图1：示意"
    assert p.alignment == WD_ALIGN_PARAGRAPH.CENTER
    assert p.runs[0].bold is False
    assert p.runs[0].font.size == Pt(10.5)


def test_image_alignment_only_touches_drawings():
    doc = Document()
    doc.add_paragraph("正文")
    image = doc.add_paragraph()
    image.add_run()._r.append(OxmlElement("w:drawing"))
    adapter = DocxDocument(doc)
    adapter.apply_image_alignment()
    assert adapter.paragraphs[0].alignment is None
    assert adapter.paragraphs[1].alignment == WD_ALIGN_PARAGRAPH.CENTER
    assert adapter.paragraphs[1].paragraph_format.space_before == Pt(6)


def test_mark_removal():
    doc = Document()
    run = doc.add_paragraph().add_run("强调")
    run.underline = True
    run.italic = True
    run.font.strike = True
    adapter = DocxDocument(doc)
    adapter.remove_underline([0])
    adapter.remove_italic([0])
    adapter.remove_strikethrough([0, 5])
    run = adapter.paragraphs[0].runs[0]
    assert run.underline is False
    assert run.italic is False
    assert run.font.strike is False


def test_color_corrections():
    doc = Document()
    doc.add_paragraph().add_run("红字").font.color.rgb = RGBColor(0xFF, 0, 0)
    adapter = DocxDocument(doc)
    assert adapter.list_paragraphs()[0].font.color == "#FF0000"
    progress = []
    adapter.apply_color_corrections([ColorAnalysisItem(0, suggested_color="#000000")],
                                    lambda current, total: progress.append((current, total)))
    assert adapter.paragraphs[0].runs[0].font.color.rgb == RGBColor(0, 0, 0)
    assert progress == [(1, 1)]


def test_typography_keeps_run_formatting():
    doc = Document()
    p = doc.add_paragraph()
    p.add_run("中文A")
    p.add_run("B粗").bold = True
    adapter = DocxDocument(doc)
    adapter.apply_typography_normalization([0], TypographyOptions())
    runs = adapter.paragraphs[0].runs
    assert adapter.paragraphs[0].text == "中文 AB 粗"
    assert [r.text for r in runs] == ["中文 A", "B 粗"]
    assert runs[1].bold is True


def test_typography_falls_back_when_fix_spans_runs():
    doc = Document()
    p = doc.add_paragraph()
    p.add_run("中文")
    p.add_run("A")
    adapter = DocxDocument(doc)
    adapter.apply_typography_normalization([0], TypographyOptions())
    assert adapter.paragraph_texts() == ["中文 A"]


def test_typography_skips_sensitive_paragraphs():
    doc = Document()
    doc.add_paragraph("运行`pip install`命令")
    doc.add_paragraph("使用Python")
    adapter = DocxDocument(doc)
    adapter.apply_typography_normalization([0, 1], TypographyOptions())
    assert adapter.paragraph_texts() == ["运行`pip install`命令", "使用 Python"]


def test_font_mapping_sets_font_slots():
    doc = Document()
    doc.add_paragraph("中文 A")
    adapter = DocxDocument(doc)
    adapter.apply_typography_normalization([0], TypographyOptions(apply_font_mapping=True))
    fonts = adapter.paragraphs[0].runs[0]._element.rPr.rFonts
    assert fonts.get(qn("w:ascii")) == "Times New Roman"
    assert fonts.get(qn("w:eastAsia")) == "宋体"
    assert fonts.get(qn("w:hAnsi")) == "Times New Roman"


def test_special_content_formatting():
    doc = Document()
    doc.add_paragraph("> 引用内容")
    doc.add_paragraph("运行 `make` 构建")
    doc.add_paragraph("普通段落")
    adapter = DocxDocument(doc)
    adapter.apply_special_content_formatting([0, 1, 2])
    quote, code, plain = adapter.paragraphs
    assert quote.runs[0].italic is True
    assert quote.paragraph_format.left_indent == Pt(12)
    assert code.runs[0].font.name == "Consolas"
    assert plain.paragraph_format.space_before is None


def test_selection_and_current_section():
    doc = Document()
    doc.add_paragraph("a")
    doc.add_paragraph("b")
    doc.add_section()
    doc.add_paragraph("c")
    adapter = DocxDocument(doc, selection=[3, 1, 1, 99], cursor_index=3)
    assert adapter.paragraph_indices_in_selection() == [1, 3]
    assert adapter.section_ranges() == [range(0, 3), range(3, 4)]
    assert adapter.paragraph_indices_in_current_section() == [3]
    adapter.cursor_index = 1
    assert adapter.paragraph_indices_in_current_section() == [0, 1, 2]


def test_document_name(tmp_path):
    path = tmp_path / "季度报告.docx"
    Document().save(str(path))
    assert DocxDocument(path).get_document_name() == "季度报告"
    assert DocxDocument(path, name="年报").get_document_name() == "年报"


def test_spec_with_non_finite_values_applies_cleanly():
    doc = Document()
    doc.add_paragraph("正文")
    adapter = DocxDocument(doc)
    spec = parse_format_analysis_result(
        '{"formatSpec": {"bodyText": {"font": {"size": NaN}, '
        '"paragraph": {"rightIndent": NaN, "firstLineIndent": 2}}}}'
    ).format_spec
    adapter.apply_format_batch(spec, [(0, "body_text")])
    body = adapter.list_paragraphs()[0]
    assert body.paragraph.first_line_indent == 2.0
    assert body.paragraph.right_indent is None
