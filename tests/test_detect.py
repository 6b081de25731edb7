from docformat import detect
from docformat.detect import (
    detect_all,
    detect_caption_issues,
    detect_header_footer_issues,
    detect_heading_consistency_issues,
    detect_heading_level_fixes,
    detect_hierarchy_issues,
    detect_list_in_body_issues,
    detect_mixed_typography_issues,
    detect_color_highlight_issues,
    detect_table_issues,
    dominant_paragraph,
    paragraph_signature,
)
from docformat.ir import FontFormat, ParagraphFormat, ParagraphInfo, SectionHeaderFooter


def _p(index, text="text", level=None, size=12.0, is_list=False, color=None, **para):
    return ParagraphInfo(
        index=index, text=text, outline_level=level, is_list_item=is_list,
        font=FontFormat(name="宋体", size=size, color=color),
        paragraph=ParagraphFormat(**para),
    )


def test_dominant_paragraph_prefers_largest_group_then_first_seen():
    paragraphs = [_p(0, size=14), _p(1, size=12), _p(2, size=12), _p(3, size=14)]
    assert dominant_paragraph(paragraphs).index == 0
    assert dominant_paragraph(paragraphs + [_p(4, size=12)]).index == 1
    assert dominant_paragraph([]) is None


def test_heading_consistency_flags_outliers_beyond_tolerance():
    headings = [_p(0, "一", 1, 16), _p(1, "二", 1, 16.4), _p(2, "三", 1, 14), _p(3, "四", 1, 16)]
    issues = detect_heading_consistency_issues(headings, 1)
    assert len(issues) == 1
    assert issues[0].id == "heading-consistency-1"
    assert issues[0].paragraph_indices == [2]
    assert detect_heading_consistency_issues(headings, 2) == []


def test_hierarchy_skips_and_level_fixes():
    headings = [_p(0, "总则", 1), _p(1, "细则", 3), _p(2, "条款", 4)]
    assert detect_heading_level_fixes(headings) == [{"index": 1, "level": 2}, {"index": 2, "level": 3}]
    ids = [i.id for i in detect_hierarchy_issues(headings)]
    assert ids == ["heading-skip-1"]


def test_sentence_like_heading_is_suspect():
    issues = detect_hierarchy_issues([_p(0, "这是一个看起来像正文的句子。", 1)])
    assert [i.id for i in issues] == ["heading-suspect-0"]


def test_isolated_list_item():
    paragraphs = [_p(0), _p(1, is_list=True), _p(2), _p(3, is_list=True), _p(4, is_list=True)]
    assert [i.id for i in detect_list_in_body_issues(paragraphs)] == ["list-isolated-1"]


def test_mixed_typography_needs_adjacency():
    paragraphs = [_p(0, "中文English"), _p(1, "中文 English"), _p(2, "plain english")]
    issues = detect_mixed_typography_issues(paragraphs)
    assert issues[0].paragraph_indices == [0]


def test_color_issues_ignore_black():
    paragraphs = [_p(0, color="#FF0000"), _p(1, color="#000000"), _p(2)]
    assert detect_color_highlight_issues(paragraphs)[0].paragraph_indices == [0]


def test_caption_numbering_uses_independent_counters():
    paragraphs = [_p(0, "图1：流程"), _p(1, "表1：数据"), _p(2, "图3：结构"), _p(3, "Table 2: results")]
    issues = detect_caption_issues(paragraphs)
    assert issues[0].paragraph_indices == [2]


def test_header_footer_differences():
    same = [SectionHeaderFooter(i, {"primary": "H"}, {"primary": "F"}) for i in range(2)]
    assert detect_header_footer_issues(same) == []
    differ = same + [SectionHeaderFooter(2, {"primary": "Other"}, {"primary": "F"})]
    assert [i.id for i in detect_header_footer_issues(differ)] == ["header-footer-diff"]
    assert detect_header_footer_issues(differ[:1]) == []


def test_table_issues():
    assert detect_table_issues(["Table Grid"]) == []
    assert len(detect_table_issues(["Table Grid", "Normal Table"])) == 1
    assert len(detect_table_issues([None])) == 1


def test_detect_all_categories_in_order():
    categories = detect_all([_p(0, "正文")], [], [])
    assert [c.id for c in categories] == [
        "hierarchy", "heading-consistency", "body-consistency", "list-consistency",
        "color-highlight", "mixed-typography", "punctuation-spacing", "pagination-control",
        "header-footer", "table-style", "caption-style", "special-content",
        "underline", "italic", "strikethrough",
    ]


def test_failing_detector_reports_no_findings(monkeypatch):
    def boom(paragraphs):
        raise ValueError("bad paragraph data")

    monkeypatch.setattr(detect, "detect_caption_issues", boom)
    categories = {c.id: c for c in detect_all([_p(0, "图9：x"), _p(1, "")], [], [])}
    assert categories["caption-style"].items == []
    assert categories["pagination-control"].has_findings


def test_signature_rounds_halves_up():
    quarter = paragraph_signature(_p(0, first_line_indent=0.25, line_spacing=1.25))
    assert quarter == paragraph_signature(_p(1, first_line_indent=0.3, line_spacing=1.3))
    assert quarter != paragraph_signature(_p(2, first_line_indent=0.2, line_spacing=1.2))
