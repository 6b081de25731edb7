import pytest

from docformat.errors import ParseError
from docformat.llm.parse import (
    extract_balanced_json_object,
    parse_format_analysis_result,
    parse_header_footer_plan,
    parse_json_object_from_content,
    strip_markdown,
)


def test_fenced_json_inside_prose():
    content = """Here is the analysis you asked for:

```json
{"formatSpec": {"bodyText": {"font": {"name": "宋体", "size": 12}}}, "suggestions": ["unify fonts"]}
```
Let me know if you need more."""
    result = parse_format_analysis_result(content)
    assert result.format_spec.body_text.font.name == "宋体"
    assert result.format_spec.body_text.paragraph.line_spacing == 1.5
    assert result.suggestions == ["unify fonts"]


def test_balanced_object_found_in_prose():
    content = 'Sure! {"shouldUnify": true, "headerText": "报告 {x}", "reason": "a \\"quoted\\" }"} trailing'
    parsed = parse_json_object_from_content(content)
    assert parsed == {"shouldUnify": True, "headerText": "报告 {x}", "reason": 'a "quoted" }'}


def test_arrays_are_not_objects():
    assert parse_json_object_from_content("[1, 2, 3]") is None
    assert extract_balanced_json_object("no braces here") is None


def test_bad_entries_are_dropped_individually():
    content = """{
      "formatSpec": {},
      "inconsistencies": ["  x  ", "", 123],
      "colorAnalysis": [
        {"paragraphIndex": -1, "currentColor": "#FF0000"},
        {"paragraphIndex": 1.5, "currentColor": "#FF0000"},
        {"paragraphIndex": 3, "currentColor": "#FF0000", "isReasonable": false, "suggestedColor": "#000000"}
      ],
      "formatMarkAnalysis": [
        {"paragraphIndex": 2, "formatType": "unknown"},
        {"paragraphIndex": 4, "formatType": "italic", "shouldKeep": true}
      ]
    }"""
    result = parse_format_analysis_result(content)
    assert result.inconsistencies == ["x"]
    assert result.suggestions == []
    assert [c.paragraph_index for c in result.color_analysis] == [3]
    assert result.color_analysis[0].is_reasonable is False
    assert [(m.paragraph_index, m.format_type, m.should_keep) for m in result.format_mark_analysis] == \
        [(4, "italic", True)]
    assert result.format_spec.is_empty()


def test_no_json_raises_parse_error():
    with pytest.raises(ParseError, match="cannot parse AI format specification"):
        parse_format_analysis_result("I could not analyze this document.")


def test_header_footer_plan_never_raises():
    plan = parse_header_footer_plan("nothing useful")
    assert plan.should_unify is False
    assert "cannot parse" in plan.reason

    plan = parse_header_footer_plan('```\n{"shouldUnify": true, "footerText": "第 1 页", "reason": "统一"}\n```')
    assert plan.should_unify is True
    assert plan.footer_text == "第 1 页"
    assert plan.header_text is None


def test_strip_markdown():
    assert strip_markdown("**季度报告** - *内部*") == "季度报告 - 内部"
    assert strip_markdown("# 标题") == "标题"
    assert strip_markdown("[官网](https://example.com)") == "官网"
    assert strip_markdown("file_name_here") == "file_name_here"


def test_non_finite_numbers_are_dropped():
    content = """{"formatSpec": {"bodyText": {
        "font": {"name": "宋体", "size": NaN},
        "paragraph": {"rightIndent": NaN, "leftIndent": Infinity, "firstLineIndent": "nan",
                      "spaceBefore": -Infinity, "lineSpacing": 1e999}
    }}}"""
    body = parse_format_analysis_result(content).format_spec.body_text
    assert body.font.name == "宋体"
    assert body.font.size is None
    assert body.paragraph.right_indent is None
    assert body.paragraph.left_indent is None
    assert body.paragraph.first_line_indent is None
    assert body.paragraph.line_spacing == 1.5
