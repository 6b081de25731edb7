import pytest

from docformat.changeops import ChangeType
from docformat.rules.load_rules import FormatPolicy, load_format_policy, policy_from_pack


def test_bundled_policy_matches_defaults():
    policy = load_format_policy()
    defaults = FormatPolicy()
    assert policy.mismatch_tolerance == defaults.mismatch_tolerance
    assert policy.heading_spacing == defaults.heading_spacing
    assert policy.high_impact_types == defaults.high_impact_types
    assert policy.typography == defaults.typography
    assert policy.header_footer == defaults.header_footer


def test_custom_pack_overrides(tmp_path):
    path = tmp_path / "policy.yml"
    path.write_text(
        "detection:\n"
        "  mismatch_tolerance: 1.0\n"
        "spec_defaults:\n"
        "  line_spacing: 1.2\n"
        "  heading_spacing:\n"
        "    heading1: [20, 10]\n"
        "selection:\n"
        "  high_impact_types: [pagination-control]\n"
        "typography:\n"
        "  chinese_font: 黑体\n"
        "  unknown_key: ignored\n",
        encoding="utf-8",
    )
    policy = load_format_policy(str(path))
    assert policy.mismatch_tolerance == 1.0
    assert policy.default_line_spacing == 1.2
    assert policy.heading_spacing["heading1"] == (20.0, 10.0)
    assert policy.heading_spacing["heading2"] == (12.0, 6.0)
    assert policy.high_impact_types == frozenset({ChangeType.PAGINATION_CONTROL})
    assert policy.typography.chinese_font == "黑体"
    assert policy.typography.english_font == "Times New Roman"


def test_unknown_high_impact_type_is_rejected():
    with pytest.raises(ValueError):
        policy_from_pack({"selection": {"high_impact_types": ["not-a-type"]}})


def test_empty_pack_gives_defaults():
    assert policy_from_pack({}) == FormatPolicy()
