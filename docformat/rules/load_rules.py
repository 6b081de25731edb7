from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Tuple
import yaml

from docformat.changeops import ChangeType, HeaderFooterTemplate, TypographyOptions

DEFAULT_POLICY_PATH = str(Path(__file__).with_name("format_policy.yml"))

_DEFAULT_HEADING_SPACING = {
    "heading1": (16.0, 8.0),
    "heading2": (12.0, 6.0),
    "heading3": (6.0, 6.0),
}
_DEFAULT_HIGH_IMPACT = frozenset({
    ChangeType.HEADER_FOOTER_TEMPLATE,
    ChangeType.TABLE_STYLE,
    ChangeType.IMAGE_ALIGNMENT,
})

_TYPOGRAPHY_KEYS = ("chinese_font", "english_font", "enforce_spacing", "enforce_punctuation",
                    "apply_font_mapping", "font_application_mode", "skip_sensitive_content")


@dataclass
class FormatPolicy:
    mismatch_tolerance: float = 0.5
    heading_suspect_length: int = 60
    sample_length: int = 40
    default_line_spacing: float = 1.5
    default_line_spacing_rule: str = "multiple"
    heading_spacing: Dict[str, Tuple[float, float]] = field(default_factory=lambda: dict(_DEFAULT_HEADING_SPACING))
    samples_per_class: int = 5
    max_compressed_samples: int = 30
    sample_text_limit: int = 50
    format_batch_size: int = 20
    high_impact_types: FrozenSet[ChangeType] = _DEFAULT_HIGH_IMPACT
    typography: TypographyOptions = field(default_factory=TypographyOptions)
    header_footer: HeaderFooterTemplate = field(default_factory=HeaderFooterTemplate)


def load_rule_pack(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_format_policy(path: Optional[str] = None) -> FormatPolicy:
    pack = load_rule_pack(path or DEFAULT_POLICY_PATH)
    return policy_from_pack(pack)


def policy_from_pack(pack: Dict[str, Any]) -> FormatPolicy:
    policy = FormatPolicy()
    det = pack.get("detection", {}) or {}
    spec = pack.get("spec_defaults", {}) or {}
    sampling = pack.get("ai_sampling", {}) or {}
    execution = pack.get("execution", {}) or {}
    selection = pack.get("selection", {}) or {}

    policy.mismatch_tolerance = float(det.get("mismatch_tolerance", policy.mismatch_tolerance))
    policy.heading_suspect_length = int(det.get("heading_suspect_length", policy.heading_suspect_length))
    policy.sample_length = int(det.get("sample_length", policy.sample_length))

    policy.default_line_spacing = float(spec.get("line_spacing", policy.default_line_spacing))
    policy.default_line_spacing_rule = str(spec.get("line_spacing_rule", policy.default_line_spacing_rule))
    for cls_name, pair in (spec.get("heading_spacing", {}) or {}).items():
        before, after = pair
        policy.heading_spacing[str(cls_name)] = (float(before), float(after))

    policy.samples_per_class = int(sampling.get("samples_per_class", policy.samples_per_class))
    policy.max_compressed_samples = int(sampling.get("max_compressed_samples", policy.max_compressed_samples))
    policy.sample_text_limit = int(sampling.get("text_limit", policy.sample_text_limit))
    policy.format_batch_size = int(execution.get("format_batch_size", policy.format_batch_size))

    if "high_impact_types" in selection:
        # unknown type names raise ValueError
        policy.high_impact_types = frozenset(ChangeType(t) for t in selection.get("high_impact_types") or [])

    typo = {k: v for k, v in (pack.get("typography", {}) or {}).items() if k in _TYPOGRAPHY_KEYS}
    policy.typography = TypographyOptions.from_dict(typo)
    policy.header_footer = HeaderFooterTemplate.from_dict(pack.get("header_footer", {}) or {})
    return policy
