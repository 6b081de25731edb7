from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, List, Tuple
import re

from docformat.changeops import TypographyOptions

SENSITIVE_PATTERNS = [
    re.compile(r"```[\s\S]*?```"),
    re.compile(r"`[^`]+`"),
    re.compile(r"\bhttps?://\S+", re.IGNORECASE),
    re.compile(r"\bwww\.\S+", re.IGNORECASE),
    re.compile(r"\[[^\]]+\]\([^)]+\)"),
    re.compile(r"\{\s*(?:PAGE|NUMPAGES|DATE|TIME|REF|SEQ|TOC|HYPERLINK)\b[^}]*\}", re.IGNORECASE),
]

CJK = r"\u4e00-\u9fff"
_CJK_TO_FULLWIDTH = {",": "，", ";": "；", ":": "：", "!": "！", "?": "？"}


@dataclass(frozen=True)
class TypographyRule:
    id: str
    pattern: "re.Pattern[str]"
    repl: Callable[["re.Match[str]"], str]


SPACING_RULES = [
    TypographyRule("cjk-latin-spacing", re.compile(rf"([{CJK}])([A-Za-z0-9])"), lambda m: f"{m.group(1)} {m.group(2)}"),
    TypographyRule("latin-cjk-spacing", re.compile(rf"([A-Za-z0-9])([{CJK}])"), lambda m: f"{m.group(1)} {m.group(2)}"),
    TypographyRule("digit-latin-spacing", re.compile(r"(\d)([A-Za-z])"), lambda m: f"{m.group(1)} {m.group(2)}"),
    TypographyRule("digit-unit-compact", re.compile(r"(\d)\s+([年月日个项次度%℃])"), lambda m: m.group(1) + m.group(2)),
]

PUNCTUATION_RULES = [
    TypographyRule("cjk-punctuation-no-tail-space", re.compile(r"([，。？！；：、])\s+"), lambda m: m.group(1)),
    TypographyRule("en-punctuation-no-leading-space", re.compile(r"\s+([,.!?;:])"), lambda m: m.group(1)),
    TypographyRule("cjk-en-punctuation-map", re.compile(rf"([{CJK}])([,;:!?])"),
                   lambda m: m.group(1) + _CJK_TO_FULLWIDTH[m.group(2)]),
]


def has_sensitive_content(text: str) -> bool:
    """Code, URLs, markdown links and field codes must not be rewritten."""
    if not text:
        return False
    return any(p.search(text) for p in SENSITIVE_PATTERNS)


def active_rules(options: TypographyOptions) -> List[TypographyRule]:
    rules: List[TypographyRule] = []
    if options.enforce_spacing:
        rules.extend(SPACING_RULES)
    if options.enforce_punctuation:
        rules.extend(PUNCTUATION_RULES)
    return rules


def matching_rule_ids(text: str, options: TypographyOptions) -> List[str]:
    return [r.id for r in active_rules(options) if r.pattern.search(text)]


def normalize_typography_text(text: str, options: TypographyOptions) -> Tuple[str, bool]:
    updated = text
    for rule in active_rules(options):
        updated = rule.pattern.sub(rule.repl, updated)
    return updated, updated != text
