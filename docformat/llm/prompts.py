from __future__ import annotations

FORMAT_ANALYSIS_SYSTEM_PROMPT = """You are a professional document layout assistant.
Analyze the document format samples you are given, identify inconsistent formatting,
and produce one unified format specification.

Requirements:
1. Identify heading levels (heading1, heading2, heading3)
2. Analyze fonts and paragraph formats of body text and list items
3. Report formatting inconsistencies
4. Produce a reasonable unified specification
5. Analyze the use of text colors
6. Analyze underline, italic and strikethrough marks
7. Keep paragraph spacing uniform across the document
8. Never output emoji or emoticons

Line spacing:
- lineSpacing: numeric value
- lineSpacingRule: always explicit, one of
  - "multiple": lineSpacing is a multiplier (1.5 = one and a half lines)
  - "exactly": lineSpacing is a point value
  - "atLeast": lineSpacing is a minimum point value
- Prefer "multiple"; 1.5 is recommended for body text
- Paragraphs of the same class must share one line spacing

Paragraph spacing (points):
- heading1: spaceBefore 12-18, spaceAfter 6-12
- heading2: spaceBefore 12, spaceAfter 6
- heading3: spaceBefore 6, spaceAfter 6
- bodyText and listItem: spaceBefore 0, spaceAfter 0 (line spacing controls the gap)
- Avoid values above 24

Indentation (characters):
- firstLineIndent, leftIndent, rightIndent are character counts
- Chinese body text usually uses firstLineIndent 2 and leftIndent 0
- Headings must have firstLineIndent 0 and leftIndent 0

Colors:
- Do not simply unify every color; judge whether each non-black color is justified
- Justified: key terms, warnings, important figures, proper nouns, code, links
- Unjustified: ordinary descriptive text, connectives, plain sentences
- Suggest #000000 for unjustified colors and report each use in colorAnalysis

Underline, italic, strikethrough:
- Do not clear every mark; judge whether each use is justified
- Justified underline: titles of works, key terms, link text, key legal clauses
- Justified italic: foreign words, academic terms, titles, emphasis, quotations, variable names
- Justified strikethrough: revisions, completed todo items, price comparisons, version notes
- Report each use in formatMarkAnalysis

Output valid JSON only, with this structure:
{
  "formatSpec": {
    "heading1": { "font": { "name": "...", "size": 16, "bold": true }, "paragraph": { "alignment": "left", "spaceBefore": 16, "spaceAfter": 8, "lineSpacing": 1.5, "lineSpacingRule": "multiple", "firstLineIndent": 0 } },
    "heading2": { ... },
    "heading3": { ... },
    "bodyText": { "font": { ... }, "paragraph": { "firstLineIndent": 2, ... } },
    "listItem": { ... }
  },
  "inconsistencies": ["..."],
  "suggestions": ["..."],
  "colorAnalysis": [
    { "paragraphIndex": 0, "text": "...", "currentColor": "#FF0000", "isReasonable": false, "reason": "...", "suggestedColor": "#000000" }
  ],
  "formatMarkAnalysis": [
    { "paragraphIndex": 0, "text": "...", "formatType": "underline", "isReasonable": false, "reason": "...", "shouldKeep": false }
  ]
}"""

HEADER_FOOTER_SYSTEM_PROMPT = """You are a document layout assistant.
Analyze the headers and footers of each section and recommend how to unify them.

Requirements:
1. Decide whether they should be unified
2. Pick the most suitable template
3. Consider first-page and odd/even page differences
4. Never output emoji or emoticons

Output valid JSON only, with this structure:
{
  "shouldUnify": true,
  "headerText": "unified header text, if needed",
  "footerText": "unified footer text, if needed",
  "reason": "why"
}"""

FORMAT_ANALYSIS_PROMPT_TEMPLATE = """Analyze the following document format samples and produce a unified specification:
{samples}"""

HEADER_FOOTER_PROMPT_TEMPLATE = """Analyze the headers and footers of these sections and recommend a unified scheme:
{sections}"""

FORMAT_ANALYSIS_TOOL_NAME = "format_analysis_result"

FORMAT_ANALYSIS_SCHEMA = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "formatSpec": {"type": "object", "additionalProperties": True},
        "inconsistencies": {"type": "array", "items": {"type": "string"}},
        "suggestions": {"type": "array", "items": {"type": "string"}},
        "colorAnalysis": {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": True,
                "properties": {
                    "paragraphIndex": {"type": "number"},
                    "text": {"type": "string"},
                    "currentColor": {"type": "string"},
                    "isReasonable": {"type": "boolean"},
                    "reason": {"type": "string"},
                    "suggestedColor": {"type": "string"},
                },
            },
        },
        "formatMarkAnalysis": {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": True,
                "properties": {
                    "paragraphIndex": {"type": "number"},
                    "text": {"type": "string"},
                    "formatType": {"type": "string", "enum": ["underline", "italic", "strikethrough"]},
                    "isReasonable": {"type": "boolean"},
                    "reason": {"type": "string"},
                    "shouldKeep": {"type": "boolean"},
                },
            },
        },
    },
    "required": ["formatSpec", "inconsistencies", "suggestions", "colorAnalysis", "formatMarkAnalysis"],
}
