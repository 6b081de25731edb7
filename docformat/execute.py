from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence
import logging

from docformat.cancel import CancelToken, check_cancelled
from docformat.changeops import (
    ChangeItem,
    ChangeType,
    HeaderFooterTemplate,
    STRUCTURAL_TYPES,
    TYPOGRAPHY_TYPES,
    TypographyOptions,
)
from docformat.document import DocumentAccess, ProgressCallback
from docformat.errors import CancellationError, PerItemApplyError
from docformat.ir import ColorAnalysisItem, FormatSpecification
from docformat.verify import IntegrityResult

logger = logging.getLogger(__name__)


class BatchState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class BatchResult:
    state: BatchState = BatchState.PENDING
    executed_ids: List[str] = field(default_factory=list)   # includes merged source ids
    deleted_indices: List[int] = field(default_factory=list)
    summary: str = ""
    integrity: Optional[IntegrityResult] = None
    error: Optional[str] = None


# ============================================================================
# Ordering, merging, remapping
# ============================================================================

def order_change_items_for_execution(items: Sequence[ChangeItem]) -> List[ChangeItem]:
    """Structural items run last; relative order within each group is kept."""
    regular = [i for i in items if i.type not in STRUCTURAL_TYPES]
    structural = [i for i in items if i.type in STRUCTURAL_TYPES]
    return regular + structural


def remap_indices_after_deletion(indices: Iterable[int], deleted: Iterable[int]) -> List[int]:
    """Map indices into the index space left after ``deleted`` paragraphs are removed.

    Deleted indices are dropped; every survivor shifts down by the number of
    deletions strictly before it. With no deletions the result is the sorted,
    de-duplicated input.
    """
    gone = sorted(set(deleted))
    out: List[int] = []
    for idx in sorted(set(indices)):
        shift = 0
        for d in gone:
            if d < idx:
                shift += 1
            elif d == idx:
                shift = -1
                break
            else:
                break
        if shift >= 0:
            out.append(idx - shift)
    return out


def typography_of(item: ChangeItem) -> TypographyOptions:
    raw = item.data.get("typography")
    if isinstance(raw, TypographyOptions):
        return raw
    if isinstance(raw, dict):
        return TypographyOptions.from_dict(raw)
    return TypographyOptions()


def _raw_typography_value(item: ChangeItem, attr: str) -> Any:
    raw = item.data.get("typography")
    if isinstance(raw, TypographyOptions):
        return getattr(raw, attr)
    if isinstance(raw, dict):
        camel = "".join(w if i == 0 else w.capitalize() for i, w in enumerate(attr.split("_")))
        return raw.get(attr, raw.get(camel))
    return None


def merge_typography_change_items(
    items: Sequence[ChangeItem],
    override: Optional[TypographyOptions] = None,
) -> List[ChangeItem]:
    """Collapse several typography items into one mixed-typography item at the first one's position."""
    typo = [i for i in items if i.type in TYPOGRAPHY_TYPES]
    if len(typo) <= 1:
        return list(items)

    def first_font(attr: str) -> str:
        if override is not None and getattr(override, attr):
            return getattr(override, attr)
        for i in typo:
            value = _raw_typography_value(i, attr)
            if value:
                return value
        return getattr(TypographyOptions(), attr)

    base = override or typography_of(typo[0])
    options = TypographyOptions(
        chinese_font=first_font("chinese_font"),
        english_font=first_font("english_font"),
        enforce_spacing=any(bool(_raw_typography_value(i, "enforce_spacing")) for i in typo),
        enforce_punctuation=any(bool(_raw_typography_value(i, "enforce_punctuation")) for i in typo),
        apply_font_mapping=base.apply_font_mapping,
        font_application_mode=base.font_application_mode,
        skip_sensitive_content=base.skip_sensitive_content,
    )
    indices = sorted({idx for i in typo for idx in i.paragraph_indices})
    merged = ChangeItem(
        id="+".join(i.id for i in typo),
        title=" + ".join(i.title for i in typo),
        description="; ".join(i.description for i in typo),
        type=ChangeType.MIXED_TYPOGRAPHY,
        paragraph_indices=indices,
        data={"typography": options, "merged_change_ids": [i.id for i in typo]},
        requires_content_change=any(i.requires_content_change for i in typo),
    )

    out: List[ChangeItem] = []
    placed = False
    for i in items:
        if i.type in TYPOGRAPHY_TYPES:
            if not placed:
                out.append(merged)
                placed = True
            continue
        out.append(i)
    return out


def source_ids(item: ChangeItem) -> List[str]:
    merged = item.data.get("merged_change_ids")
    return list(merged) if merged else [item.id]


# ============================================================================
# Execution
# ============================================================================

@dataclass
class ExecutionContext:
    document: DocumentAccess
    format_spec: Optional[FormatSpecification] = None
    color_analysis: List[ColorAnalysisItem] = field(default_factory=list)
    header_footer_template: Optional[HeaderFooterTemplate] = None
    typography_options: Optional[TypographyOptions] = None
    color_selections: Optional[List[int]] = None
    format_batch_size: int = 20


Handler = Callable[[ExecutionContext, ChangeItem], Optional[List[int]]]


def _apply_class_format(ctx: ExecutionContext, item: ChangeItem, paragraph_type: str) -> None:
    if ctx.format_spec is None or ctx.format_spec.get(paragraph_type) is None:
        logger.debug(f"No format for {paragraph_type}; skipping {item.id}")
        return
    targets = [(i, paragraph_type) for i in item.paragraph_indices]
    ctx.document.apply_format_batch(ctx.format_spec, targets, ctx.format_batch_size)


def _heading_level_fix(ctx, item):
    ctx.document.apply_heading_level_fix(item.data.get("level_changes") or [])


def _heading_style(ctx, item):
    _apply_class_format(ctx, item, item.data.get("paragraph_type") or "heading1")


def _body_style(ctx, item):
    _apply_class_format(ctx, item, "body_text")


def _list_style(ctx, item):
    _apply_class_format(ctx, item, "list_item")


def _heading_numbering(ctx, item):
    ctx.document.apply_heading_numbering(item.data.get("numbering_map") or [])
    ctx.document.update_table_of_contents()


def _table_style(ctx, item):
    ctx.document.apply_table_formatting()


def _caption_style(ctx, item):
    ctx.document.apply_caption_formatting(item.data.get("caption_fix_map") or [])


def _image_alignment(ctx, item):
    ctx.document.apply_image_alignment()


def _header_footer_template(ctx, item):
    template = ctx.header_footer_template or item.data.get("template") or HeaderFooterTemplate()
    if isinstance(template, dict):
        template = HeaderFooterTemplate.from_dict(template)
    ctx.document.apply_header_footer_template(template)


def _color_correction(ctx, item):
    color_items = item.data.get("color_items") or ctx.color_analysis
    if ctx.color_selections is not None:
        selected = set(ctx.color_selections)
        color_items = [c for c in color_items if c.paragraph_index in selected]
    to_fix = [c for c in color_items if not c.is_reasonable]
    if to_fix:
        ctx.document.apply_color_corrections(to_fix)


def _mixed_typography(ctx, item):
    if item.data.get("merged_change_ids"):
        options = typography_of(item)
    elif ctx.typography_options is not None:
        options = ctx.typography_options
    else:
        options = typography_of(item)
    ctx.document.apply_typography_normalization(item.paragraph_indices, options)


def _punctuation_spacing(ctx, item):
    options = replace(typography_of(item), enforce_spacing=True, enforce_punctuation=True)
    ctx.document.apply_typography_normalization(item.paragraph_indices, options)


def _pagination_control(ctx, item) -> List[int]:
    return list(ctx.document.apply_pagination_control(item.paragraph_indices) or [])


def _special_content(ctx, item):
    ctx.document.apply_special_content_formatting(item.paragraph_indices)


def _underline_removal(ctx, item):
    ctx.document.remove_underline(item.paragraph_indices)


def _italic_removal(ctx, item):
    ctx.document.remove_italic(item.paragraph_indices)


def _strikethrough_removal(ctx, item):
    ctx.document.remove_strikethrough(item.paragraph_indices)


HANDLERS: Dict[ChangeType, Handler] = {
    ChangeType.HEADING_LEVEL_FIX: _heading_level_fix,
    ChangeType.HEADING_STYLE: _heading_style,
    ChangeType.BODY_STYLE: _body_style,
    ChangeType.LIST_STYLE: _list_style,
    ChangeType.HEADING_NUMBERING: _heading_numbering,
    ChangeType.TABLE_STYLE: _table_style,
    ChangeType.CAPTION_STYLE: _caption_style,
    ChangeType.IMAGE_ALIGNMENT: _image_alignment,
    ChangeType.HEADER_FOOTER_TEMPLATE: _header_footer_template,
    ChangeType.COLOR_CORRECTION: _color_correction,
    ChangeType.MIXED_TYPOGRAPHY: _mixed_typography,
    ChangeType.PUNCTUATION_SPACING: _punctuation_spacing,
    ChangeType.PAGINATION_CONTROL: _pagination_control,
    ChangeType.SPECIAL_CONTENT: _special_content,
    ChangeType.UNDERLINE_REMOVAL: _underline_removal,
    ChangeType.ITALIC_REMOVAL: _italic_removal,
    ChangeType.STRIKETHROUGH_REMOVAL: _strikethrough_removal,
}

_missing = set(ChangeType) - set(HANDLERS)
if _missing:
    raise RuntimeError(f"ChangeType without handler: {sorted(t.value for t in _missing)}")


class ChangePlanExecutor:
    """Runs change items one at a time against the live document.

    Items are expected in execution order (see order_change_items_for_execution
    and merge_typography_change_items). Indices of items that follow a
    structural item are remapped before they run.
    """

    def __init__(
        self,
        ctx: ExecutionContext,
        cancel_token: Optional[CancelToken] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.ctx = ctx
        self.cancel_token = cancel_token
        self.on_progress = on_progress
        self.result = BatchResult()

    def _progress(self, current: int, total: int, message: str) -> None:
        if self.on_progress:
            self.on_progress(current, total, message)

    def execute(self, items: Sequence[ChangeItem]) -> BatchResult:
        self.result.state = BatchState.RUNNING
        pending = list(items)
        total = len(pending)
        self._progress(0, total, "Applying changes...")

        for pos in range(total):
            try:
                check_cancelled(self.cancel_token)
            except CancellationError:
                self.result.state = BatchState.CANCELLED
                logger.info(f"Batch cancelled before item {pos + 1}/{total}")
                raise
            item = pending[pos]
            self._progress(pos, total, f"Applying: {item.title}")
            logger.debug(f"Executing {item.id} ({item.type.value}) on {len(item.paragraph_indices)} paragraph(s)")
            try:
                deleted = HANDLERS[item.type](self.ctx, item)
            except Exception as e:
                self.result.state = BatchState.FAILED
                self.result.error = str(e)
                logger.warning(f"Change '{item.title}' failed: {type(e).__name__}: {e}")
                raise PerItemApplyError(item.id, item.title, e) from e

            self.result.executed_ids.extend(source_ids(item))
            if deleted:
                self.result.deleted_indices.extend(deleted)
                for later in range(pos + 1, total):
                    nxt = pending[later]
                    pending[later] = replace(
                        nxt, paragraph_indices=remap_indices_after_deletion(nxt.paragraph_indices, deleted)
                    )
                logger.info(f"{item.id} deleted {len(deleted)} paragraph(s); remapped {total - pos - 1} later item(s)")

        self._progress(total, total, "Changes applied")
        self.result.state = BatchState.COMPLETED
        return self.result
