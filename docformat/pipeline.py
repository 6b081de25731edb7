from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence
import logging
import time

from docformat.cancel import CancelToken, check_cancelled
from docformat.changelog import OperationLog, OperationLogEntry
from docformat.changeops import HeaderFooterTemplate, TypographyOptions
from docformat.detect import detect_all
from docformat.document import DocumentAccess, ProgressCallback
from docformat.errors import CancellationError, FormatEngineError, IntegrityError, ParseError
from docformat.execute import (
    BatchResult,
    BatchState,
    ChangePlanExecutor,
    ExecutionContext,
    merge_typography_change_items,
    order_change_items_for_execution,
)
from docformat.ir import (
    ColorAnalysisItem,
    FormatAnalysisSession,
    FormatMarkAnalysisItem,
    FormatScope,
    FormatSpecification,
    HeaderFooterUnifyPlan,
    ParagraphInfo,
)
from docformat.llm.analysis import (
    build_format_samples,
    call_ai_for_format_analysis,
    call_ai_for_header_footer_analysis,
)
from docformat.llm.client import ModelService
from docformat.llm.parse import strip_markdown
from docformat.plan import build_change_plan, default_selected_ids
from docformat.rules.load_rules import FormatPolicy
from docformat.verify import create_content_checkpoint, verify_content_integrity

logger = logging.getLogger(__name__)

BATCH_TITLE = "Batch optimization"


def _progress(cb: Optional[ProgressCallback], current: int, total: int, message: str) -> None:
    if cb:
        cb(current, total, message)


class FormatEngine:
    """Analysis, batch application and undo over one live document.

    Each engine owns its operation log; callers serialize calls on one engine.
    """

    def __init__(
        self,
        document: DocumentAccess,
        model_service: Optional[ModelService] = None,
        policy: Optional[FormatPolicy] = None,
        operation_log: Optional[OperationLog] = None,
    ):
        self.document = document
        self.model_service = model_service
        self.policy = policy or FormatPolicy()
        self.operation_log = operation_log if operation_log is not None else OperationLog()
        self.last_batch: Optional[BatchResult] = None

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def resolve_scope_paragraph_indices(
        self,
        scope: FormatScope,
        paragraphs: Optional[Sequence[ParagraphInfo]] = None,
    ) -> List[int]:
        if scope.type == "selection":
            return self.document.paragraph_indices_in_selection()
        if scope.type == "currentSection":
            return self.document.paragraph_indices_in_current_section()
        if scope.type == "paragraphs":
            return sorted(set(scope.paragraph_indices))
        all_paragraphs = paragraphs if paragraphs is not None else self.document.list_paragraphs()
        if scope.type == "headings":
            return [p.index for p in all_paragraphs if p.is_heading]
        if scope.type == "bodyText":
            return [p.index for p in all_paragraphs if not p.is_heading and not p.is_list_item]
        return [p.index for p in all_paragraphs]

    def _ai_format_analysis(self, paragraphs: Sequence[ParagraphInfo], cancel_token: Optional[CancelToken]):
        samples = build_format_samples(paragraphs, self.policy.samples_per_class, self.policy.sample_text_limit)
        try:
            return call_ai_for_format_analysis(self.model_service, samples, cancel_token, self.policy)
        except CancellationError:
            raise
        except ParseError as e:
            logger.warning(f"AI format analysis unusable: {e}")
        except Exception as e:
            logger.warning(f"AI format analysis failed: {type(e).__name__}: {e}")
        return None

    def analyze_format_session(
        self,
        scope: Optional[FormatScope] = None,
        on_progress: Optional[ProgressCallback] = None,
        use_ai: bool = True,
        cancel_token: Optional[CancelToken] = None,
    ) -> FormatAnalysisSession:
        scope = scope or FormatScope()
        check_cancelled(cancel_token)
        _progress(on_progress, 0, 6, "Reading paragraphs...")
        all_paragraphs = self.document.list_paragraphs()
        scope_indices = self.resolve_scope_paragraph_indices(scope, all_paragraphs)
        if scope.type == "document":
            scoped = list(all_paragraphs)
        else:
            wanted = set(scope_indices)
            scoped = [p for p in all_paragraphs if p.index in wanted]

        check_cancelled(cancel_token)
        _progress(on_progress, 1, 6, "Analyzing formats and issues...")

        format_spec: Optional[FormatSpecification] = None
        inconsistencies: List[str] = []
        suggestions: List[str] = []
        color_analysis: List[ColorAnalysisItem] = []
        format_mark_analysis: List[FormatMarkAnalysisItem] = []
        if use_ai and self.model_service is not None:
            result = self._ai_format_analysis(all_paragraphs, cancel_token)
            if result is not None:
                format_spec = result.format_spec
                inconsistencies = result.inconsistencies
                suggestions = result.suggestions
                color_analysis = result.color_analysis
                format_mark_analysis = result.format_mark_analysis
        elif use_ai:
            logger.info("No model service configured; skipping AI format analysis")

        check_cancelled(cancel_token)
        sections = self.document.read_section_headers_footers()
        issues = detect_all(scoped, sections, self.document.list_table_styles(), self.policy)

        check_cancelled(cancel_token)
        _progress(on_progress, 4, 6, "Building change plan...")
        plan = build_change_plan(scoped, format_spec, color_analysis, format_mark_analysis, self.policy)

        check_cancelled(cancel_token)
        _progress(on_progress, 6, 6, "Analysis complete")
        session = FormatAnalysisSession(
            scope=scope,
            paragraph_count=len(scoped),
            section_count=len(sections),
            issues=issues,
            format_spec=format_spec,
            color_analysis=color_analysis,
            format_mark_analysis=format_mark_analysis,
            suggestions=suggestions,
            inconsistencies=inconsistencies,
            change_plan=plan,
            default_selected_ids=default_selected_ids(plan, issues, self.policy),
        )
        logger.info(f"Analyzed {len(scoped)} paragraph(s) in scope '{scope.type}': "
                    f"{len(plan.items)} change item(s), {len(session.default_selected_ids)} preselected")
        return session

    # ------------------------------------------------------------------
    # Batch application
    # ------------------------------------------------------------------

    def apply_change_plan(
        self,
        session: FormatAnalysisSession,
        selected_ids: Sequence[str],
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancelToken] = None,
        header_footer_template: Optional[HeaderFooterTemplate] = None,
        typography_options: Optional[TypographyOptions] = None,
        color_selections: Optional[List[int]] = None,
    ) -> BatchResult:
        """Run the selected change items as one undoable batch.

        Mutations already applied stay applied when the batch is cancelled or
        fails; only a completed batch is logged.
        """
        wanted = set(selected_ids)
        items = [item for item in session.change_plan.items if item.id in wanted]
        if not items:
            logger.info("No change items selected; nothing to apply")
            self.last_batch = BatchResult(state=BatchState.COMPLETED)
            return self.last_batch

        snapshot = self.document.get_document_ooxml()
        needs_content_change = any(item.requires_content_change for item in items)
        before = create_content_checkpoint(self.document.paragraph_texts())

        ordered = merge_typography_change_items(order_change_items_for_execution(items), typography_options)
        ctx = ExecutionContext(
            document=self.document,
            format_spec=session.format_spec,
            color_analysis=list(session.color_analysis),
            header_footer_template=header_footer_template,
            typography_options=typography_options,
            color_selections=color_selections,
            format_batch_size=self.policy.format_batch_size,
        )
        executor = ChangePlanExecutor(ctx, cancel_token, on_progress)
        self.last_batch = executor.result
        result = executor.execute(ordered)

        after = create_content_checkpoint(self.document.paragraph_texts())
        integrity = verify_content_integrity(before, after)
        result.integrity = integrity
        if not integrity.valid and not needs_content_change:
            result.state = BatchState.FAILED
            result.error = integrity.error
            logger.warning(f"Integrity check failed after batch: {integrity.error}")
            raise IntegrityError(integrity)

        summary = "; ".join(item.title for item in items)
        if not integrity.valid:
            summary = f"{summary} (integrity note: {integrity.error})"
        result.summary = summary

        self.operation_log.append(OperationLogEntry(
            id=f"batch-{int(time.time() * 1000)}",
            title=BATCH_TITLE,
            timestamp=time.time(),
            scope=session.scope,
            item_ids=list(result.executed_ids),
            summary=summary,
            snapshot=snapshot,
        ))
        logger.info(f"Applied {len(items)} change item(s): {summary}")
        return result

    # ------------------------------------------------------------------
    # Operation log
    # ------------------------------------------------------------------

    def undo_last_optimization(self) -> bool:
        entry = self.operation_log.pop()
        if entry is None:
            logger.info("Nothing to undo")
            return False
        self.document.restore_document_ooxml(entry.snapshot)
        logger.info(f"Undid '{entry.title}' ({entry.id})")
        return True

    def get_operation_logs(self) -> List[OperationLogEntry]:
        return self.operation_log.list()

    def add_operation_log(self, title: str, summary: str, scope: Optional[FormatScope] = None,
                          item_ids: Optional[List[str]] = None) -> OperationLogEntry:
        """Record the current document state under ``title`` so it can be restored by undo."""
        entry = OperationLogEntry(
            id=f"op-{int(time.time() * 1000)}",
            title=title,
            timestamp=time.time(),
            scope=scope or FormatScope(),
            item_ids=list(item_ids or []),
            summary=summary,
            snapshot=self.document.get_document_ooxml(),
        )
        self.operation_log.append(entry)
        return entry

    # ------------------------------------------------------------------
    # Direct operations
    # ------------------------------------------------------------------

    def apply_format_specification(self, spec: FormatSpecification,
                                   on_progress: Optional[ProgressCallback] = None) -> int:
        """Apply ``spec`` to every non-blank paragraph by class. Returns the number of targets."""
        _progress(on_progress, 0, 100, "Reading paragraphs...")
        targets = [(p.index, p.paragraph_class) for p in self.document.list_paragraphs() if (p.text or "").strip()]
        _progress(on_progress, 20, 100, "Applying formats...")

        def batch_progress(current: int, total: int) -> None:
            _progress(on_progress, 20 + (current * 80) // max(total, 1), 100,
                      f"Applying formats ({current}/{total})...")

        self.document.apply_format_batch(spec, targets, self.policy.format_batch_size, batch_progress)
        _progress(on_progress, 100, 100, "Formats applied")
        return len(targets)

    def unify_headers_footers(self, on_progress: Optional[ProgressCallback] = None,
                              cancel_token: Optional[CancelToken] = None) -> HeaderFooterUnifyPlan:
        _progress(on_progress, 0, 3, "Reading headers and footers...")
        sections = self.document.read_section_headers_footers()
        if not sections:
            return HeaderFooterUnifyPlan(should_unify=False, reason="document has no sections")
        if self.model_service is None:
            raise FormatEngineError("header/footer unification needs a model service")
        _progress(on_progress, 1, 3, "Analyzing headers and footers...")
        plan = call_ai_for_header_footer_analysis(self.model_service, sections, cancel_token)
        _progress(on_progress, 2, 3, "Applying unified headers and footers...")
        if plan.should_unify:
            header = strip_markdown(plan.header_text) if plan.header_text is not None else None
            footer = strip_markdown(plan.footer_text) if plan.footer_text is not None else None
            self.document.apply_header_footer_text(header, footer)
            logger.info(f"Unified headers/footers across {len(sections)} section(s)")
        else:
            logger.info(f"Headers/footers left as-is: {plan.reason}")
        _progress(on_progress, 3, 3, "Done")
        return plan

    def apply_color_analysis_corrections(self, items: Sequence[ColorAnalysisItem],
                                         on_progress: Optional[ProgressCallback] = None) -> Dict[str, int]:
        to_fix = [c for c in items if not c.is_reasonable]
        if not to_fix:
            return {"corrected": 0, "skipped": len(items)}

        def color_progress(current: int, total: int) -> None:
            _progress(on_progress, current, total, f"Correcting colors ({current}/{total})...")

        self.document.apply_color_corrections(to_fix, color_progress)
        return {"corrected": len(to_fix), "skipped": len(items) - len(to_fix)}

    def get_document_format_preview(self) -> Dict[str, Any]:
        paragraphs = self.document.list_paragraphs()
        return {
            "samples": build_format_samples(paragraphs, per_class=3, text_limit=self.policy.sample_text_limit),
            "paragraph_count": len(paragraphs),
            "section_count": len(self.document.read_section_headers_footers()),
        }
