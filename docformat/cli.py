from __future__ import annotations
import argparse
import json
import logging
import os
from pathlib import Path

from docformat.adapters.docx_adapter import DocxDocument
from docformat.errors import FormatEngineError
from docformat.ir import FormatAnalysisSession, FormatScope, SCOPE_TYPES
from docformat.llm.client import ClaudeModelService, LLMConfig
from docformat.pipeline import FormatEngine
from docformat.rules.load_rules import load_format_policy

logger = logging.getLogger(__name__)


def _session_summary(session: FormatAnalysisSession) -> dict:
    return {
        "scope": session.scope.to_dict(),
        "paragraph_count": session.paragraph_count,
        "section_count": session.section_count,
        "issues": [
            {"id": c.id, "title": c.title, "summary": c.summary,
             "paragraphs": sorted({i for item in c.items for i in item.paragraph_indices})}
            for c in session.issues
        ],
        "format_spec": session.format_spec.to_dict() if session.format_spec else None,
        "inconsistencies": session.inconsistencies,
        "suggestions": session.suggestions,
        "change_plan": [item.to_dict() for item in session.change_plan.items],
        "default_selected_ids": session.default_selected_ids,
    }


def _print_session(session: FormatAnalysisSession) -> None:
    print(f"Scope: {session.scope.type} ({session.paragraph_count} paragraphs, {session.section_count} sections)")
    for cat in session.issues:
        marker = "!" if cat.has_findings else " "
        print(f" {marker} {cat.title}: {cat.summary}")
    print("Change plan:")
    for item in session.change_plan.items:
        selected = "*" if item.id in session.default_selected_ids else " "
        print(f"  [{selected}] {item.id}: {item.title}")


def _build_engine(args) -> FormatEngine:
    selection = args.paragraphs or []
    document = DocxDocument(args.input_docx, selection=selection, cursor_index=args.cursor)
    policy = load_format_policy(args.policy)
    service = None
    if not args.no_ai:
        if args.anthropic_api_key:
            service = ClaudeModelService(LLMConfig(api_key=args.anthropic_api_key, model=args.llm_model))
        else:
            logger.warning("No Anthropic API key given; running detectors only")
    return FormatEngine(document, model_service=service, policy=policy)


def _scope(args) -> FormatScope:
    return FormatScope(type=args.scope, paragraph_indices=tuple(args.paragraphs or ()))


def _progress(current: int, total: int, message: str) -> None:
    logger.debug(f"[{current}/{total}] {message}")


def cmd_analyze(args) -> int:
    engine = _build_engine(args)
    session = engine.analyze_format_session(_scope(args), on_progress=_progress, use_ai=not args.no_ai)
    if args.json:
        print(json.dumps(_session_summary(session), ensure_ascii=False, indent=2))
    else:
        _print_session(session)
    return 0


def cmd_apply(args) -> int:
    engine = _build_engine(args)
    session = engine.analyze_format_session(_scope(args), on_progress=_progress, use_ai=not args.no_ai)
    if args.defaults or not args.items:
        selected = list(session.default_selected_ids)
    else:
        selected = [s.strip() for s in args.items.split(",") if s.strip()]
        unknown = [s for s in selected if session.change_plan.get(s) is None]
        if unknown:
            logger.warning(f"Ignoring unknown change item(s): {', '.join(unknown)}")

    try:
        result = engine.apply_change_plan(session, selected, on_progress=_progress)
    except FormatEngineError as e:
        logger.error(f"Apply failed: {e}")
        return 1

    out = Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    engine.document.save(str(out))
    oplog_path = str(out) + ".oplog.json"
    engine.operation_log.write_json(oplog_path)

    print(json.dumps({
        "output": str(out),
        "operation_log": oplog_path,
        "state": result.state.value,
        "executed_ids": result.executed_ids,
        "deleted_paragraphs": result.deleted_indices,
        "summary": result.summary,
    }, ensure_ascii=False, indent=2))
    return 0


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(
        prog="docformat",
        description="Format consistency analysis and batch correction for .docx documents"
    )
    ap.add_argument("--log-level", default="INFO",
                    choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level")
    sub = ap.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("input_docx", help="Path to input .docx")
    common.add_argument("--scope", default="document", choices=list(SCOPE_TYPES),
                        help="Which paragraphs to analyze (default: document)")
    common.add_argument("--paragraphs", type=int, nargs="*",
                        help="Paragraph indices for --scope paragraphs, or the selection for --scope selection")
    common.add_argument("--cursor", type=int, default=0,
                        help="Paragraph index of the caret for --scope currentSection")
    common.add_argument("--policy", default=None, help="Path to a format policy YAML (optional)")

    llm_group = common.add_argument_group("LLM Options")
    llm_group.add_argument(
        "--no-ai",
        action="store_true",
        help="Skip AI format analysis; run the rule-based detectors only"
    )
    llm_group.add_argument(
        "--anthropic-api-key",
        default=os.environ.get("ANTHROPIC_API_KEY"),
        help="Anthropic API key (or set ANTHROPIC_API_KEY env var)"
    )
    llm_group.add_argument(
        "--llm-model",
        default="claude-sonnet-4-20250514",
        help="Claude model to use for format analysis (default: claude-sonnet-4-20250514)"
    )

    analyze = sub.add_parser("analyze", parents=[common], help="Analyze formatting and print the change plan")
    analyze.add_argument("--json", action="store_true", help="Print the session as JSON")
    analyze.set_defaults(func=cmd_analyze)

    apply = sub.add_parser("apply", parents=[common], help="Analyze, apply change items and save")
    apply.add_argument("--out", required=True, help="Output .docx path")
    pick = apply.add_mutually_exclusive_group()
    pick.add_argument("--items", help="Comma-separated change item ids to apply")
    pick.add_argument("--defaults", action="store_true",
                      help="Apply the preselected change items (the default)")
    apply.set_defaults(func=cmd_apply)

    args = ap.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
