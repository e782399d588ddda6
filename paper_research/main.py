import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from paper_research.config import Settings
from paper_research.exceptions import ConfigurationError, InputValidationError, PaperResearchError
from paper_research.llm.events import SessionEvent
from paper_research.net.http import create_client
from paper_research.session import ResearchSession

logger = logging.getLogger(__name__)

EXIT_COMPLETE = 0
EXIT_FAILED = 1
EXIT_INCOMPLETE = 2


def _init_logging(level: Optional[str] = None):
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=level)
    structlog.configure(
        processors=[structlog.processors.add_log_level, structlog.processors.TimeStamper(fmt="iso"), structlog.processors.JSONRenderer()],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level, logging.INFO)),
        cache_logger_on_first_use=True,
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="paper-research", description="Deep research report for a seed paper")
    p.add_argument("seed_url", help="URL of the seed paper (arXiv abstract/PDF or any paper page)")
    p.add_argument("--max-turns", type=int, default=None, help="Turn cap (defaults to MAX_TURNS from settings)")
    p.add_argument("--model", default=None, help="Anthropic model id (defaults to ANTHROPIC_MODEL)")
    p.add_argument("--output", default=".", help="Working directory; reports land under <output>/reports")
    p.add_argument("--verbose", action="store_true", help="Write an event trace to reports/trace.jsonl")
    return p


class ProgressPrinter:
    """Session listener that prints progress and optionally keeps a JSONL trace."""

    def __init__(self, trace_path: Optional[Path] = None, stream=None):
        self.stream = stream or sys.stderr
        self.trace_path = trace_path
        self.turn = 0
        self.llm_calls = 0
        self.input_tokens = 0
        self.output_tokens = 0

    def __call__(self, event: SessionEvent) -> None:
        if event.type == "turn_start":
            self.turn += 1
            print(f"Turn {self.turn}", file=self.stream)
        elif event.type == "message_end":
            usage = event.message.get("usage") or {}
            input_tokens = usage.get("input_tokens") or 0
            output_tokens = usage.get("output_tokens") or 0
            self.llm_calls += 1
            self.input_tokens += input_tokens
            self.output_tokens += output_tokens
            print(f"  tokens: {input_tokens} in / {output_tokens} out", file=self.stream)
        elif event.type == "tool_execution_start":
            print(f"  -> {event.tool_name} {json.dumps(event.args)[:160]}", file=self.stream)
        elif event.type == "tool_execution_end" and event.is_error:
            content = event.result.get("content") if isinstance(event.result, dict) else event.result
            print(f"  !! {event.tool_name} failed: {content}", file=self.stream)
        elif event.type == "report_finalized":
            print(f"Report written: {event.report_path}", file=self.stream)

        if self.trace_path is not None:
            with self.trace_path.open("a", encoding="utf-8") as fh:
                fh.write(json.dumps(event.model_dump(mode="json"), default=str) + "\n")

    def print_usage(self) -> None:
        print(
            f"LLM usage: {self.llm_calls} calls, {self.input_tokens} input tokens, "
            f"{self.output_tokens} output tokens",
            file=self.stream,
        )


def _print_summary(result) -> None:
    v = result.validation
    print(f"Report:  {result.report_path}")
    print(f"HTML:    {result.report_html_path}")
    print(f"Sources: {result.sources_path}")
    print(f"Turns:   {result.turn_count}")
    if result.aborted:
        print("Run was aborted; the report may be partial.")
    print(f"Complete: {v.is_complete}")
    if not v.is_complete:
        if v.missing_headings:
            print(f"  missing headings: {', '.join(v.missing_headings)}")
        print(f"  answered questions: {v.answered_required_questions}")
        print(f"  related-work comparison: {v.has_related_work_comparison}")
        print(f"  reference URLs: {v.has_reference_urls}")


async def arun(args, settings: Settings) -> int:
    from paper_research.llm.anthropic_engine import AnthropicEngine

    output = Path(args.output).resolve()
    output.mkdir(parents=True, exist_ok=True)
    trace_path = None
    if args.verbose:
        trace_dir = output / settings.REPORTS_ROOT
        trace_dir.mkdir(parents=True, exist_ok=True)
        trace_path = trace_dir / "trace.jsonl"
        trace_path.write_text("", encoding="utf-8")

    engine = AnthropicEngine(settings=settings)
    async with create_client(settings) as client:
        session = ResearchSession(
            engine,
            settings=settings,
            working_directory=output,
            max_turns=args.max_turns,
            http_client=client,
        )
        printer = ProgressPrinter(trace_path)
        session.subscribe(printer)

        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, session.abort)
        except NotImplementedError:
            logger.debug("SIGINT handler not supported on this platform")

        try:
            result = await session.run(args.seed_url)
        finally:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except NotImplementedError:
                logger.debug("SIGINT handler not supported on this platform")
            session.close()
            printer.print_usage()

    _print_summary(result)
    if result.aborted or not result.validation.is_complete:
        return EXIT_INCOMPLETE
    return EXIT_COMPLETE


def main(argv: Optional[List[str]] = None):
    args = build_parser().parse_args(argv)

    try:
        settings = Settings(LLM_PROVIDER="anthropic")  # instantiation triggers validators
    except ConfigurationError as e:
        sys.stderr.write(f"Configuration error: {e}\n")
        sys.exit(EXIT_FAILED)
    if args.model:
        settings = settings.model_copy(update={"ANTHROPIC_MODEL": args.model})

    _init_logging(settings.LOG_LEVEL)

    try:
        code = asyncio.run(arun(args, settings))
    except InputValidationError as e:
        sys.stderr.write(f"\nInvalid input: {e}\n")
        sys.exit(EXIT_FAILED)
    except PaperResearchError as e:
        sys.stderr.write(f"\nResearch run failed: {e}\n")
        sys.exit(EXIT_FAILED)
    except KeyboardInterrupt:
        sys.stderr.write("\nInterrupted by user.\n")
        sys.exit(EXIT_FAILED)
    except SystemExit:
        raise  # Let SystemExit pass through
    except Exception as e:
        sys.stderr.write(f"\nUnexpected error: {e}\n")
        sys.exit(EXIT_FAILED)
    sys.exit(code)


if __name__ == "__main__":
    main()
