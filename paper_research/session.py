"""
Research session controller.

Drives one bounded research run: hands the seed URL and the report contract
to a reasoning engine, watches its event stream to count turns and harvest
source provenance, then renders, records and validates the report the engine
wrote.
"""

import asyncio
import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

import httpx
from pydantic import ValidationError

from .cancel import CancelToken
from .config import Settings, get_settings
from .exceptions import (
    ArtifactMissingError,
    InvalidSeedUrlError,
    RunInProgressError,
    TurnCapExceededError,
)
from .llm.engine import ReasoningEngine
from .llm.events import ReportFinalizedEvent, SessionEvent, ToolExecutionEndEvent, TurnEndEvent
from .llm.messages import create_research_status_message
from .models import (
    ExtractSourceToolDetails,
    ReportValidation,
    RunResult,
    SourceReference,
    SourcesRecord,
    WebSearchToolDetails,
)
from .providers.arxiv import is_arxiv_host, parse_arxiv_id
from .report.renderer import render_report_html
from .report.template import build_system_prompt, build_user_prompt
from .report.validator import validate_report
from .tools import EXTRACT_SOURCE, WEB_SEARCH, create_research_tools, resolve_path_within_root, to_prompt_path

logger = logging.getLogger(__name__)

REPORT_FILENAME = "report.md"
REPORT_HTML_FILENAME = "report.html"
SOURCES_FILENAME = "sources.json"

_NON_SLUG = re.compile(r"[^a-z0-9]+")

SessionListener = Callable[[SessionEvent], None]


@dataclass
class RunState:
    """Mutable state of the active run"""
    cancel: CancelToken = field(default_factory=CancelToken)
    turn_count: int = 0
    max_turns_exceeded: bool = False
    aborted: bool = False
    sources: Dict[str, SourceReference] = field(default_factory=dict)


def sanitize_slug(value: str) -> str:
    return _NON_SLUG.sub("-", value.lower()).strip("-")


def create_paper_slug(seed_url: str, max_chars: int = 80) -> str:
    """Directory name for a seed URL.

    arXiv abstract and PDF links map to ``arxiv-<id>``; anything else,
    including arXiv listing pages, to the host plus path segments.
    """
    parsed = urlparse(seed_url)
    host = (parsed.hostname or "").lower()
    if is_arxiv_host(host):
        arxiv_id = parse_arxiv_id(seed_url)
        if arxiv_id:
            return sanitize_slug(f"arxiv-{arxiv_id}") or "arxiv-paper"

    segments = [s for s in parsed.path.split("/") if s]
    slug = sanitize_slug("-".join([host] + segments))[:max_chars].strip("-")
    return slug or "paper"


def validate_seed_url(seed_url: str) -> str:
    """Trimmed seed URL, or raise InvalidSeedUrlError."""
    trimmed = (seed_url or "").strip()
    if not trimmed:
        raise InvalidSeedUrlError("Seed paper URL is required.", seed_url or "")
    parsed = urlparse(trimmed)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidSeedUrlError(f"Invalid seed paper URL: {seed_url}", seed_url)
    return trimmed


def add_source(sources: Dict[str, SourceReference], url: Optional[str], title: Optional[str] = None,
               snippet: Optional[str] = None, source: Optional[str] = None) -> None:
    """Insert or merge one observation into the source table.

    Existing fields and the original timestamp win; later observations only
    fill gaps.
    """
    url = (url or "").strip()
    if not url:
        return
    existing = sources.get(url)
    if existing is None:
        sources[url] = SourceReference(url=url, title=title, snippet=snippet, source=source)
    else:
        sources[url] = existing.merged_with(title=title, snippet=snippet, source=source)


def ingest_tool_sources(sources: Dict[str, SourceReference], tool_name: str, details: Any) -> None:
    """Harvest provenance from a tool result payload of the expected shape."""
    try:
        if tool_name == WEB_SEARCH:
            payload = WebSearchToolDetails.model_validate(details)
            for hit in payload.results:
                add_source(sources, hit.url, title=hit.title, snippet=hit.snippet, source=hit.source)
        elif tool_name == EXTRACT_SOURCE:
            extracted = ExtractSourceToolDetails.model_validate(details)
            add_source(sources, extracted.canonical_url, title=extracted.title,
                       snippet=extracted.abstract, source=extracted.source_type)
    except ValidationError as e:
        logger.debug(f"Ignoring {tool_name} result with unexpected shape: {e.error_count()} errors")


def sorted_sources(sources: Dict[str, SourceReference]) -> List[SourceReference]:
    return [sources[url] for url in sorted(sources)]


def dump_sources_record(seed_url: str, sources: Dict[str, SourceReference]) -> str:
    record = SourcesRecord(seed_url=seed_url, sources=sorted_sources(sources))
    return json.dumps(record.model_dump(by_alias=True), indent=2)


def load_sources_record(path) -> SourcesRecord:
    """Parse a ``sources.json`` sidecar."""
    return SourcesRecord.model_validate_json(Path(path).read_text(encoding="utf-8"))


class ResearchSession:
    """Runs seed-paper research through a reasoning engine.

    One session serves one run at a time. Events from the engine, plus the
    session's own ``report_finalized``, are forwarded to subscribers.
    """

    def __init__(self, engine: ReasoningEngine,
                 settings: Optional[Settings] = None,
                 working_directory: Optional[os.PathLike] = None,
                 reports_root: Optional[str] = None,
                 max_turns: Optional[int] = None,
                 http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings or get_settings()
        self.engine = engine
        self.working_directory = Path(
            working_directory or self.settings.WORKING_DIRECTORY or os.getcwd()
        ).resolve()
        self.reports_root = reports_root or self.settings.REPORTS_ROOT
        self.max_turns = max(1, int(max_turns if max_turns is not None else self.settings.MAX_TURNS))

        self._state: Optional[RunState] = None
        self._listeners: List[SessionListener] = []

        engine.set_tools(create_research_tools(
            self.working_directory,
            client=http_client,
            cancel_source=lambda: self._state.cancel if self._state else None,
            settings=self.settings,
        ))
        self._unsubscribe_engine = engine.subscribe(self._handle_engine_event)

    @property
    def is_running(self) -> bool:
        return self._state is not None

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        """Detach from the engine's event stream."""
        self._unsubscribe_engine()

    def abort(self) -> None:
        """Cancel the active run, if any."""
        state = self._state
        if state is None:
            return
        logger.info("Research run abort requested")
        state.aborted = True
        state.cancel.cancel("aborted")
        self.engine.abort()

    def run(self, seed_url: str) -> "asyncio.Task[RunResult]":
        """Start a run for ``seed_url`` and return its task.

        Input checks happen before this returns, so a second call while a run
        is active, or a malformed seed, raises immediately. Must be called
        from a running event loop.

        Raises:
            RunInProgressError: If a run is already active
            InvalidSeedUrlError: If the seed is empty or not an http(s) URL
        """
        if self._state is not None:
            raise RunInProgressError("A research run is already in progress for this session.")
        seed = validate_seed_url(seed_url)
        state = RunState()
        self._state = state
        task = asyncio.ensure_future(self._run(seed, state))
        # Also fires for a task cancelled before its first step
        task.add_done_callback(lambda _: self._release(state))
        return task

    def _release(self, state: RunState) -> None:
        if self._state is state:
            self._state = None

    async def _run(self, seed_url: str, state: RunState) -> RunResult:
        try:
            slug = create_paper_slug(seed_url, self.settings.MAX_SLUG_CHARS)
            report_dir = resolve_path_within_root(
                Path(self.reports_root) / slug, self.working_directory
            )
            report_path = report_dir / REPORT_FILENAME
            html_path = report_dir / REPORT_HTML_FILENAME
            sources_path = report_dir / SOURCES_FILENAME
            await asyncio.to_thread(report_dir.mkdir, parents=True, exist_ok=True)

            add_source(state.sources, seed_url, title="Seed Paper", source="seed")
            prompt_report_path = to_prompt_path(report_path, self.working_directory)

            self.engine.set_system_prompt(build_system_prompt())
            self.engine.append_message(create_research_status_message(
                f"Research run initialized for {seed_url}. Report target: {prompt_report_path}.",
                status="initialized",
            ))
            logger.info(f"Starting research run for {seed_url} (slug={slug}, max_turns={self.max_turns})")

            if state.cancel.cancelled:
                logger.info(f"Run aborted before the first prompt: {state.cancel.reason}")
            else:
                await self.engine.prompt(build_user_prompt(seed_url, prompt_report_path))
        finally:
            self._release(state)

        if state.max_turns_exceeded:
            raise TurnCapExceededError(self.max_turns)

        if not report_path.is_file():
            raise ArtifactMissingError(prompt_report_path)

        markdown = await asyncio.to_thread(report_path.read_text, encoding="utf-8")
        html = render_report_html(markdown, title=f"Deep Research Report: {slug}")
        await asyncio.to_thread(html_path.write_text, html, encoding="utf-8")
        await asyncio.to_thread(
            sources_path.write_text, dump_sources_record(seed_url, state.sources), encoding="utf-8"
        )

        validation = validate_report(markdown, self.settings.MIN_SECTION_CHARS)
        self._append_finalized_status(validation, prompt_report_path)
        logger.info(
            f"Research run finished after {state.turn_count} turns "
            f"(complete={validation.is_complete}, sources={len(state.sources)})"
        )

        self._emit(ReportFinalizedEvent(
            report_path=str(report_path),
            report_html_path=str(html_path),
            sources_path=str(sources_path),
            validation=validation,
        ))

        return RunResult(
            seed_url=seed_url,
            report_directory=str(report_dir),
            report_path=str(report_path),
            report_html_path=str(html_path),
            sources_path=str(sources_path),
            turn_count=state.turn_count,
            validation=validation,
            aborted=state.aborted,
        )

    def _append_finalized_status(self, validation: ReportValidation, report_path: str) -> None:
        if validation.is_complete:
            note = f"Report finalized at {report_path}; all template checks passed."
        else:
            failed = []
            if validation.missing_headings:
                failed.append(f"missing headings: {', '.join(validation.missing_headings)}")
            if not validation.answered_required_questions:
                failed.append("unanswered questions")
            if not validation.has_related_work_comparison:
                failed.append("no related-work comparison")
            if not validation.has_reference_urls:
                failed.append("no reference URLs")
            note = f"Report finalized at {report_path} with open issues: {'; '.join(failed)}."
        self.engine.append_message(create_research_status_message(note, status="finalized"))

    def _handle_engine_event(self, event: SessionEvent) -> None:
        state = self._state
        if state is not None:
            if isinstance(event, TurnEndEvent):
                state.turn_count += 1
                if state.turn_count >= self.max_turns and not state.max_turns_exceeded:
                    state.max_turns_exceeded = True
                    logger.warning(f"Turn cap of {self.max_turns} reached; cancelling run")
                    state.cancel.cancel("max turns reached")
                    self.engine.abort()
            elif isinstance(event, ToolExecutionEndEvent) and not event.is_error:
                details = event.result.get("details") if isinstance(event.result, dict) else None
                ingest_tool_sources(state.sources, event.tool_name, details)
        self._emit(event)

    def _emit(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Session listener failed on {event.type}: {e}")
