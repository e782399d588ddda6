"""
Tests for the research session controller.
"""

import asyncio
import json

import pytest

from paper_research.exceptions import (
    ArtifactMissingError,
    InvalidSeedUrlError,
    OperationCancelledError,
    RunInProgressError,
    TurnCapExceededError,
)
from paper_research.llm.messages import ResearchStatusMessage
from paper_research.models import SourceReference
from paper_research.session import (
    ResearchSession,
    add_source,
    create_paper_slug,
    ingest_tool_sources,
    load_sources_record,
    sanitize_slug,
)
from tests.conftest import FakeEngine

SEED = "https://arxiv.org/abs/1706.03762"
REPORT_PATH = "reports/arxiv-1706-03762/report.md"


def _writes_report(markdown, turns=1):
    async def script(engine):
        for _ in range(turns):
            engine.turn()
        await engine.call_tool("write", {"path": REPORT_PATH, "content": markdown})
    return script


class TestSlugs:
    """Report directory naming."""

    def test_arxiv_abs_url(self):
        assert create_paper_slug("https://arxiv.org/abs/1706.03762") == "arxiv-1706-03762"

    def test_arxiv_pdf_url(self):
        assert create_paper_slug("https://arxiv.org/pdf/2401.01234v2.pdf") == "arxiv-2401-01234v2"
        assert create_paper_slug("https://arxiv.org/pdf/2401.01234") == "arxiv-2401-01234"

    def test_arxiv_host_without_id_uses_host_and_path(self):
        assert create_paper_slug("https://arxiv.org/list/cs.AI/recent") == "arxiv-org-list-cs-ai-recent"
        assert create_paper_slug("https://arxiv.org/list/cs.CL/new") == "arxiv-org-list-cs-cl-new"

    def test_generic_url_uses_host_and_path(self):
        slug = create_paper_slug("https://www.Example.com/papers/My_Paper.html")
        assert slug == "www-example-com-papers-my-paper-html"

    def test_generic_slug_is_capped(self):
        slug = create_paper_slug("https://example.com/" + "/".join(["segment"] * 30))
        assert len(slug) <= 80
        assert not slug.endswith("-")

    def test_sanitize_slug(self):
        assert sanitize_slug("  Hello, World!  ") == "hello-world"
        assert sanitize_slug("---") == ""


class TestSourceTable:
    """Provenance merging."""

    def test_add_source_merge_keeps_first_observation(self):
        sources = {}
        add_source(sources, SEED, title="Seed Paper", source="seed")
        first = sources[SEED]
        add_source(sources, SEED, title="Attention Is All You Need",
                   snippet="The dominant sequence transduction models...", source="semantic-scholar")

        merged = sources[SEED]
        assert len(sources) == 1
        assert merged.title == "Seed Paper"
        assert merged.source == "seed"
        assert merged.snippet.startswith("The dominant")
        assert merged.added_at == first.added_at

    def test_add_source_is_idempotent(self):
        sources = {}
        add_source(sources, SEED, title="Seed Paper", source="seed")
        snapshot = sources[SEED].model_dump()
        add_source(sources, SEED, title="Seed Paper", source="seed")
        assert sources[SEED].model_dump() == snapshot

    def test_add_source_ignores_blank_url(self):
        sources = {}
        add_source(sources, "   ", title="Nothing")
        assert sources == {}

    def test_ingest_web_search_results(self):
        sources = {}
        ingest_tool_sources(sources, "web_search", {
            "query": "attention",
            "results": [
                {"title": "A", "url": "https://a.example/1", "snippet": "sa", "source": "semantic-scholar"},
                {"title": "B", "url": "https://b.example/2", "snippet": "sb", "source": "arxiv"},
            ],
        })
        assert set(sources) == {"https://a.example/1", "https://b.example/2"}
        assert sources["https://b.example/2"].source == "arxiv"

    def test_ingest_extract_source_uses_canonical_url(self):
        sources = {}
        ingest_tool_sources(sources, "extract_source", {
            "title": "Paper",
            "canonicalUrl": "https://example.org/paper",
            "sourceType": "html",
            "abstract": "Short abstract",
            "missingFields": [],
        })
        ref = sources["https://example.org/paper"]
        assert ref.source == "html"
        assert ref.snippet == "Short abstract"

    @pytest.mark.parametrize("tool_name,details", [
        ("web_search", {"query": 5, "results": []}),
        ("web_search", {"query": "q", "results": [{"title": "A", "url": 42, "snippet": "", "source": "x"}]}),
        ("web_search", None),
        ("extract_source", {"title": "T", "canonicalUrl": "https://x.example", "sourceType": "video"}),
        ("extract_source", ["not", "a", "dict"]),
    ])
    def test_ingest_ignores_unexpected_shapes(self, tool_name, details):
        sources = {}
        ingest_tool_sources(sources, tool_name, details)
        assert sources == {}

    def test_ingest_ignores_other_tools(self):
        sources = {}
        ingest_tool_sources(sources, "write", {"path": "x", "url": "https://x.example"})
        assert sources == {}


class TestRun:
    """End-to-end runs against the scripted engine."""

    @pytest.mark.asyncio
    async def test_successful_run_produces_artifacts(self, tmp_path, settings, complete_report):
        async def script(engine):
            engine.turn()
            engine.tool_end("web_search", {
                "query": "attention",
                "results": [
                    {"title": "Z paper", "url": "https://z.example/p", "snippet": "z", "source": "arxiv"},
                    {"title": "B paper", "url": "https://b.example/p", "snippet": "b", "source": "semantic-scholar"},
                ],
            })
            engine.turn()
            await engine.call_tool("write", {"path": REPORT_PATH, "content": complete_report})

        engine = FakeEngine(script)
        session = ResearchSession(engine, settings=settings, working_directory=tmp_path)
        events = []
        session.subscribe(events.append)

        result = await session.run(f"  {SEED}  ")

        assert result.seed_url == SEED
        assert result.turn_count == 2
        assert result.validation.is_complete
        assert result.aborted is False
        report_dir = tmp_path / "reports" / "arxiv-1706-03762"
        assert result.report_directory == str(report_dir)
        assert (report_dir / "report.md").read_text() == complete_report

        html = (report_dir / "report.html").read_text()
        assert "<title>Deep Research Report: arxiv-1706-03762</title>" in html
        assert "<h2>References</h2>" in html

        record = load_sources_record(result.sources_path)
        assert record.seed_url == SEED
        urls = [s.url for s in record.sources]
        assert urls == sorted(urls)
        assert set(urls) == {SEED, "https://z.example/p", "https://b.example/p"}
        seed = next(s for s in record.sources if s.url == SEED)
        assert seed.title == "Seed Paper" and seed.source == "seed"

        raw = json.loads((report_dir / "sources.json").read_text())
        assert set(raw) == {"seedUrl", "sources"}
        assert "addedAt" in raw["sources"][0]

        assert events[-1].type == "report_finalized"
        assert events[-1].validation.is_complete
        assert not session.is_running

    @pytest.mark.asyncio
    async def test_prompts_reference_seed_and_report_path(self, tmp_path, settings, complete_report):
        engine = FakeEngine(_writes_report(complete_report))
        session = ResearchSession(engine, settings=settings, working_directory=tmp_path)

        await session.run(SEED)

        assert SEED in engine.prompts[0]
        assert REPORT_PATH in engine.prompts[0]
        assert "References section" in engine.system_prompt

        statuses = [m for m in engine.messages if isinstance(m, ResearchStatusMessage)]
        assert [s.status for s in statuses] == ["initialized", "finalized"]
        assert statuses[0].to_llm()["content"].startswith("Research status (initialized):")

    @pytest.mark.asyncio
    async def test_incomplete_report_is_returned_not_raised(self, tmp_path, settings):
        engine = FakeEngine(_writes_report("# Paper\n\nToo short.\n"))
        session = ResearchSession(engine, settings=settings, working_directory=tmp_path)

        result = await session.run(SEED)

        assert not result.validation.is_complete
        assert "## References" in result.validation.missing_headings
        finalized = [m for m in engine.messages if isinstance(m, ResearchStatusMessage)][-1]
        assert "open issues" in finalized.note

    @pytest.mark.asyncio
    async def test_turn_cap_aborts_exactly_once(self, tmp_path, settings, complete_report):
        async def script(engine):
            for _ in range(5):
                engine.turn()
            await engine.call_tool("write", {"path": REPORT_PATH, "content": complete_report})

        engine = FakeEngine(script)
        session = ResearchSession(engine, settings=settings, working_directory=tmp_path, max_turns=3)
        events = []
        session.subscribe(events.append)

        with pytest.raises(TurnCapExceededError) as exc_info:
            await session.run(SEED)

        assert exc_info.value.max_turns == 3
        assert "Reached max turn limit (3)" in str(exc_info.value)
        assert engine.abort_calls == 1
        assert not any(e.type == "report_finalized" for e in events)
        assert not session.is_running

    def test_max_turns_is_clamped_to_one(self, tmp_path, settings):
        session = ResearchSession(FakeEngine(), settings=settings, working_directory=tmp_path, max_turns=0)
        assert session.max_turns == 1

    @pytest.mark.asyncio
    async def test_missing_report_raises_artifact_missing(self, tmp_path, settings):
        engine = FakeEngine(lambda e: asyncio.sleep(0))
        session = ResearchSession(engine, settings=settings, working_directory=tmp_path)

        with pytest.raises(ArtifactMissingError) as exc_info:
            await session.run(SEED)

        assert exc_info.value.path == REPORT_PATH
        assert not session.is_running

    @pytest.mark.asyncio
    async def test_engine_failure_propagates_unchanged(self, tmp_path, settings):
        async def script(engine):
            raise RuntimeError("model exploded")

        session = ResearchSession(FakeEngine(script), settings=settings, working_directory=tmp_path)

        with pytest.raises(RuntimeError, match="model exploded"):
            await session.run(SEED)
        assert not session.is_running

    @pytest.mark.asyncio
    async def test_concurrent_run_is_rejected_synchronously(self, tmp_path, settings, complete_report):
        release = asyncio.Event()

        async def script(engine):
            await release.wait()
            await engine.call_tool("write", {"path": REPORT_PATH, "content": complete_report})

        session = ResearchSession(FakeEngine(script), settings=settings, working_directory=tmp_path)
        first = asyncio.ensure_future(session.run(SEED))
        await asyncio.sleep(0)

        with pytest.raises(RunInProgressError):
            session.run(SEED)

        release.set()
        result = await first
        assert result.validation.is_complete

    @pytest.mark.parametrize("seed", ["", "   ", "not a url", "ftp://example.com/paper.pdf"])
    def test_invalid_seed_is_rejected_before_any_work(self, tmp_path, settings, seed):
        engine = FakeEngine()
        session = ResearchSession(engine, settings=settings, working_directory=tmp_path)

        with pytest.raises(InvalidSeedUrlError):
            session.run(seed)

        assert engine.prompts == []
        assert not session.is_running
        assert not (tmp_path / "reports").exists()

    def test_abort_without_run_is_noop(self, tmp_path, settings):
        engine = FakeEngine()
        session = ResearchSession(engine, settings=settings, working_directory=tmp_path)
        session.abort()
        assert engine.abort_calls == 0

    @pytest.mark.asyncio
    async def test_abort_cancels_tool_network_work(self, tmp_path, settings):
        started = asyncio.Event()
        outcome = {}

        async def script(engine):
            started.set()
            await asyncio.sleep(0.01)
            try:
                await engine.call_tool("web_search", {"query": "attention"})
            except OperationCancelledError as e:
                outcome["error"] = e

        engine = FakeEngine(script)
        session = ResearchSession(engine, settings=settings, working_directory=tmp_path)
        task = asyncio.ensure_future(session.run(SEED))
        await started.wait()
        session.abort()

        with pytest.raises(ArtifactMissingError):
            await task
        assert engine.abort_calls == 1
        assert isinstance(outcome.get("error"), OperationCancelledError)

    @pytest.mark.asyncio
    async def test_cancelled_before_start_releases_session(self, tmp_path, settings, complete_report):
        engine = FakeEngine(_writes_report(complete_report))
        session = ResearchSession(engine, settings=settings, working_directory=tmp_path)

        task = session.run(SEED)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await asyncio.sleep(0)

        assert not session.is_running
        assert engine.prompts == []
        result = await session.run(SEED)
        assert result.validation.is_complete

    @pytest.mark.asyncio
    async def test_abort_before_first_prompt_skips_model(self, tmp_path, settings, complete_report):
        engine = FakeEngine(_writes_report(complete_report))
        session = ResearchSession(engine, settings=settings, working_directory=tmp_path)

        task = session.run(SEED)
        session.abort()

        with pytest.raises(ArtifactMissingError):
            await task
        assert engine.prompts == []
        assert not session.is_running

    @pytest.mark.asyncio
    async def test_abort_after_report_is_written_still_finalizes(self, tmp_path, settings, complete_report):
        holder = {}

        async def script(engine):
            engine.turn()
            await engine.call_tool("write", {"path": REPORT_PATH, "content": complete_report})
            holder["session"].abort()

        engine = FakeEngine(script)
        session = ResearchSession(engine, settings=settings, working_directory=tmp_path)
        holder["session"] = session

        result = await session.run(SEED)

        assert result.aborted is True
        assert result.validation.is_complete
        assert (tmp_path / "reports" / "arxiv-1706-03762" / "report.html").is_file()

    @pytest.mark.asyncio
    async def test_error_tool_results_are_not_harvested(self, tmp_path, settings, complete_report):
        async def script(engine):
            engine.tool_end("web_search", {
                "query": "q",
                "results": [{"title": "E", "url": "https://err.example", "snippet": "", "source": "arxiv"}],
            }, is_error=True)
            await engine.call_tool("write", {"path": REPORT_PATH, "content": complete_report})

        session = ResearchSession(FakeEngine(script), settings=settings, working_directory=tmp_path)
        result = await session.run(SEED)

        urls = [s.url for s in load_sources_record(result.sources_path).sources]
        assert urls == [SEED]

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_block_delivery(self, tmp_path, settings, complete_report):
        session = ResearchSession(FakeEngine(_writes_report(complete_report)),
                                  settings=settings, working_directory=tmp_path)
        seen = []

        def broken(event):
            raise ValueError("listener bug")

        session.subscribe(broken)
        session.subscribe(lambda e: seen.append(e.type))

        await session.run(SEED)

        assert "turn_end" in seen
        assert seen[-1] == "report_finalized"

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self, tmp_path, settings, complete_report):
        session = ResearchSession(FakeEngine(_writes_report(complete_report)),
                                  settings=settings, working_directory=tmp_path)
        seen = []
        unsubscribe = session.subscribe(seen.append)
        unsubscribe()

        await session.run(SEED)
        assert seen == []

    @pytest.mark.asyncio
    async def test_session_can_run_again_after_failure(self, tmp_path, settings, complete_report):
        calls = {"n": 0}

        async def script(engine):
            calls["n"] += 1
            if calls["n"] > 1:
                await engine.call_tool("write", {"path": REPORT_PATH, "content": complete_report})

        session = ResearchSession(FakeEngine(script), settings=settings, working_directory=tmp_path)
        with pytest.raises(ArtifactMissingError):
            await session.run(SEED)

        result = await session.run(SEED)
        assert result.validation.is_complete


def test_source_reference_serializes_camel_case():
    ref = SourceReference(url="https://x.example", title="X")
    dumped = ref.model_dump(by_alias=True)
    assert "addedAt" in dumped and dumped["addedAt"].endswith("Z")
