from pydantic import BaseModel, ConfigDict, Field, StrictStr
from typing import Optional, List, Literal
from datetime import datetime, timezone


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


SourceType = Literal["arxiv", "pdf", "html", "other"]

# Fields reported in ExtractedMetadata.missing_fields, in reporting order
OPTIONAL_EXTRACTION_FIELDS = ("authors", "year", "abstract", "fullText")


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SourceReference(_CamelModel):
    """One provenance entry of a run's source table, keyed by URL."""
    url: str
    title: Optional[str] = None
    source: Optional[str] = None  # provenance tag: seed, provider tag or source type
    snippet: Optional[str] = None
    added_at: str = Field(default_factory=utc_now_iso, alias="addedAt")

    def merged_with(self, title: Optional[str] = None, snippet: Optional[str] = None,
                    source: Optional[str] = None) -> "SourceReference":
        """Fill empty fields from a later observation; populated fields and added_at win."""
        return self.model_copy(update={
            "title": self.title or title,
            "snippet": self.snippet or snippet,
            "source": self.source or source,
        })


class SourcesRecord(_CamelModel):
    """Sidecar written next to the report."""
    seed_url: str = Field(alias="seedUrl")
    sources: List[SourceReference] = Field(default_factory=list)


class ExtractedMetadata(_CamelModel):
    title: str
    authors: Optional[List[str]] = None
    year: Optional[int] = None
    abstract: Optional[str] = None
    full_text: Optional[str] = Field(default=None, alias="fullText")
    source_type: SourceType = Field(alias="sourceType")
    canonical_url: str = Field(alias="canonicalUrl")
    missing_fields: List[str] = Field(default_factory=list, alias="missingFields")

    def compute_missing_fields(self) -> List[str]:
        present = {
            "authors": bool(self.authors),
            "year": bool(self.year),
            "abstract": bool(self.abstract),
            "fullText": bool(self.full_text),
        }
        return [name for name in OPTIONAL_EXTRACTION_FIELDS if not present[name]]

    def finalize(self) -> "ExtractedMetadata":
        """Recompute missing_fields from the populated values."""
        self.missing_fields = self.compute_missing_fields()
        return self


class SearchResult(_CamelModel):
    title: str
    url: str
    snippet: str
    source: str  # provider tag


class SearchResponse(_CamelModel):
    query: str
    results: List[SearchResult] = Field(default_factory=list)
    provider_errors: Optional[List[str]] = Field(default=None, alias="providerErrors")


class ReportValidation(BaseModel):
    has_all_required_headings: bool
    missing_headings: List[str] = Field(default_factory=list)
    answered_required_questions: bool
    has_related_work_comparison: bool
    has_reference_urls: bool
    is_complete: bool


class RunResult(BaseModel):
    seed_url: str
    report_directory: str
    report_path: str
    report_html_path: str
    sources_path: str
    turn_count: int
    validation: ReportValidation
    aborted: bool = False  # abort() was called; the report may be partial


# ---- Tool payload shapes used for provenance harvesting ----

class WebSearchHitShape(BaseModel):
    title: StrictStr
    url: StrictStr
    snippet: StrictStr
    source: StrictStr


class WebSearchToolDetails(BaseModel):
    """Expected ``details`` of a web_search tool result."""
    query: StrictStr
    results: List[WebSearchHitShape]


class ExtractSourceToolDetails(_CamelModel):
    """Expected ``details`` of an extract_source tool result."""
    title: StrictStr
    canonical_url: StrictStr = Field(alias="canonicalUrl")
    source_type: SourceType = Field(alias="sourceType")
    abstract: Optional[StrictStr] = None
