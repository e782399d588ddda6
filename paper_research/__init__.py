"""
Paper Research - bounded deep research sessions over a seed paper
"""

__version__ = "1.0.0"
__author__ = "Paper Research Team"

__all__ = [
    "ResearchSession",
    "ReportValidation",
    "RunResult",
    "Settings",
    "SourceReference",
    "extract_source",
    "search_papers",
    "validate_report",
    "__version__",
    "__author__",
]

def __getattr__(name: str):
    """Lazy import to avoid import-time side effects."""
    if name == "ResearchSession":
        from .session import ResearchSession
        return ResearchSession
    elif name in ("ReportValidation", "RunResult", "SourceReference"):
        from . import models
        return getattr(models, name)
    elif name == "Settings":
        from .config import Settings
        return Settings
    elif name == "extract_source":
        from .extraction.source import extract_source
        return extract_source
    elif name == "search_papers":
        from .search.aggregator import search_papers
        return search_papers
    elif name == "validate_report":
        from .report.validator import validate_report
        return validate_report
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
