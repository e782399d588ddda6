"""
Custom exceptions for paper research sessions
"""

from typing import List, Optional


class PaperResearchError(Exception):
    """Base exception for paper research"""
    pass


class ConfigurationError(PaperResearchError):
    """Configuration related errors"""
    pass


class InputValidationError(PaperResearchError):
    """Rejected input, raised before any I/O happens"""
    pass


class InvalidSeedUrlError(InputValidationError):
    """Seed paper URL is empty or not an absolute URL"""
    def __init__(self, message: str, seed_url: str = ""):
        super().__init__(message)
        self.seed_url = seed_url


class InvalidUrlError(InputValidationError):
    """Source URL handed to the extraction pipeline is unusable"""
    pass


class InvalidQueryError(InputValidationError):
    """Search query is empty"""
    pass


class PathOutsideRootError(InputValidationError):
    """Path resolves outside the sandbox root"""
    def __init__(self, path: str, root: str):
        super().__init__(f'Path "{path}" resolves outside the allowed root: {root}')
        self.path = path
        self.root = root


class RunInProgressError(PaperResearchError):
    """A run is already active on this session"""
    pass


class RunFailedError(PaperResearchError):
    """The run terminated without valid artifacts"""
    pass


class TurnCapExceededError(RunFailedError):
    """The reasoning engine hit the configured turn cap"""
    def __init__(self, max_turns: int):
        super().__init__(
            f"Reached max turn limit ({max_turns}) before the run naturally terminated."
        )
        self.max_turns = max_turns


class ArtifactMissingError(RunFailedError):
    """The reasoning engine finished without writing the report"""
    def __init__(self, path: str):
        super().__init__(
            f"Expected report artifact not found at {path}. "
            "The model likely did not write the report file."
        )
        self.path = path


class APIError(PaperResearchError):
    """Remote service errors"""
    def __init__(self, message: str, provider: str = None, status_code: int = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class FetchError(APIError):
    """Remote server rejected the request"""
    pass


class RecordNotFoundError(APIError):
    """Scholarly record lookup returned no matching entry"""
    pass


class RecordUnparseableError(APIError):
    """Scholarly record payload could not be parsed"""
    pass


class SearchUnavailableError(PaperResearchError):
    """Every search provider failed or returned nothing usable"""
    def __init__(self, provider_errors: Optional[List[str]] = None):
        self.provider_errors = list(provider_errors or [])
        detail = f" ({'; '.join(self.provider_errors)})" if self.provider_errors else ""
        super().__init__(f"No search results available{detail}.")


class OperationCancelledError(PaperResearchError):
    """Operation stopped because the run's cancel signal was tripped"""
    pass
