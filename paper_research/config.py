from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Literal, Optional
from functools import lru_cache

from .exceptions import ConfigurationError

DEFAULT_LLM: str = "disabled"  # CI-safe default, no secrets required

class Settings(BaseSettings):
    # ==== Reasoning engine ====
    LLM_PROVIDER: Literal["disabled", "anthropic"] = DEFAULT_LLM
    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_MODEL: str = Field("claude-sonnet-4-20250514", description="Anthropic model to use")
    ANTHROPIC_MAX_TOKENS: int = Field(8192, ge=256)

    # ==== Run budget / layout ====
    MAX_TURNS: int = Field(24, ge=1, description="Turn cap before the engine is cancelled")
    REPORTS_ROOT: str = "reports"
    WORKING_DIRECTORY: Optional[str] = None

    # ==== API Compliance ====
    CONTACT_EMAIL: Optional[str] = Field(None, description="Contact email for API compliance (User-Agent headers)")

    # ==== HTTP & retries ====
    HTTP_TIMEOUT_SECONDS: int = 30
    RETRY_MAX_TRIES: int = Field(3, ge=1)
    RETRY_BACKOFF_BASE_SECONDS: float = 0.5
    READABILITY_MIRROR_BASE: str = "https://r.jina.ai/"

    # ==== Content budgets ====
    DEFAULT_SEARCH_LIMIT: int = Field(5, ge=1, le=10)
    SNIPPET_MAX_CHARS: int = 320
    MAX_ABSTRACT_CHARS: int = 1_500
    MAX_FULL_TEXT_CHARS: int = 30_000
    READ_MAX_OUTPUT_CHARS: int = 60_000

    # ==== Report contract ====
    MIN_SECTION_CHARS: int = Field(120, description="Minimum body length of each answered question")
    MAX_SLUG_CHARS: int = Field(80, description="Cap for host/path derived report slugs")

    # ==== Observability ====
    LOG_LEVEL: Literal["DEBUG","INFO","WARNING","ERROR"] = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "allow"  # Allow extra fields from env

    def model_post_init(self, __context):
        """Validate provider configuration after all fields are set"""
        if self.LLM_PROVIDER == "anthropic" and not self.ANTHROPIC_API_KEY:
            raise ConfigurationError("ANTHROPIC_API_KEY required for LLM_PROVIDER=anthropic")

    def user_agent(self) -> str:
        contact = self.CONTACT_EMAIL or "research@example.com"
        return f"paper-research/1.0 (+mailto:{contact})"

@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
