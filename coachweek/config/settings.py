from functools import lru_cache

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_PROVIDERS = {"mistral", "ollama", "huggingface", "gemini", "openai"}


def normalize_provider(value: str) -> str:
    """Normalize a provider name; raise ValueError for unknown backends."""
    normalized = value.strip().lower()
    if normalized not in SUPPORTED_PROVIDERS:
        raise ValueError(
            f"Unsupported LLM_PROVIDER '{value}'. Valid providers are: {', '.join(sorted(SUPPORTED_PROVIDERS))}"
        )
    return normalized


class Settings(BaseSettings):
    llm_provider: str = Field(default="mistral", validation_alias="LLM_PROVIDER")
    llm_timeout_seconds: float = Field(default=60.0, validation_alias="LLM_TIMEOUT_SECONDS")

    mistral_api_key: str = Field(default="", validation_alias="MISTRAL_API_KEY")
    mistral_api_url: str = Field(
        default="https://api.mistral.ai/v1/chat/completions",
        validation_alias="MISTRAL_API_URL",
    )
    mistral_model: str = Field(default="mistral-medium-latest", validation_alias="MISTRAL_MODEL")

    ollama_base_url: str = Field(default="http://localhost:11434", validation_alias="OLLAMA_BASE_URL")
    ollama_model: str = Field(default="mistral", validation_alias="OLLAMA_MODEL")

    huggingface_api_key: str = Field(default="", validation_alias="HUGGINGFACE_API_KEY")
    huggingface_model: str = Field(
        default="mistralai/Mistral-Nemo-Instruct-2407",
        validation_alias="HUGGINGFACE_MODEL",
    )

    gemini_api_key: str = Field(default="", validation_alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.0-flash", validation_alias="GEMINI_MODEL")

    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", validation_alias="OPENAI_MODEL")

    agent_max_retries: int = Field(
        default=2,
        ge=1,
        validation_alias="AGENT_MAX_RETRIES",
        description="Attempts per specialized agent call",
    )
    agent_backoff_seconds: float = Field(
        default=1.0,
        ge=0.0,
        validation_alias="AGENT_BACKOFF_SECONDS",
        description="Linear backoff unit between agent attempts",
    )
    fallback_max_retries: int = Field(default=3, ge=1, validation_alias="FALLBACK_MAX_RETRIES")
    fallback_backoff_seconds: float = Field(default=2.0, ge=0.0, validation_alias="FALLBACK_BACKOFF_SECONDS")
    use_agentic_planning: bool = Field(
        default=True,
        validation_alias="USE_AGENTIC_PLANNING",
        description="Run the five-agent pipeline before the single-call fallback",
    )

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="LOG_FILE")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("llm_provider")
    @classmethod
    def validate_provider(cls, value: str) -> str:
        return normalize_provider(value)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(valid_levels)}. Defaulting to INFO.")
            return "INFO"
        return upper_value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once from the environment.

    Only the outer edge (CLI, service wiring) should call this; planning
    components receive a Settings instance explicitly.
    """
    return Settings()
