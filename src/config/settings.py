from __future__ import annotations

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env once at module import so every BaseSettings subclass sees the env vars
load_dotenv()


class OpenAISettings(BaseSettings):
    """OpenAI API settings. Env vars prefixed with OPENAI_."""

    model_config = SettingsConfigDict(env_prefix="OPENAI_")

    api_key: str = ""  # empty = provider disabled
    model: str = "gpt-4o-mini"
    base_url: str | None = None


class OllamaSettings(BaseSettings):
    """Local Ollama daemon settings. Env vars prefixed with OLLAMA_."""

    model_config = SettingsConfigDict(env_prefix="OLLAMA_")

    host: str = "http://localhost:11434"
    model: str = "llama2"

    @field_validator("host")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class ProviderSettings(BaseSettings):
    """Completion backend routing settings."""

    model_config = SettingsConfigDict(env_prefix="PROVIDER_")

    active: str = "openai"

    @field_validator("active")
    @classmethod
    def _validate_active(cls, v: str) -> str:
        allowed = {"openai", "ollama"}
        if v not in allowed:
            msg = f"PROVIDER_ACTIVE must be one of {allowed} (got '{v}')"
            raise ValueError(msg)
        return v


class MemorySettings(BaseSettings):
    """Memory store and evolution settings. Env vars prefixed with MEMORY_."""

    model_config = SettingsConfigDict(env_prefix="MEMORY_")

    # Label only: the lexical retriever does not load an embedding model
    embedding_model: str = "all-MiniLM-L6-v2"
    evo_threshold: int = Field(100, ge=1)  # consolidate every N evolved notes
    neighbor_k: int = Field(5, ge=1)
    analysis_temperature: float = Field(0.7, ge=0.0, le=2.0)
    evolution_temperature: float = Field(0.7, ge=0.0, le=2.0)


class AgentSettings(BaseSettings):
    """Question-answering agent settings. Env vars prefixed with AGENT_."""

    model_config = SettingsConfigDict(env_prefix="AGENT_")

    retrieve_k: int = Field(10, ge=1)
    temperature_c5: float = Field(0.5, ge=0.0, le=2.0)


class Settings(BaseSettings):
    """Root settings composing all sub-configurations."""

    model_config = SettingsConfigDict(extra="ignore")

    openai: OpenAISettings = Field(default_factory=OpenAISettings)
    ollama: OllamaSettings = Field(default_factory=OllamaSettings)
    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    memory: MemorySettings = Field(default_factory=MemorySettings)
    agent: AgentSettings = Field(default_factory=AgentSettings)


def get_settings() -> Settings:
    """Load and validate settings. Raises ValidationError on invalid values."""
    return Settings()
