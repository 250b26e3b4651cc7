# config.py
# Runtime settings. `.env` is loaded first, then environment variables are
# read into a validated Settings model. CLI flags override single fields.

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from code_analyzer import search

PROVIDER_BASE_URLS = {
    "openai": None,
    "openrouter": "https://openrouter.ai/api/v1",
}
PROVIDER_KEY_VARS = {
    "openai": "OPENAI_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
}
_TRUTHY = {"1", "true", "yes", "on"}


class ConfigError(Exception):
    """Raised when settings are missing or invalid."""


class Settings(BaseModel):
    provider: str = Field("openai", description="One of: " + ", ".join(PROVIDER_BASE_URLS))
    model: str = "gpt-4o-mini"
    api_key: str | None = None
    debug: bool = False
    max_turns: int = Field(25, ge=1)

    plan_max_tokens: int = 400
    thought_max_tokens: int = 300
    summary_max_tokens: int = 600
    analysis_max_tokens: int = 4000

    extensions: list[str] = Field(default_factory=lambda: list(search.DEFAULT_EXTENSIONS))
    ignore: list[str] = Field(default_factory=lambda: list(search.DEFAULT_IGNORE))
    top_files: int = Field(search.TOP_FILES, ge=1)

    @property
    def base_url(self) -> str | None:
        return PROVIDER_BASE_URLS.get(self.provider)

    @classmethod
    def from_env(cls, **overrides) -> "Settings":
        load_dotenv()
        provider = overrides.pop("provider", None) or os.getenv("AGENT_PROVIDER", "openai")
        if provider not in PROVIDER_BASE_URLS:
            raise ConfigError(
                f"Unknown provider '{provider}'. Choose one of: {', '.join(PROVIDER_BASE_URLS)}"
            )

        values: dict = {"provider": provider, "api_key": os.getenv(PROVIDER_KEY_VARS[provider])}
        if os.getenv("AGENT_MODEL"):
            values["model"] = os.getenv("AGENT_MODEL")
        if os.getenv("AGENT_MAX_TURNS"):
            values["max_turns"] = os.getenv("AGENT_MAX_TURNS")
        values["debug"] = os.getenv("AGENT_DEBUG", "").strip().lower() in _TRUTHY
        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            raise ConfigError(f"Invalid settings: {exc}") from exc

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigError(
                f"{PROVIDER_KEY_VARS[self.provider]} not found in environment variables. "
                "Please create a .env file with your API key."
            )
        return self.api_key
