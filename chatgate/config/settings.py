"""Application settings loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings

DEFAULT_SYSTEM_PROMPT = (
    "You are a friendly, helpful, and slightly witty AI assistant. "
    "Keep your responses concise and engaging. "
    "You are part of a chat application where history is saved."
)


class Settings(BaseSettings):
    environment: str = "production"  # production | development

    # Completion provider
    provider: str = "gemini"  # gemini | openai | bedrock
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    max_output_tokens: int = 1500
    temperature: float = 0.7
    completion_timeout_seconds: float = 30.0

    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash"
    gemini_safety_threshold: str = ""  # Empty = SDK defaults; else a HarmBlockThreshold name, e.g. BLOCK_NONE

    upstream_base_url: str = "https://api.openai.com"
    upstream_api_key: str = ""
    openai_model: str = "gpt-4o-mini"

    bedrock_model_id: str = ""
    aws_region: str = "us-east-1"

    # Rate limiting
    rate_limit_policy: str = "sliding"  # sliding | fixed
    rate_limit_max_requests: int = 10
    rate_limit_window_seconds: float = 60.0

    # Response cache
    cache_enabled: bool = True
    cache_ttl_seconds: float = 300.0
    cache_max_entries: int = 1000
    cache_key_normalization: str = "trim_casefold"  # trim_casefold | trim | exact

    # Shared state backend for rate limit counters and cached responses
    kv_backend: str = "memory"  # memory | dynamodb
    dynamodb_table_name: str = "chatgate-state"

    # Persistence
    mongodb_uri: str = ""  # Empty = persistence disabled
    mongodb_db: str = "chatbot"
    mongodb_collection: str = "chats"
    await_persistence: bool = False  # set on Lambda, where post-response work is frozen

    # CORS
    cors_allowed_origins: str = "http://localhost:3000"
    vercel_url: str = ""

    # Logging
    log_level: str = "INFO"
    audit_log_file: str = ""  # Empty = stdout only

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def allowed_origins_list(self) -> list[str]:
        """Parse comma-separated origins, adding the Vercel deployment URL if set."""
        origins = [o.strip() for o in self.cors_allowed_origins.split(",") if o.strip()]
        if self.vercel_url:
            origins.append(f"https://{self.vercel_url}")
        return origins


@lru_cache
def get_settings() -> Settings:
    return Settings()
