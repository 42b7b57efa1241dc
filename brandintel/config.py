from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Synchronous deep research (Perplexity chat completions)
    perplexity_api_key: str = ""
    perplexity_base_url: str = "https://api.perplexity.ai"
    perplexity_model: str = "sonar-deep-research"
    perplexity_fallback_model: str = "sonar-pro"  # tried once when the primary model fails
    perplexity_timeout_seconds: float = 600.0

    # Asynchronous deep research (OpenAI background responses)
    openai_api_key: str = ""
    openai_base_url: str = ""  # blank = SDK default
    deep_research_model: str = "o3-deep-research-2025-06-26"
    deep_research_max_output_tokens: int = 50000
    poll_interval_seconds: float = 30.0
    poll_max_attempts: int = 240  # 240 x 30s = 2 hours

    # Boolean query generation for social listening
    query_model: str = "gpt-4o-mini"
    query_generation_enabled: bool = True

    # Manual workflow
    manual_provider_url: str = "https://www.perplexity.ai/"

    # Brandwatch social listening
    brandwatch_token: str = ""
    brandwatch_base_url: str = "https://api.brandwatch.com"
    brandwatch_project_id: int = 0
    brandwatch_settle_seconds: float = 3.0
    brandwatch_page_size: int = 1000
    brandwatch_timeout_seconds: float = 30.0

    # Persistence
    supabase_url: str = ""
    supabase_anon_key: str = ""
    reports_table: str = "analyses"
    default_client_name: str = "Discover.Flow"

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]

    @property
    def social_listening_configured(self) -> bool:
        return bool(self.brandwatch_token.strip()) and self.brandwatch_project_id > 0


settings = Settings()
