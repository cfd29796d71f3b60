from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # LiteAPI: hotel directory, rates, details, sentiment
    liteapi_key: str = ""
    liteapi_base_url: str = "https://api.liteapi.travel/v3.0"

    # OpenAI
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"

    # Anthropic
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    llm_timeout: float = 20.0

    # Smart search
    smart_hotel_limit: int = 50
    shortlist_size: int = 5
    match_batch_size: int = 30
    match_seed: int | None = None
    budget_min_pool: int = 20

    # Concurrency pools (one per external call category)
    detail_concurrency: int = 6
    sentiment_concurrency: int = 6

    # Timeouts in seconds
    directory_timeout: float = 12.0
    rates_timeout: float = 20.0
    detail_fetch_timeout: float = 8.0
    sentiment_fetch_timeout: float = 8.0
    fast_enrich_timeout: float = 10.0
    rate_limit_retry_delay: float = 2.0

    # Background insight job
    background_stagger_seconds: float = 0.3

    # Logging
    log_level: str = "INFO"

    # CORS
    cors_origins: str = "http://localhost:8081"

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",")]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
