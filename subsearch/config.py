from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Reddit API (optional; without credentials the public host is used)
    reddit_client_id: str = ""
    reddit_client_secret: str = ""
    reddit_user_agent: str = "python:subsearch:v0.1.0 (by /u/subsearch)"
    reddit_oauth_base_url: str = "https://oauth.reddit.com"
    reddit_public_base_url: str = "https://www.reddit.com"
    reddit_token_url: str = "https://www.reddit.com/api/v1/access_token"
    reddit_request_timeout_seconds: float = 30.0
    token_refresh_buffer_seconds: float = 300.0

    # Search
    search_max_concurrency: int = 5
    search_default_limit: int = 25
    search_max_limit: int = 100
    search_timeout_seconds: float = 20.0

    # Retry policy
    retry_max_retries: int = 3
    retry_base_delay_seconds: float = 1.0
    retry_multiplier: float = 1.5
    retry_max_delay_seconds: float = 30.0
    retry_jitter_ratio: float = 0.1

    # Result cache
    cache_max_items: int = 1000
    cache_max_size_bytes: int = 50 * 1024 * 1024
    cache_ttl_seconds: float = 900.0
    cache_time_sensitive_ttl_seconds: float = 300.0
    cache_cleanup_interval_seconds: float = 60.0

    # OpenRouter
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "openai/gpt-4o-mini"
    llm_max_tokens: int = 2000
    llm_temperature: float = 0.7
    llm_max_retries: int = 3
    answer_max_results_in_prompt: int = 8
    answer_max_content_chars: int = 800

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]

    @property
    def has_reddit_credentials(self) -> bool:
        return bool(self.reddit_client_id and self.reddit_client_secret)


settings = Settings()
