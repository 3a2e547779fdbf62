from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Reasoning provider (OpenAI-compatible chat completions)
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = ""
    default_model: str = "gpt-4o"
    llm_timeout_seconds: float = 60.0
    llm_max_tokens: int = 2000

    # Bright Data (search + web unlocker)
    brightdata_api_token: str = ""
    brightdata_api_url: str = "https://api.brightdata.com/request"
    brightdata_serp_zone: str = "serp_api1"
    brightdata_unlocker_zone: str = "web_unlocker1"
    brightdata_timeout_seconds: float = 20.0

    # Memory store
    memory_backend: str = "acontext"  # acontext | local
    acontext_api_key: str = ""
    acontext_base_url: str = "https://api.acontext.io/api/v1"
    acontext_timeout_seconds: float = 20.0

    # ActionBook manuals + headless browser
    actionbook_api_key: str = ""
    actionbook_binary: str = "actionbook"
    actionbook_timeout_seconds: float = 15.0
    browser_headless: bool = True
    browser_nav_timeout_ms: int = 20000

    # Scout phase
    scout_results_per_query: int = 8
    scout_min_results: int = 20
    scout_max_documents: int = 15
    scout_document_chars: int = 2000
    scout_filter_min_keep: int = 5
    provider_delay_seconds: float = 0.5

    # Validate phase
    identify_competitors: bool = True
    max_competitors: int = 3
    competitor_check_concurrency: int = 2
    competitor_check_timeout_seconds: float = 90.0
    competitor_page_chars: int = 3000

    # Runs
    run_timeout_seconds: float = 900.0
    run_registry_max_runs: int = 200
    run_ttl_seconds: int = 6 * 3600
    sse_heartbeat_seconds: int = 20

    # App
    cors_origins: str = "http://localhost:3000,http://localhost:5173"
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


settings = Settings()
