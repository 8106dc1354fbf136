from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenRouter
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "anthropic/claude-sonnet-4"
    openrouter_model: str = ""  # optional override for every call
    classifier_model: str = ""  # optional override for filter classification only

    # Search
    tavily_api_key: str = ""
    discovery_max_results: int = 10
    verification_max_results: int = 8
    candidate_max_results: int = 30

    # Structured providers
    wikidata_enabled: bool = True
    wikidata_api_url: str = "https://www.wikidata.org/w/api.php"
    wikidata_user_agent: str = "life-encyclopedia/1.0"
    wikidata_timeout_seconds: float = 15.0
    wikidata_label_batch_size: int = 50
    knowledge_graph_enabled: bool = True
    google_kg_api_key: str = ""
    knowledge_graph_timeout_seconds: float = 15.0

    # Generation
    synthesis_max_tokens: int = 8192
    synthesis_temperature: float = 0.2
    classifier_max_tokens: int = 2048
    description_max_tokens: int = 1024

    # Verification / confidence model
    verification_batch_size: int = 5
    verification_batch_delay_seconds: float = 0.5
    confidence_match_weight: float = 0.6
    confidence_bonus_three_matches: float = 0.3
    confidence_bonus_two_matches: float = 0.2
    confidence_bonus_one_match: float = 0.1
    confidence_breadth_bonus: float = 0.1
    confidence_breadth_min_sources: int = 5
    verified_confidence_threshold: float = 0.7
    discrepancy_window_years: int = 10
    max_discrepancies: int = 3

    # Enrichment
    enrichment_min_sources: int = 2

    # Supabase
    supabase_url: str = ""
    supabase_anon_key: str = ""
    people_table: str = "people"

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


settings = Settings()
