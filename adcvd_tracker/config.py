from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Federal Register
    federal_register_base_url: str = "https://www.federalregister.gov/api/v1"
    search_timeout_seconds: float = 12.0
    detail_timeout_seconds: float = 12.0
    html_timeout_seconds: float = 8.0

    # USITC DataWeb (investigation feed)
    dataweb_base_url: str = "https://datawebws.usitc.gov/dataweb"
    dataweb_token: str = ""
    dataweb_timeout_seconds: float = 12.0
    ids_case_url_template: str = (
        "https://ids.usitc.gov/case/{case_id}/investigation/{investigation_id}"
    )

    # Search defaults
    default_legal_terms: str = (
        '("Final Results of Administrative Review" | "Amended Final Results" | "Final Determination")'
    )
    default_agencies: str = "international-trade-administration"
    default_document_types: str = "RULE,NOTICE"

    # Tracker (simple variant)
    tracker_per_page: int = 50
    tracker_chunk_size: int = 5
    tracker_max_terms_per_country: int = 12
    tracker_fetch_cap: int = 30
    tracker_per_country_min: int = 1

    # Verifier (diagnostic variant)
    verifier_per_page: int = 20
    verifier_chunk_size: int = 10
    verifier_max_terms_per_country: int = 200
    verifier_fetch_cap: int = 12
    verifier_per_country_min: int = 1
    verifier_table_check_top_n: int = 3
    verifier_table_check_cap: int = 10
    verifier_detail_fetch_cap: int = 200

    # Result cache
    result_cache_ttl_hours: float = 4.0

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
    def result_cache_ttl_seconds(self) -> float:
        return max(float(self.result_cache_ttl_hours), 0.0) * 3600.0


settings = Settings()
