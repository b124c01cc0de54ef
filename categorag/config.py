"""
Application configuration using Pydantic settings.
"""

from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_SYNONYMS_PATH = Path(__file__).parent / "data" / "synonyms.json"


class Settings(BaseSettings):
    """Application settings."""

    # App
    app_name: str = "categorag"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./data/categorag.sqlite"
    store_timeout_seconds: float = 2.0

    # Cache: "memory" (single instance) or "database" (shared between instances)
    cache_backend: str = "memory"
    category_index_ttl: int = 86400  # 24h
    learning_context_ttl: int = 300  # 5 min

    # Matcher defaults
    min_score: float = 0.25
    max_results: int = 3
    boost_exact_match: float = 2.0
    boost_starts_with: float = 1.5
    category_synonym_weight: float = 0.5
    subcategory_synonym_weight: float = 2.0
    personal_synonym_boost: float = 3.0
    synonyms_path: str = str(DEFAULT_SYNONYMS_PATH)

    # Unknown-term detection
    detector_min_score: float = 0.25
    normal_threshold: float = 0.65
    generic_category_names: List[str] = ["Outros", "Geral"]

    # Learning
    correction_similarity_threshold: float = 0.7
    correction_confidence: float = 0.95
    max_pending_matches: int = 5

    # Search logs
    search_log_async: bool = True
    search_log_workers: int = 2

    # Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    frontend_url: str = "http://localhost:5173"

    model_config = SettingsConfigDict(
        env_prefix="CATEGORAG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False
    )


# Global settings instance
settings = Settings()
