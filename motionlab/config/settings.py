"""Application configuration settings."""
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Motionlab Scoring"
    debug: bool = False

    # Scoring engine tunables live in YAML; this only points at the file.
    # Empty string means the bundled scoring_engine.yaml.
    scoring_config_path: str = ""

    # Memoised compositions kept per ScoreCompositionEngine instance
    composition_cache_size: int = 256

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "MOTIONLAB_"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
