"""Application configuration module.

- **settings.py**: Environment-based settings (Pydantic BaseSettings)
  - Debug flag, scoring config path, composition cache size
  - Loaded from .env / ``MOTIONLAB_*`` environment variables

- **scoring_engine.yaml**: Scoring engine tunables
  - Totals rounding, inheritance depth guard, scorability fallback,
    grouping threshold, lint severities
  - Loaded and validated by ScoringConfigLoader (reloadable)
"""
from motionlab.config.settings import Settings, get_settings

# Scoring config loader is imported lazily by callers:
# from motionlab.config.scoring_config_loader import get_scoring_config

__all__ = ["Settings", "get_settings"]
