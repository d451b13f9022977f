"""
Scoring Engine Configuration Loader

This module provides a centralized, type-safe loader for the scoring engine
tunables (totals rounding, inheritance depth guard, scorability fallback,
grouping threshold and lint severities).

Configuration is loaded from scoring_engine.yaml and validated into frozen
dataclasses. Supports explicit reloading for updates without restart.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Final

import yaml

from motionlab.config.settings import get_settings

DEFAULT_SCORING_CONFIG_PATH: Final[Path] = Path(__file__).parent / "scoring_engine.yaml"

VALID_LINT_SEVERITIES: Final[frozenset[str]] = frozenset({"error", "warning", "info"})

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Base exception for configuration errors."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.message = message
        self.path = path
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.path:
            return f"Config error in '{self.path}': {self.message}"
        return f"Config error: {self.message}"


class ConfigValidationError(ConfigError):
    """Raised when configuration fails validation."""

    pass


class ConfigLoadError(ConfigError):
    """Raised when configuration fails to load."""

    pass


class ConfigNotFoundError(ConfigError):
    """Raised when configuration file is not found."""

    pass


@dataclass(frozen=True)
class TotalsConfig:
    """Rounding applied to derived parent totals."""

    decimal_places: int = 2

    def __post_init__(self):
        if isinstance(self.decimal_places, bool) or not isinstance(self.decimal_places, int):
            raise ConfigValidationError(
                f"decimal_places must be an integer, got {self.decimal_places!r}"
            )
        if not 0 <= self.decimal_places <= 10:
            raise ConfigValidationError(
                f"decimal_places ({self.decimal_places}) must be between 0 and 10"
            )


@dataclass(frozen=True)
class InheritanceConfig:
    """Guard for the motion ancestry walk."""

    max_depth: int = 20

    def __post_init__(self):
        if isinstance(self.max_depth, bool) or not isinstance(self.max_depth, int):
            raise ConfigValidationError(f"max_depth must be an integer, got {self.max_depth!r}")
        if self.max_depth < 1:
            raise ConfigValidationError(f"max_depth ({self.max_depth}) must be >= 1")


@dataclass(frozen=True)
class ScorabilityConfig:
    """Fallback for muscles the catalog does not know yet."""

    unknown_is_scorable: bool = True


@dataclass(frozen=True)
class GroupingConfig:
    """Muscle grouping dropdown threshold."""

    min_selectable_score: float = 0.5

    def __post_init__(self):
        if self.min_selectable_score < 0:
            raise ConfigValidationError(
                f"min_selectable_score ({self.min_selectable_score}) must be >= 0"
            )


@dataclass(frozen=True)
class LintConfig:
    """Severities for soft delta-rule lint findings."""

    unknown_muscle_severity: str = "warning"
    non_scorable_muscle_severity: str = "warning"

    def __post_init__(self):
        for field_name, value in [
            ("unknown_muscle_severity", self.unknown_muscle_severity),
            ("non_scorable_muscle_severity", self.non_scorable_muscle_severity),
        ]:
            if value not in VALID_LINT_SEVERITIES:
                raise ConfigValidationError(
                    f"{field_name} must be one of {sorted(VALID_LINT_SEVERITIES)}, got {value!r}"
                )


@dataclass(frozen=True)
class ScoringEngineConfig:
    """Unified scoring engine configuration."""

    version: str = "1.0.0"
    last_updated: str = ""
    totals: TotalsConfig = TotalsConfig()
    inheritance: InheritanceConfig = InheritanceConfig()
    scorability: ScorabilityConfig = ScorabilityConfig()
    grouping: GroupingConfig = GroupingConfig()
    lint: LintConfig = LintConfig()


def parse_scoring_config(data: dict[str, Any] | None) -> ScoringEngineConfig:
    """Parse raw YAML data into ScoringEngineConfig.

    Missing sections fall back to dataclass defaults.

    Raises:
        ConfigValidationError: If a section has unknown keys or bad values.
    """
    data = data or {}
    if not isinstance(data, dict):
        raise ConfigValidationError(f"Top-level config must be a mapping, got {type(data).__name__}")

    def section(name: str, cls: type) -> Any:
        raw = data.get(name) or {}
        if not isinstance(raw, dict):
            raise ConfigValidationError(f"Section '{name}' must be a mapping")
        try:
            return cls(**raw)
        except TypeError as e:
            raise ConfigValidationError(f"Invalid keys in section '{name}': {e}") from e

    return ScoringEngineConfig(
        version=str(data.get("version", "1.0.0")),
        last_updated=str(data.get("last_updated", "")),
        totals=section("totals", TotalsConfig),
        inheritance=section("inheritance", InheritanceConfig),
        scorability=section("scorability", ScorabilityConfig),
        grouping=section("grouping", GroupingConfig),
        lint=section("lint", LintConfig),
    )


class ScoringConfigLoader:
    """Loader for scoring engine configuration with reload support."""

    _instance: ScoringConfigLoader | None = None
    _lock = RLock()

    def __new__(cls, config_path: Path | None = None):
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
            return cls._instance

    def __init__(self, config_path: Path | None = None):
        if hasattr(self, "_initialized"):
            return

        self._lock = RLock()
        self._config: ScoringEngineConfig | None = None
        self._config_path = config_path or self._default_config_path()
        self._reload_callbacks: list[Callable[[ScoringEngineConfig], None]] = []
        self._reload_count = 0
        self._initialized = True

        self._load_config()

    @staticmethod
    def _default_config_path() -> Path:
        """Get configuration file path from settings, else the bundled file."""
        configured = get_settings().scoring_config_path
        return Path(configured) if configured else DEFAULT_SCORING_CONFIG_PATH

    @classmethod
    def reset_instance(cls) -> None:
        """Drop the singleton so the next construction reloads from disk."""
        with cls._lock:
            cls._instance = None

    def _load_config(self) -> None:
        """Load configuration from YAML file."""
        try:
            with open(self._config_path, "r") as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            raise ConfigNotFoundError(
                "Configuration file not found", path=str(self._config_path)
            )
        except yaml.YAMLError as e:
            raise ConfigLoadError(
                f"Failed to parse YAML configuration: {e}", path=str(self._config_path)
            )

        try:
            self._config = parse_scoring_config(data)
        except ConfigValidationError as e:
            raise ConfigValidationError(e.message, path=str(self._config_path)) from e
        self._reload_count += 1
        logger.debug(
            f"Loaded scoring config {self._config.version} from {self._config_path}"
        )
        self._notify_callbacks()

    @property
    def config(self) -> ScoringEngineConfig:
        """Get current configuration (thread-safe)."""
        with self._lock:
            if self._config is None:
                self._load_config()
            return self._config

    @property
    def config_path(self) -> Path:
        return self._config_path

    def reload(self) -> None:
        """Force reload configuration from file."""
        with self._lock:
            self._load_config()

    def register_reload_callback(
        self, callback: Callable[[ScoringEngineConfig], None]
    ) -> None:
        """Register a callback to be called with the new configuration on reload."""
        self._reload_callbacks.append(callback)

    def _notify_callbacks(self) -> None:
        """Notify all registered callbacks of configuration reload."""
        if self._config is None:
            return
        for callback in self._reload_callbacks:
            try:
                callback(self._config)
            except Exception:
                logger.exception(f"Scoring config reload callback {callback!r} failed")

    @property
    def reload_count(self) -> int:
        """Get number of times configuration has been (re)loaded."""
        return self._reload_count


def get_scoring_config_loader(config_path: Path | None = None) -> ScoringConfigLoader:
    """Get or create the singleton ScoringConfigLoader instance.

    Example:
        >>> loader = get_scoring_config_loader()
        >>> places = loader.config.totals.decimal_places
    """
    return ScoringConfigLoader(config_path)


def get_scoring_config() -> ScoringEngineConfig:
    """Get current scoring engine configuration.

    Example:
        >>> from motionlab.config.scoring_config_loader import get_scoring_config
        >>> config = get_scoring_config()
        >>> depth = config.inheritance.max_depth
    """
    return get_scoring_config_loader().config


def reload_scoring_config() -> None:
    """Force reload scoring engine configuration from file."""
    get_scoring_config_loader().reload()
