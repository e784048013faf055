"""
Configuration for contextrank.
"""

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional, cast

import yaml

from contextrank.core.exceptions import ConfigurationError
from contextrank.core.logging import logger


SEARCH_MODES = ("vector_only", "keyword_only", "hybrid", "filtered_vector", "semantic_keyword")
SIGNAL_NAMES = (
    "semantic_similarity",
    "contextual_relevance",
    "historical_success",
    "co_occurrence",
    "user_preference",
    "task_complexity",
    "performance_metrics",
    "capability_match",
    "data_compatibility",
    "constraint_satisfaction",
)


class ConfigValidator:
    """
    Configuration validator with rules.

    Validations:
    1. Positive sizes and limits
    2. Per-mode alpha in [0, 1]
    3. Known providers
    4. Custom weight profiles with known signals and non-negative weights
    """

    EMBEDDING_PROVIDERS = ("hash", "ollama")
    EXPANSION_PROVIDERS = ("lexical", "ollama", "none")

    def validate_config(self, config: Dict[str, Any]) -> None:
        """
        Validate complete configuration.

        Raises:
            ConfigurationError: On the first invalid value found
        """
        positive_ints = [
            ("embeddings", "dimension"),
            ("embeddings", "max_attempts"),
            ("cache", "max_size"),
            ("indexing", "chunk_size"),
            ("indexing", "max_batch_size"),
            ("search", "max_results"),
            ("search", "default_max_results"),
            ("search", "scoring_batch_size"),
            ("search", "workers"),
            ("scoring", "diversity_window"),
        ]
        for section, key in positive_ints:
            value = config.get(section, {}).get(key)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                logger.error("Invalid configuration value", setting=f"{section}.{key}", value=value)
                raise ConfigurationError(
                    f"Invalid {section}.{key}: {value!r} (expected a positive integer)",
                    context={"setting": f"{section}.{key}", "value": value},
                )

        ttl = config["cache"].get("ttl_seconds")
        if not isinstance(ttl, (int, float)) or ttl <= 0:
            raise ConfigurationError(f"Invalid cache.ttl_seconds: {ttl!r}")

        timeout = config["embeddings"].get("timeout_seconds")
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigurationError(f"Invalid embeddings.timeout_seconds: {timeout!r}")

        if config["search"]["default_max_results"] > config["search"]["max_results"]:
            raise ConfigurationError(
                "search.default_max_results cannot exceed search.max_results",
                context={
                    "default_max_results": config["search"]["default_max_results"],
                    "max_results": config["search"]["max_results"],
                },
            )

        deadline_ms = config["search"].get("deadline_ms")
        if deadline_ms is not None and (
            not isinstance(deadline_ms, (int, float)) or deadline_ms <= 0
        ):
            raise ConfigurationError(f"Invalid search.deadline_ms: {deadline_ms!r}")

        for mode, alpha in config["search"].get("default_alpha", {}).items():
            if mode not in SEARCH_MODES:
                raise ConfigurationError(f"Unknown search mode in default_alpha: {mode}")
            if not isinstance(alpha, (int, float)) or not 0.0 <= alpha <= 1.0:
                raise ConfigurationError(f"Alpha for {mode} must be in [0, 1], got {alpha!r}")

        provider = config["embeddings"].get("provider")
        if provider not in self.EMBEDDING_PROVIDERS:
            logger.error("Unknown embedding provider", provider=provider)
            raise ConfigurationError(
                f"Unknown embedding provider: {provider}. Allowed: {self.EMBEDDING_PROVIDERS}"
            )

        expansion = config["expansion"].get("provider")
        if expansion not in self.EXPANSION_PROVIDERS:
            raise ConfigurationError(
                f"Unknown expansion provider: {expansion}. Allowed: {self.EXPANSION_PROVIDERS}"
            )

        profiles = config["scoring"].get("profiles", {}) or {}
        for name, weights in profiles.items():
            if not isinstance(weights, dict):
                raise ConfigurationError(f"Weight profile {name} must be a mapping")
            for signal, weight in weights.items():
                if signal not in SIGNAL_NAMES:
                    raise ConfigurationError(f"Unknown signal {signal} in weight profile {name}")
                if not isinstance(weight, (int, float)) or weight < 0:
                    raise ConfigurationError(
                        f"Weight {signal} in profile {name} must be a non-negative number"
                    )


class Settings:
    """
    Engine configuration.

    Priority order:
    1. Default values
    2. .contextrank YAML file (or an explicit config_path)
    3. Explicit overrides passed by the caller
    4. Environment variables
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._explicit_path = Path(config_path) if config_path else None
        self.config = self._load_config(overrides)
        self.validator = ConfigValidator()
        self.validator.validate_config(self.config)
        logger.info(
            "Settings initialized",
            config_source=str(self._find_config_file() or "defaults"),
        )

    def _get_default_config(self) -> Dict[str, Any]:
        """Default configuration (single source)."""
        return {
            "version": "1.0",
            "embeddings": {
                "dimension": 768,
                "provider": "hash",
                "model": "nomic-embed-text",
                "url": "http://localhost:11434",
                "timeout_seconds": 10.0,
                "max_attempts": 2,
                "fallback_on_ingest": False,
            },
            "cache": {
                "max_size": 10000,
                "ttl_seconds": 3600,
            },
            "indexing": {
                "chunk_size": 100,
                "max_batch_size": 10000,
            },
            "search": {
                "max_results": 100,
                "default_max_results": 10,
                "scoring_batch_size": 256,
                "workers": 4,
                "deadline_ms": None,
                "default_alpha": {
                    "vector_only": 1.0,
                    "keyword_only": 0.0,
                    "hybrid": 0.7,
                    "filtered_vector": 1.0,
                    "semantic_keyword": 0.0,
                },
            },
            "scoring": {
                "default_profile": "default",
                "profiles": {},
                "diversity_threshold": 5,
                "diversity_window": 10,
            },
            "expansion": {
                "provider": "lexical",
                "model": "qwen2.5:3b",
                "max_variations": 5,
                "min_term_length": 3,
            },
            "logging": {"level": "INFO", "debug_mode": False},
        }

    def _find_config_file(self) -> Optional[Path]:
        """
        Find the configuration file.

        Search order:
        1. Explicit config_path
        2. .contextrank in the current directory
        """
        if self._explicit_path is not None:
            return self._explicit_path

        local_config = Path.cwd() / ".contextrank"
        if local_config.is_file():
            return local_config

        return None

    def _load_config(self, overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Load configuration in priority order."""
        defaults = self._get_default_config()

        config_path = self._find_config_file()
        if config_path is not None:
            if not config_path.is_file():
                raise ConfigurationError(f"Configuration file not found: {config_path}")
            try:
                with open(config_path, encoding="utf-8") as f:
                    file_config = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                logger.error(
                    "Error reading configuration file", file=str(config_path), error=str(e)
                )
                raise ConfigurationError(f"Error reading configuration file: {e}", cause=e)
            if file_config:
                if not isinstance(file_config, dict):
                    raise ConfigurationError(
                        f"Configuration file must hold a mapping: {config_path}"
                    )
                self._deep_merge(defaults, file_config)
                logger.debug("Config loaded from file", keys=list(file_config.keys()))

        if overrides:
            self._deep_merge(defaults, copy.deepcopy(overrides))

        env_overrides = {
            "CONTEXTRANK_LOG_LEVEL": (("logging", "level"), str),
            "CONTEXTRANK_EMBEDDING_DIMENSION": (("embeddings", "dimension"), int),
            "CONTEXTRANK_EMBEDDING_PROVIDER": (("embeddings", "provider"), str),
            "CONTEXTRANK_OLLAMA_URL": (("embeddings", "url"), str),
            "CONTEXTRANK_MAX_RESULTS": (("search", "max_results"), int),
        }

        for env_key, (path_tuple, cast_to) in env_overrides.items():
            env_value = os.getenv(env_key)
            if env_value:
                try:
                    value_to_set: Any = cast_to(env_value)
                except ValueError as e:
                    raise ConfigurationError(
                        f"Invalid value for {env_key}: {env_value}", cause=e
                    )
                self._set_nested(defaults, path_tuple, value_to_set)

        return defaults

    def _deep_merge(self, base: Dict[str, Any], update: Dict[str, Any]) -> None:
        """Deep merge of dictionaries."""
        for key, value in update.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(cast(Dict[str, Any], base[key]), cast(Dict[str, Any], value))
            else:
                base[key] = value

    def _set_nested(self, data: Dict[str, Any], path: tuple[str, ...], value: Any) -> None:
        """Set value at nested path."""
        current = data
        for key in path[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]
        current[path[-1]] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value with support for dotted paths ("search.max_results")."""
        if "." in key:
            current: Any = self.config
            for part in key.split("."):
                if isinstance(current, dict) and part in current:
                    current = current[part]
                else:
                    return default
            return current
        return self.config.get(key, default)

    def require(self, key: str) -> Any:
        """
        Get required value or raise exception.

        Useful for critical configs that must exist.
        """
        sentinel = object()
        value = self.get(key, sentinel)
        if value is sentinel:
            logger.error("Required config missing", key=key)
            raise ConfigurationError(f"Missing required config: {key}")
        return value
