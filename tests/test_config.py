"""
Tests for Settings loading, overrides and validation.
"""

from pathlib import Path

import pytest
import yaml

from contextrank.core.exceptions import ConfigurationError
from contextrank.core.secure_config import Settings


class TestSettings:
    """Defaults, files, overrides and environment variables."""

    def test_defaults(self) -> None:
        settings = Settings()

        assert settings.get("embeddings.dimension") == 768
        assert settings.get("embeddings.fallback_on_ingest") is False
        assert settings.get("search.default_alpha.hybrid") == 0.7
        assert settings.get("search.deadline_ms") is None
        assert settings.get("missing.key", "fallback") == "fallback"

    def test_yaml_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "contextrank.yaml"
        config_file.write_text(
            yaml.safe_dump({"search": {"workers": 8}, "cache": {"max_size": 50}}),
            encoding="utf-8",
        )

        settings = Settings(config_path=config_file)

        assert settings.get("search.workers") == 8
        assert settings.get("cache.max_size") == 50
        assert settings.get("search.max_results") == 100

    def test_overrides_win_over_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "contextrank.yaml"
        config_file.write_text(yaml.safe_dump({"search": {"workers": 8}}), encoding="utf-8")

        settings = Settings(config_path=config_file, overrides={"search": {"workers": 3}})

        assert settings.get("search.workers") == 3

    def test_environment_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CONTEXTRANK_MAX_RESULTS", "50")
        settings = Settings(overrides={"search": {"max_results": 20}})
        assert settings.get("search.max_results") == 50

    def test_invalid_environment_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CONTEXTRANK_EMBEDDING_DIMENSION", "large")
        with pytest.raises(ConfigurationError):
            Settings()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError):
            Settings(config_path=tmp_path / "absent.yaml")

    def test_malformed_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "broken.yaml"
        config_file.write_text("search: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            Settings(config_path=config_file)

    def test_require(self) -> None:
        settings = Settings()
        assert settings.require("embeddings.provider") == "hash"
        with pytest.raises(ConfigurationError):
            settings.require("embeddings.api_key")


class TestConfigValidation:
    """Invalid values are rejected at construction."""

    @pytest.mark.parametrize(
        "overrides",
        [
            {"search": {"workers": 0}},
            {"search": {"scoring_batch_size": "many"}},
            {"search": {"default_max_results": 500}},
            {"search": {"deadline_ms": -5}},
            {"search": {"default_alpha": {"hybrid": 1.5}}},
            {"cache": {"ttl_seconds": 0}},
            {"embeddings": {"provider": "openai"}},
            {"expansion": {"provider": "thesaurus"}},
            {"scoring": {"profiles": {"mine": {"unknown_signal": 0.5}}}},
            {"scoring": {"profiles": {"mine": {"semantic_similarity": -1}}}},
        ],
    )
    def test_rejected(self, overrides) -> None:
        with pytest.raises(ConfigurationError):
            Settings(overrides=overrides)

    def test_valid_custom_profile(self) -> None:
        settings = Settings(overrides={"scoring": {"profiles": {"mine": {"co_occurrence": 1}}}})
        assert settings.get("scoring.profiles.mine.co_occurrence") == 1
