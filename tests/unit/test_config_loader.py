"""Unit tests for the YAML config loader and PipelineConfig."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from exambank.config.loader import PipelineConfig, _deep_merge, load_config
from exambank.config.settings import Settings


def _settings(**overrides) -> Settings:
    defaults = {"openai_api_key": "", "anthropic_api_key": "", "llm_provider": "auto", "app_env": "test"}
    defaults.update(overrides)
    return Settings(**defaults)


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        config = load_config(str(tmp_path / "absent.yaml"), settings=_settings())
        pipeline = PipelineConfig.from_config(config)

        assert pipeline == PipelineConfig()
        assert config["registrar"]["organizations"]["usp-rp"] == "USP-RP"

    def test_yaml_overrides_are_merged(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "pipeline:\n"
            "  chunk_overlap_chars: 200\n"
            "  auto_fix_max_passes: 1\n"
            "registrar:\n"
            "  default_organization: Desconhecida\n"
            "  organizations:\n"
            "    hcpa: HCPA\n",
            encoding="utf-8",
        )

        pipeline = PipelineConfig.from_config(load_config(str(path), settings=_settings()))

        assert pipeline.chunk_overlap_chars == 200
        assert pipeline.auto_fix_max_passes == 1
        assert pipeline.chunk_max_tokens == 1000
        assert pipeline.default_organization == "Desconhecida"
        assert pipeline.organizations["hcpa"] == "HCPA"
        assert pipeline.organizations["enare"] == "ENARE"

    def test_environment_section(self, tmp_path: Path) -> None:
        config = load_config(
            str(tmp_path / "absent.yaml"),
            settings=_settings(anthropic_api_key="test-anthropic", database_path="/tmp/x.db"),
        )
        assert config["llm"]["available_providers"] == ["anthropic"]
        assert config["store"]["database_path"] == "/tmp/x.db"

    def test_checked_in_config_matches_defaults(self) -> None:
        path = Path(__file__).resolve().parents[2] / "config" / "config.yaml"
        assert PipelineConfig.from_config(load_config(str(path), settings=_settings())) == PipelineConfig()


class TestPipelineConfig:
    def test_rejects_non_positive_budget(self) -> None:
        with pytest.raises(ValidationError):
            PipelineConfig(chunk_max_tokens=0)

    def test_requires_at_least_one_pass(self) -> None:
        with pytest.raises(ValidationError):
            PipelineConfig(auto_fix_max_passes=0)


class TestDeepMerge:
    def test_nested_merge(self) -> None:
        base = {"pipeline": {"a": 1, "b": 2}, "x": 1}
        _deep_merge(base, {"pipeline": {"b": 3}, "y": 2})
        assert base == {"pipeline": {"a": 1, "b": 3}, "x": 1, "y": 2}
