"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ───────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. _DEFAULTS below        -- built-in values so a bare checkout runs
#   2. config/config.yaml     -- static tuning checked into the repo
#   3. .env / environment     -- deploy-time values via Settings
#
# _deep_merge does recursive dict merging:
#   base = {"pipeline": {"chunk_max_tokens": 1000}}
#   overrides = {"pipeline": {"chunk_overlap_chars": 200}}
#   result = {"pipeline": {"chunk_max_tokens": 1000, "chunk_overlap_chars": 200}}
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

from exambank.config.settings import Settings

# Keyword → organization label.  The registrar picks the longest keyword
# found in the filename, so "usp-rp" wins over "usp".
_DEFAULT_ORGANIZATIONS: dict[str, str] = {
    "enare": "ENARE",
    "usp-rp": "USP-RP",
    "usp": "USP",
    "unicamp": "UNICAMP",
    "unifesp": "UNIFESP",
    "sus-sp": "SUS-SP",
    "psu-mg": "PSU-MG",
    "ufrj": "UFRJ",
    "santa casa": "SANTA CASA",
}

_DEFAULTS: dict[str, Any] = {
    "pipeline": {
        "chunk_max_tokens": 1000,
        "chunk_overlap_chars": 150,
        "extraction_char_budget": 30000,
        "max_questions_per_file": 15,
        "auto_fix_batch_size": 3,
        "auto_fix_context_chunks": 3,
        "auto_fix_context_chars": 6000,
        "auto_fix_max_passes": 2,
    },
    "registrar": {
        "default_organization": "Outras",
        "organizations": _DEFAULT_ORGANIZATIONS,
    },
}


class PipelineConfig(BaseModel):
    """Resolved tuning knobs for the ingestion pipeline.

    Built once from :func:`load_config` output and injected into the
    services, so no pipeline component reads the environment itself.
    """

    model_config = ConfigDict(frozen=True)

    chunk_max_tokens: int = Field(default=1000, gt=0)
    chunk_overlap_chars: int = Field(default=150, ge=0)
    extraction_char_budget: int = Field(default=30000, gt=0)
    max_questions_per_file: int = Field(default=15, gt=0)
    auto_fix_batch_size: int = Field(default=3, gt=0)
    auto_fix_context_chunks: int = Field(default=3, ge=0)
    auto_fix_context_chars: int = Field(default=6000, ge=0)
    auto_fix_max_passes: int = Field(default=2, ge=1)
    default_organization: str = "Outras"
    organizations: dict[str, str] = Field(default_factory=lambda: dict(_DEFAULT_ORGANIZATIONS))

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> PipelineConfig:
        """Flatten the ``pipeline`` and ``registrar`` sections of a loaded config."""
        pipeline = config.get("pipeline", {}) or {}
        registrar = config.get("registrar", {}) or {}
        return cls(
            **pipeline,
            default_organization=registrar.get("default_organization", "Outras"),
            organizations=registrar.get("organizations") or dict(_DEFAULT_ORGANIZATIONS),
        )


def load_config(path: str | None = None, settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  Defaults to
            ``settings.config_path``.
        settings: Settings instance to read env overrides from.

    Returns:
        Fully resolved configuration dictionary.
    """
    settings = settings or Settings()
    config_path = Path(path or settings.config_path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    config = copy.deepcopy(_DEFAULTS)
    _deep_merge(config, yaml_config)

    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "llm": {
            "provider": settings.llm_provider,
            "text_model": settings.openai_text_model,
            "embedding_model": settings.openai_embedding_model,
            "available_providers": settings.get_available_llm_providers(),
        },
        "store": {
            "database_path": settings.database_path,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(config, env_overrides)
    return config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
