"""Configuration module: exports Settings, PipelineConfig, load_config, and a module-level singleton."""

from exambank.config.loader import PipelineConfig, load_config
from exambank.config.settings import Settings

settings = Settings()

__all__ = ["PipelineConfig", "Settings", "load_config", "settings"]
