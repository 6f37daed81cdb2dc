"""Configuration module — frozen dataclass from environment variables, YAML pipeline file."""

import logging
import os
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class Config:
    config_path: str = "config.yml"
    log_level: str = "INFO"
    report_metrics: bool = True


def load_config() -> Config:
    """Build Config from environment variables with sensible defaults."""
    return Config(
        config_path=os.environ.get("CONFIG_PATH", Config.config_path),
        log_level=os.environ.get("LOG_LEVEL", Config.log_level).upper(),
        report_metrics=_parse_bool(os.environ.get("REPORT_METRICS", "true")),
    )


def load_yaml(path: str) -> dict:
    """Load the YAML pipeline file at *path*. An empty file yields an empty dict."""
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"{path}: invalid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    logger.info("Loaded pipeline config from %s", path)
    return data


def load_pipeline_stages(data: dict) -> list:
    """Return the ``pipeline_stages`` list from parsed config data."""
    stages = data.get("pipeline_stages")
    if not isinstance(stages, list) or not stages:
        raise ValueError("config must define a non-empty 'pipeline_stages' list")
    return stages
