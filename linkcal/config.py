"""
Tool: Linkcal Config
Purpose: Typed configuration loaded from args/linkcal.yaml

Usage:
    from linkcal.config import load_config

    config = load_config()
    config.sync.interval_hours
    config.markers.timeblock_name
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

from linkcal import CONFIG_PATH
from linkcal.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_FILE = CONFIG_PATH / "linkcal.yaml"


# =============================================================================
# Sections
# =============================================================================

class SyncConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    interval_hours: float = Field(default=12.0, ge=0)
    max_concurrent_accounts: int = Field(default=4, ge=1)
    # "all" purges anything missing from the fetch; "window" only purges
    # stored meetings whose start_date is inside the current window
    delete_scope: Literal["all", "window"] = Field(default="all")
    window_months_back: int = Field(default=1, ge=0)
    window_months_ahead: int = Field(default=3, ge=0)
    page_size: int = Field(default=250, ge=1, le=2500)


class MarkerConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    timeblock_name: str = Field(default="Linkcal Timeblock")
    name_markers: list[str] = Field(default_factory=lambda: ["linkcal", "timeblock"])
    forwarded_phrase: str = Field(default="meeting forwarded by linkcal.io")
    cleanup_marker: str = Field(default="linkcal")


class ForwardingConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    title_prefix: str = Field(default="Linkcal Timeblock")
    footer: str = Field(default="Meeting forwarded by Linkcal.io")
    max_attempts: int = Field(default=3, ge=1)
    backoff_seconds: float = Field(default=1.0, ge=0)
    lookahead_hours: int = Field(default=24, ge=0)


class LinkcalConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    sync: SyncConfig = Field(default_factory=SyncConfig)
    markers: MarkerConfig = Field(default_factory=MarkerConfig)
    forwarding: ForwardingConfig = Field(default_factory=ForwardingConfig)
    database_path: Optional[str] = None


# =============================================================================
# Loading
# =============================================================================

def load_config(path: Path | None = None) -> LinkcalConfig:
    """
    Load and validate configuration.

    Reads the ``linkcal`` key of the YAML file, then applies environment
    overrides. Invalid files fall back to defaults with a warning.

    Args:
        path: Optional YAML file (default: args/linkcal.yaml)

    Returns:
        LinkcalConfig
    """
    yaml_path = path or DEFAULT_CONFIG_FILE

    try:
        if yaml_path.exists():
            with open(yaml_path) as f:
                raw = yaml.safe_load(f) or {}
        else:
            raw = {}

        config = LinkcalConfig.model_validate(raw.get("linkcal", raw))
    except Exception as e:
        logger.warning("config_invalid", path=str(yaml_path), error=str(e))
        config = LinkcalConfig()

    timeblock_name = os.environ.get("LINKCAL_TIMEBLOCK_NAME")
    if timeblock_name:
        config.markers.timeblock_name = timeblock_name

    db_path = os.environ.get("LINKCAL_DB_PATH")
    if db_path:
        config.database_path = db_path

    return config
