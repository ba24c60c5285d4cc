"""Configuration loading and validation."""

from campusboard.config.loader import load_config
from campusboard.config.schema import (
    APIConfig,
    CampusBoardConfig,
    DatabaseConfig,
    GeneralConfig,
    ImagesConfig,
    LoggingConfig,
    NotifierConfig,
    PurgeConfig,
)

__all__ = [
    "APIConfig",
    "CampusBoardConfig",
    "DatabaseConfig",
    "GeneralConfig",
    "ImagesConfig",
    "LoggingConfig",
    "NotifierConfig",
    "PurgeConfig",
    "load_config",
]
