"""Configuration management for satwatch.

Loads settings from a YAML configuration file with environment variable
overrides. Supports .env files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings

from satwatch.domain.models import NonQuestionPolicy

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/satwatch.yaml")

# Letters, digits, punctuation and the math symbols that appear in SAT items.
DEFAULT_CHAR_WHITELIST = (
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
    ".,!?()[]{}:;\"-' +=×÷√²³°%$@#&*/<>~^|_"
)


class CaptureConfig(BaseModel):
    app_names: list[str] = Field(
        default_factory=lambda: ["bluebook", "college board"],
        description="Test-delivery application names, highest priority",
    )
    exam_keywords: list[str] = Field(default_factory=lambda: ["sat", "exam"])
    content_keywords: list[str] = Field(
        default_factory=lambda: ["question", "practice", "section"]
    )
    include_windows: bool = Field(default=True)
    debug_dir: Path | None = Field(default=None, description="Save every capture here")


class OCRConfig(BaseModel):
    language: str = Field(default="eng")
    char_whitelist: str = Field(default=DEFAULT_CHAR_WHITELIST)
    page_segmentation_mode: int = Field(default=3, ge=0, le=13)
    engine_mode: int = Field(default=1, ge=0, le=3)
    preserve_interword_spaces: bool = Field(default=True)
    dpi: int = Field(default=300, gt=0)
    preprocess: bool = Field(default=True)
    tesseract_cmd: str | None = Field(default=None)
    init_retries: int = Field(default=2, ge=0)
    init_backoff: float = Field(default=0.5, ge=0)


class DetectionConfig(BaseModel):
    similarity_threshold: float = Field(default=0.85, gt=0, le=1)
    stable_reads: int = Field(default=2, ge=1)
    prime_baseline: bool = Field(default=True)


class ClassifierConfig(BaseModel):
    threshold: int = Field(default=1)
    fallback_length: int = Field(default=50, ge=0)
    short_text_length: int = Field(default=30, ge=0)


class MonitorConfig(BaseModel):
    interval: float = Field(default=0.5, gt=0, description="Seconds between ticks")
    min_text_length: int = Field(default=20, ge=0)
    min_confidence: float = Field(default=0.3, ge=0, le=1)
    ocr_timeout: float | None = Field(default=15.0, gt=0)
    stop_timeout: float = Field(default=5.0, gt=0)
    non_question_policy: NonQuestionPolicy = Field(default=NonQuestionPolicy.EMIT)


class ServerConfig(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8765, ge=1, le=65535)
    autostart: bool = Field(default=False)


class DashboardConfig(BaseModel):
    enabled: bool = Field(default=False)
    base_url: str = Field(default="http://localhost:3000")
    user_id: str | None = Field(default=None)
    timeout: float = Field(default=10.0, gt=0)
    max_retries: int = Field(default=3, ge=1)
    max_pending: int = Field(default=500, ge=1)
    max_failed: int = Field(default=100, ge=1)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for satwatch.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "SATWATCH_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    dashboard_api_key: SecretStr = Field(default=SecretStr(""))

    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    dashboard: DashboardConfig = Field(default_factory=DashboardConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables."""
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply overrides from non-prefixed environment variables."""
    tesseract_cmd = os.environ.get("TESSERACT_CMD", "")
    debug_screenshots = os.environ.get("DEBUG_SCREENSHOTS", "")

    if tesseract_cmd:
        yaml_data.setdefault("ocr", {})
        if not yaml_data["ocr"].get("tesseract_cmd"):
            yaml_data["ocr"]["tesseract_cmd"] = tesseract_cmd

    if debug_screenshots:
        yaml_data.setdefault("capture", {})
        if not yaml_data["capture"].get("debug_dir"):
            # A bare flag means the default folder in the home directory
            if debug_screenshots.lower() in ("1", "true", "yes"):
                debug_screenshots = str(Path.home() / "satwatch-debug")
            yaml_data["capture"]["debug_dir"] = debug_screenshots
