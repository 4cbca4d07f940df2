# config.py
"""Configuration settings for the Author House manuscript pipeline.
Uses Pydantic BaseSettings for automatic environment variable loading.
"""

from __future__ import annotations

import os

import structlog
from dotenv import load_dotenv
from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()

logger = structlog.get_logger()


class ConfigurationError(ValueError):
    """Raised when a budget or limit is unusable before any work starts."""


DEFAULT_PIPELINE_BRIEF = (
    "Run a professional publishing-house pass. Output sections: Developmental Edit, "
    "Line Edit, Copy Edit, Market/Positioning. Be direct and actionable. Use bullet "
    "points. Flag plot holes, pacing, character consistency, clarity, repetition, "
    "grammar, formatting. Suggest specific fixes. If unsure, say so."
)


class HouseSettings(BaseSettings):
    """Full configuration for the Author House pipeline."""

    # Chat provider (OpenAI-compatible, Groq by default)
    OPENAI_API_BASE: str = "https://api.groq.com/openai/v1"
    OPENAI_API_KEY: str = ""
    MAIN_MODEL: str = "llama-3.1-70b-versatile"
    TEMPERATURE: float = 0.7

    # Research provider
    RESEARCH_API_BASE: str = "https://api.perplexity.ai"
    RESEARCH_API_KEY: str = ""
    RESEARCH_MODEL: str = "sonar-pro"

    HTTPX_TIMEOUT: float = 120.0

    # Chunking
    MAX_CHUNK_TOKENS: int = 1200
    CHUNK_OVERLAP_TOKENS: int = 120
    CHUNK_OUTPUT_TOKENS: int = 700
    CHARS_PER_TOKEN: float = 3.7
    HARD_SPLIT_MIN_CHARS: int = 900
    HARD_SPLIT_RATIO: float = 0.75

    # Concurrency and Rate Limiting
    MIN_INTERVAL_MS: int = 900
    MAX_CONCURRENT_LLM_CALLS: int = 2

    # Retries
    LLM_RETRY_ATTEMPTS: int = 2
    LLM_RETRY_BASE_DELAY_SECONDS: float = 0.5
    LLM_RETRY_DELAY_STEP_SECONDS: float = 0.8

    PIPELINE_BRIEF: str = DEFAULT_PIPELINE_BRIEF

    # Output and File Paths
    BASE_OUTPUT_DIR: str = "house_output"
    PROJECT_CACHE_FILE: str = "pipeline_cache.json"
    REPORT_FILE: str = "pipeline_report.txt"
    CHAPTER_FILE_SUFFIXES: tuple[str, ...] = (".txt", ".md")

    # Logging & UI
    LOG_LEVEL_STR: str = Field("INFO", alias="HOUSE_LOG_LEVEL")
    LOG_FORMAT: str = (
        "%(asctime)s - %(levelname)s - [%(name)s:%(funcName)s:%(lineno)d] - %(message)s"
    )
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    LOG_FILE: str | None = None
    ENABLE_RICH_PROGRESS: bool = True

    @field_validator(
        "MAX_CHUNK_TOKENS",
        "CHUNK_OUTPUT_TOKENS",
        "MAX_CONCURRENT_LLM_CALLS",
        "HARD_SPLIT_MIN_CHARS",
    )
    @classmethod
    def clamp_positive(cls, value: int, info: ValidationInfo) -> int:
        if value < 1:
            logger.warning(
                "Non-positive setting clamped to 1.",
                setting=info.field_name,
                value=value,
            )
            return 1
        return value

    @field_validator(
        "CHUNK_OVERLAP_TOKENS",
        "MIN_INTERVAL_MS",
        "LLM_RETRY_ATTEMPTS",
    )
    @classmethod
    def clamp_non_negative(cls, value: int, info: ValidationInfo) -> int:
        if value < 0:
            logger.warning(
                "Negative setting clamped to 0.", setting=info.field_name, value=value
            )
            return 0
        return value

    @field_validator("LLM_RETRY_BASE_DELAY_SECONDS", "LLM_RETRY_DELAY_STEP_SECONDS")
    @classmethod
    def clamp_delay(cls, value: float, info: ValidationInfo) -> float:
        if value < 0:
            logger.warning(
                "Negative retry delay clamped to 0.",
                setting=info.field_name,
                value=value,
            )
            return 0.0
        return value

    @field_validator("CHARS_PER_TOKEN")
    @classmethod
    def clamp_chars_per_token(cls, value: float) -> float:
        if value <= 0:
            logger.warning("CHARS_PER_TOKEN must be positive. Using 3.7.", value=value)
            return 3.7
        return value

    @field_validator("HARD_SPLIT_RATIO")
    @classmethod
    def clamp_split_ratio(cls, value: float) -> float:
        if not 0 < value < 1:
            logger.warning("HARD_SPLIT_RATIO outside (0, 1). Using 0.75.", value=value)
            return 0.75
        return value

    model_config = SettingsConfigDict(
        env_prefix="", env_file=".env", extra="ignore", populate_by_name=True
    )


settings = HouseSettings()


def project_output_dir(project_name: str, base_dir: str | None = None) -> str:
    """Return the output directory for ``project_name`` under ``base_dir``."""
    safe_name = "".join(
        c if c.isalnum() or c in ["_", "-"] else "_" for c in project_name.strip()
    )
    return os.path.join(base_dir or settings.BASE_OUTPUT_DIR, safe_name or "project")
