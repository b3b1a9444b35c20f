"""Runtime settings for the translator.

Values come from the environment (``SHEXLINK_`` prefix) with the defaults
below, using Pydantic Settings.
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class TranslatorSettings(BaseSettings):
    """Translator configuration."""

    model_config = SettingsConfigDict(env_prefix="SHEXLINK_", case_sensitive=False)

    # Logging
    log_level: str = Field(default="WARNING", description="Log level")
    json_logs: bool = Field(default=False, description="Emit JSON formatted logs")

    # Namespace used to synthesize predicates for fields that carry none
    default_prefix: str = Field(default="ex", description="Prefix for synthesized predicates")
    default_namespace: str = Field(
        default="http://example.org/",
        description="Namespace IRI for synthesized predicates",
    )

    # JSON Schema output
    json_schema_dialect: str = Field(
        default="https://json-schema.org/draft/2020-12/schema",
        description="Value written to $schema",
    )
    json_indent: int = Field(default=2, description="Indentation of JSON output")

    # LinkML output
    linkml_id_base: str = Field(
        default="https://w3id.org/shexlink/",
        description="Base IRI for generated LinkML schema ids",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {v!r}")
        return level


@lru_cache
def get_settings() -> TranslatorSettings:
    """Return the process-wide settings instance."""
    return TranslatorSettings()
