from __future__ import annotations

"""Configuration utilities for pcmfeat.

This module defines a hierarchical configuration schema using Pydantic models.
The :class:`Settings` container groups the option sections of the two
processing components (the percentile statistics engine and the WAVE PCM
source) together with command line and logging defaults.  Instances can be
populated from environment variables or from YAML/JSON files with matching
nested keys.

Option names follow Python conventions; the camelCase spellings used by
existing feature extraction configs (``monoMixdown``, ``startSamples`` ...)
are accepted as aliases.
"""

import json
from pathlib import Path
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import EnvSettingsSource

try:  # pragma: no cover - optional dependency
    import yaml  # type: ignore
except Exception:  # pragma: no cover
    yaml = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _split_floats(value: str) -> list[float]:
    return [float(item) for item in value.split(",") if item.strip()]


def _split_strings(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class SectionModel(BaseModel):
    """Base model for configuration subsections that ignores unknown fields."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# ---------------------------------------------------------------------------
# Settings schema
# ---------------------------------------------------------------------------


class PercentileSettings(SectionModel):
    """Options of the percentile/quartile statistics engine.

    The quartile and inter-quartile flags are tri-state: ``None`` means the
    option was never set.  Only an explicitly set aggregate flag
    (``quartiles`` / ``iqr``) overrides the individual flags.
    """

    quartiles: Optional[bool] = None
    quartile1: Optional[bool] = None
    quartile2: Optional[bool] = None
    quartile3: Optional[bool] = None
    iqr: Optional[bool] = None
    iqr12: Optional[bool] = None
    iqr23: Optional[bool] = None
    iqr13: Optional[bool] = None
    percentile: list[float] = Field(default_factory=list)
    pctlrange: list[str] = Field(default_factory=list)
    interp: bool = True

    @field_validator("percentile", mode="before")
    @classmethod
    def _coerce_float_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _split_floats(value)
        if isinstance(value, (int, float)):
            return [float(value)]
        if isinstance(value, (list, tuple)):
            return [float(item) for item in value]
        return value

    @field_validator("pctlrange", mode="before")
    @classmethod
    def _coerce_ranges(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _split_strings(value)
        if isinstance(value, (list, tuple)):
            return [str(item) for item in value]
        return value


class WaveSettings(SectionModel):
    """Options of the WAVE PCM source.

    Second based positions are overridden by their sample based
    counterparts.  ``end`` values below zero mean "read to end of file".
    """

    filename: Optional[str] = None
    mono_mixdown: bool = Field(
        False, validation_alias=AliasChoices("mono_mixdown", "monoMixdown")
    )
    start: float = 0.0
    end: float = -1.0
    endrel: Optional[float] = None
    start_samples: Optional[int] = Field(
        None, validation_alias=AliasChoices("start_samples", "startSamples")
    )
    end_samples: Optional[int] = Field(
        None, validation_alias=AliasChoices("end_samples", "endSamples")
    )
    endrel_samples: Optional[int] = Field(
        None, validation_alias=AliasChoices("endrel_samples", "endrelSamples")
    )
    blocksize: Optional[int] = None
    blocksize_sec: float = 1.0


class StatsSettings(SectionModel):
    """Windowing defaults for the ``stats`` command."""

    window: float = 0.025
    hop: float = 0.010


class LoggingSettings(SectionModel):
    """Logger level and record format."""

    level: str = "INFO"
    format: str = "%(levelname)s:%(name)s:%(message)s"


class Settings(BaseSettings):
    """Container for all runtime configuration sections."""

    percentiles: PercentileSettings = Field(default_factory=PercentileSettings)
    wave: WaveSettings = Field(default_factory=WaveSettings)
    stats: StatsSettings = Field(default_factory=StatsSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_prefix="PCMFEAT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``PCMFEAT_*`` environment variables only."""

        return cls()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        class LegacyEnvSettingsSource(EnvSettingsSource):
            def decode_complex_value(self, field_name, target_field, value):  # type: ignore[override]
                try:
                    return super().decode_complex_value(field_name, target_field, value)
                except json.JSONDecodeError:
                    return value

        env_settings.__class__ = LegacyEnvSettingsSource
        return init_settings, env_settings, dotenv_settings, file_secret_settings


# ---------------------------------------------------------------------------
# Loading utilities
# ---------------------------------------------------------------------------


def load_settings(path: str | Path) -> Settings:
    """Load settings from a JSON or YAML file."""

    p = Path(path)
    text = p.read_text()
    if p.suffix.lower() in {".yaml", ".yml"}:
        if yaml is None:
            raise RuntimeError("PyYAML is required to load YAML files")
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise TypeError("Configuration file must define a mapping")
    return Settings.model_validate(data)
