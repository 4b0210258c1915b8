"""Core algorithms and data structures for pcmfeat."""

from .config import (
    ConfigurationError,
    StatConfig,
    WaveSourceConfig,
    resolve_config,
    resolve_stat_config,
    resolve_wave_config,
)
from .pcm import UnsupportedSampleFormat, decode_pcm
from .percentiles import FunctionalPercentiles, interp_percentile, pctl_index

__all__ = [
    "ConfigurationError",
    "StatConfig",
    "WaveSourceConfig",
    "resolve_config",
    "resolve_stat_config",
    "resolve_wave_config",
    "UnsupportedSampleFormat",
    "decode_pcm",
    "FunctionalPercentiles",
    "interp_percentile",
    "pctl_index",
]
