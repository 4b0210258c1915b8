"""Readers for PCM audio input."""

from .wave import (
    PCMStreamParams,
    ReadRange,
    WaveHeaderError,
    WaveSource,
    WaveState,
    read_wave_header,
    resolve_read_range,
)

__all__ = [
    "PCMStreamParams",
    "ReadRange",
    "WaveHeaderError",
    "WaveSource",
    "WaveState",
    "read_wave_header",
    "resolve_read_range",
]
