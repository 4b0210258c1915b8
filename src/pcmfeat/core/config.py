"""Resolved, immutable configuration records for the pcmfeat core modules.

The :mod:`pcmfeat.config` settings are validated user input.  The helpers in
this module turn them into the frozen records that the processing components
are constructed with, applying the clamping and sentinel rules once, before
the first window or block is processed.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from ..config import PercentileSettings, Settings, WaveSettings

logger = logging.getLogger(__name__)

# Marker stored for percentile ranges that failed validation.
INVALID_RANGE: Tuple[int, int] = (-1, -1)

_RANGE_RE = re.compile(r"^\s*(?P<a>[+-]?\d+)\s*-\s*(?P<b>[+-]?\d+)\s*$")


class ConfigurationError(ValueError):
    """Raised when a component cannot be configured from the given options."""


@dataclass(frozen=True)
class StatConfig:
    """Enablement flags and percentile definitions of the statistics engine."""

    quartiles: Tuple[bool, bool, bool] = (True, True, True)
    iqr: Tuple[bool, bool, bool] = (True, True, True)
    percentiles: Tuple[float, ...] = ()
    ranges: Tuple[Tuple[int, int], ...] = ()
    interp: bool = True

    @property
    def percentiles_enabled(self) -> bool:
        return len(self.percentiles) > 0

    @property
    def ranges_enabled(self) -> bool:
        return self.percentiles_enabled and len(self.ranges) > 0


@dataclass(frozen=True)
class WaveSourceConfig:
    """Options of a :class:`~pcmfeat.ingest.wave.WaveSource`."""

    filename: Optional[str] = None
    mono_mixdown: bool = False
    start: float = 0.0
    end: float = -1.0
    endrel: Optional[float] = None
    start_samples: Optional[int] = None
    end_samples: Optional[int] = None
    endrel_samples: Optional[int] = None
    blocksize: Optional[int] = None
    blocksize_sec: float = 1.0

    def blocksize_frames(self, sample_rate: int) -> int:
        """Return the number of frames decoded per :meth:`read_data` call."""

        if self.blocksize is not None and self.blocksize > 0:
            return int(self.blocksize)
        return max(1, int(round(self.blocksize_sec * sample_rate)))


def _resolve_flags(aggregate: Optional[bool], flags: Sequence[Optional[bool]]) -> Tuple[bool, ...]:
    # Every output starts enabled and an individual flag can only switch
    # itself on, so ``False`` on a sub-flag is a no-op.  An explicitly set
    # aggregate flag overwrites all of them.
    # TODO: decide whether quartile1=False & co. should disable outputs once
    # existing configs relying on the current behaviour are migrated.
    if aggregate is not None:
        return tuple(bool(aggregate) for _ in flags)
    return tuple(True for _ in flags)


def clamp_percentiles(values: Sequence[float]) -> Tuple[float, ...]:
    """Clamp each percentile fraction into ``[0, 1]``, warning on every change.

    NaN cannot be clamped and raises :class:`ConfigurationError`.
    """

    out = []
    for i, p in enumerate(values):
        p = float(p)
        if math.isnan(p):
            raise ConfigurationError(f"percentile[{i}] is not a number")
        if p < 0.0:
            logger.warning("percentile[%i] is out of range [0..1] : %f (clipping to 0.0)", i, p)
            p = 0.0
        elif p > 1.0:
            logger.warning("percentile[%i] is out of range [0..1] : %f (clipping to 1.0)", i, p)
            p = 1.0
        out.append(p)
    return tuple(out)


def parse_pctl_range(token: str, n_percentiles: int, index: int = 0) -> Tuple[int, int]:
    """Parse an ``"A-B"`` percentile range token.

    ``A`` and ``B`` are indices into the percentile list.  Malformed tokens,
    indices outside ``[0, n_percentiles)`` and ``A == B`` are logged and
    yield :data:`INVALID_RANGE`.
    """

    m = _RANGE_RE.match(str(token))
    if not m:
        logger.error(
            "Error parsing percentile range [%i] = '%s'! (Range must be X-Y, "
            "where X and Y are positive integer numbers!)",
            index,
            token,
        )
        return INVALID_RANGE

    a, b = int(m.group("a")), int(m.group("b"))
    for label, value in (("X", a), ("Y", b)):
        if value < 0 or value >= n_percentiles:
            logger.error(
                "percentile range [%i] = '%s' (X-Y):: %s (=%i) is out of range (allowed: [0..%i])",
                index,
                token,
                label,
                value,
                n_percentiles - 1,
            )
            return INVALID_RANGE
    if a == b:
        logger.error("percentile range [%i] = '%s' (X-Y):: X must be != Y !!", index, token)
        return INVALID_RANGE
    return a, b


def resolve_stat_config(section: PercentileSettings | None = None) -> StatConfig:
    """Build a :class:`StatConfig` from validated percentile settings."""

    if section is None:
        section = PercentileSettings()

    quartiles = _resolve_flags(
        section.quartiles, (section.quartile1, section.quartile2, section.quartile3)
    )
    iqr = _resolve_flags(section.iqr, (section.iqr12, section.iqr23, section.iqr13))

    percentiles = clamp_percentiles(section.percentile)
    ranges: Tuple[Tuple[int, int], ...] = ()
    if percentiles:
        ranges = tuple(
            parse_pctl_range(token, len(percentiles), i)
            for i, token in enumerate(section.pctlrange)
        )

    return StatConfig(
        quartiles=quartiles,  # type: ignore[arg-type]
        iqr=iqr,  # type: ignore[arg-type]
        percentiles=percentiles,
        ranges=ranges,
        interp=bool(section.interp),
    )


def resolve_wave_config(section: WaveSettings | None = None) -> WaveSourceConfig:
    """Build a :class:`WaveSourceConfig` from validated WAVE settings."""

    if section is None:
        section = WaveSettings()
    if not math.isfinite(section.blocksize_sec):
        raise ConfigurationError("blocksize_sec must be a finite number")
    return WaveSourceConfig(
        filename=section.filename,
        mono_mixdown=bool(section.mono_mixdown),
        start=float(section.start),
        end=float(section.end),
        endrel=section.endrel,
        start_samples=section.start_samples,
        end_samples=section.end_samples,
        endrel_samples=section.endrel_samples,
        blocksize=section.blocksize,
        blocksize_sec=float(section.blocksize_sec),
    )


def resolve_config(settings: Settings | None = None) -> Tuple[StatConfig, WaveSourceConfig]:
    """Resolve both component configurations from a :class:`Settings` object."""

    if settings is None:
        settings = Settings()
    return resolve_stat_config(settings.percentiles), resolve_wave_config(settings.wave)


__all__ = [
    "INVALID_RANGE",
    "ConfigurationError",
    "StatConfig",
    "WaveSourceConfig",
    "clamp_percentiles",
    "parse_pctl_range",
    "resolve_stat_config",
    "resolve_wave_config",
    "resolve_config",
]
