"""Conversion of interleaved integer PCM bytes to normalized float frames.

Samples are little-endian and interleaved (``frame0/ch0, frame0/ch1, ...``).
Supported encodings, keyed on the bytes per sample and bits per sample of
the stream:

========  ======  =====================================  ===================
bytes     bits    sample                                 divisor
========  ======  =====================================  ===================
1         any     signed 8-bit                           127
2         any     signed 16-bit                          32767
4         24      low 24 bits of a 32-bit word, signed   32767 * 256
4         32      signed 32-bit                          32767 * 32767 * 2
========  ======  =====================================  ===================

Three-byte packing is not supported.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

DIVISOR_8 = 127.0
DIVISOR_16 = 32767.0
DIVISOR_24 = 32767.0 * 256.0
DIVISOR_32 = 32767.0 * 32767.0 * 2.0


class UnsupportedSampleFormat(ValueError):
    """Raised for sample encodings that cannot be decoded at all."""


def sample_format(bytes_per_sample: int, bits_per_sample: int) -> Optional[Tuple[str, float]]:
    """Return ``(numpy dtype, divisor)`` for a sample encoding.

    ``None`` is returned for unknown combinations.  Three-byte packing raises
    :class:`UnsupportedSampleFormat`.
    """

    if bytes_per_sample == 1:
        return "<i1", DIVISOR_8
    if bytes_per_sample == 2:
        return "<i2", DIVISOR_16
    if bytes_per_sample == 3:
        raise UnsupportedSampleFormat(
            "24-bit wave file with 3 bytes per sample encoding not supported"
        )
    if bytes_per_sample == 4:
        if bits_per_sample == 24:
            return "<i4", DIVISOR_24
        if bits_per_sample == 32:
            return "<i4", DIVISOR_32
    return None


def _sign_extend_24(words: np.ndarray) -> np.ndarray:
    low = words.astype(np.int64) & 0xFFFFFF
    return np.where(low & 0x800000, low - 0x1000000, low)


def decode_pcm(
    buf: bytes,
    frames: int,
    channels: int,
    bytes_per_sample: int,
    bits_per_sample: int,
    out: np.ndarray,
    *,
    mono_mixdown: bool = False,
) -> int:
    """Decode ``frames`` interleaved frames from ``buf`` into ``out``.

    ``out`` has one row per channel, or a single row when ``mono_mixdown``
    is set, and at least ``frames`` columns.  With mixdown the samples of a
    frame are summed, divided by ``channels`` and then by the divisor of the
    encoding.

    Returns the number of frames written, ``0`` for an unknown encoding.
    """

    if frames <= 0:
        return 0
    fmt = sample_format(bytes_per_sample, bits_per_sample)
    if fmt is None:
        logger.error(
            "cannot convert unknown sample format to float! (bytes per sample=%i, bits=%i)",
            bytes_per_sample,
            bits_per_sample,
        )
        return 0
    dtype, divisor = fmt

    samples = np.frombuffer(buf, dtype=dtype, count=frames * channels)
    if bytes_per_sample == 4 and bits_per_sample == 24:
        values = _sign_extend_24(samples).astype(float)
    else:
        values = samples.astype(float)
    # (frames, channels) -> (channels, frames)
    matrix = values.reshape(frames, channels).T

    if mono_mixdown:
        out[0, :frames] = (matrix.sum(axis=0) / channels) / divisor
    else:
        out[:channels, :frames] = matrix / divisor
    return frames
