# src/pcmfeat/ingest/wave.py
"""Streaming reader for canonical RIFF/WAVE PCM files.

Layout of the header (all fields little-endian):

    offset  size  field
    0       4     "RIFF"
    4       4     file size - 8
    8       4     "WAVE"
    12      4     "fmt "
    16      4     fmt chunk size (16)
    20      2     audio format (1 = integer PCM)
    22      2     channels
    24      4     sample rate
    28      4     byte rate
    32      2     block align
    34      2     bits per sample
    36      4     chunk id ("data", other chunks are skipped)
    40      4     chunk size

:class:`WaveSource` walks ``CLOSED -> HEADER_PARSED -> STREAMING -> EOF``.
Blocks are produced by :meth:`WaveSource.read_data` until the resolved end
of the read range is reached or the file runs short; after that the file is
closed and further reads produce nothing.  Closing the source explicitly
also enters ``EOF``.
"""

from __future__ import annotations

import enum
import logging
import math
import pathlib
import struct
from dataclasses import dataclass
from typing import BinaryIO, Iterator, Optional, Union

import numpy as np

from ..core.config import ConfigurationError, WaveSourceConfig
from ..core.pcm import decode_pcm
from ..types import DecodedBlock

logger = logging.getLogger(__name__)

HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")
CHUNK_HEADER = struct.Struct("<4sI")

MAX_SKIP_CHUNK_SIZE = 99999
MAX_SKIPPED_CHUNKS = 20
FIELD_NAME = "pcm"


class WaveHeaderError(ValueError):
    """Raised when a file is not a readable PCM WAVE file."""

    def __init__(self, message: str, *, path: Union[str, pathlib.Path] = "<stream>"):
        self.path = str(path)
        super().__init__(f"{self.path}: {message}")


class WaveState(enum.Enum):
    CLOSED = "closed"
    HEADER_PARSED = "header_parsed"
    STREAMING = "streaming"
    EOF = "eof"


@dataclass(frozen=True)
class PCMStreamParams:
    """Stream parameters taken from the WAVE header."""

    sample_rate: int
    channels: int
    bits_per_sample: int
    bytes_per_sample: int
    block_align: int
    total_frames: int
    data_offset: int

    @property
    def period(self) -> float:
        """Sampling period in seconds."""

        return 1.0 / self.sample_rate if self.sample_rate else 1.0

    @property
    def duration(self) -> float:
        """Length of the data chunk in seconds."""

        return self.total_frames * self.period


@dataclass(frozen=True)
class ReadRange:
    """Half-open frame range ``[start_frame, end_frame)`` to decode."""

    start_frame: int
    end_frame: int

    @property
    def frames(self) -> int:
        return self.end_frame - self.start_frame


def read_wave_header(fh: BinaryIO, *, path: Union[str, pathlib.Path] = "<stream>") -> PCMStreamParams:
    """Parse the header of a PCM WAVE file from the start of ``fh``.

    Chunks between ``fmt `` and ``data`` are skipped.  On return ``fh`` is
    positioned at the first PCM sample.
    """

    fh.seek(0)
    raw = fh.read(HEADER.size)
    if len(raw) != HEADER.size:
        raise WaveHeaderError(
            f"error reading {HEADER.size} bytes (header) from beginning of wave file, file too short",
            path=path,
        )
    (
        riff,
        _file_size,
        wave,
        fmt_id,
        fmt_size,
        audio_format,
        channels,
        sample_rate,
        _byte_rate,
        block_align,
        bits_per_sample,
        chunk_id,
        chunk_size,
    ) = HEADER.unpack(raw)

    if riff != b"RIFF" or wave != b"WAVE" or fmt_id != b"fmt " or audio_format != 1 or fmt_size != 16:
        logger.error(
            "Riff: %r Format: %r Subchunk1ID: %r Subchunk2ID: %r AudioFormat: %i Subchunk1Size: %i",
            riff,
            wave,
            fmt_id,
            chunk_id,
            audio_format,
            fmt_size,
        )
        raise WaveHeaderError("bogus wave/riff header or file in wrong format", path=path)
    if channels == 0 or block_align == 0:
        raise WaveHeaderError(
            f"invalid channel count ({channels}) or block align ({block_align})", path=path
        )

    skipped = 0
    while chunk_id != b"data":
        if skipped >= MAX_SKIPPED_CHUNKS:
            raise WaveHeaderError(
                f"no 'data' subchunk found in wave file among the first {MAX_SKIPPED_CHUNKS} chunks, corrupt file?",
                path=path,
            )
        if chunk_size >= MAX_SKIP_CHUNK_SIZE:
            raise WaveHeaderError(
                f"chunk {chunk_id!r} size {chunk_size} >= {MAX_SKIP_CHUNK_SIZE}, this seems to be a bogus file",
                path=path,
            )
        logger.debug("skipping chunk %r (%i bytes)", chunk_id, chunk_size)
        payload = fh.read(chunk_size)
        if len(payload) != chunk_size:
            raise WaveHeaderError(
                f"less bytes read ({len(payload)}) than indicated by chunk size ({chunk_size}), file seems broken",
                path=path,
            )
        head = fh.read(CHUNK_HEADER.size)
        if len(head) != CHUNK_HEADER.size:
            raise WaveHeaderError(
                "less bytes read than there should be while reading sub-chunk header, file seems broken",
                path=path,
            )
        chunk_id, chunk_size = CHUNK_HEADER.unpack(head)
        skipped += 1

    params = PCMStreamParams(
        sample_rate=sample_rate,
        channels=channels,
        bits_per_sample=bits_per_sample,
        bytes_per_sample=block_align // channels,
        block_align=block_align,
        total_frames=chunk_size // block_align,
        data_offset=fh.tell(),
    )
    logger.debug("wave header of %s: %s", path, params)
    return params


def resolve_read_range(config: WaveSourceConfig, params: PCMStreamParams) -> ReadRange:
    """Resolve the frame range selected by ``config`` for a stream.

    Sample counts take precedence over second based positions.  The end is
    chosen from, in order: ``end_samples``, ``end`` (when not negative),
    ``endrel_samples``, ``endrel``, end of file.
    """

    srate = float(params.sample_rate) or 1.0
    flen = params.total_frames

    if config.start_samples is not None:
        start = int(config.start_samples)
    else:
        start = int(math.floor(config.start * srate))
    start = min(max(start, 0), flen)

    if config.end_samples is not None:
        end = int(config.end_samples)
    elif config.end >= 0.0:
        end = int(math.ceil(config.end * srate))
    else:
        end = -1

    if end < 0:
        if config.endrel_samples is not None:
            end = max(flen - max(int(config.endrel_samples), 0), 0)
        elif config.endrel is not None:
            end = max(flen - int(math.floor(config.endrel * srate)), 0)
        else:
            end = flen
    end = min(end, flen)

    if end < start:
        logger.warning("read end (%i) lies before read start (%i), nothing will be read", end, start)
        end = start
    logger.debug("read range: startSamples = %i, endSamples = %i", start, end)
    return ReadRange(start, end)


class WaveSource:
    """Block-wise reader of a PCM WAVE file.

    Parameters
    ----------
    config:
        Resolved :class:`~pcmfeat.core.config.WaveSourceConfig`.
    fh:
        Optional open binary stream to read instead of ``config.filename``.
        The source takes ownership and closes it at end of file.
    """

    def __init__(self, config: WaveSourceConfig, fh: Optional[BinaryIO] = None) -> None:
        if fh is None and not config.filename:
            raise ConfigurationError("filename of PCM wave file to load is missing")
        self.config = config
        self.path = config.filename or getattr(fh, "name", "<stream>")
        self.state = WaveState.CLOSED
        self.params: Optional[PCMStreamParams] = None
        self.range: Optional[ReadRange] = None
        self.current_frame = 0
        self.blocksize = 0
        self._fh: Optional[BinaryIO] = fh
        self._mat: Optional[np.ndarray] = None
        self._produced = 0
        self._open()

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _open(self) -> None:
        if self._fh is None:
            try:
                self._fh = open(self.config.filename, "rb")  # type: ignore[arg-type]
            except OSError as exc:
                raise ConfigurationError(f"failed to open input file '{self.path}'") from exc
        try:
            self.params = read_wave_header(self._fh, path=self.path)
            self.state = WaveState.HEADER_PARSED

            self.range = resolve_read_range(self.config, self.params)
            self.current_frame = self.range.start_frame
            if self.range.start_frame > 0:
                self._fh.seek(self.params.data_offset + self.range.start_frame * self.params.block_align)
            self.blocksize = self.config.blocksize_frames(self.params.sample_rate)
        except Exception:
            self.close()
            raise
        if self.config.mono_mixdown:
            logger.debug("monoMixdown enabled")
        self.state = WaveState.STREAMING

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def eof(self) -> bool:
        return self.state is WaveState.EOF

    @property
    def output_channels(self) -> int:
        """Rows of a decoded block: 1 with mixdown, else the file's channels."""

        params = self._require_params()
        return 1 if self.config.mono_mixdown else params.channels

    @property
    def remaining_frames(self) -> int:
        self._require_params()
        return max(self.range.end_frame - self.current_frame, 0)  # type: ignore[union-attr]

    def _require_params(self) -> PCMStreamParams:
        if self.params is None or self.range is None:
            raise ConfigurationError(f"no wave header parsed for '{self.path}'")
        return self.params

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def allocate(self) -> np.ndarray:
        """Return a zeroed ``(output_channels, blocksize)`` buffer."""

        return np.zeros((self.output_channels, self.blocksize), dtype=float)

    def _check_buffer(self, out: np.ndarray) -> None:
        rows = out.shape[0]
        if rows != self.output_channels:
            raise ConfigurationError(
                f"incompatible read! nChan={self.params.channels} <-> matrix rows={rows}"  # type: ignore[union-attr]
                f" (mono mixdown={self.config.mono_mixdown})"
            )
        if out.ndim != 2 or out.shape[1] < self.blocksize:
            raise ConfigurationError(
                f"output buffer must provide {self.blocksize} columns, got shape {out.shape}"
            )

    def read_data(self, out: Optional[np.ndarray] = None) -> int:
        """Decode the next block into ``out`` and return the frames produced.

        When ``out`` is omitted an internal buffer is used (see
        :attr:`last_block`).  Returns ``0`` once the source is at end of file.
        """

        if self.state is WaveState.EOF:
            logger.debug("not reading from file, already EOF")
            return 0
        params = self._require_params()
        if self._fh is None:
            raise ConfigurationError(f"'{self.path}' is not open for reading")

        if out is None:
            if self._mat is None:
                self._mat = self.allocate()
            out = self._mat
        self._check_buffer(out)

        block_align = params.block_align
        frames = min(self.blocksize, self.remaining_frames)
        want = frames * block_align
        buf = self._fh.read(want) if want > 0 else b""

        if len(buf) < want:
            logger.debug("nRead (%i) < size to read (%i) ==> assuming EOF", len(buf), want)
            frames = len(buf) // block_align
            self.close()
        self.current_frame += frames
        if self.current_frame >= self.range.end_frame:  # type: ignore[union-attr]
            self.close()

        self._produced = decode_pcm(
            buf,
            frames,
            params.channels,
            params.bytes_per_sample,
            params.bits_per_sample,
            out,
            mono_mixdown=self.config.mono_mixdown,
        )
        return self._produced

    @property
    def last_block(self) -> Optional[np.ndarray]:
        """View of the internal buffer holding the most recent block."""

        if self._mat is None:
            return None
        return self._mat[:, : self._produced]

    def read_block(self) -> Optional[DecodedBlock]:
        """Read the next block into a fresh array, ``None`` when nothing is left."""

        if self.state is WaveState.EOF:
            return None
        start = self.current_frame
        out = self.allocate()
        n = self.read_data(out)
        if n == 0:
            return None
        return DecodedBlock(
            data=out[:, :n],
            start_frame=start,
            sample_rate=self.params.sample_rate,  # type: ignore[union-attr]
            field_name=FIELD_NAME,
        )

    def blocks(self) -> Iterator[DecodedBlock]:
        """Yield decoded blocks until end of file."""

        while not self.eof:
            block = self.read_block()
            if block is not None:
                yield block

    def read_all(self) -> np.ndarray:
        """Decode everything left in the read range as one ``(channels, frames)`` array."""

        parts = [block.data for block in self.blocks()]
        if not parts:
            return np.zeros((self.output_channels, 0), dtype=float)
        return np.concatenate(parts, axis=1)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release the underlying file and enter the terminal EOF state.

        Safe to call more than once; reads after closing produce nothing.
        """

        self.state = WaveState.EOF
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    def __enter__(self) -> "WaveSource":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:  # pragma: no cover
        return f"WaveSource(path={self.path!r}, state={self.state.value}, frame={self.current_frame})"
