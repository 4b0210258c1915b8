import io
import logging

import numpy as np
import pytest

from pcmfeat.core.config import ConfigurationError, WaveSourceConfig
from pcmfeat.core.pcm import UnsupportedSampleFormat
from pcmfeat.ingest import WaveHeaderError, WaveSource, WaveState

from test_wave_header import wav_bytes, write_wav


class CountingBytesIO(io.BytesIO):
    def __init__(self, data):
        super().__init__(data)
        self.close_calls = 0

    def close(self):
        self.close_calls += 1
        super().close()


def test_example_samples_normalize(tmp_path):
    path = write_wav(tmp_path / "ex.wav", [0, 16384, -32768, 32767], sample_rate=8000)
    source = WaveSource(WaveSourceConfig(filename=str(path), blocksize=16))
    assert source.state is WaveState.STREAMING
    n = source.read_data()
    assert n == 4
    np.testing.assert_allclose(source.last_block[0], [0.0, 0.5, -1.0, 0.99997], atol=1e-4)
    assert source.eof
    assert source.read_data() == 0


def test_start_samples_reads_to_end(tmp_path):
    path = write_wav(tmp_path / "ten.wav", list(range(10)))
    source = WaveSource(WaveSourceConfig(filename=str(path), start_samples=2, blocksize=4))
    assert source.range.start_frame == 2
    assert source.range.end_frame == 10
    assert source.current_frame == 2

    out = source.allocate()
    produced = []
    while not source.eof:
        n = source.read_data(out)
        produced.extend(out[0, :n] * 32767.0)
    assert len(produced) == 8
    np.testing.assert_allclose(produced, list(range(2, 10)))
    assert source.read_data(out) == 0


def test_eof_on_short_read_truncates_block():
    # data chunk claims 20 frames, only 10 are present
    payload = wav_bytes(list(range(10)))[44:]
    fh = CountingBytesIO(wav_bytes(payload=payload, data_size=40))
    source = WaveSource(WaveSourceConfig(blocksize=4), fh=fh)
    assert source.range.end_frame == 20

    sizes = []
    while not source.eof:
        sizes.append(source.read_data())
    assert sizes == [4, 4, 2]
    assert fh.close_calls == 1
    assert source.read_data() == 0
    source.close()
    assert fh.close_calls == 1


def test_odd_byte_tail_counts_whole_frames_only():
    payload = wav_bytes(list(range(3)))[44:] + b"\x01"
    source = WaveSource(WaveSourceConfig(blocksize=8), fh=io.BytesIO(wav_bytes(payload=payload, data_size=64)))
    assert source.read_data() == 3
    assert source.eof


def test_blocks_iteration_and_read_all(tmp_path):
    path = write_wav(tmp_path / "s.wav", list(range(-5, 5)), sample_rate=100)
    with WaveSource(WaveSourceConfig(filename=str(path), blocksize=3)) as source:
        blocks = list(source.blocks())
    assert [b.frames for b in blocks] == [3, 3, 3, 1]
    assert [b.start_frame for b in blocks] == [0, 3, 6, 9]
    assert blocks[1].start_time == pytest.approx(0.03)
    assert all(b.field_name == "pcm" for b in blocks)

    again = WaveSource(WaveSourceConfig(filename=str(path), blocksize=3)).read_all()
    np.testing.assert_allclose(again[0] * 32767.0, list(range(-5, 5)))


def test_mono_mixdown(tmp_path):
    path = write_wav(tmp_path / "st.wav", [1000, 3000, -2000, 0], channels=2)
    source = WaveSource(WaveSourceConfig(filename=str(path), mono_mixdown=True))
    data = source.read_all()
    assert data.shape == (1, 2)
    np.testing.assert_allclose(data[0], [2000 / 32767, -1000 / 32767])


def test_stereo_without_mixdown(tmp_path):
    path = write_wav(tmp_path / "st.wav", [1000, 3000, -2000, 0], channels=2)
    data = WaveSource(WaveSourceConfig(filename=str(path))).read_all()
    assert data.shape == (2, 2)
    np.testing.assert_allclose(data[0], [1000 / 32767, -2000 / 32767])
    np.testing.assert_allclose(data[1], [3000 / 32767, 0.0])


def test_buffer_row_mismatch(tmp_path):
    path = write_wav(tmp_path / "st.wav", [1, 2, 3, 4], channels=2)
    source = WaveSource(WaveSourceConfig(filename=str(path), blocksize=2))
    with pytest.raises(ConfigurationError):
        source.read_data(np.zeros((1, 2)))
    with pytest.raises(ConfigurationError):
        source.read_data(np.zeros((2, 1)))
    assert source.read_data(np.zeros((2, 2))) == 2

    mono = WaveSource(WaveSourceConfig(filename=str(path), blocksize=2, mono_mixdown=True))
    with pytest.raises(ConfigurationError):
        mono.read_data(np.zeros((2, 2)))
    assert mono.read_data(np.zeros((1, 2))) == 2


def test_missing_filename():
    with pytest.raises(ConfigurationError, match="filename"):
        WaveSource(WaveSourceConfig())


def test_unopenable_file(tmp_path):
    with pytest.raises(ConfigurationError, match="failed to open"):
        WaveSource(WaveSourceConfig(filename=str(tmp_path / "missing.wav")))


def test_bad_magic_closes_and_raises():
    fh = CountingBytesIO(wav_bytes([1, 2, 3], wave=b"WAVX"))
    with pytest.raises(WaveHeaderError):
        WaveSource(WaveSourceConfig(), fh=fh)
    assert fh.close_calls == 1


def test_three_byte_samples_are_fatal():
    fh = io.BytesIO(wav_bytes(payload=b"\x00" * 9, bits=24, block_align=3))
    source = WaveSource(WaveSourceConfig(), fh=fh)
    with pytest.raises(UnsupportedSampleFormat):
        source.read_data()


def test_unknown_format_yields_no_frames(caplog):
    fh = io.BytesIO(wav_bytes(payload=b"\x00" * 16, bits=16, block_align=4))
    source = WaveSource(WaveSourceConfig(blocksize=2), fh=fh)
    with caplog.at_level(logging.ERROR):
        assert source.read_data() == 0
    assert "unknown sample format" in caplog.text
    assert not source.eof
    assert source.read_data() == 0
    assert source.eof


def test_blocksize_from_seconds(tmp_path):
    path = write_wav(tmp_path / "s.wav", [0] * 50, sample_rate=100)
    source = WaveSource(WaveSourceConfig(filename=str(path), blocksize_sec=0.2))
    assert source.blocksize == 20
    assert [b.frames for b in source.blocks()] == [20, 20, 10]


def test_empty_range_reaches_eof(tmp_path):
    path = write_wav(tmp_path / "s.wav", list(range(10)))
    source = WaveSource(WaveSourceConfig(filename=str(path), start_samples=6, end_samples=3))
    assert source.range.frames == 0
    assert source.read_data() == 0
    assert source.eof


def test_start_seek_skips_extra_chunks():
    data = wav_bytes(list(range(10)), extra_chunks=[(b"LIST", b"abcdef")])
    source = WaveSource(WaveSourceConfig(start_samples=3, blocksize=4), fh=io.BytesIO(data))
    assert source.params.data_offset == 44 + 8 + 6
    out = source.read_all()
    np.testing.assert_allclose(out[0] * 32767.0, list(range(3, 10)))


def test_reads_after_close_produce_nothing(tmp_path):
    path = write_wav(tmp_path / "s.wav", list(range(10)))
    source = WaveSource(WaveSourceConfig(filename=str(path), blocksize=4))
    source.close()
    assert source.state is WaveState.EOF
    assert source.eof
    assert source.read_data() == 0
    assert source.read_block() is None
    assert source.read_all().shape == (1, 0)

    with WaveSource(WaveSourceConfig(filename=str(path), blocksize=4)) as source:
        first = source.read_block()
    assert first.frames == 4
    assert list(source.blocks()) == []


class UnseekableBytesIO(CountingBytesIO):
    def seek(self, offset, whence=0):
        if offset > 0:
            raise io.UnsupportedOperation("seek")
        return super().seek(offset, whence)


def test_failed_setup_closes_stream():
    fh = UnseekableBytesIO(wav_bytes(list(range(10))))
    with pytest.raises(io.UnsupportedOperation):
        WaveSource(WaveSourceConfig(start_samples=2), fh=fh)
    assert fh.close_calls == 1
