from __future__ import annotations

"""Command line interface for pcmfeat using Typer."""

from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional

import json
import logging

import numpy as np
import typer
from pydantic import ValidationError

from .config import Settings, load_settings
from .core.config import ConfigurationError, WaveSourceConfig, resolve_stat_config, resolve_wave_config
from .core.pcm import UnsupportedSampleFormat
from .core.percentiles import FunctionalPercentiles
from .export.to_numpy import to_numpy
from .ingest import WaveHeaderError, WaveSource
from .utils.logging import get_logger
from .utils.windows import sample_windows, seconds_to_frames
from .viz.plot_features import plot_overview, save_or_show

app = typer.Typer(help="Percentile statistics over PCM WAVE audio")
logger = logging.getLogger(__name__)


def _parse_override_value(raw: str) -> object:
    lower = raw.lower()
    if lower in {"true", "false"}:
        return lower == "true"
    if lower in {"null", "none"}:
        return None
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return float(raw)
    except ValueError:
        pass
    if raw.startswith("[") or raw.startswith("{"):
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            raise typer.BadParameter(f"invalid JSON override value: {raw}") from None
    return raw


def _ensure_path(settings: Settings, keys: List[str]) -> None:
    current: object = settings
    for key in keys[:-1]:
        if not hasattr(current, key):
            raise typer.BadParameter(f"unknown configuration key: {'.'.join(keys)}")
        current = getattr(current, key)
    if not hasattr(current, keys[-1]):
        raise typer.BadParameter(f"unknown configuration key: {'.'.join(keys)}")


def _apply_override(data: Dict[str, object], keys: List[str], value: object) -> None:
    target = data
    for key in keys[:-1]:
        existing = target.get(key)
        if not isinstance(existing, dict):
            existing = {}
            target[key] = existing
        target = existing
    target[keys[-1]] = value


def _wave_config(cfg: Settings, path: Path, mono: Optional[bool] = None) -> WaveSourceConfig:
    try:
        wave_cfg = resolve_wave_config(cfg.wave)
    except ConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    wave_cfg = replace(wave_cfg, filename=str(path))
    if mono is not None:
        wave_cfg = replace(wave_cfg, mono_mixdown=mono)
    return wave_cfg


def _engine(cfg: Settings) -> FunctionalPercentiles:
    try:
        return FunctionalPercentiles(resolve_stat_config(cfg.percentiles))
    except ConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _open_source(wave_cfg: WaveSourceConfig) -> WaveSource:
    try:
        return WaveSource(wave_cfg)
    except (WaveHeaderError, ConfigurationError) as exc:
        typer.secho(f"cannot read {wave_cfg.filename}: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _decode(source: WaveSource) -> np.ndarray:
    try:
        return source.read_all()
    except UnsupportedSampleFormat as exc:
        typer.secho(f"cannot decode {source.path}: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    finally:
        source.close()


@app.callback()
def init(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        dir_okay=False,
        file_okay=True,
        exists=False,
        help="Path to a YAML or JSON configuration file.",
    ),
    set_overrides: List[str] = typer.Option(
        [],
        "--set",
        help="Override configuration values using dotted paths, e.g. wave.mono_mixdown=true",
    ),
) -> None:
    """Initialise the Typer context with validated settings."""

    if config is not None and not config.exists():
        raise typer.BadParameter(f"configuration file not found: {config}")

    try:
        if config is not None:
            settings = load_settings(config)
        elif isinstance(ctx.obj, Settings):
            settings = ctx.obj
        else:
            settings = Settings()
    except (FileNotFoundError, RuntimeError, TypeError, json.JSONDecodeError, ValidationError) as exc:
        raise typer.BadParameter(f"failed to load configuration: {exc}") from exc

    if set_overrides:
        data = settings.model_dump()
        for override in set_overrides:
            if "=" not in override:
                raise typer.BadParameter(
                    "overrides must be of the form --set section.key=value"
                )
            key, raw_value = override.split("=", 1)
            if not key:
                raise typer.BadParameter("override key cannot be empty")
            keys = key.split(".")
            _ensure_path(settings, keys)
            value = _parse_override_value(raw_value)
            _apply_override(data, keys, value)
        try:
            settings = Settings.model_validate(data)
        except ValidationError as exc:
            raise typer.BadParameter(f"invalid configuration override: {exc}") from exc

    get_logger("pcmfeat", level=settings.logging.level, fmt=settings.logging.format)
    ctx.obj = settings


@app.command()
def info(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False),
) -> None:
    """Print the PCM parameters and the resolved read range of a WAVE file."""

    cfg: Settings = ctx.obj
    source = _open_source(_wave_config(cfg, path))
    try:
        p = source.params
        r = source.range
        if p is None or r is None:
            typer.secho(f"cannot read {path}: no wave header parsed", err=True)
            raise typer.Exit(code=1)
        typer.echo(f"file: {path}")
        typer.echo(f"sample rate: {p.sample_rate} Hz")
        typer.echo(f"channels: {p.channels}")
        typer.echo(f"bits per sample: {p.bits_per_sample} ({p.bytes_per_sample} bytes)")
        typer.echo(f"block align: {p.block_align}")
        typer.echo(f"frames: {p.total_frames} ({p.duration:.3f} s)")
        typer.echo(f"data offset: {p.data_offset}")
        typer.echo(f"read range: {r.start_frame}-{r.end_frame} ({r.frames} frames)")
    finally:
        source.close()


@app.command()
def decode(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False),
    output: Path = typer.Option(..., "--output", "-o", help="Destination .npy file"),
    mono: Optional[bool] = typer.Option(None, "--mono/--no-mono", help="Mix all channels down to one"),
) -> None:
    """Decode the configured range of a WAVE file to a ``(channels, frames)`` array."""

    cfg: Settings = ctx.obj
    source = _open_source(_wave_config(cfg, path, mono))
    data = _decode(source)
    np.save(output, data)
    typer.echo(f"decoded {data.shape[1]} frames x {data.shape[0]} channels to {output}")


@app.command()
def stats(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False),
    window: Optional[float] = typer.Option(None, "--window", help="Window length in seconds"),
    hop: Optional[float] = typer.Option(None, "--hop", help="Hop between windows in seconds"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the feature matrix (.csv or .npz)"
    ),
) -> None:
    """Compute percentile statistics over sliding windows of a WAVE file.

    The file is mixed down to mono, cut into windows of ``--window`` seconds
    every ``--hop`` seconds, and each window is sorted and passed through the
    percentile engine configured by the ``percentiles`` settings section.
    Without ``--output`` the matrix is printed with one line per window.
    """

    cfg: Settings = ctx.obj
    window = window if window is not None else cfg.stats.window
    hop = hop if hop is not None else cfg.stats.hop
    if window <= 0 or hop <= 0:
        raise typer.BadParameter("window and hop must be positive")

    source = _open_source(_wave_config(cfg, path, mono=True))
    sample_rate = source.params.sample_rate  # type: ignore[union-attr]
    start_frame = source.range.start_frame  # type: ignore[union-attr]
    signal = _decode(source)[0]

    engine = _engine(cfg)
    names = engine.value_names()
    size = seconds_to_frames(window, sample_rate)
    step = seconds_to_frames(hop, sample_rate)

    windows = sample_windows(signal, size, step)
    features = [engine.compute(w) for w in windows]
    times = [(start_frame + i * step) / sample_rate for i in range(len(windows))]
    logger.info("computed %i windows of %i frames from %s", len(windows), size, path)

    if output is None:
        typer.echo(",".join(["time"] + names))
        for t, vec in zip(times, features):
            typer.echo(",".join([f"{t:.6f}"] + [f"{v:.6g}" for v in vec]))
        return

    if output.suffix == ".npz":
        to_numpy(features, names, times=times, save_npz=output)
    else:
        to_numpy(features, names, times=times, save_csv=output)
    typer.echo(f"saved {len(features)} windows x {len(names)} features to {output}")


@app.command()
def viz(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False),
    save: Optional[Path] = typer.Option(None, "--save", help="Save the figure instead of showing it"),
) -> None:
    """Plot the mono waveform of a WAVE file together with its percentile tracks."""

    cfg: Settings = ctx.obj
    source = _open_source(_wave_config(cfg, path, mono=True))
    sample_rate = source.params.sample_rate  # type: ignore[union-attr]
    start_frame = source.range.start_frame  # type: ignore[union-attr]
    data = _decode(source)

    engine = _engine(cfg)
    size = seconds_to_frames(cfg.stats.window, sample_rate)
    step = seconds_to_frames(cfg.stats.hop, sample_rate)
    windows = sample_windows(data[0], size, step)
    X = np.asarray([engine.compute(w) for w in windows]).reshape(len(windows), engine.output_count)
    times = (start_frame + np.arange(len(windows)) * step) / sample_rate

    fig = plot_overview(
        data, sample_rate, times, X, engine.value_names(), start_frame=start_frame, title=path.stem
    )
    save_or_show(fig, save, show=save is None)
    if save:
        typer.echo(f"saved figure to {save}")


def main() -> None:
    """Execute the Typer application."""

    app()


if __name__ == "__main__":
    main()
