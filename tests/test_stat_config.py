import logging

import pytest

from pcmfeat.config import PercentileSettings, Settings
from pcmfeat.core.config import (
    INVALID_RANGE,
    ConfigurationError,
    parse_pctl_range,
    resolve_config,
    resolve_stat_config,
)


def test_defaults_enable_quartiles_and_iqr():
    cfg = resolve_stat_config()
    assert cfg.quartiles == (True, True, True)
    assert cfg.iqr == (True, True, True)
    assert cfg.percentiles == ()
    assert cfg.ranges == ()
    assert cfg.interp is True


def test_aggregate_flag_overrides_individual_flags():
    cfg = resolve_stat_config(PercentileSettings(quartiles=False, quartile2=True, iqr=True, iqr12=False))
    assert cfg.quartiles == (False, False, False)
    assert cfg.iqr == (True, True, True)


def test_individual_false_has_no_effect_without_aggregate():
    cfg = resolve_stat_config(PercentileSettings(quartile1=False, iqr23=False))
    assert cfg.quartiles == (True, True, True)
    assert cfg.iqr == (True, True, True)


def test_percentiles_are_clamped(caplog):
    with caplog.at_level(logging.WARNING):
        cfg = resolve_stat_config(PercentileSettings(percentile=[1.5, -0.2, 0.5]))
    assert cfg.percentiles == (1.0, 0.0, 0.5)
    assert "percentile[0] is out of range" in caplog.text
    assert "clipping to 0.0" in caplog.text
    assert len([r for r in caplog.records if r.levelno == logging.WARNING]) == 2


@pytest.mark.parametrize(
    "token, expected",
    [
        ("0-1", (0, 1)),
        (" 2 - 0 ", (2, 0)),
        ("2-2", INVALID_RANGE),
        ("x-1", INVALID_RANGE),
        ("1-x", INVALID_RANGE),
        ("3", INVALID_RANGE),
        ("0-3", INVALID_RANGE),
        ("-1-2", INVALID_RANGE),
        ("", INVALID_RANGE),
    ],
)
def test_parse_pctl_range(token, expected):
    assert parse_pctl_range(token, 3) == expected


def test_bad_range_tokens_are_reported(caplog):
    with caplog.at_level(logging.ERROR):
        cfg = resolve_stat_config(
            PercentileSettings(percentile=[0.1, 0.5, 0.9], pctlrange=["0-2", "2-2", "x-1"])
        )
    assert cfg.ranges == ((0, 2), INVALID_RANGE, INVALID_RANGE)
    assert cfg.ranges_enabled
    assert "X must be != Y" in caplog.text
    assert "Error parsing percentile range [2] = 'x-1'" in caplog.text


def test_ranges_ignored_without_percentiles():
    cfg = resolve_stat_config(PercentileSettings(pctlrange=["0-1"]))
    assert cfg.ranges == ()
    assert not cfg.ranges_enabled


def test_resolve_config_from_settings():
    settings = Settings.model_validate(
        {
            "percentiles": {"percentile": "0.05,0.95", "pctlrange": "0-1", "interp": False},
            "wave": {"filename": "a.wav", "monoMixdown": True, "startSamples": 10, "endrel": 0.5},
        }
    )
    stat_cfg, wave_cfg = resolve_config(settings)
    assert stat_cfg.percentiles == (0.05, 0.95)
    assert stat_cfg.ranges == ((0, 1),)
    assert stat_cfg.interp is False
    assert wave_cfg.filename == "a.wav"
    assert wave_cfg.mono_mixdown is True
    assert wave_cfg.start_samples == 10
    assert wave_cfg.endrel == 0.5
    assert wave_cfg.end_samples is None


def test_nan_percentile_rejected():
    with pytest.raises(ConfigurationError, match="not a number"):
        resolve_stat_config(PercentileSettings(percentile=[0.5, float("nan")]))
