import json

import pytest

from pcmfeat.config import Settings, load_settings


def test_from_env(monkeypatch):
    monkeypatch.setenv("PCMFEAT_PERCENTILES__PERCENTILE", "0.25,0.75")
    monkeypatch.setenv("PCMFEAT_WAVE__MONO_MIXDOWN", "true")
    s = Settings.from_env()
    assert s.percentiles.percentile == [0.25, 0.75]
    assert s.wave.mono_mixdown is True


def test_tri_state_flags_default_to_unset():
    s = Settings()
    assert s.percentiles.quartiles is None
    assert s.percentiles.iqr13 is None
    assert s.wave.start_samples is None
    assert s.wave.end == -1.0


def test_camel_case_aliases():
    s = Settings.model_validate(
        {"wave": {"monoMixdown": 1, "endSamples": 400, "endrelSamples": 3}}
    )
    assert s.wave.mono_mixdown is True
    assert s.wave.end_samples == 400
    assert s.wave.endrel_samples == 3


def test_load_settings_json(tmp_path):
    p = tmp_path / "cfg.json"
    p.write_text(json.dumps({"percentiles": {"percentile": [0.9], "quartiles": False}, "wave": {"blocksize": 64}}))
    s = load_settings(p)
    assert s.percentiles.percentile == [0.9]
    assert s.percentiles.quartiles is False
    assert s.wave.blocksize == 64


def test_load_settings_rejects_non_mapping(tmp_path):
    p = tmp_path / "cfg.json"
    p.write_text("[1, 2]")
    with pytest.raises(TypeError):
        load_settings(p)


try:
    import yaml  # type: ignore
except Exception:  # pragma: no cover
    yaml = None


@pytest.mark.skipif(yaml is None, reason="PyYAML not installed")
def test_load_settings_yaml(tmp_path):
    p = tmp_path / "cfg.yaml"
    p.write_text("percentiles:\n  pctlrange: ['0-1']\n  percentile: [0.1, 0.9]\nwave:\n  startSamples: 8\n")
    s = load_settings(p)
    assert s.percentiles.pctlrange == ["0-1"]
    assert s.wave.start_samples == 8
