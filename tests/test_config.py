import json

import pytest

from config import ConfigurationError, EngineSettings, load_settings_from_json


def test_defaults_match_engine_constants(settings):
    assert settings.retained_paths == 50
    assert settings.downsample_step_days == 30
    assert settings.contribution_growth_rate == 0.05
    assert set(settings.risk_profiles) == {"conservative", "balanced", "aggressive"}


def test_return_assumption_applies_scenario_shift(settings):
    bear = settings.return_assumption("balanced", "bear")
    bull = settings.return_assumption("conservative", "bull")
    base = settings.return_assumption("aggressive", "base")

    assert bear.mean == pytest.approx(0.06)
    assert bear.std_dev == pytest.approx(0.20)
    assert bull.mean == pytest.approx(0.11)
    assert bull.std_dev == pytest.approx(0.08)
    assert (base.mean, base.std_dev) == (0.14, 0.22)


def test_unknown_profile_or_scenario_raises(settings):
    with pytest.raises(ValueError):
        settings.return_assumption("reckless", "base")
    with pytest.raises(ValueError):
        settings.return_assumption("balanced", "sideways")


def test_load_settings_from_json(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps({"retained_paths": 10, "risk_profiles": {"balanced": {"mean": 0.09, "std_dev": 0.12}}}),
        encoding="utf-8",
    )

    settings = EngineSettings(**load_settings_from_json(str(path)))

    assert settings.retained_paths == 10
    assert settings.risk_profiles["balanced"].mean == 0.09


def test_missing_settings_file_raises(tmp_path):
    with pytest.raises(ConfigurationError):
        load_settings_from_json(str(tmp_path / "missing.json"))


def test_malformed_settings_file_raises(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_settings_from_json(str(path))


def test_assignment_is_validated(settings):
    with pytest.raises(ValueError):
        settings.downsample_step_days = 0
