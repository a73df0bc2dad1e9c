import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import YamlConfig, load_settings
from settings_schema import validate_settings


def test_defaults_when_file_missing(tmp_path, monkeypatch):
    monkeypatch.delenv("DB_PATH", raising=False)
    settings = load_settings(str(tmp_path / "missing.yaml"))
    assert settings.db_path == "lograt.db"
    assert settings.recent_workout_days == 90
    assert settings.recent_workout_limit == 20


def test_yaml_values_override_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("DB_PATH", raising=False)
    path = str(tmp_path / "settings.yaml")
    YamlConfig(path).save({"recent_workout_limit": 5, "weight_unit": "lb"})
    assert YamlConfig(path).load() == {"recent_workout_limit": 5, "weight_unit": "lb"}
    settings = load_settings(path)
    assert settings.recent_workout_limit == 5
    assert settings.weight_unit == "lb"


def test_environment_overrides_db_path(tmp_path, monkeypatch):
    path = str(tmp_path / "settings.yaml")
    YamlConfig(path).save({"db_path": "from_file.db"})
    monkeypatch.setenv("DB_PATH", "from_env.db")
    assert load_settings(path).db_path == "from_env.db"


@pytest.mark.parametrize(
    "data",
    [
        {"recent_workout_days": 0},
        {"recent_workout_limit": -3},
        {"weight_unit": "stone"},
    ],
)
def test_invalid_settings_raise_value_error(data):
    with pytest.raises(ValueError):
        validate_settings(data)


def test_non_mapping_yaml_rejected(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        YamlConfig(str(path)).load()
