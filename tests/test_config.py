"""
test_config.py

This script tests loading and validating the game configuration.
"""

import logging

import pytest
from hz_config import GameConfig, load_config, save_config


def test_defaults():
    config = GameConfig()
    assert config.rounds_per_level == 2
    assert config.max_level == 7
    assert config.max_attempts == 3
    assert config.decoy_count == 2
    assert config.seed is None


def test_load_yaml(tmp_path):
    path = tmp_path / "game.yaml"
    path.write_text("max_attempts: 5\ndecoy_count: 1\nseed: 11\n", encoding='utf-8')
    config = load_config(path)
    assert config.max_attempts == 5
    assert config.decoy_count == 1
    assert config.seed == 11
    assert config.rounds_per_level == 2


def test_unknown_keys_are_ignored(tmp_path, caplog):
    path = tmp_path / "game.yaml"
    path.write_text("max_level: 3\ntheme: dark\n", encoding='utf-8')
    with caplog.at_level(logging.WARNING):
        config = load_config(path)
    assert config.max_level == 3
    assert "theme" in caplog.text


def test_missing_default_file_gives_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert load_config() == GameConfig()


def test_non_mapping_file_fails(tmp_path):
    path = tmp_path / "game.yaml"
    path.write_text("- 1\n- 2\n", encoding='utf-8')
    with pytest.raises(ValueError, match="must contain a mapping"):
        load_config(path)


@pytest.mark.parametrize("field, value", [
    ('rounds_per_level', 0),
    ('max_level', 0),
    ('max_attempts', -1),
    ('decoy_count', -2),
])
def test_invalid_values_fail(field, value):
    with pytest.raises(ValueError, match=field):
        GameConfig(**{field: value})


def test_overrides_skip_none():
    config = GameConfig(max_attempts=4).with_overrides(data_dir="data", games_dir=None, seed=3)
    assert config.data_dir == "data"
    assert config.games_dir == ".games"
    assert config.seed == 3
    assert config.max_attempts == 4


def test_save_and_reload(tmp_path):
    path = tmp_path / "saved.yaml"
    original = GameConfig(rounds_per_level=4, data_dir="elsewhere")
    save_config(original, path)
    assert load_config(path) == original


@pytest.mark.parametrize("field, value", [
    ('max_attempts', "three"),
    ('rounds_per_level', 2.5),
    ('decoy_count', True),
    ('seed', "abc"),
    ('data_dir', 7),
])
def test_wrong_types_fail(field, value):
    with pytest.raises(ValueError, match=field):
        GameConfig(**{field: value})


def test_wrong_type_in_file_fails(tmp_path):
    path = tmp_path / "game.yaml"
    path.write_text("max_attempts: three\n", encoding='utf-8')
    with pytest.raises(ValueError, match="must be an integer"):
        load_config(path)


def test_yaml_syntax_error_fails(tmp_path):
    path = tmp_path / "game.yaml"
    path.write_text("max_level: [1, 2\n", encoding='utf-8')
    with pytest.raises(ValueError, match="not valid YAML"):
        load_config(path)
