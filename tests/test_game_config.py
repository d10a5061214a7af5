"""Tests for loading config/game.yaml."""

from pathlib import Path

from kingdomserver.loaders.game_config_loader import GameConfig, load_game_config

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


def test_missing_file_gives_defaults(tmp_path):
    assert load_game_config(str(tmp_path / "nope.yaml")) == GameConfig()


def test_shipped_config():
    cfg = load_game_config(str(CONFIG_DIR / "game.yaml"))
    assert cfg.maximum_bank_deposits == 1
    assert cfg.starting_fort_level == 1
    assert cfg.starting_units[0] == {"type": "CITIZEN", "level": 1, "quantity": 100}


def test_partial_file_keeps_defaults(tmp_path):
    path = tmp_path / "game.yaml"
    path.write_text("turn_length_seconds: 60\nunknown_key: 1\n")
    cfg = load_game_config(str(path))
    assert cfg.turn_length_seconds == 60
    assert cfg.maximum_bank_deposits == 1
    assert not hasattr(cfg, "unknown_key")


def test_empty_file(tmp_path):
    path = tmp_path / "game.yaml"
    path.write_text("")
    assert load_game_config(str(path)) == GameConfig()
