"""Tests for config persistence."""

from app.config import Config


def test_defaults():
    cfg = Config()
    assert cfg.too_far_ratio == 0.55
    assert cfg.too_close_ratio == 0.85
    assert cfg.max_speed_px_s == 600.0
    assert cfg.coverage_target_s == 30.0
    assert cfg.vehicle_classes == ["car", "truck", "bus", "motorcycle"]


def test_save_and_load(tmp_path):
    path = tmp_path / "config.json"
    cfg = Config(camera_index=2, api_base_url="http://analysis:9000")
    cfg.save(path)

    loaded = Config.load(path)
    assert loaded.camera_index == 2
    assert loaded.api_base_url == "http://analysis:9000"


def test_unknown_keys_ignored(tmp_path):
    path = tmp_path / "config.json"
    path.write_text('{"max_speed_px_s": 450, "ema_alpha": 0.3}', encoding="utf-8")
    loaded = Config.load(path)
    assert loaded.max_speed_px_s == 450
    assert not hasattr(loaded, "ema_alpha")


def test_missing_or_corrupt_file_gives_defaults(tmp_path):
    assert Config.load(tmp_path / "absent.json") == Config()
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    assert Config.load(bad) == Config()
