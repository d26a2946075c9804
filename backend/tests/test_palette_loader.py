from app.config import palette_loader
from app.config.palette_loader import DEFAULT_PALETTE, _parse_color, get_palette


def test_parse_color_formats():
    assert _parse_color({"r": 1, "g": 2, "b": 300}) == {"r": 1, "g": 2, "b": 255}
    assert _parse_color([10, -5, 20]) == {"r": 10, "g": 0, "b": 20}
    assert _parse_color("#3b82f6") == {"r": 59, "g": 130, "b": 246}
    assert _parse_color("blue") is None
    assert _parse_color({"r": 1}) is None


def test_shipped_palette_matches_defaults():
    assert get_palette() == DEFAULT_PALETTE


def test_palette_file_overrides_known_groups(tmp_path, monkeypatch):
    config = tmp_path / "colors.yaml"
    config.write_text(
        "colors:\n"
        "  missing: '#000000'\n"
        "  pending: not-a-color\n"
        "  sparkly: [1, 2, 3]\n",
        encoding="utf-8",
    )
    monkeypatch.setattr(palette_loader, "CONFIG_PATH", config)
    palette_loader.load_palette_config.cache_clear()
    try:
        palette = get_palette()
    finally:
        palette_loader.load_palette_config.cache_clear()

    assert palette["missing"] == {"r": 0, "g": 0, "b": 0}
    assert palette["pending"] == DEFAULT_PALETTE["pending"]
    assert "sparkly" not in palette


def test_missing_palette_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.setattr(palette_loader, "CONFIG_PATH", tmp_path / "absent.yaml")
    palette_loader.load_palette_config.cache_clear()
    try:
        assert get_palette() == DEFAULT_PALETTE
    finally:
        palette_loader.load_palette_config.cache_clear()
