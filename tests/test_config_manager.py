"""Tests for the TOML config manager."""

from factory_admin import config_manager


class TestConfigManager:
    """Tests for section loading and saving."""

    def test_defaults_without_file(self):
        assert config_manager.load_full_config() == {}
        api = config_manager.load_api_config()
        assert api["timeout"] == 15.0
        assert api["use_mock"] is False
        assert config_manager.load_layout_config()["node_padding"] == 250.0

    def test_save_api_preserves_layout(self):
        config_manager.save_layout_config(level_height=120)
        assert config_manager.save_api_config(url="http://localhost:9000/", use_mock=True)
        full = config_manager.load_full_config()
        assert full["api"] == {"url": "http://localhost:9000", "use_mock": True}
        assert full["layout"] == {"level_height": 120.0}

    def test_partial_update_keeps_other_keys(self):
        config_manager.save_api_config(url="http://a", timeout=3)
        config_manager.save_api_config(use_mock=False)
        api = config_manager.load_api_config()
        assert api["url"] == "http://a"
        assert api["timeout"] == 3.0
        assert api["use_mock"] is False

    def test_corrupt_file_falls_back_to_defaults(self, temp_home):
        temp_home.mkdir(parents=True, exist_ok=True)
        (temp_home / "config.toml").write_text("[api\nurl=", encoding="utf-8")
        assert config_manager.load_layout_config()["level_height"] == 150.0

    def test_clear(self):
        assert config_manager.clear_config() is False
        config_manager.save_layout_config(node_padding=300)
        assert config_manager.clear_config() is True
        assert config_manager.load_layout_config()["node_padding"] == 250.0
