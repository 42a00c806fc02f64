"""Tests for persisted council configuration."""

import json
from pathlib import Path
from unittest.mock import patch

from council_chamber import config


class TestUserConfig:
    """Tests for load/save and the council getters."""

    def test_defaults_without_file(self):
        assert config.load_user_config() == {}
        assert config.get_council_size() == config.DEFAULT_COUNCIL_SIZE
        assert config.get_agent_models() == {}
        assert config.get_synthesis_model() == config.DEFAULT_SYNTHESIS_MODEL
        assert config.get_synthesis_priority() == config.DEFAULT_SYNTHESIS_PRIORITY

    def test_update_round_trip(self):
        config.update_council_config(council_size=8, synthesis_priority=["a", "b"])

        assert config.get_council_size() == 8
        assert config.get_synthesis_priority() == ["a", "b"]
        assert json.loads(Path(config.USER_CONFIG_FILE).read_text())["council_size"] == 8

    def test_agent_models_are_merged(self):
        config.update_council_config(agent_models={"1": "a"})
        config.update_council_config(agent_models={"2": "b"})
        assert config.get_agent_models() == {"1": "a", "2": "b"}

    def test_council_size_is_clamped(self):
        config.save_user_config({"council_size": 50})
        assert config.get_council_size() == config.MAX_COUNCIL_SIZE
        config.save_user_config({"council_size": 0})
        assert config.get_council_size() == config.MIN_COUNCIL_SIZE
        config.save_user_config({"council_size": "six"})
        assert config.get_council_size() == config.DEFAULT_COUNCIL_SIZE

    def test_malformed_synthesis_priority_falls_back(self):
        for bad in ([1], "gemini-2.5-pro", [""], {"a": 1}):
            config.save_user_config({"synthesis_priority": bad})
            assert config.get_synthesis_priority() == config.DEFAULT_SYNTHESIS_PRIORITY

    def test_malformed_synthesis_model_falls_back(self):
        config.save_user_config({"synthesis_model": 7})
        assert config.get_synthesis_model() == config.DEFAULT_SYNTHESIS_MODEL

    def test_malformed_agent_models_are_dropped(self):
        config.save_user_config({"agent_models": ["gemini-2.5-pro"]})
        assert config.get_agent_models() == {}
        config.save_user_config({"agent_models": {"1": "gemini-2.5-pro", "2": None, "3": 4}})
        assert config.get_agent_models() == {"1": "gemini-2.5-pro"}

    def test_unreadable_file_is_ignored(self):
        path = Path(config.USER_CONFIG_FILE)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{not json")
        assert config.load_user_config() == {}


class TestParseModelList:
    """Tests for _parse_model_list."""

    def test_splits_and_trims(self):
        assert config._parse_model_list(" a, b ,,c ") == ["a", "b", "c"]

    def test_empty(self):
        assert config._parse_model_list(None) == []
        assert config._parse_model_list("") == []


class TestReloadConfig:
    """Tests for reload_config."""

    def test_reload_picks_up_new_key(self):
        original = config.GEMINI_API_KEY
        try:
            with patch.dict("os.environ", {"GEMINI_API_KEY": "new-key"}), \
                 patch("council_chamber.config.load_dotenv"):
                result = config.reload_config()
            assert result["status"] == "reloaded"
            assert result["gemini_configured"] is True
            assert config.GEMINI_API_KEY == "new-key"
        finally:
            config.GEMINI_API_KEY = original
