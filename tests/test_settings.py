"""
Tests for analyzer settings.

Validates:
- Defaults
- settings_from_dict: partial override, wrong types and bad values ignored
- settings_from_env: PERFSCOPE_* variables and .env files
"""

from perfscope.settings import (
    AnalyzerSettings,
    settings_from_dict,
    settings_from_env,
)


class TestDefaults:

    def test_defaults(self):
        s = AnalyzerSettings()
        assert s.call_tree_limit == 20
        assert s.marker_limit == 0
        assert s.output_format == "text"
        assert s.browser == "auto"
        assert s.server_port == 9000
        assert s.batch_max_workers == 0


class TestFromDict:

    def test_none_and_empty_give_defaults(self):
        assert settings_from_dict(None) == AnalyzerSettings()
        assert settings_from_dict({}) == AnalyzerSettings()

    def test_partial_override(self):
        s = settings_from_dict({'call_tree_limit': 50, 'output_format': "JSON"})
        assert s.call_tree_limit == 50
        assert s.output_format == "json"
        assert s.browser == "auto"

    def test_numeric_strings_and_floats(self):
        s = settings_from_dict({'server_port': "8080", 'marker_limit': 10.0})
        assert s.server_port == 8080
        assert s.marker_limit == 10

    def test_invalid_values_ignored(self):
        s = settings_from_dict({
            'call_tree_limit': -1,
            'server_port': 70000,
            'output_format': "xml",
            'browser': "safari",
            'marker_limit': True,
            'log_level': 10,
            'unknown': "x",
        })
        assert s == AnalyzerSettings()

    def test_base(self):
        base = AnalyzerSettings(server_port=1234)
        s = settings_from_dict({'browser': "chrome"}, base=base)
        assert s.server_port == 1234
        assert s.browser == "chrome"


class TestFromEnv:

    def test_mapping(self):
        s = settings_from_env({
            'PERFSCOPE_SERVER_PORT': "9100",
            'PERFSCOPE_BROWSER': "firefox",
            'PERFSCOPE_CALL_TREE_LIMIT': "",
            'OTHER': "1",
        })
        assert s.server_port == 9100
        assert s.browser == "firefox"
        assert s.call_tree_limit == 20

    def test_dotenv_file(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("PERFSCOPE_OUTPUT_FORMAT=markdown\n")
        # setenv first so teardown removes what load_dotenv writes
        monkeypatch.setenv("PERFSCOPE_OUTPUT_FORMAT", "text")
        monkeypatch.delenv("PERFSCOPE_OUTPUT_FORMAT")
        s = settings_from_env(dotenv_path=str(env_file))
        assert s.output_format == "markdown"

    def test_process_env_wins_over_dotenv(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("PERFSCOPE_MARKER_LIMIT=5\n")
        monkeypatch.setenv("PERFSCOPE_MARKER_LIMIT", "7")
        assert settings_from_env(dotenv_path=str(env_file)).marker_limit == 7
