"""Unit tests for IdeaCaptureConfig class."""

import pytest
from pathlib import Path

from ideacapture.config import IdeaCaptureConfig, DEFAULT_CONFIG, DEFAULT_FINISH_KEYWORDS


@pytest.mark.unit
class TestIdeaCaptureConfig:
    """Test cases for IdeaCaptureConfig class."""

    def test_defaults_without_file(self):
        config = IdeaCaptureConfig()

        assert config.config_file is None
        assert config.get_final_timeout_seconds() == 3.0
        assert config.get_persist_partials() is True
        assert config.get_incremental_writes() is False
        assert config.get_finish_keywords() == DEFAULT_FINISH_KEYWORDS

    def test_defaults_are_not_shared(self):
        config = IdeaCaptureConfig()
        config.set('session.final_timeout_seconds', 9)

        assert DEFAULT_CONFIG["session"]["final_timeout_seconds"] == 3.0

    def test_load_from_file(self, config, temp_data_dir):
        """Test loading values and resolving relative paths."""
        assert config.get('session.final_timeout_seconds') == 0.3
        assert config.get_finish_keywords() == ["finish", "終わり"]
        assert config.get_data_directory() == str((Path(temp_data_dir) / "data").absolute())
        assert config.get_history_path() == str(Path(temp_data_dir) / "data" / "transcripts.json")
        assert config.get('logging.file_path') == str(Path(temp_data_dir) / "data/logs/test.log")

    def test_absolute_paths_untouched(self, temp_data_dir):
        data_dir = str(Path(temp_data_dir) / "elsewhere")
        path = Path(temp_data_dir) / "abs.yaml"
        path.write_text(f"storage:\n  data_directory: {data_dir}\n", encoding='utf-8')

        config = IdeaCaptureConfig(str(path))

        assert config.get('storage.data_directory') == data_dir

    def test_get_with_default(self, config):
        assert config.get('missing.key', 'fallback') == 'fallback'
        assert config.get('session.missing') is None

    def test_set_creates_sections(self, config):
        config.set('new.section.value', 42)
        assert config.get('new.section.value') == 42

    def test_missing_file(self, temp_data_dir):
        with pytest.raises(FileNotFoundError):
            IdeaCaptureConfig(str(Path(temp_data_dir) / "nope.yaml"))

    @pytest.mark.parametrize("content", ["", "key: [unclosed", "- just\n- a list\n"])
    def test_invalid_file(self, temp_data_dir, content):
        path = Path(temp_data_dir) / "bad.yaml"
        path.write_text(content, encoding='utf-8')

        with pytest.raises(ValueError):
            IdeaCaptureConfig(str(path))

    @pytest.mark.parametrize("timeout", [0, -1])
    def test_final_timeout_must_be_positive(self, config, timeout):
        config.set('session.final_timeout_seconds', timeout)
        with pytest.raises(ValueError):
            config.get_final_timeout_seconds()

    def test_finish_keywords_must_be_list(self, config):
        config.set('session.finish_keywords', "finish")
        with pytest.raises(ValueError):
            config.get_finish_keywords()
