import stat

import pytest

from dev_voice.config import DevVoiceConfig
from dev_voice.domain.session import StorageError
from dev_voice.paths import log_dir, state_dir


class TestStateDir:
    def test_override_is_created_private(self, tmp_path):
        path = state_dir(str(tmp_path / "state"))
        assert path == tmp_path / "state"
        assert stat.S_IMODE(path.stat().st_mode) == 0o700

    def test_xdg_state_home(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path))
        assert state_dir() == tmp_path / "dev-voice"

    def test_home_fallback(self, tmp_path, monkeypatch):
        monkeypatch.delenv("XDG_STATE_HOME", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert state_dir() == tmp_path / ".local" / "state" / "dev-voice"

    def test_file_in_the_way_raises(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        with pytest.raises(StorageError):
            state_dir(str(blocker))

    def test_log_dir_lives_under_state_dir(self, tmp_path):
        assert log_dir(str(tmp_path)) == tmp_path / "logs"
        assert (tmp_path / "logs").is_dir()


class TestConfig:
    def test_defaults(self, monkeypatch):
        for name in ("DEV_VOICE_TOGGLE_TIMEOUT_SECONDS", "DEV_VOICE_OUTPUT_MODE", "DEV_VOICE_NOTIFICATIONS"):
            monkeypatch.delenv(name, raising=False)
        config = DevVoiceConfig()
        assert config.toggle_timeout_seconds == 300
        assert config.output_mode == "type"
        assert config.notifications is True

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("DEV_VOICE_TOGGLE_TIMEOUT_SECONDS", "45")
        monkeypatch.setenv("DEV_VOICE_OUTPUT_MODE", "clipboard")
        monkeypatch.setenv("DEV_VOICE_NOTIFICATIONS", "false")
        config = DevVoiceConfig()
        assert config.toggle_timeout_seconds == 45
        assert config.output_mode == "clipboard"
        assert config.notifications is False

    def test_socket_path_defaults_into_state_dir(self, tmp_path):
        config = DevVoiceConfig(state_dir=str(tmp_path), socket_path="")
        assert config.resolved_socket_path() == str(tmp_path / "dev-voice.sock")

    def test_explicit_socket_path(self, tmp_path):
        config = DevVoiceConfig(socket_path=str(tmp_path / "ctl.sock"))
        assert config.resolved_socket_path() == str(tmp_path / "ctl.sock")

    def test_read_secret(self, tmp_path):
        key_file = tmp_path / "key"
        key_file.write_text("sk-test\n")
        config = DevVoiceConfig()
        assert config.read_secret(str(key_file)) == "sk-test"
        assert config.read_secret(str(tmp_path / "absent")) == ""
        assert config.read_secret("") == ""
