from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from dev_voice.paths import state_dir

ENV_FILE_PATH = Path.home() / ".config" / "dev-voice" / "env"


class DevVoiceConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DEV_VOICE_")

    state_dir: str = ""
    socket_path: str = ""

    toggle_timeout_seconds: int = 300
    cap_grace_seconds: float = 1.0
    poll_interval_ms: int = 100

    capture_device: str = ""
    sample_rate: int = 16000
    frame_duration_ms: int = 30

    output_mode: str = "type"
    notifications: bool = True

    openai_api_key_file: str = ""
    transcription_model: str = "whisper-1"
    language: str = "en"
    prompt: str = ""

    request_timeout_seconds: float = 10.0

    def resolved_state_dir(self) -> Path:
        return state_dir(self.state_dir)

    def resolved_socket_path(self) -> str:
        if self.socket_path:
            return self.socket_path
        return str(self.resolved_state_dir() / "dev-voice.sock")

    def read_secret(self, path: str) -> str:
        if not path:
            return ""
        try:
            with open(Path(path).expanduser()) as f:
                return f.read().strip()
        except FileNotFoundError:
            return ""
