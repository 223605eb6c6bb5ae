from collections.abc import Callable

from dev_voice.adapters.file_session_store import FileSessionStore
from dev_voice.adapters.posix_signal import PosixTerminationSignal
from dev_voice.config import DevVoiceConfig
from dev_voice.domain.controller import SessionController
from dev_voice.ports.capture import CapturePort
from dev_voice.ports.output import OutputMode
from dev_voice.ports.transcriber import TranscriberPort


def create_store(config: DevVoiceConfig) -> FileSessionStore:
    return FileSessionStore(config.resolved_state_dir())


def create_capture(config: DevVoiceConfig) -> CapturePort:
    from dev_voice.adapters.sounddevice_audio import SounddeviceCapture

    return SounddeviceCapture(
        device=config.capture_device or None,
        frame_duration_ms=config.frame_duration_ms,
        poll_interval_ms=config.poll_interval_ms,
    )


def create_transcriber(config: DevVoiceConfig) -> TranscriberPort:
    from dev_voice.adapters.openai_whisper_stt import OpenAIWhisperTranscriber

    return OpenAIWhisperTranscriber(
        api_key=config.read_secret(config.openai_api_key_file),
        sample_rate=config.sample_rate,
        model=config.transcription_model,
        language=config.language,
        prompt=config.prompt,
    )


def create_controller(
    config: DevVoiceConfig,
    termination: PosixTerminationSignal,
    recording: bool = True,
    output_mode: OutputMode | None = None,
    on_shutdown: Callable[[], None] | None = None,
) -> SessionController:
    mode = output_mode or OutputMode.parse(config.output_mode)
    if mode is None:
        raise ValueError(f"Unknown output mode: {config.output_mode!r}")

    capture = transcriber = output = None
    if recording:
        from dev_voice.adapters.text_output import CommandTextOutput

        capture = create_capture(config)
        transcriber = create_transcriber(config)
        output = CommandTextOutput()

    return SessionController(
        store=create_store(config),
        termination=termination,
        capture=capture,
        transcriber=transcriber,
        output=output,
        sample_rate=config.sample_rate,
        output_mode=mode,
        cap_grace_seconds=config.cap_grace_seconds,
        notifications=config.notifications,
        on_shutdown=on_shutdown,
    )
