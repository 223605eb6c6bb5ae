import logging
import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass

from dev_voice.adapters.text_output import DisplayServer, clipboard_command, type_command
from dev_voice.config import DevVoiceConfig
from dev_voice.domain.session import StorageError

logger = logging.getLogger(__name__)

CRITICAL_CHECKS = {"state_dir", "audio_device"}


@dataclass
class HealthCheckResult:
    name: str
    passed: bool
    detail: str


def run_startup_checks(config: DevVoiceConfig) -> list[HealthCheckResult]:
    display = DisplayServer.detect()
    results = [
        _check_state_dir(config),
        HealthCheckResult(name="display_server", passed=True, detail=display.value),
        _check_tool("text_injection", type_command(display, "")[0]),
        _check_tool("clipboard", clipboard_command(display)[0]),
        _check_audio_device(config),
        _check_pipewire(),
        _check_api_key(config),
    ]

    passed = sum(1 for r in results if r.passed)
    logger.debug("Health check: %d/%d passed", passed, len(results))
    return results


def has_critical_failures(results: list[HealthCheckResult]) -> bool:
    return any(not r.passed and r.name in CRITICAL_CHECKS for r in results)


def format_report(results: list[HealthCheckResult]) -> str:
    lines = []
    for result in results:
        symbol = "OK" if result.passed else "MISSING"
        lines.append(f"[{symbol}] {result.name}: {result.detail}")
    return "\n".join(lines)


def _check_state_dir(config: DevVoiceConfig) -> HealthCheckResult:
    name = "state_dir"
    try:
        directory = config.resolved_state_dir()
        with tempfile.TemporaryFile(dir=directory):
            pass
    except (StorageError, OSError) as exc:
        return HealthCheckResult(name=name, passed=False, detail=str(exc))
    return HealthCheckResult(name=name, passed=True, detail=f"{directory} (writable)")


def _check_tool(name: str, executable: str) -> HealthCheckResult:
    path = shutil.which(executable)
    if path is None:
        return HealthCheckResult(name=name, passed=False, detail=f"{executable} not found in PATH")
    return HealthCheckResult(name=name, passed=True, detail=path)


def _check_audio_device(config: DevVoiceConfig) -> HealthCheckResult:
    name = "audio_device"
    try:
        import sounddevice as sd

        if config.capture_device:
            for dev in sd.query_devices():
                if config.capture_device.lower() in dev["name"].lower() and dev["max_input_channels"] > 0:
                    return HealthCheckResult(name=name, passed=True, detail=f"Device '{dev['name']}' found")
            return HealthCheckResult(
                name=name,
                passed=True,
                detail=f"'{config.capture_device}' not in PortAudio (will use PIPEWIRE_NODE)",
            )

        default = sd.query_devices(kind="input")
        return HealthCheckResult(name=name, passed=True, detail=f"Default input: {default['name']}")
    except Exception as exc:
        return HealthCheckResult(name=name, passed=False, detail=str(exc) or type(exc).__name__)


def _check_pipewire() -> HealthCheckResult:
    name = "pipewire"
    try:
        result = subprocess.run(["pw-cli", "info"], capture_output=True, text=True, timeout=3)
    except FileNotFoundError:
        return HealthCheckResult(name=name, passed=False, detail="pw-cli not available")
    except subprocess.TimeoutExpired:
        return HealthCheckResult(name=name, passed=False, detail="pw-cli timed out")
    if result.returncode != 0:
        return HealthCheckResult(name=name, passed=False, detail="PipeWire is not running")
    return HealthCheckResult(name=name, passed=True, detail="running")


def _check_api_key(config: DevVoiceConfig) -> HealthCheckResult:
    name = "api_key"
    if config.read_secret(config.openai_api_key_file):
        return HealthCheckResult(name=name, passed=True, detail=f"Loaded from {config.openai_api_key_file}")
    if os.environ.get("OPENAI_API_KEY"):
        return HealthCheckResult(name=name, passed=True, detail="Loaded from OPENAI_API_KEY")
    source = config.openai_api_key_file or "not configured"
    return HealthCheckResult(name=name, passed=False, detail=f"Missing OpenAI key ({source})")
