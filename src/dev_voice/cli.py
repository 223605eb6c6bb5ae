import argparse
import asyncio
import logging
import os
import signal
import sys
from datetime import datetime
from pathlib import Path

from dev_voice.config import ENV_FILE_PATH, DevVoiceConfig
from dev_voice.domain.protocol import (
    ControlRequest,
    ControlResponse,
    DecodeError,
    Ok,
    Ping,
    Recording,
    Shutdown,
    StartRecording,
    StopRecording,
    Success,
)
from dev_voice.domain.session import StorageError
from dev_voice.log_format import setup_logging
from dev_voice.paths import log_dir
from dev_voice.ports.output import OutputMode

logger = logging.getLogger(__name__)

# Time allowed on top of the recording cap for transcription and typing.
TRANSCRIBE_ALLOWANCE_SECONDS = 60.0


def _load_env_file(path: Path = ENV_FILE_PATH) -> None:
    if not path.exists():
        return
    with open(path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            if key not in os.environ:
                os.environ[key] = value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dev-voice", description="Voice dictation for Linux developers")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    parser.add_argument(
        "--daemon",
        action="store_true",
        help="Send the request to a running 'dev-voice serve' instead of handling it here",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    start_parser = subparsers.add_parser("start", help="Start or stop voice recording")
    start_parser.add_argument(
        "--duration", "-d",
        type=int,
        default=0,
        help="Recording duration in seconds (0 = toggle mode)",
    )
    start_parser.add_argument(
        "--clipboard", "-c",
        action="store_true",
        help="Copy to clipboard instead of typing",
    )

    subparsers.add_parser("stop", help="Stop a running recording")
    subparsers.add_parser("ping", help="Check that the controller answers")
    subparsers.add_parser("shutdown", help="Stop the daemon and release its session")
    subparsers.add_parser("status", help="Show whether a recording is active")
    subparsers.add_parser("serve", help="Run the control socket daemon")

    config_parser = subparsers.add_parser("config", help="Show configuration")
    config_parser.add_argument("--path", action="store_true", help="Print config file path")

    subparsers.add_parser("doctor", help="Check system dependencies")

    return parser


def build_request(args: argparse.Namespace, config: DevVoiceConfig) -> ControlRequest:
    if args.command == "start":
        if args.duration < 0:
            raise ValueError("Duration must not be negative")
        return StartRecording(max_duration=args.duration or config.toggle_timeout_seconds)
    if args.command == "stop":
        return StopRecording()
    if args.command == "ping":
        return Ping()
    if args.command == "shutdown":
        return Shutdown()
    raise ValueError(f"Not a request command: {args.command}")


def render_response(response: ControlResponse) -> tuple[str, int]:
    if isinstance(response, Ok):
        return response.message, 0
    if isinstance(response, Recording):
        return "Recording already in progress", 0
    if isinstance(response, Success):
        return response.text, 0
    return f"Error: {response.message}", 1


def _is_toggle(args: argparse.Namespace) -> bool:
    return args.command == "start" and args.duration == 0


def _print_response(response: ControlResponse) -> int:
    text, exit_code = render_response(response)
    print(text, file=sys.stderr if exit_code else sys.stdout)
    return exit_code


def main() -> None:
    _load_env_file()
    args = build_parser().parse_args()
    config = DevVoiceConfig()

    try:
        log_directory = log_dir(config.state_dir)
    except StorageError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    setup_logging(args.verbose, log_directory)

    if args.command == "config":
        sys.exit(_show_config(args, config))
    if args.command == "doctor":
        sys.exit(_run_doctor(config, log_directory))
    if args.command == "status":
        sys.exit(_show_status(config))
    if args.command == "serve":
        sys.exit(asyncio.run(_run_daemon(config)))

    try:
        request = build_request(args, config)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)

    if args.daemon:
        sys.exit(asyncio.run(_run_client_command(args, request, config)))
    sys.exit(asyncio.run(_run_local_command(args, request, config)))


async def _run_local_command(
    args: argparse.Namespace, request: ControlRequest, config: DevVoiceConfig
) -> int:
    from dev_voice.adapters.posix_signal import PosixTerminationSignal
    from dev_voice.factory import create_controller

    recording = args.command == "start"
    output_mode = OutputMode.CLIPBOARD if recording and args.clipboard else None

    termination = PosixTerminationSignal()
    if recording:
        termination.install()

    try:
        controller = create_controller(
            config, termination, recording=recording, output_mode=output_mode
        )
    except (OSError, StorageError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if _is_toggle(args):
        logger.info("Toggle mode: run 'dev-voice start' again or 'dev-voice stop' to finish")

    response = await controller.handle(request)
    if isinstance(response, Recording) and _is_toggle(args):
        logger.info("Recording in progress, sending stop signal...")
        response = await controller.handle(StopRecording())
    return _print_response(response)


async def _run_client_command(
    args: argparse.Namespace, request: ControlRequest, config: DevVoiceConfig
) -> int:
    from dev_voice.adapters.unix_control import UnixSocketControlClient

    client = UnixSocketControlClient(
        socket_path=config.resolved_socket_path(),
        timeout=config.request_timeout_seconds,
    )
    timeout = None
    if isinstance(request, StartRecording):
        timeout = request.max_duration + config.request_timeout_seconds + TRANSCRIBE_ALLOWANCE_SECONDS

    try:
        response = await client.send(request, timeout=timeout)
        if isinstance(response, Recording) and _is_toggle(args):
            response = await client.send(StopRecording())
    except (ConnectionRefusedError, FileNotFoundError):
        print("dev-voice daemon is not running", file=sys.stderr)
        return 1
    except asyncio.TimeoutError:
        print("dev-voice daemon did not answer in time", file=sys.stderr)
        return 1
    except DecodeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    return _print_response(response)


async def _run_daemon(config: DevVoiceConfig) -> int:
    from dev_voice.adapters.posix_signal import PosixTerminationSignal
    from dev_voice.adapters.unix_control import UnixSocketControlServer
    from dev_voice.factory import create_controller

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def handle_signal(signum: int) -> None:
        if signum in (signal.SIGINT, signal.SIGTERM):
            logger.info("Shutting down...")
            loop.call_soon_threadsafe(shutdown_event.set)

    termination = PosixTerminationSignal()
    termination.install(on_stop=handle_signal)

    try:
        controller = create_controller(config, termination, on_shutdown=shutdown_event.set)
        server = UnixSocketControlServer(controller.handle, config.resolved_socket_path())
        await server.start()
    except (OSError, StorageError, ValueError) as exc:
        termination.uninstall()
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    try:
        await shutdown_event.wait()
    finally:
        await server.stop()
        termination.uninstall()
    return 0


def _show_status(config: DevVoiceConfig) -> int:
    from dev_voice.factory import create_store

    try:
        store = create_store(config)
        state = store.inspect()
    except StorageError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if state is not None:
        since = datetime.fromtimestamp(state.claimed_at).strftime("%H:%M:%S")
        print(f"recording (pid {state.pid}, since {since})")
    if store.is_processing():
        print("processing")
    elif state is None:
        print("idle")
    return 0


def _show_config(args: argparse.Namespace, config: DevVoiceConfig) -> int:
    if args.path:
        print(ENV_FILE_PATH)
        return 0
    for key, value in config.model_dump().items():
        print(f"{key} = {value!r}")
    return 0


def _run_doctor(config: DevVoiceConfig, log_directory: Path) -> int:
    from dev_voice.health import format_report, has_critical_failures, run_startup_checks

    print("Checking system dependencies...\n")
    results = run_startup_checks(config)
    print(format_report(results))
    print(f"\nLogs: {log_directory}")
    return 1 if has_critical_failures(results) else 0
