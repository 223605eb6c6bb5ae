import asyncio
import logging
import os
from enum import Enum

from dev_voice.ports.output import OutputMode

logger = logging.getLogger(__name__)


class DisplayServer(Enum):
    WAYLAND = "wayland"
    X11 = "x11"

    @classmethod
    def detect(cls) -> "DisplayServer":
        session_type = os.environ.get("XDG_SESSION_TYPE", "").lower()
        if session_type == "wayland":
            return cls.WAYLAND
        if session_type == "x11":
            return cls.X11
        return cls.WAYLAND if os.environ.get("WAYLAND_DISPLAY") else cls.X11


class OutputError(Exception):
    pass


def type_command(display: DisplayServer, text: str) -> list[str]:
    if display is DisplayServer.WAYLAND:
        return ["wtype", "--", text]
    return ["xdotool", "type", "--clearmodifiers", "--", text]


def clipboard_command(display: DisplayServer) -> list[str]:
    if display is DisplayServer.WAYLAND:
        return ["wl-copy"]
    return ["xclip", "-selection", "clipboard"]


class CommandTextOutput:
    """Delivers text by running the desktop's injection and clipboard tools."""

    def __init__(self, display: DisplayServer | None = None) -> None:
        self._display = display or DisplayServer.detect()

    @property
    def display(self) -> DisplayServer:
        return self._display

    async def deliver(self, text: str, mode: OutputMode) -> None:
        if not text:
            return

        if mode is OutputMode.CLIPBOARD:
            await _run(clipboard_command(self._display), stdin=text)
            logger.info("Copied to clipboard: %d chars", len(text))
        else:
            await _run(type_command(self._display, text))
            logger.info("Typed %d chars at cursor", len(text))

    async def notify(self, title: str, body: str) -> None:
        command = [
            "notify-send",
            "-a", "dev-voice",
            "-i", "audio-input-microphone",
            "-u", "normal",
            title,
            body,
        ]
        try:
            await _run(command)
        except OutputError as exc:
            logger.debug("Notification skipped: %s", exc)


async def _run(command: list[str], stdin: str | None = None) -> None:
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            # wl-copy leaves a child holding inherited pipes open
            stderr=asyncio.subprocess.DEVNULL,
        )
    except FileNotFoundError as exc:
        raise OutputError(f"{command[0]} is not installed") from exc

    await process.communicate(stdin.encode() if stdin is not None else None)
    if process.returncode != 0:
        raise OutputError(f"{command[0]} exited with code {process.returncode}")
