import os
from pathlib import Path

from dev_voice.domain.session import StorageError

APP_NAME = "dev-voice"
DIRECTORY_MODE = 0o700


def state_dir(override: str = "") -> Path:
    if override:
        path = Path(override).expanduser()
    else:
        base = os.environ.get("XDG_STATE_HOME") or str(Path.home() / ".local" / "state")
        path = Path(base) / APP_NAME
    return _ensure_directory(path)


def log_dir(override: str = "") -> Path:
    return _ensure_directory(state_dir(override) / "logs")


def _ensure_directory(path: Path) -> Path:
    try:
        path.mkdir(mode=DIRECTORY_MODE, parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageError(f"Cannot create directory {path}: {exc}") from exc
    if not path.is_dir():
        raise StorageError(f"Not a directory: {path}")
    return path
