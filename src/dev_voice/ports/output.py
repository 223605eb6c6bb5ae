from enum import Enum
from typing import Protocol


class OutputMode(Enum):
    TYPE = "type"
    CLIPBOARD = "clipboard"

    @classmethod
    def parse(cls, value: str) -> "OutputMode | None":
        aliases = {
            "type": cls.TYPE,
            "inject": cls.TYPE,
            "clipboard": cls.CLIPBOARD,
            "copy": cls.CLIPBOARD,
        }
        return aliases.get(value.strip().lower())


class OutputPort(Protocol):
    async def deliver(self, text: str, mode: OutputMode) -> None: ...
    async def notify(self, title: str, body: str) -> None: ...
