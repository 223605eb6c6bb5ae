import asyncio
import logging
import os
from pathlib import Path

from dev_voice.domain.protocol import (
    ControlRequest,
    ControlResponse,
    DecodeError,
    Error,
    decode_request,
    decode_response,
    encode_request,
    encode_response,
)
from dev_voice.ports.control import RequestHandler

logger = logging.getLogger(__name__)

READ_TIMEOUT_SECONDS = 5.0
CONNECT_CHECK_TIMEOUT_SECONDS = 1.0
STREAM_LIMIT = 1024 * 1024


class SocketInUseError(OSError):
    pass


class UnixSocketControlServer:
    def __init__(self, handler: RequestHandler, socket_path: str) -> None:
        self._handler = handler
        self._socket_path = socket_path
        self._server: asyncio.Server | None = None

    @property
    def socket_path(self) -> str:
        return self._socket_path

    async def start(self) -> None:
        socket_file = Path(self._socket_path)
        if socket_file.exists():
            if await _is_listening(self._socket_path):
                raise SocketInUseError(f"Another daemon is listening on {self._socket_path}")
            logger.info("Removing stale control socket %s", self._socket_path)
            socket_file.unlink()

        self._server = await asyncio.start_unix_server(
            self._handle_client,
            path=self._socket_path,
            limit=STREAM_LIMIT,
        )
        os.chmod(self._socket_path, 0o600)
        logger.info("Control socket listening at %s", self._socket_path)

    async def stop(self) -> None:
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        socket_file = Path(self._socket_path)
        if socket_file.exists():
            socket_file.unlink()

    async def _handle_client(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        try:
            raw = await asyncio.wait_for(reader.readline(), timeout=READ_TIMEOUT_SECONDS)
            if not raw:
                return

            try:
                request = decode_request(raw.strip())
            except DecodeError as exc:
                logger.warning("Rejected control message: %s", exc)
                response: ControlResponse = Error(message=str(exc))
            else:
                logger.debug("Control request: %s", request)
                response = await self._handler(request)

            writer.write((encode_response(response) + "\n").encode())
            await writer.drain()
        except asyncio.TimeoutError:
            logger.warning("Client connection timed out")
        except (ConnectionResetError, BrokenPipeError):
            logger.warning("Client disconnected before the response was sent")
        except Exception:
            logger.exception("Error handling control client")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionResetError, BrokenPipeError):
                pass


class UnixSocketControlClient:
    def __init__(self, socket_path: str, timeout: float = 10.0) -> None:
        self._socket_path = socket_path
        self._timeout = timeout

    async def send(
        self, request: ControlRequest, timeout: float | None = None
    ) -> ControlResponse:
        reader, writer = await asyncio.open_unix_connection(self._socket_path, limit=STREAM_LIMIT)
        try:
            writer.write((encode_request(request) + "\n").encode())
            await writer.drain()

            raw = await asyncio.wait_for(
                reader.readline(), timeout=timeout if timeout is not None else self._timeout
            )
            return decode_response(raw.strip())
        finally:
            writer.close()
            await writer.wait_closed()


async def _is_listening(socket_path: str) -> bool:
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_unix_connection(socket_path), timeout=CONNECT_CHECK_TIMEOUT_SECONDS
        )
    except (OSError, asyncio.TimeoutError):
        return False
    writer.close()
    try:
        await writer.wait_closed()
    except (ConnectionResetError, BrokenPipeError):
        pass
    return True
