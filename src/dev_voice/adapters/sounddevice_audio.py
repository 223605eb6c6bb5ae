import asyncio
import logging
import os

import janus
import numpy as np
import sounddevice as sd

from dev_voice.domain.stop_flag import StopFlag

logger = logging.getLogger(__name__)


class SounddeviceCapture:
    def __init__(
        self,
        device: str | int | None = None,
        frame_duration_ms: int = 30,
        poll_interval_ms: int = 100,
    ) -> None:
        self._device = device
        self._frame_duration_ms = frame_duration_ms
        self._poll_interval = poll_interval_ms / 1000

    async def capture(
        self, max_duration: int, sample_rate: int, stop_flag: StopFlag
    ) -> np.ndarray:
        loop = asyncio.get_running_loop()
        frame_size = int(sample_rate * self._frame_duration_ms / 1000)
        queue: janus.Queue[np.ndarray] = janus.Queue(maxsize=1000)
        chunks: list[np.ndarray] = []

        def audio_callback(indata: np.ndarray, frames: int, time_info, status) -> None:
            if status:
                logger.warning("Audio capture status: %s", status)
            try:
                queue.sync_q.put_nowait(indata[:, 0].copy())
            except janus.SyncQueueFull:
                pass

        device = self._resolve_device()
        stream = sd.InputStream(
            device=device,
            samplerate=sample_rate,
            channels=1,
            dtype="float32",
            blocksize=frame_size,
            callback=audio_callback,
        )
        stream.start()
        logger.info(
            "Audio capture started (device=%s, rate=%d, frame=%dms)",
            device, sample_rate, self._frame_duration_ms,
        )

        deadline = loop.time() + max_duration
        try:
            while not stop_flag.is_set():
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                try:
                    chunk = await asyncio.wait_for(
                        queue.async_q.get(), timeout=min(self._poll_interval, remaining)
                    )
                except asyncio.TimeoutError:
                    continue
                chunks.append(chunk)
        finally:
            stream.stop()
            stream.close()
            while not queue.sync_q.empty():
                chunks.append(queue.sync_q.get_nowait())
            queue.close()
            await queue.wait_closed()

        if not chunks:
            return np.zeros(0, dtype=np.float32)
        return np.concatenate(chunks)

    def _resolve_device(self) -> str | int | None:
        if self._device is None or self._device == "":
            return None
        if isinstance(self._device, int):
            return self._device
        try:
            return int(self._device)
        except ValueError:
            pass
        for i, dev in enumerate(sd.query_devices()):
            if self._device.lower() in dev["name"].lower() and dev["max_input_channels"] > 0:
                logger.info("Resolved device '%s' -> %d (%s)", self._device, i, dev["name"])
                return i
        os.environ["PIPEWIRE_NODE"] = self._device
        logger.info("Device '%s' not in PortAudio, set PIPEWIRE_NODE for PipeWire routing", self._device)
        return None
