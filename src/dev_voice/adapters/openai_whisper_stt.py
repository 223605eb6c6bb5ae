import io
import logging
import wave

import numpy as np
from openai import AsyncOpenAI

logger = logging.getLogger(__name__)


def samples_to_wav(samples: np.ndarray, sample_rate: int) -> io.BytesIO:
    pcm = (np.clip(samples, -1.0, 1.0) * 32767).astype(np.int16)
    wav_buffer = io.BytesIO()
    with wave.open(wav_buffer, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm.tobytes())
    wav_buffer.seek(0)
    wav_buffer.name = "audio.wav"
    return wav_buffer


class OpenAIWhisperTranscriber:
    def __init__(
        self,
        api_key: str = "",
        sample_rate: int = 16000,
        model: str = "whisper-1",
        language: str = "en",
        prompt: str = "",
    ) -> None:
        self._api_key = api_key
        self._client: AsyncOpenAI | None = None
        self._sample_rate = sample_rate
        self._model = model
        self._language = language
        self._prompt = prompt

    async def transcribe(self, samples: np.ndarray) -> str:
        if len(samples) == 0:
            return ""

        duration = len(samples) / self._sample_rate
        logger.info("Transcribing %.1fs of audio with %s", duration, self._model)

        options = {"model": self._model, "file": samples_to_wav(samples, self._sample_rate)}
        if self._language:
            options["language"] = self._language
        if self._prompt:
            options["prompt"] = self._prompt

        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key or None)
        result = await self._client.audio.transcriptions.create(**options)
        return result.text.strip()
