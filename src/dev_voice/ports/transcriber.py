from typing import Protocol

import numpy as np


class TranscriberPort(Protocol):
    async def transcribe(self, samples: np.ndarray) -> str: ...
