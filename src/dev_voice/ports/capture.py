from typing import Protocol

import numpy as np

from dev_voice.domain.stop_flag import StopFlag


class CapturePort(Protocol):
    async def capture(
        self, max_duration: int, sample_rate: int, stop_flag: StopFlag
    ) -> np.ndarray: ...
