"""Request pacing policies for the transcription batch.

WHY: The external speech-to-text service is called once per segment.
Spacing those calls out is a politeness requirement, not a correctness
one, so the delay lives in its own policy object that the orchestrator
awaits between segments and tests can replace.

RULES:
- wait() is awaited between two segments, never after the last one
- The sleep function is injectable for tests
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from segment_transcriber.config import PACING_INTERVAL_S

Sleep = Callable[[float], Awaitable[None]]


class FixedDelayPacer:
    """Waits a fixed interval between consecutive requests."""

    def __init__(self, interval_s: float = PACING_INTERVAL_S, sleep: Sleep = asyncio.sleep) -> None:
        if interval_s < 0:
            raise ValueError("interval_s must be >= 0")
        self.interval_s = interval_s
        self._sleep = sleep

    async def wait(self) -> None:
        if self.interval_s > 0:
            await self._sleep(self.interval_s)


class NoDelayPacer:
    """Pacer that never waits (local services, tests)."""

    interval_s = 0.0

    async def wait(self) -> None:
        return None
