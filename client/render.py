"""Incremental reveal of finished answers.

Each display slot has at most one live ``RenderJob``. A job reveals its
text one whitespace/non-whitespace chunk per tick as raw text, then
swaps the raw buffer for the formatted rendering. Ticks are timer
callbacks on the running event loop; starting a new job for a slot
cancels the old job's pending tick before anything else is scheduled.
"""

from __future__ import annotations

import asyncio
import logging
import re
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from client.markdown import render_markdown

logger = logging.getLogger(__name__)

TICK_INTERVAL = 0.015

_CHUNKS = re.compile(r"(\s+)")


class RenderState(str, Enum):
    PENDING = "pending"
    REVEALING = "revealing"
    FINALIZED = "finalized"
    SUPERSEDED = "superseded"


class Display(Protocol):
    def show_raw(self, slot: str, text: str) -> None: ...

    def show_formatted(self, slot: str, markup: str) -> None: ...

    def scroll_to_end(self) -> None: ...

    def reset(self) -> None: ...


class MemoryDisplay:
    """Records what each slot currently shows, plus every write in order."""

    def __init__(self) -> None:
        self.slots: Dict[str, str] = {}
        self.formatted: Dict[str, bool] = {}
        self.writes: List[Tuple[str, str, str]] = []
        self.scrolls = 0

    def show_raw(self, slot: str, text: str) -> None:
        self.slots[slot] = text
        self.formatted[slot] = False
        self.writes.append((slot, "raw", text))

    def show_formatted(self, slot: str, markup: str) -> None:
        self.slots[slot] = markup
        self.formatted[slot] = True
        self.writes.append((slot, "formatted", markup))

    def scroll_to_end(self) -> None:
        self.scrolls += 1

    def reset(self) -> None:
        self.slots.clear()
        self.formatted.clear()


def split_chunks(text: str) -> List[str]:
    return [chunk for chunk in _CHUNKS.split(text) if chunk]


class RenderJob:
    def __init__(self, slot: str, text: str, animate: bool) -> None:
        self.slot = slot
        self.text = text
        self.animate = animate and bool(text)
        self.chunks = split_chunks(text) if self.animate else []
        self.index = 0
        self.buffer = ""
        self.state = RenderState.PENDING
        self._handle: Optional[asyncio.TimerHandle] = None
        self._done = asyncio.Event()

    @property
    def done(self) -> bool:
        return self.state in (RenderState.FINALIZED, RenderState.SUPERSEDED)

    async def wait(self) -> RenderState:
        await self._done.wait()
        return self.state

    def _settle(self, state: RenderState) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self.state = state
        self._done.set()


class RenderScheduler:
    def __init__(
        self,
        display: Display,
        formatter: Callable[[str], str] = render_markdown,
        interval: float = TICK_INTERVAL,
    ) -> None:
        self.display = display
        self.formatter = formatter
        self.interval = interval
        self._jobs: Dict[str, RenderJob] = {}

    def job_for(self, slot: str) -> Optional[RenderJob]:
        return self._jobs.get(slot)

    @property
    def active_jobs(self) -> List[RenderJob]:
        return [job for job in self._jobs.values() if job.state is RenderState.REVEALING]

    def play(self, slot: str, text: str, animate: bool = True) -> RenderJob:
        self.cancel(slot)
        job = RenderJob(slot, text, animate)
        self._jobs[slot] = job

        if not job.animate:
            self._finalize(job)
            return job

        job.state = RenderState.REVEALING
        self.display.show_raw(slot, "")
        self._schedule(job)
        return job

    def cancel(self, slot: str) -> None:
        job = self._jobs.pop(slot, None)
        if job is not None and not job.done:
            logger.debug("Superseding render job for slot %s at chunk %s/%s", slot, job.index, len(job.chunks))
            job._settle(RenderState.SUPERSEDED)

    def cancel_all(self) -> None:
        for slot in list(self._jobs):
            self.cancel(slot)

    def _schedule(self, job: RenderJob) -> None:
        job._handle = asyncio.get_running_loop().call_later(self.interval, self._tick, job)

    def _tick(self, job: RenderJob) -> None:
        job._handle = None
        if job.state is not RenderState.REVEALING or self._jobs.get(job.slot) is not job:
            return

        job.buffer += job.chunks[job.index]
        job.index += 1
        self.display.show_raw(job.slot, job.buffer)
        self.display.scroll_to_end()

        if job.index >= len(job.chunks):
            self._finalize(job)
        else:
            self._schedule(job)

    def _finalize(self, job: RenderJob) -> None:
        # Formatting markers may straddle chunk boundaries, so the raw
        # buffer is dropped and the whole text is formatted at once.
        job.buffer = ""
        self.display.show_formatted(job.slot, self.formatter(job.text) if job.text else "")
        self.display.scroll_to_end()
        job._settle(RenderState.FINALIZED)
