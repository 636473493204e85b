"""Stop signals ending the interactive capture window.

A capture stays open until its stop signal fires. The wait has no
timeout; the user may interact with the page for as long as needed.
"""

from __future__ import annotations

import asyncio
from typing import Protocol


class StopSignal(Protocol):
    """Single-fire signal awaited by a capture session."""

    async def wait(self) -> None:
        """Block until the signal fires."""
        ...


class EnterKeySignal:
    """Fires when the user presses Enter on the terminal.

    The blocking ``input()`` call runs in a worker thread so the event
    loop keeps recording traffic while the user interacts with the page.
    """

    def __init__(self, prompt: str = "") -> None:
        self.prompt = prompt

    async def wait(self) -> None:
        """Wait for a line on stdin. End of input counts as Enter."""
        try:
            await asyncio.to_thread(input, self.prompt)
        except EOFError:
            pass


class ManualStopSignal:
    """Stop signal fired programmatically via ``fire()``.

    Used by tests and by callers that drive the capture window themselves.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def fire(self) -> None:
        """Fire the signal. Later calls have no effect."""
        self._event.set()

    @property
    def fired(self) -> bool:
        """Whether the signal has fired."""
        return self._event.is_set()

    async def wait(self) -> None:
        """Wait until ``fire()`` is called."""
        await self._event.wait()
