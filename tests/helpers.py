"""Shared builders and test doubles."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, List, Optional, Sequence

from models.message import ChatMessage, ChatPart


def user(text: str) -> ChatMessage:
    return ChatMessage(role="user", parts=[ChatPart(text=text)])


def model(text: str) -> ChatMessage:
    return ChatMessage(role="model", parts=[ChatPart(text=text)])


class ScriptedGateway:
    """
    Gateway double that replays a fixed list of fragments.

    With `pause_after=n` the stream blocks on `gate` before fragment n,
    which lets tests abort or switch sessions mid-stream.
    """

    def __init__(
        self,
        fragments: Sequence[str] = (),
        error: Optional[Exception] = None,
        pause_after: Optional[int] = None,
    ):
        self.fragments = list(fragments)
        self.error = error
        self.pause_after = pause_after
        self.gate = asyncio.Event()
        self.paused = asyncio.Event()
        self.calls: List[dict] = []
        self.closed = False

    def start_stream(self, history, new_parts, model_id=None) -> AsyncIterator[str]:
        self.calls.append({"history": list(history), "new_parts": list(new_parts), "model_id": model_id})
        return self._run()

    async def _run(self) -> AsyncIterator[str]:
        try:
            for index, fragment in enumerate(self.fragments):
                if self.pause_after is not None and index == self.pause_after:
                    self.paused.set()
                    await self.gate.wait()
                yield fragment
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True
