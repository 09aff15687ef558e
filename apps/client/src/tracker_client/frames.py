from __future__ import annotations

import codecs
from collections.abc import AsyncGenerator, AsyncIterable
import json
from typing import Any

from tracker_client.errors import FrameDecodeError

END_MARKER = bytes([10, 52, 10])
_TEXT_MARKER = END_MARKER.decode("ascii")


class FrameDecoder:
    """Turns raw chunks of the creation stream into parsed JSON frames.

    In buffered mode text is held until an end marker arrives, so a frame may
    span any number of chunks. With ``buffered=False`` every chunk is taken as
    exactly one frame and only a trailing marker is stripped.

    A decoder serves one stream. Once ``finish`` has run it refuses input.
    """

    def __init__(self, *, buffered: bool = True) -> None:
        self._buffered = buffered
        self._text = codecs.getincrementaldecoder("utf-8")()
        self._pending = ""
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def feed(self, chunk: bytes) -> list[Any]:
        self._ensure_open()
        if not chunk:
            return []

        if not self._buffered:
            if chunk.endswith(END_MARKER):
                chunk = chunk[: -len(END_MARKER)]
            text = self._decode(chunk)
            if not text.strip():
                return []
            return [self._parse(text)]

        self._pending += self._decode(chunk)
        frames: list[Any] = []
        while True:
            head, marker, tail = self._pending.partition(_TEXT_MARKER)
            if not marker:
                break
            self._pending = tail
            if head.strip():
                frames.append(self._parse(head))
        return frames

    def finish(self) -> list[Any]:
        self._ensure_open()
        self._closed = True

        remainder = self._pending + self._decode(b"", final=True)
        self._pending = ""
        if not remainder.strip():
            return []
        return [self._parse(remainder)]

    def _ensure_open(self) -> None:
        if self._closed:
            raise FrameDecodeError("Frame decoder already finished; it cannot be reused")

    def _decode(self, data: bytes, *, final: bool = False) -> str:
        try:
            return self._text.decode(data, final=final)
        except UnicodeDecodeError as exc:
            raise FrameDecodeError(f"Frame is not valid UTF-8: {exc}") from exc

    @staticmethod
    def _parse(text: str) -> Any:
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise FrameDecodeError(f"Frame is not valid JSON: {exc}") from exc


async def iter_frames(
    chunks: AsyncIterable[bytes],
    *,
    buffered: bool = True,
) -> AsyncGenerator[Any, None]:
    decoder = FrameDecoder(buffered=buffered)
    async for chunk in chunks:
        for frame in decoder.feed(chunk):
            yield frame
    for frame in decoder.finish():
        yield frame
