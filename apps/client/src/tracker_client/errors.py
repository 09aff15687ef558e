from __future__ import annotations

import httpx


class TrackerError(RuntimeError):
    pass


class TransportError(TrackerError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @classmethod
    def from_status(cls, status_code: int) -> TransportError:
        return cls(
            f"An error has occurred: {http_status_to_text(status_code)}",
            status_code=status_code,
        )


class StreamUnavailableError(TrackerError):
    pass


class FrameDecodeError(TrackerError):
    pass


class ConstructionError(TrackerError):
    pass


def http_status_to_text(status_code: int) -> str:
    phrase = httpx.codes.get_reason_phrase(status_code)
    return phrase or f"Unknown status {status_code}"
