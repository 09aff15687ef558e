from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tracker_client.errors import ConstructionError


class StatusFrame(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: str
    created_at: datetime


class JobFrame(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    position: str
    company: str
    url: str
    image_filename: str | None = None
    image_url: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
    statuses: list[StatusFrame]
    notes: str | None = None


@dataclass(frozen=True)
class StatusEntry:
    status: str
    created_at: datetime


@dataclass(frozen=True)
class Job:
    id: str
    position: str
    company: str
    url: str
    created_at: datetime
    status_history: tuple[StatusEntry, ...]
    updated_at: datetime | None = None
    notes: str | None = None
    image_filename: str | None = None
    image_url: str | None = None

    def __post_init__(self) -> None:
        if not self.status_history:
            raise ConstructionError(f"Job {self.id!r} has no status history")

    @property
    def current_status(self) -> str:
        return most_recent_status(self.status_history).status

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "position": self.position,
            "company": self.company,
            "url": self.url,
            "notes": self.notes,
            "image_filename": self.image_filename,
            "image_url": self.image_url,
            "created_at": self.created_at.isoformat(),
            "updated_at": _to_iso(self.updated_at),
            "status": self.current_status,
            "statuses": [
                {"status": entry.status, "created_at": entry.created_at.isoformat()}
                for entry in self.status_history
            ],
        }


def most_recent_status(entries: tuple[StatusEntry, ...] | list[StatusEntry]) -> StatusEntry:
    if not entries:
        raise ConstructionError("Cannot select a current status from an empty history")

    current = entries[0]
    for entry in entries[1:]:
        # equal timestamps resolve to the later entry
        if entry.created_at >= current.created_at:
            current = entry
    return current


def normalize_job(document: Any) -> Job:
    try:
        frame = JobFrame.model_validate(document)
    except ValidationError as exc:
        raise ConstructionError(f"Invalid job frame: {exc}") from exc

    if not frame.statuses:
        raise ConstructionError(f"Job {frame.id!r} has an empty statuses list")

    history = sorted(
        (
            StatusEntry(status=item.status, created_at=_as_utc(item.created_at))
            for item in frame.statuses
        ),
        key=lambda entry: entry.created_at,
    )

    return Job(
        id=frame.id,
        position=frame.position,
        company=frame.company,
        url=frame.url,
        created_at=_as_utc(frame.created_at),
        updated_at=_as_utc(frame.updated_at) if frame.updated_at is not None else None,
        status_history=tuple(history),
        notes=frame.notes,
        image_filename=frame.image_filename,
        image_url=frame.image_url,
    )


def normalize_jobs(envelope: Any) -> list[Job]:
    if not isinstance(envelope, dict):
        raise ConstructionError("Invalid jobs payload: expected an object")
    items = envelope.get("jobs")
    if items is None:
        return []
    if not isinstance(items, list):
        raise ConstructionError("Invalid jobs payload: jobs must be a list")
    return [normalize_job(item) for item in items]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()
