from collections.abc import Iterator
from datetime import datetime, timezone
import logging
from pathlib import Path
from typing import Annotated, Any
import uuid

from fastapi import Depends, FastAPI, Header, HTTPException, Response
from fastapi.responses import FileResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from tracker_api.config import get_settings
from tracker_api.db import Base, get_engine
from tracker_api.images import DecodedImage, ImageDecodeError, ImageStore, LocalImageStore, decode_image
from tracker_api.models import JobRecord, JobStatusRecord
from tracker_api.streaming import encode_frame

logger = logging.getLogger(__name__)

app = FastAPI(title="Application Tracker API", version="0.1.0")


class CreateJobRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    position: str = Field(min_length=1)
    company: str = Field(min_length=1)
    url: str = Field(min_length=1)
    status: str = Field(min_length=1)
    notes: str | None = None
    image: str | None = None


class UpdateJobRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    position: str | None = Field(default=None, min_length=1)
    company: str | None = Field(default=None, min_length=1)
    url: str | None = Field(default=None, min_length=1)
    status: str | None = Field(default=None, min_length=1)
    notes: str | None = None


@app.on_event("startup")
def startup() -> None:
    Base.metadata.create_all(bind=get_engine())


def get_user_id(authorization: Annotated[str | None, Header()] = None) -> str:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=401,
            detail="missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token.strip()


def get_image_store() -> ImageStore:
    settings = get_settings()
    return LocalImageStore(root_dir=Path(settings.image_dir), base_url=settings.image_base_url)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _job_frame(job: JobRecord, image_store: ImageStore) -> dict[str, Any]:
    frame: dict[str, Any] = {
        "id": job.id,
        "position": job.position,
        "company": job.company,
        "url": job.url,
        "created_at": _to_iso(job.created_at),
        "statuses": [
            {"status": status.status, "created_at": _to_iso(status.created_at)}
            for status in job.statuses
        ],
    }
    if job.updated_at is not None:
        frame["updated_at"] = _to_iso(job.updated_at)
    if job.notes is not None:
        frame["notes"] = job.notes
    if job.image_filename:
        frame["image_filename"] = job.image_filename
        frame["image_url"] = image_store.url_for(job.image_filename)
    return frame


def _get_owned_job(session: Session, job_id: str, user_id: str) -> JobRecord:
    job = session.get(JobRecord, job_id)
    if job is None or job.user_id != user_id:
        raise HTTPException(status_code=404, detail="job not found")
    return job


def _attach_image(
    job_id: str,
    image: DecodedImage,
    image_store: ImageStore,
) -> dict[str, Any]:
    filename = f"{job_id}{image.extension}"
    image_store.upload(filename, image.data)

    with Session(get_engine()) as session:
        job = session.get(JobRecord, job_id)
        if job is None:
            raise RuntimeError(f"job {job_id} vanished before its image was attached")
        job.image_filename = filename
        session.commit()
        return _job_frame(job, image_store)


def _creation_stream(
    first_frame: dict[str, Any],
    image: DecodedImage | None,
    image_store: ImageStore,
) -> Iterator[bytes]:
    yield encode_frame(first_frame)
    if image is None:
        return

    try:
        frame = _attach_image(first_frame["id"], image, image_store)
    except Exception:
        logger.exception("attaching image failed job_id=%s", first_frame["id"])
        return
    yield encode_frame(frame)


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/jobs")
def list_jobs(
    user_id: Annotated[str, Depends(get_user_id)],
    image_store: Annotated[ImageStore, Depends(get_image_store)],
) -> dict[str, list[dict[str, Any]]]:
    with Session(get_engine()) as session:
        jobs = session.scalars(
            select(JobRecord)
            .where(JobRecord.user_id == user_id)
            .options(selectinload(JobRecord.statuses))
            .order_by(JobRecord.created_at.asc(), JobRecord.id.asc())
        ).all()
        return {"jobs": [_job_frame(job, image_store) for job in jobs]}


@app.get("/jobs/{job_id}")
def get_job(
    job_id: str,
    user_id: Annotated[str, Depends(get_user_id)],
    image_store: Annotated[ImageStore, Depends(get_image_store)],
) -> dict[str, Any]:
    with Session(get_engine()) as session:
        return _job_frame(_get_owned_job(session, job_id, user_id), image_store)


@app.post("/jobs", status_code=201)
def create_job(
    request: CreateJobRequest,
    user_id: Annotated[str, Depends(get_user_id)],
    image_store: Annotated[ImageStore, Depends(get_image_store)],
) -> StreamingResponse:
    image: DecodedImage | None = None
    if request.image:
        try:
            image = decode_image(request.image)
        except ImageDecodeError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc

    now = _now()
    with Session(get_engine()) as session:
        job = JobRecord(
            id=uuid.uuid4().hex,
            user_id=user_id,
            position=request.position,
            company=request.company,
            url=request.url,
            notes=request.notes,
            created_at=now,
        )
        job.statuses.append(JobStatusRecord(status=request.status, created_at=now))
        session.add(job)
        session.commit()
        first_frame = _job_frame(job, image_store)

    logger.info("created job id=%s status=%s", first_frame["id"], request.status)
    return StreamingResponse(
        _creation_stream(first_frame, image, image_store),
        status_code=201,
        media_type="application/json",
    )


@app.patch("/jobs/{job_id}")
def update_job(
    job_id: str,
    request: UpdateJobRequest,
    user_id: Annotated[str, Depends(get_user_id)],
    image_store: Annotated[ImageStore, Depends(get_image_store)],
) -> dict[str, Any]:
    with Session(get_engine()) as session:
        job = _get_owned_job(session, job_id, user_id)
        now = _now()

        for field in ("position", "company", "url", "notes"):
            value = getattr(request, field)
            if value is not None:
                setattr(job, field, value)

        current = job.statuses[-1].status if job.statuses else None
        if request.status is not None and request.status != current:
            job.statuses.append(JobStatusRecord(status=request.status, created_at=now))

        job.updated_at = now
        session.commit()
        return _job_frame(job, image_store)


@app.delete("/jobs/{job_id}", status_code=204)
def delete_job(
    job_id: str,
    user_id: Annotated[str, Depends(get_user_id)],
    image_store: Annotated[ImageStore, Depends(get_image_store)],
) -> Response:
    with Session(get_engine()) as session:
        job = _get_owned_job(session, job_id, user_id)
        image_filename = job.image_filename
        session.delete(job)
        session.commit()

    if image_filename:
        image_store.delete(image_filename)
    return Response(status_code=204)


@app.get("/images/{filename}")
def get_image(filename: str) -> FileResponse:
    if Path(filename).name != filename:
        raise HTTPException(status_code=404, detail="image not found")
    path = Path(get_settings().image_dir) / filename
    if not path.is_file():
        raise HTTPException(status_code=404, detail="image not found")
    return FileResponse(path)


def run() -> None:
    import uvicorn

    uvicorn.run("tracker_api.main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    run()
