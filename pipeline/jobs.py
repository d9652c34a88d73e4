"""
Job records as the pipeline sees them.

A job is stored as one document: its four stages, log lines, artifacts and
QC markers all live inside it. Stores read and write the whole thing.
"""
import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import uuid4

from django.db import models

from .errors import UnknownStage

# Fixed processing order. Never add, remove or reorder at runtime.
STAGE_NAMES = ("Transcode", "Thumbnail", "QC", "Package")


class JobStatus(models.TextChoices):
    QUEUED = "queued"
    PROCESSING = "processing"
    READY_TO_PUBLISH = "ready_to_publish"
    PUBLISHED = "published"
    FAILED = "failed"


class StageStatus(models.TextChoices):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


@dataclass
class Stage:
    name: str
    status: str = StageStatus.QUEUED
    started_at: datetime | None = None
    ended_at: datetime | None = None

    def reset(self):
        self.status = StageStatus.QUEUED
        self.started_at = None
        self.ended_at = None


@dataclass
class QCMarker:
    time: float
    type: str
    note: str


@dataclass
class Job:
    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    status: str = JobStatus.QUEUED
    stages: list[Stage] = field(default_factory=lambda: [Stage(n) for n in STAGE_NAMES])
    logs: list[str] = field(default_factory=list)
    artifacts: dict = field(default_factory=dict)
    qc_markers: list[QCMarker] = field(default_factory=list)
    source: dict | None = None
    version: int = 0

    @classmethod
    def new(cls, title: str, source: dict | None = None, *, now: datetime | None = None) -> "Job":
        now = now or utcnow()
        job = cls(id=uuid4().hex, title=title, created_at=now, updated_at=now, source=source)
        job.log("Job created.", now=now)
        return job

    def stage_index(self, name: str) -> int:
        for i, st in enumerate(self.stages):
            if st.name == name:
                return i
        raise UnknownStage(name)

    def stage(self, name: str) -> Stage:
        return self.stages[self.stage_index(name)]

    def log(self, message: str, *, now: datetime | None = None):
        now = now or utcnow()
        self.logs.append(f"[{now.isoformat()}] {message}")
        self.updated_at = now

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "status": str(self.status),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "stages": [
                {
                    "name": st.name,
                    "status": str(st.status),
                    "started_at": _iso(st.started_at),
                    "ended_at": _iso(st.ended_at),
                }
                for st in self.stages
            ],
            "logs": list(self.logs),
            "artifacts": copy.deepcopy(self.artifacts),
            "qc_markers": [
                {"time": m.time, "type": m.type, "note": m.note} for m in self.qc_markers
            ],
            "source": copy.deepcopy(self.source),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Job":
        return cls(
            id=data["id"],
            title=data["title"],
            status=data["status"],
            created_at=_parse(data["created_at"]),
            updated_at=_parse(data["updated_at"]),
            stages=[
                Stage(
                    name=s["name"],
                    status=s["status"],
                    started_at=_parse(s.get("started_at")),
                    ended_at=_parse(s.get("ended_at")),
                )
                for s in data["stages"]
            ],
            logs=list(data.get("logs") or []),
            artifacts=copy.deepcopy(data.get("artifacts") or {}),
            qc_markers=[QCMarker(**m) for m in data.get("qc_markers") or []],
            source=copy.deepcopy(data.get("source")),
            version=data.get("version", 0),
        )


@dataclass(frozen=True)
class CatalogEntry:
    """What a published job looked like at the moment it was published."""

    job_id: str
    title: str
    playable: dict | str | None
    qc_markers: tuple
    published_at: datetime

    @classmethod
    def from_job(cls, job: Job, *, now: datetime | None = None) -> "CatalogEntry":
        return cls(
            job_id=job.id,
            title=job.title,
            playable=copy.deepcopy(job.artifacts.get("hls")),
            qc_markers=tuple(QCMarker(m.time, m.type, m.note) for m in job.qc_markers),
            published_at=now or utcnow(),
        )


@dataclass(frozen=True)
class StageMessage:
    """One unit of queued work: run `type` for `job_id`."""

    type: str
    job_id: str
    attempt: int = 1

    def __post_init__(self):
        if self.attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {self.attempt}")

    def to_body(self) -> dict:
        return {"type": self.type, "jobId": self.job_id, "attempt": self.attempt}

    @classmethod
    def from_body(cls, body: dict) -> "StageMessage":
        return cls(type=body["type"], job_id=body["jobId"], attempt=int(body.get("attempt") or 1))
