"""
Job store collaborators.

Every store keeps the same three things: job documents keyed by id, the
all-jobs index, and the catalog of published jobs. Writes are whole-document
and versioned; `put` only lands if nobody else wrote the job since it was read.
"""
import threading

from django.db import IntegrityError, transaction
from django.utils import timezone

from .errors import StaleJobError
from .jobs import CatalogEntry, Job, QCMarker
from .models import CatalogRecord, JobIndexEntry, JobRecord


def _markers_to_json(markers) -> list[dict]:
    return [{"time": m.time, "type": m.type, "note": m.note} for m in markers]


def _markers_from_json(data) -> tuple:
    return tuple(QCMarker(**m) for m in data or [])


class JobStore:
    def create(self, job: Job) -> Job:
        """Insert a new job at version 1. Fails if the id already exists."""
        raise NotImplementedError

    def get(self, job_id: str) -> Job | None:
        raise NotImplementedError

    def put(self, job: Job) -> Job:
        """Overwrite the whole job if its stored version still equals job.version."""
        raise NotImplementedError

    def index_create(self, job_id: str, created_at) -> None:
        raise NotImplementedError

    def scan_all_jobs(self) -> list[str]:
        """Job ids, newest first."""
        raise NotImplementedError

    def index_put(self, entry: CatalogEntry) -> None:
        raise NotImplementedError

    def scan_catalog(self) -> list[CatalogEntry]:
        raise NotImplementedError


class InMemoryJobStore(JobStore):
    """Process-local store. Keeps serialized copies so callers never share state."""

    def __init__(self):
        self._lock = threading.Lock()
        self._jobs: dict[str, dict] = {}
        self._index: dict[str, object] = {}
        self._catalog: dict[str, CatalogEntry] = {}

    def create(self, job):
        with self._lock:
            if job.id in self._jobs:
                raise StaleJobError(job.id, 0)
            job.version = 1
            self._jobs[job.id] = job.to_dict()
        return job

    def get(self, job_id):
        with self._lock:
            data = self._jobs.get(job_id)
        return Job.from_dict(data) if data is not None else None

    def put(self, job):
        with self._lock:
            current = self._jobs.get(job.id)
            if current is None or current["version"] != job.version:
                raise StaleJobError(job.id, job.version)
            job.version += 1
            self._jobs[job.id] = job.to_dict()
        return job

    def index_create(self, job_id, created_at):
        with self._lock:
            self._index.setdefault(job_id, created_at)

    def scan_all_jobs(self):
        with self._lock:
            items = sorted(self._index.items(), key=lambda kv: kv[1], reverse=True)
        return [job_id for job_id, _ in items]

    def index_put(self, entry):
        with self._lock:
            self._catalog[entry.job_id] = entry

    def scan_catalog(self):
        with self._lock:
            entries = list(self._catalog.values())
        return sorted(entries, key=lambda e: e.published_at, reverse=True)


class DjangoJobStore(JobStore):
    """Store backed by the pipeline app's tables."""

    def create(self, job):
        job.version = 1
        try:
            with transaction.atomic():
                JobRecord.objects.create(
                    id=job.id, body=job.to_dict(), version=1, created_at=job.created_at
                )
        except IntegrityError:
            job.version = 0
            raise StaleJobError(job.id, 0)
        return job

    def get(self, job_id):
        row = JobRecord.objects.filter(pk=job_id).only("body", "version").first()
        if row is None:
            return None
        job = Job.from_dict(row.body)
        job.version = row.version
        return job

    def put(self, job):
        expected = job.version
        job.version = expected + 1
        updated = JobRecord.objects.filter(pk=job.id, version=expected).update(
            body=job.to_dict(),
            version=job.version,
            updated_at=timezone.now(),
        )
        if not updated:
            job.version = expected
            raise StaleJobError(job.id, expected)
        return job

    def index_create(self, job_id, created_at):
        JobIndexEntry.objects.get_or_create(job_id=job_id, defaults={"created_at": created_at})

    def scan_all_jobs(self):
        return list(
            JobIndexEntry.objects.order_by("-created_at").values_list("job_id", flat=True)
        )

    def index_put(self, entry):
        CatalogRecord.objects.update_or_create(
            job_id=entry.job_id,
            defaults={
                "title": entry.title,
                "playable": entry.playable,
                "qc_markers": _markers_to_json(entry.qc_markers),
                "published_at": entry.published_at,
            },
        )

    def scan_catalog(self):
        return [
            CatalogEntry(
                job_id=row.job_id,
                title=row.title,
                playable=row.playable,
                qc_markers=_markers_from_json(row.qc_markers),
                published_at=row.published_at,
            )
            for row in CatalogRecord.objects.order_by("-published_at")
        ]
