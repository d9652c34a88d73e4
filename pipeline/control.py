"""
Operator-facing job actions: create, read, list, replay and publish.
"""
import logging

from .engine import PipelineEngine
from .errors import JobNotFound, PublishRejected
from .jobs import STAGE_NAMES, CatalogEntry, Job, JobStatus, StageMessage, utcnow
from .utils import guess_kind

logger = logging.getLogger(__name__)


class JobControl:
    def __init__(self, engine: PipelineEngine, *, bucket: str, clock=utcnow):
        self.engine = engine
        self.store = engine.store
        self.queue = engine.queue
        self.bucket = bucket
        self.clock = clock

    def create_job(self, title: str = "Upload", s3_key: str | None = None, source_meta: dict | None = None) -> Job:
        source = None
        if s3_key:
            source = {**(source_meta or {}), "bucket": self.bucket, "key": s3_key, "kind": guess_kind(s3_key)}

        job = Job.new(title, source, now=self.clock())
        self.store.create(job)
        self.store.index_create(job.id, job.created_at)

        self.queue.send(StageMessage(STAGE_NAMES[0], job.id, 1))
        logger.info("Created job %s (%s)", job.id, title)
        return job

    def get_job(self, job_id: str) -> Job:
        job = self.store.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    def list_jobs(self) -> list[Job]:
        # One point read per index entry; fine for the volumes this serves.
        jobs = [j for j in (self.store.get(i) for i in self.store.scan_all_jobs()) if j is not None]
        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs

    def replay(self, job_id: str) -> Job:
        return self.engine.replay(job_id)

    def publish(self, job_id: str) -> CatalogEntry:
        job = self.get_job(job_id)
        if job.status != JobStatus.READY_TO_PUBLISH:
            raise PublishRejected(job.id, job.status)

        now = self.clock()
        job.status = JobStatus.PUBLISHED
        job.log("Published to catalog.", now=now)
        self.store.put(job)

        # Not transactional with the job write: a failure here leaves the job
        # published without a catalog entry until something re-syncs it.
        entry = CatalogEntry.from_job(job, now=now)
        self.store.index_put(entry)
        logger.info("Published %s", job.id)
        return entry

    def list_catalog(self) -> list[CatalogEntry]:
        return self.store.scan_catalog()
