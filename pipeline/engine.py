"""
Pipeline engine: runs one stage per queue message and hands off to the next.

Delivery is at-least-once and may be concurrent, so every message is
checked against the job's current state before anything runs:

* stage already complete -> duplicate; nothing written or re-produced
* predecessor not complete -> stale or out of order; dropped
* otherwise the stage (re)runs

The next stage is only enqueued after this stage's completion is persisted.
"""
import enum
import logging
from datetime import timedelta

from .errors import JobNotFound, StaleJobError, UnknownStage
from .jobs import STAGE_NAMES, Job, JobStatus, StageMessage, StageStatus, utcnow
from .processing import StageProcessor, StageResult
from .queues import WorkQueue
from .store import JobStore

logger = logging.getLogger(__name__)


class Outcome(enum.Enum):
    RAN = "ran"
    DUPLICATE = "duplicate"
    OUT_OF_ORDER = "out_of_order"


class PipelineEngine:
    def __init__(
        self,
        store: JobStore,
        queue: WorkQueue,
        processor: StageProcessor,
        *,
        clock=utcnow,
        handoff_grace: timedelta = timedelta(minutes=5),
    ):
        self.store = store
        self.queue = queue
        self.processor = processor
        self.clock = clock
        self.handoff_grace = handoff_grace

    def _load(self, job_id: str) -> Job:
        job = self.store.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    def handle(self, message: StageMessage) -> Outcome:
        if message.type not in STAGE_NAMES:
            raise UnknownStage(message.type)

        job = self._load(message.job_id)
        idx = job.stage_index(message.type)
        stage = job.stages[idx]

        if stage.status == StageStatus.COMPLETE:
            self._skip_duplicate(job, idx)
            return Outcome.DUPLICATE

        if idx > 0 and job.stages[idx - 1].status != StageStatus.COMPLETE:
            prev = job.stages[idx - 1]
            logger.warning(
                "Dropping %s for %s: %s is %s (attempt %s)",
                stage.name, job.id, prev.name, prev.status, message.attempt,
            )
            return Outcome.OUT_OF_ORDER

        now = self.clock()
        stage.status = StageStatus.PROCESSING
        stage.started_at = now
        stage.ended_at = None
        job.status = JobStatus.PROCESSING
        if message.attempt > 1:
            job.log(f"{stage.name} started (attempt {message.attempt}).", now=now)
        else:
            job.log(f"{stage.name} started.", now=now)
        self.store.put(job)
        logger.info("%s started for %s (attempt %s)", stage.name, job.id, message.attempt)

        try:
            result = self.processor.run(stage.name, job)
        except Exception as exc:
            self._mark_failed(job, idx, exc)
            raise

        self._complete(job, idx, result)
        return Outcome.RAN

    def _apply_result(self, job: Job, result: StageResult):
        for name, value in result.artifacts.items():
            if name == "hls" and not result.produced_playable:
                if job.artifacts.get("hls"):
                    continue
                job.artifacts["hls"] = value
                job.artifacts["hls_stub"] = True
                job.log("Attached stub HLS (demo).", now=self.clock())
                continue
            job.artifacts[name] = value
            if name == "hls":
                job.artifacts.pop("hls_stub", None)

        if result.qc_markers is not None:
            job.qc_markers = list(result.qc_markers)

    def _complete(self, job: Job, idx: int, result: StageResult):
        stage = job.stages[idx]
        self._apply_result(job, result)

        now = self.clock()
        stage.status = StageStatus.COMPLETE
        stage.ended_at = now
        is_last = idx == len(job.stages) - 1
        if is_last:
            job.status = JobStatus.READY_TO_PUBLISH
            job.log(f"{stage.name} complete. Ready to publish.", now=now)
        else:
            job.log(f"{stage.name} complete.", now=now)
        self.store.put(job)
        logger.info("%s complete for %s", stage.name, job.id)

        if not is_last:
            self.queue.send(StageMessage(job.stages[idx + 1].name, job.id, 1))

    def _skip_duplicate(self, job: Job, idx: int):
        # Read-only: a write here could make the stage that is really running
        # lose its version check.
        stage = job.stages[idx]
        logger.info("Duplicate %s delivery for %s ignored", stage.name, job.id)

        if idx + 1 >= len(job.stages) or job.stages[idx + 1].status != StageStatus.QUEUED:
            return
        # The handoff message is only presumed lost once it has had time to arrive.
        if stage.ended_at and self.clock() - stage.ended_at > self.handoff_grace:
            logger.warning("Re-sending %s for %s: handoff not picked up", job.stages[idx + 1].name, job.id)
            self.queue.send(StageMessage(job.stages[idx + 1].name, job.id, 1))

    def _mark_failed(self, job: Job, idx: int, exc: Exception):
        stage = job.stages[idx]
        now = self.clock()
        stage.status = StageStatus.FAILED
        stage.ended_at = now
        job.status = JobStatus.FAILED
        job.log(f"{stage.name} failed: {exc}", now=now)
        logger.error("%s failed for %s: %s", stage.name, job.id, exc)
        try:
            self.store.put(job)
        except StaleJobError:
            # The stage error is what the queue needs to see; redelivery re-runs the stage.
            logger.warning("Could not record %s failure for %s: job changed underneath", stage.name, job.id)

    def replay(self, job_id: str) -> Job:
        """
        Reset the job from its earliest failed (else earliest incomplete)
        stage onward and queue that stage again. No-op when every stage is
        complete.
        """
        job = self._load(job_id)

        start = next((i for i, st in enumerate(job.stages) if st.status == StageStatus.FAILED), None)
        if start is None:
            start = next((i for i, st in enumerate(job.stages) if st.status != StageStatus.COMPLETE), None)
        if start is None:
            logger.info("Nothing to replay for %s", job.id)
            return job

        for st in job.stages[start:]:
            st.reset()
        resume = job.stages[start].name
        job.status = JobStatus.QUEUED
        job.log(f"Replay queued from {resume} (stage index {start}).", now=self.clock())
        self.store.put(job)

        self.queue.send(StageMessage(resume, job.id, 1))
        logger.info("Replay of %s queued from %s", job.id, resume)
        return job
