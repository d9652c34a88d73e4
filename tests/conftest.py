from datetime import datetime, timedelta, timezone

import pytest

from pipeline.control import JobControl
from pipeline.engine import PipelineEngine
from pipeline.errors import StageFailed
from pipeline.processing import StubProcessor
from pipeline.queues import InMemoryWorkQueue
from pipeline.store import InMemoryJobStore

BUCKET = "test-bucket"


class FakeClock:
    """Advances one second per reading so every timestamp is distinct."""

    def __init__(self, start=datetime(2026, 1, 1, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


class RecordingPut:
    def __init__(self):
        self.calls = []

    def __call__(self, key, body, content_type="application/octet-stream"):
        self.calls.append((key, body, content_type))
        return {"bucket": BUCKET, "key": key}

    @property
    def keys(self):
        return [k for k, _, _ in self.calls]


class FlakyProcessor(StubProcessor):
    """Fails the named stage `times` times, then behaves like the stub."""

    def __init__(self, put, fail_stage, times=1):
        super().__init__(put)
        self.fail_stage = fail_stage
        self.remaining = times

    def run(self, stage, job):
        if stage == self.fail_stage and self.remaining > 0:
            self.remaining -= 1
            raise StageFailed(stage, job.id, "encoder exploded")
        return super().run(stage, job)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryJobStore()


@pytest.fixture
def queue():
    return InMemoryWorkQueue()


@pytest.fixture
def put():
    return RecordingPut()


@pytest.fixture
def processor(put):
    return StubProcessor(put)


@pytest.fixture
def engine(store, queue, processor, clock):
    return PipelineEngine(store, queue, processor, clock=clock)


@pytest.fixture
def control(engine, clock):
    return JobControl(engine, bucket=BUCKET, clock=clock)


@pytest.fixture
def ready_job(control, queue, engine):
    job = control.create_job(title="Pilot episode")
    queue.drain(engine)
    return control.get_job(job.id)
