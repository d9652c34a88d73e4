import pytest

from pipeline.control import JobControl
from pipeline.engine import PipelineEngine
from pipeline.errors import JobNotFound, PublishRejected
from pipeline.jobs import JobStatus
from pipeline.store import InMemoryJobStore


def test_create_job_with_source(control, store):
    job = control.create_job(title="Trailer", s3_key="uploads/abc_trailer.mp4", source_meta={"size": 1024})

    stored = store.get(job.id)
    assert stored.title == "Trailer"
    assert stored.source == {
        "size": 1024,
        "bucket": "test-bucket",
        "key": "uploads/abc_trailer.mp4",
        "kind": "video",
    }
    assert stored.logs[0].endswith("Job created.")
    assert store.scan_all_jobs() == [job.id]


def test_source_meta_cannot_override_the_locator(control):
    job = control.create_job(s3_key="uploads/a.mp4", source_meta={"key": "elsewhere", "bucket": "other"})
    assert job.source["key"] == "uploads/a.mp4"
    assert job.source["bucket"] == "test-bucket"


def test_list_jobs_newest_first(control):
    first = control.create_job(title="first")
    second = control.create_job(title="second")

    assert [j.id for j in control.list_jobs()] == [second.id, first.id]


def test_get_missing_job(control):
    with pytest.raises(JobNotFound):
        control.get_job("missing")


def test_publish_rejected_until_ready(control, store):
    job = control.create_job(title="Unfinished")
    before = store.get(job.id).to_dict()

    with pytest.raises(PublishRejected):
        control.publish(job.id)

    assert store.get(job.id).to_dict() == before
    assert control.list_catalog() == []


def test_publish_ready_job(ready_job, control, store):
    entry = control.publish(ready_job.id)

    stored = store.get(ready_job.id)
    assert stored.status == JobStatus.PUBLISHED
    assert stored.logs[-1].endswith("Published to catalog.")
    assert entry.title == "Pilot episode"
    assert [e.job_id for e in control.list_catalog()] == [ready_job.id]
    assert [m.type for m in entry.qc_markers] == ["loudness", "black_frame", "caption"]


def test_publish_is_one_way(ready_job, control):
    control.publish(ready_job.id)

    with pytest.raises(PublishRejected):
        control.publish(ready_job.id)

    assert len(control.list_catalog()) == 1


def test_catalog_entry_is_a_snapshot(ready_job, control, store):
    control.publish(ready_job.id)

    job = store.get(ready_job.id)
    job.title = "Renamed later"
    job.artifacts["hls"] = "https://cdn.example.test/new.m3u8"
    job.qc_markers.clear()
    store.put(job)

    (entry,) = control.list_catalog()
    assert entry.title == "Pilot episode"
    assert entry.playable is None
    assert len(entry.qc_markers) == 3


class BrokenCatalogStore(InMemoryJobStore):
    def index_put(self, entry):
        raise ConnectionError("catalog unavailable")


def test_catalog_failure_leaves_job_published(queue, processor, clock):
    store = BrokenCatalogStore()
    control = JobControl(PipelineEngine(store, queue, processor, clock=clock), bucket="b", clock=clock)
    job = control.create_job(title="Half published")
    queue.drain(control.engine)

    with pytest.raises(ConnectionError):
        control.publish(job.id)

    assert store.get(job.id).status == JobStatus.PUBLISHED
    assert control.list_catalog() == []
