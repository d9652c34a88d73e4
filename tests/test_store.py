from datetime import datetime, timedelta, timezone

import pytest

from pipeline.errors import StaleJobError
from pipeline.jobs import CatalogEntry, Job, QCMarker, StageStatus
from pipeline.models import JobRecord
from pipeline.store import DjangoJobStore, InMemoryJobStore

T0 = datetime(2026, 3, 1, tzinfo=timezone.utc)


@pytest.fixture(params=["memory", "django"])
def any_store(request):
    if request.param == "django":
        request.getfixturevalue("db")
        return DjangoJobStore()
    return InMemoryJobStore()


def test_create_then_get(any_store):
    job = Job.new("Stored", {"bucket": "b", "key": "uploads/x.mov"}, now=T0)
    any_store.create(job)

    loaded = any_store.get(job.id)
    assert loaded.version == 1
    assert loaded.to_dict() == job.to_dict()


def test_get_missing_returns_none(any_store):
    assert any_store.get("nope") is None


def test_put_is_versioned(any_store):
    job = any_store.create(Job.new("v", now=T0))
    stale = any_store.get(job.id)

    job.stage("Transcode").status = StageStatus.PROCESSING
    any_store.put(job)
    assert job.version == 2
    assert any_store.get(job.id).stage("Transcode").status == StageStatus.PROCESSING

    stale.title = "lost update"
    with pytest.raises(StaleJobError):
        any_store.put(stale)
    assert stale.version == 1
    assert any_store.get(job.id).title == "v"


def test_create_twice_fails(any_store):
    job = any_store.create(Job.new("once", now=T0))
    with pytest.raises(StaleJobError):
        any_store.create(Job.from_dict(job.to_dict()))


def test_all_jobs_index_is_newest_first_and_written_once(any_store):
    any_store.index_create("a", T0)
    any_store.index_create("b", T0 + timedelta(minutes=1))
    any_store.index_create("a", T0 + timedelta(minutes=5))

    assert any_store.scan_all_jobs() == ["b", "a"]


def test_catalog_upsert_and_order(any_store):
    markers = (QCMarker(12, "loudness", "Loudness spike detected"),)
    any_store.index_put(CatalogEntry("a", "A", {"bucket": "b", "key": "a.m3u8"}, markers, T0))
    any_store.index_put(CatalogEntry("b", "B", None, (), T0 + timedelta(hours=1)))
    any_store.index_put(CatalogEntry("a", "A", {"bucket": "b", "key": "a.m3u8"}, markers, T0))

    entries = any_store.scan_catalog()
    assert [e.job_id for e in entries] == ["b", "a"]
    assert entries[1].playable == {"bucket": "b", "key": "a.m3u8"}
    assert entries[1].qc_markers == markers


def test_memory_store_hands_out_copies():
    store = InMemoryJobStore()
    job = store.create(Job.new("copy", now=T0))

    loaded = store.get(job.id)
    loaded.logs.append("local only")

    assert store.get(job.id).logs == job.logs


@pytest.mark.django_db
def test_django_store_keeps_version_column_in_step():
    store = DjangoJobStore()
    job = store.create(Job.new("row", now=T0))
    store.put(job)
    store.put(job)

    row = JobRecord.objects.get(pk=job.id)
    assert row.version == 3
    assert row.body["version"] == 3
