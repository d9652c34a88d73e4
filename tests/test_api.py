import pytest
from rest_framework.test import APIClient

from pipeline import views
from pipeline.control import JobControl
from pipeline.engine import PipelineEngine
from pipeline.store import DjangoJobStore


@pytest.fixture
def client(monkeypatch, control):
    monkeypatch.setattr(views, "get_control", lambda: control)
    return APIClient()


def test_health(client):
    assert client.get("/api/health").json() == {"ok": True}


def test_create_job(client, queue):
    resp = client.post("/api/jobs", {"title": "From API", "s3_key": "uploads/a.mp4"}, format="json")

    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "queued"
    assert [s["name"] for s in data["stages"]] == ["Transcode", "Thumbnail", "QC", "Package"]
    assert data["source"]["key"] == "uploads/a.mp4"
    assert queue.sent[0].job_id == data["id"]


def test_create_job_defaults(client):
    data = client.post("/api/jobs", {}, format="json").json()
    assert data["title"] == "Upload"
    assert data["source"] is None


def test_get_and_list_jobs(client):
    created = client.post("/api/jobs", {"title": "one"}, format="json").json()

    assert client.get(f"/api/jobs/{created['id']}").json()["title"] == "one"
    assert [j["id"] for j in client.get("/api/jobs").json()] == [created["id"]]


def test_missing_job_is_404(client):
    assert client.get("/api/jobs/missing").status_code == 404
    assert client.post("/api/jobs/missing/replay").status_code == 404
    assert client.post("/api/jobs/missing/publish").status_code == 404


def test_publish_flow(client, queue, engine):
    job_id = client.post("/api/jobs", {"title": "Show"}, format="json").json()["id"]

    resp = client.post(f"/api/jobs/{job_id}/publish")
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Job not ready."}

    queue.drain(engine)
    assert client.post(f"/api/jobs/{job_id}/publish").json() == {"ok": True}
    assert client.get(f"/api/jobs/{job_id}").json()["status"] == "published"

    (entry,) = client.get("/api/catalog").json()
    assert entry["job_id"] == job_id
    assert entry["title"] == "Show"
    assert len(entry["qc_markers"]) == 3


def test_replay_endpoint(client, queue, engine):
    job_id = client.post("/api/jobs", {"title": "Again"}, format="json").json()["id"]
    queue.drain(engine)

    data = client.post(f"/api/jobs/{job_id}/replay").json()
    assert data["status"] == "ready_to_publish"


def test_upload_url(client, monkeypatch):
    monkeypatch.setattr(
        views,
        "create_presigned_put",
        lambda key, content_type=None: {"url": f"https://s3.example/{key}?sig=1", "headers": {"Content-Type": content_type}},
    )

    assert client.post("/api/upload-url", {}, format="json").status_code == 400

    resp = client.post("/api/upload-url", {"key": "uploads/v.mp4", "content_type": "video/mp4"}, format="json")
    assert resp.json() == {"url": "https://s3.example/uploads/v.mp4?sig=1", "headers": {"Content-Type": "video/mp4"}}


def test_view_url(client, monkeypatch):
    monkeypatch.setattr(
        views, "create_presigned_get", lambda key, bucket=None: f"https://{bucket or 'default'}.s3.example/{key}"
    )

    assert client.get("/api/view-url").status_code == 400
    assert client.get("/api/view-url", {"key": "outputs/t.jpg", "bucket": "media"}).json() == {
        "url": "https://media.s3.example/outputs/t.jpg"
    }


@pytest.mark.django_db
def test_end_to_end_on_database_store(monkeypatch, queue, processor, clock):
    engine = PipelineEngine(DjangoJobStore(), queue, processor, clock=clock)
    monkeypatch.setattr(views, "get_control", lambda: JobControl(engine, bucket="b", clock=clock))
    client = APIClient()

    job_id = client.post("/api/jobs", {"title": "Persisted"}, format="json").json()["id"]
    queue.drain(engine)
    client.post(f"/api/jobs/{job_id}/publish")

    job = client.get(f"/api/jobs/{job_id}").json()
    assert job["status"] == "published"
    assert job["version"] == 10  # create + 8 stage writes + publish
    assert [e["title"] for e in client.get("/api/catalog").json()] == ["Persisted"]
