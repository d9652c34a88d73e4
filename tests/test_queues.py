import json

import pytest
from django.core.exceptions import ImproperlyConfigured

from pipeline.jobs import StageMessage
from pipeline.queues import CeleryWorkQueue, InMemoryWorkQueue, SqsWorkQueue


class FakeTask:
    def __init__(self):
        self.calls = []

    def apply_async(self, **options):
        self.calls.append(options)


class FakeSqs:
    def __init__(self):
        self.sent = []

    def send_message(self, **params):
        self.sent.append(params)
        return {"MessageId": str(len(self.sent))}


def test_celery_queue_dispatches_the_stage_task():
    task = FakeTask()
    CeleryWorkQueue(task).send(StageMessage("Thumbnail", "j1", 2))

    assert task.calls == [{"kwargs": {"stage": "Thumbnail", "job_id": "j1", "attempt": 2}}]


def test_celery_queue_defaults_to_run_stage():
    from pipeline.tasks import run_stage

    assert CeleryWorkQueue().task is run_stage


def test_sqs_queue_sends_json_body():
    client = FakeSqs()
    SqsWorkQueue("https://sqs.example/123/stages", client=client).send(StageMessage("QC", "j1", 1))

    (params,) = client.sent
    assert params["QueueUrl"] == "https://sqs.example/123/stages"
    assert json.loads(params["MessageBody"]) == {"type": "QC", "jobId": "j1", "attempt": 1}


def test_sqs_queue_requires_url():
    with pytest.raises(ImproperlyConfigured):
        SqsWorkQueue("", client=FakeSqs())


class LoopingEngine:
    def __init__(self, queue):
        self.queue = queue

    def handle(self, message):
        self.queue.send(message)
        return "ran"


def test_drain_stops_runaway_loops():
    queue = InMemoryWorkQueue()
    queue.send(StageMessage("Transcode", "j1", 1))

    with pytest.raises(RuntimeError):
        queue.drain(LoopingEngine(queue), limit=5)


def test_pop_on_empty_queue():
    assert InMemoryWorkQueue().pop() is None
