"""
Work queue collaborators. Each one only has to deliver a StageMessage at
least once; retries, visibility timeouts and dead-lettering belong to the
broker behind it.
"""
import json
import logging
from collections import deque

import boto3
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .jobs import StageMessage

logger = logging.getLogger(__name__)


def get_sqs_client():
    return boto3.session.Session(region_name=settings.SQS_REGION).client("sqs")


class WorkQueue:
    def send(self, message: StageMessage) -> None:
        raise NotImplementedError


class InMemoryWorkQueue(WorkQueue):
    """FIFO queue held in memory. `sent` keeps every message ever sent."""

    def __init__(self):
        self.pending: deque[StageMessage] = deque()
        self.sent: list[StageMessage] = []

    def send(self, message):
        self.pending.append(message)
        self.sent.append(message)

    def pop(self) -> StageMessage | None:
        return self.pending.popleft() if self.pending else None

    def drain(self, engine, limit: int = 100) -> list:
        """Deliver pending messages to `engine` until the queue is empty."""
        outcomes = []
        while self.pending:
            if len(outcomes) >= limit:
                raise RuntimeError(f"queue did not drain after {limit} deliveries")
            outcomes.append(engine.handle(self.pending.popleft()))
        return outcomes


class CeleryWorkQueue(WorkQueue):
    def __init__(self, task=None):
        self._task = task

    @property
    def task(self):
        if self._task is None:
            from .tasks import run_stage

            self._task = run_stage
        return self._task

    def send(self, message):
        self.task.apply_async(
            kwargs={"stage": message.type, "job_id": message.job_id, "attempt": message.attempt}
        )
        logger.debug("Queued %s for %s via celery", message.type, message.job_id)


class SqsWorkQueue(WorkQueue):
    def __init__(self, queue_url: str, client=None):
        if not queue_url:
            raise ImproperlyConfigured("SQS_QUEUE_URL is not set")
        self.queue_url = queue_url
        self.client = client or get_sqs_client()

    def send(self, message):
        self.client.send_message(QueueUrl=self.queue_url, MessageBody=json.dumps(message.to_body()))
        logger.debug("Queued %s for %s via sqs", message.type, message.job_id)
