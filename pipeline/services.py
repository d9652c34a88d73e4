"""
Process-wide collaborators, built once from settings and injected into the
engine and the Control API.
"""
from datetime import timedelta
from functools import lru_cache

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .control import JobControl
from .engine import PipelineEngine
from .processing import FfmpegProcessor, StubProcessor
from .queues import CeleryWorkQueue, InMemoryWorkQueue, SqsWorkQueue
from .store import DjangoJobStore, InMemoryJobStore


@lru_cache(maxsize=None)
def get_store():
    backend = settings.PIPELINE_STORE_BACKEND
    if backend == "django":
        return DjangoJobStore()
    if backend == "memory":
        return InMemoryJobStore()
    raise ImproperlyConfigured(f"Unknown PIPELINE_STORE_BACKEND: {backend}")


@lru_cache(maxsize=None)
def get_queue():
    backend = settings.PIPELINE_QUEUE_BACKEND
    if backend == "celery":
        return CeleryWorkQueue()
    if backend == "sqs":
        return SqsWorkQueue(settings.SQS_QUEUE_URL)
    if backend == "memory":
        return InMemoryWorkQueue()
    raise ImproperlyConfigured(f"Unknown PIPELINE_QUEUE_BACKEND: {backend}")


@lru_cache(maxsize=None)
def get_processor():
    kind = settings.PIPELINE_PROCESSOR
    if kind == "stub":
        return StubProcessor(use_stub_hls=settings.USE_STUB_HLS, sample_hls_url=settings.SAMPLE_HLS_URL)
    if kind == "ffmpeg":
        return FfmpegProcessor()
    raise ImproperlyConfigured(f"Unknown PIPELINE_PROCESSOR: {kind}")


@lru_cache(maxsize=None)
def get_engine() -> PipelineEngine:
    return PipelineEngine(
        get_store(),
        get_queue(),
        get_processor(),
        handoff_grace=timedelta(seconds=settings.PIPELINE_HANDOFF_GRACE_SECONDS),
    )


@lru_cache(maxsize=None)
def get_control() -> JobControl:
    return JobControl(get_engine(), bucket=settings.S3_BUCKET)


def reset():
    """Forget every built collaborator (settings changed, or tests)."""
    for fn in (get_store, get_queue, get_processor, get_engine, get_control):
        fn.cache_clear()
