import logging

from celery import shared_task
from django.conf import settings

from .errors import JobNotFound, UnknownStage
from .jobs import StageMessage
from .services import get_engine

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    dont_autoretry_for=(JobNotFound, UnknownStage),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_jitter=True,
    max_retries=max(settings.PIPELINE_MAX_ATTEMPTS - 1, 0),
)
def run_stage(self, stage: str, job_id: str, attempt: int = 1):
    """
    Run one pipeline stage for a job. Errors propagate so Celery's retry
    policy decides redelivery; once retries are exhausted the task fails.
    """
    message = StageMessage(stage, job_id, attempt + self.request.retries)
    outcome = get_engine().handle(message)
    logger.debug("%s for %s: %s", stage, job_id, outcome.value)
    return outcome.value
