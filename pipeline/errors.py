class PipelineError(Exception):
    """Base class for errors raised by the job pipeline."""


class JobNotFound(PipelineError):
    def __init__(self, job_id: str):
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class PublishRejected(PipelineError):
    """Publish was attempted on a job that is not ready_to_publish."""

    def __init__(self, job_id: str, status: str):
        super().__init__(f"Job {job_id} is {status}, not ready to publish")
        self.job_id = job_id
        self.status = status


class StaleJobError(PipelineError):
    """A versioned write lost the race against another writer."""

    def __init__(self, job_id: str, expected_version: int):
        super().__init__(f"Job {job_id} changed since version {expected_version}")
        self.job_id = job_id
        self.expected_version = expected_version


class UnknownStage(PipelineError):
    def __init__(self, name: str):
        super().__init__(f"Stage not found: {name}")
        self.name = name


class StageFailed(PipelineError):
    def __init__(self, stage: str, job_id: str, reason: str):
        super().__init__(f"{stage} failed for {job_id}: {reason}")
        self.stage = stage
        self.job_id = job_id
        self.reason = reason


class MissingSource(PipelineError):
    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} has no uploaded source")
        self.job_id = job_id
