"""Abstract base class for reset job data access objects (DAOs).

A reset job is a delayed task that zeroes a user's hit counter at the start of
their local month. Jobs sit in a queue ordered by due time until a worker
claims them.

Lifecycle:
    schedule() -> [queued] -> due() -> claim() -> [running] -> complete()
                                                       |
                                                       +-> retry() -> [queued]
    cancel() removes a queued job (e.g. after a timezone change).
"""

from abc import ABC, abstractmethod
from datetime import datetime

from hitquota.constants import Reset
from hitquota.models import ResetJobModel


class ResetJobBaseDAO(ABC):
    """Interface for reset job queue data access objects (DAOs)

    Methods:
        schedule(user_id: str, run_at: datetime, **kwargs) -> ResetJobModel:
            Queue a new reset job for a user.

        get(job_id: str, **kwargs) -> ResetJobModel:
            Retrieve a reset job.
            Raises ResetJobNotFoundError if the job does not exist.

        due(now: datetime | None = None, limit: int = Reset.BATCH_SIZE, **kwargs) -> list[ResetJobModel]:
            List queued jobs whose due time has passed, earliest first.

        claim(job_id: str, **kwargs) -> bool:
            Take a job off the queue. Exactly one concurrent caller gets True.

        retry(job: ResetJobModel, delay: int, **kwargs) -> ResetJobModel:
            Queue a claimed job again after `delay` seconds.

        complete(job_id: str, **kwargs) -> None:
            Forget a finished job.

        cancel(job_id: str, **kwargs) -> bool:
            Remove a job whether it is queued or not. True if it existed.

    All methods raise DataStoreError on data store failures.
    """

    @abstractmethod
    def schedule(self, user_id: str, run_at: datetime, **kwargs) -> ResetJobModel:
        pass

    @abstractmethod
    def get(self, job_id: str, **kwargs) -> ResetJobModel:
        pass

    @abstractmethod
    def due(self, now: datetime | None = None, limit: int = Reset.BATCH_SIZE, **kwargs) -> list[ResetJobModel]:
        pass

    @abstractmethod
    def claim(self, job_id: str, **kwargs) -> bool:
        pass

    @abstractmethod
    def retry(self, job: ResetJobModel, delay: int, **kwargs) -> ResetJobModel:
        pass

    @abstractmethod
    def complete(self, job_id: str, **kwargs) -> None:
        pass

    @abstractmethod
    def cancel(self, job_id: str, **kwargs) -> bool:
        pass
