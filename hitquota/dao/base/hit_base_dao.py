"""Abstract base class for hit record data access objects (DAOs).

A hit record is one usage event of the API by a user. Hit records are the
source of truth the per-user counter cache is derived from, and are kept for
a limited retention period.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from hitquota.models import HitModel


class HitBaseDAO(ABC):
    """Interface for hit record data access objects (DAOs)

    Methods:
        insert(hit: HitModel, **kwargs) -> HitBaseDAO:
            Record a hit and drop records older than the retention period.

        count(user_id: str, since: datetime, until: datetime | None = None, **kwargs) -> int:
            Count a user's hits in [since, until).

        list_hits(user_id: str, since: datetime, until: datetime | None = None, limit: int | None = None, **kwargs) -> list[HitModel]:
            List a user's hits in [since, until), oldest first.

    All methods raise DataStoreError on data store failures.
    """

    @abstractmethod
    def insert(self, hit: HitModel, **kwargs) -> 'HitBaseDAO':
        pass

    @abstractmethod
    def count(self, user_id: str, since: datetime, until: datetime | None = None, **kwargs) -> int:
        pass

    @abstractmethod
    def list_hits(
        self,
        user_id: str,
        since: datetime,
        until: datetime | None = None,
        limit: int | None = None,
        **kwargs,
    ) -> list[HitModel]:
        pass
