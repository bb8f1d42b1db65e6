from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import quote

from dont_forget.helpers.monitoring import start_as_current_span
from dont_forget.models.readiness import ReadinessEnum


class IFlagStore(ABC):
    """
    Per-user key-value attribute store.

    A flag is addressed by `(user_id, namespace, key)` and holds a JSON mapping. Writes are explicit: full replace, per-key merge or per-key delete.

    Backend failures are raised as `PersistenceError` on reads, and reported as `False` on writes.
    """

    @abstractmethod
    @start_as_current_span("flags_readiness")
    async def readiness(self) -> ReadinessEnum:
        pass

    @abstractmethod
    @start_as_current_span("flags_get")
    async def get(
        self,
        user_id: str,
        namespace: str,
        key: str,
    ) -> dict[str, Any] | None:
        pass

    @abstractmethod
    @start_as_current_span("flags_replace")
    async def replace(
        self,
        user_id: str,
        namespace: str,
        key: str,
        value: dict[str, Any],
    ) -> bool:
        pass

    @abstractmethod
    @start_as_current_span("flags_merge")
    async def merge(
        self,
        user_id: str,
        namespace: str,
        key: str,
        value: dict[str, Any],
    ) -> bool:
        pass

    @abstractmethod
    @start_as_current_span("flags_delete")
    async def delete(
        self,
        user_id: str,
        namespace: str,
        key: str,
        sub_key: str,
    ) -> bool:
        pass

    @staticmethod
    def _flag_key(user_id: str, namespace: str, key: str) -> str:
        """
        Unique string for a flag address.

        Parts are percent-encoded before being joined with `:`, so no two addresses share a key.
        """
        return ":".join(quote(part, safe="") for part in (user_id, namespace, key))
