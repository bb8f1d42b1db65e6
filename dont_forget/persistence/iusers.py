from abc import ABC, abstractmethod

from dont_forget.helpers.monitoring import start_as_current_span
from dont_forget.models.readiness import ReadinessEnum
from dont_forget.models.user import UserModel


class IUserDirectory(ABC):
    @abstractmethod
    @start_as_current_span("users_readiness")
    async def readiness(self) -> ReadinessEnum:
        pass

    @abstractmethod
    @start_as_current_span("users_get")
    async def get(self, user_id: str) -> UserModel | None:
        pass

    @abstractmethod
    @start_as_current_span("users_search_all")
    async def search_all(self) -> list[UserModel]:
        pass
