from copy import deepcopy
from typing import Any

from dont_forget.helpers.config_models.flags import MemoryModel
from dont_forget.helpers.logging import logger
from dont_forget.helpers.monitoring import suppress
from dont_forget.models.readiness import ReadinessEnum
from dont_forget.models.user import UserModel
from dont_forget.persistence.iflags import IFlagStore
from dont_forget.persistence.iusers import IUserDirectory


class MemoryFlagStore(IFlagStore):
    """
    A simple in-memory flag store.

    Values are copied on read and write, callers can mutate what they get without altering the store.
    """

    _config: MemoryModel
    _flags: dict[str, dict[str, Any]]

    def __init__(self, config: MemoryModel | None = None):
        logger.warning(
            "Using memory flags, reminders will be lost on restart, prefer SQLite or Redis"
        )
        self._config = config or MemoryModel()
        self._flags = {}

    async def readiness(self) -> ReadinessEnum:
        """
        Check the readiness of the memory flags.
        """
        return ReadinessEnum.OK  # Always ready, it's memory :)

    async def get(
        self,
        user_id: str,
        namespace: str,
        key: str,
    ) -> dict[str, Any] | None:
        """
        Get a flag.

        If the flag does not exist, return `None`.
        """
        res = self._flags.get(self._flag_key(user_id, namespace, key), None)
        if res is None:
            return None
        return deepcopy(res)

    async def replace(
        self,
        user_id: str,
        namespace: str,
        key: str,
        value: dict[str, Any],
    ) -> bool:
        """
        Replace the whole flag.
        """
        self._flags[self._flag_key(user_id, namespace, key)] = deepcopy(value)
        return True

    async def merge(
        self,
        user_id: str,
        namespace: str,
        key: str,
        value: dict[str, Any],
    ) -> bool:
        """
        Merge the first level keys into the flag, create it if missing.
        """
        flag = self._flags.setdefault(self._flag_key(user_id, namespace, key), {})
        flag.update(deepcopy(value))
        return True

    async def delete(
        self,
        user_id: str,
        namespace: str,
        key: str,
        sub_key: str,
    ) -> bool:
        """
        Delete a single key from the flag.
        """
        flag = self._flags.get(self._flag_key(user_id, namespace, key), None)
        if flag is None:
            return True
        with suppress(KeyError):
            flag.pop(sub_key)
        return True


class MemoryUserDirectory(IUserDirectory):
    """
    User directory from a static list, usually the config.
    """

    _users: dict[str, UserModel]

    def __init__(self, users: list[UserModel]):
        logger.info("Using memory user directory with %s users", len(users))
        self._users = {user.id: user for user in users}

    async def readiness(self) -> ReadinessEnum:
        return ReadinessEnum.OK

    async def get(self, user_id: str) -> UserModel | None:
        return self._users.get(user_id, None)

    async def search_all(self) -> list[UserModel]:
        return list(self._users.values())
