import random
import string
from os import environ
from pathlib import Path
from typing import Any
from uuid import uuid4

import pytest
import pytest_asyncio

from dont_forget.helpers.config_models.flags import (
    MemoryModel,
    RedisModel,
    SqliteModel,
)
from dont_forget.helpers.reminder_data import ReminderStore
from dont_forget.models.readiness import ReadinessEnum
from dont_forget.models.user import UserModel
from dont_forget.persistence.iflags import IFlagStore
from dont_forget.persistence.memory import MemoryFlagStore, MemoryUserDirectory

GM_ID = "gamemaster000001"
PLAYER_1_ID = "player0000000001"
PLAYER_2_ID = "player0000000002"


class BrokenFlagStore(MemoryFlagStore):
    """
    Reads work, every write is reported as failed by the backend.
    """

    async def readiness(self) -> ReadinessEnum:
        return ReadinessEnum.FAIL

    async def replace(self, *args, **kwargs) -> bool:  # noqa: ARG002
        return False

    async def merge(self, *args, **kwargs) -> bool:  # noqa: ARG002
        return False

    async def delete(self, *args, **kwargs) -> bool:  # noqa: ARG002
        return False


async def snapshot(flags: IFlagStore) -> dict[str, Any]:
    """
    Raw stored reminders of every test user.
    """
    return {
        user_id: await flags.get(user_id, "dont-forget", ReminderStore.FLAG_KEY)
        for user_id in (GM_ID, PLAYER_1_ID, PLAYER_2_ID)
    }


@pytest.fixture
def random_text() -> str:
    text = "".join(random.choice(string.printable) for _ in range(100))
    return text


@pytest.fixture
def users() -> MemoryUserDirectory:
    return MemoryUserDirectory(
        [
            UserModel(
                display_name="Gamemaster",
                id=GM_ID,
                is_gm=True,
            ),
            UserModel(
                display_name="Player 1",
                id=PLAYER_1_ID,
            ),
            UserModel(
                display_name="Player 2",
                id=PLAYER_2_ID,
            ),
        ]
    )


@pytest_asyncio.fixture(
    loop_scope="session",
    params=[
        pytest.param("memory", id="memory"),
        pytest.param("redis", id="redis"),
        pytest.param("sqlite", id="sqlite"),
    ],
)
async def flags(request: pytest.FixtureRequest, tmp_path: Path) -> IFlagStore:
    if request.param == "sqlite":
        return SqliteModel(path=str(tmp_path / "flags")).instance

    if request.param == "redis":
        # Unique prefix, tests never share data
        instance = RedisModel(
            host=environ.get("REDIS_HOST", "localhost"),
            port=int(environ.get("REDIS_PORT", "6379")),
            prefix=f"dont-forget-test-{uuid4()}",
            ssl=False,
        ).instance
        if await instance.readiness() != ReadinessEnum.OK:
            pytest.skip("Redis is not reachable")
        return instance

    return MemoryFlagStore(MemoryModel())


@pytest.fixture
def store(flags: IFlagStore, users: MemoryUserDirectory) -> ReminderStore:
    return ReminderStore(
        flags=flags,
        users=users,
    )
