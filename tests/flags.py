from pathlib import Path

import pytest
from pytest_assume.plugin import assume

from dont_forget.helpers.config_models.flags import RedisModel, SqliteModel
from dont_forget.models.error import PersistenceError
from dont_forget.models.readiness import ReadinessEnum
from dont_forget.persistence.iflags import IFlagStore

NAMESPACE = "dont-forget"
KEY = "reminders"
USER_ID = "player0000000001"


@pytest.mark.asyncio(loop_scope="session")
async def test_readiness(flags: IFlagStore) -> None:
    assume(await flags.readiness() == ReadinessEnum.OK)


@pytest.mark.asyncio(loop_scope="session")
async def test_get_missing(flags: IFlagStore) -> None:
    assume(await flags.get(USER_ID, NAMESPACE, KEY) is None)
    # Delete on a missing flag is a no-op
    assume(await flags.delete(USER_ID, NAMESPACE, KEY, "abc"))
    assume(await flags.get(USER_ID, NAMESPACE, KEY) is None)


@pytest.mark.asyncio(loop_scope="session")
async def test_merge(flags: IFlagStore) -> None:
    """
    Merge is shallow, first level keys are replaced, others are kept.
    """
    assume(await flags.merge(USER_ID, NAMESPACE, KEY, {"a": {"label": "A", "x": 1}}))
    assume(await flags.merge(USER_ID, NAMESPACE, KEY, {"b": {"label": "B"}}))
    assume(await flags.merge(USER_ID, NAMESPACE, KEY, {"a": {"label": "A2"}}))

    assume(
        await flags.get(USER_ID, NAMESPACE, KEY)
        == {
            "a": {"label": "A2"},
            "b": {"label": "B"},
        }
    )


@pytest.mark.asyncio(loop_scope="session")
async def test_replace(flags: IFlagStore) -> None:
    await flags.merge(USER_ID, NAMESPACE, KEY, {"a": 1, "b": 2})

    assume(await flags.replace(USER_ID, NAMESPACE, KEY, {"c": 3}))
    assume(await flags.get(USER_ID, NAMESPACE, KEY) == {"c": 3})

    assume(await flags.replace(USER_ID, NAMESPACE, KEY, {}))
    assume(not await flags.get(USER_ID, NAMESPACE, KEY))


@pytest.mark.asyncio(loop_scope="session")
async def test_delete(flags: IFlagStore) -> None:
    await flags.merge(USER_ID, NAMESPACE, KEY, {"a": 1, "b": 2})

    assume(await flags.delete(USER_ID, NAMESPACE, KEY, "a"))
    assume(await flags.get(USER_ID, NAMESPACE, KEY) == {"b": 2})

    # Unknown key is a no-op
    assume(await flags.delete(USER_ID, NAMESPACE, KEY, "unknown"))
    assume(await flags.get(USER_ID, NAMESPACE, KEY) == {"b": 2})


@pytest.mark.asyncio(loop_scope="session")
async def test_isolation(flags: IFlagStore, random_text: str) -> None:
    """
    Flags of a user, a namespace or a key never leak to another.
    """
    await flags.merge(USER_ID, NAMESPACE, KEY, {"text": random_text})

    assume(await flags.get("player0000000002", NAMESPACE, KEY) is None)
    assume(await flags.get(USER_ID, "other-module", KEY) is None)
    assume(await flags.get(USER_ID, NAMESPACE, "settings") is None)
    assume(await flags.get(USER_ID, NAMESPACE, KEY) == {"text": random_text})


@pytest.mark.asyncio(loop_scope="session")
async def test_copy(flags: IFlagStore) -> None:
    """
    Values read cannot alter the store when mutated.
    """
    await flags.merge(USER_ID, NAMESPACE, KEY, {"a": {"label": "A"}})

    res = await flags.get(USER_ID, NAMESPACE, KEY)
    assert res
    res["a"]["label"] = "changed"
    res["b"] = {}

    assume(await flags.get(USER_ID, NAMESPACE, KEY) == {"a": {"label": "A"}})


@pytest.mark.asyncio(loop_scope="session")
async def test_address_collision(flags: IFlagStore) -> None:
    """
    Addresses whose parts join to the same text are still distinct flags.
    """
    await flags.merge("a", "b-c", KEY, {"owner": "a"})
    await flags.merge("a:b", "c", KEY, {"owner": "a:b"})

    assume(await flags.get("a-b", "c", KEY) is None)
    assume(await flags.get("a", "b:c", KEY) is None)
    assume(await flags.get("a", "b-c", KEY) == {"owner": "a"})
    assume(await flags.get("a:b", "c", KEY) == {"owner": "a:b"})


@pytest.mark.parametrize(
    "backend",
    [
        pytest.param("redis", id="redis"),
        pytest.param("sqlite", id="sqlite"),
    ],
)
@pytest.mark.asyncio(loop_scope="session")
async def test_unreachable(backend: str, tmp_path: Path) -> None:
    """
    An unreachable backend is never mistaken for an empty one.

    Reads raise, writes report a failure, readiness fails.
    """
    if backend == "sqlite":
        # A folder cannot be opened as a database
        (tmp_path / "flags-v1.sqlite").mkdir()
        flags = SqliteModel(path=str(tmp_path / "flags")).instance
    else:
        # Nothing listens on the first port
        flags = RedisModel(host="localhost", port=1, ssl=False).instance

    with pytest.raises(PersistenceError):
        await flags.get(USER_ID, NAMESPACE, KEY)
    assume(not await flags.merge(USER_ID, NAMESPACE, KEY, {"a": 1}))
    assume(await flags.readiness() == ReadinessEnum.FAIL)
