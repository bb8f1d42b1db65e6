import pytest
from conftest import PLAYER_1_ID, PLAYER_2_ID, BrokenFlagStore
from pytest_assume.plugin import assume

from dont_forget.helpers.config import CONFIG
from dont_forget.helpers.features import inject_button, set_inject_button
from dont_forget.models.error import PersistenceError
from dont_forget.persistence.iflags import IFlagStore


@pytest.mark.asyncio(loop_scope="session")
async def test_inject_button(flags: IFlagStore) -> None:
    """
    Test the client setting lifecycle.

    Steps:
    1. Check the default from the config is used
    2. Override it for a user
    3. Check the change callback is triggered
    4. Check other users still get the default
    """
    default = CONFIG.ui.inject_button
    assume(await inject_button(PLAYER_1_ID, flags=flags) == default)

    renders = []

    async def _on_change() -> None:
        renders.append(True)

    await set_inject_button(
        PLAYER_1_ID,
        not default,
        flags=flags,
        on_change=_on_change,
    )
    assume(await inject_button(PLAYER_1_ID, flags=flags) == (not default))
    assume(renders == [True])
    assume(await inject_button(PLAYER_2_ID, flags=flags) == default)


@pytest.mark.asyncio(loop_scope="session")
async def test_inject_button_invalid(flags: IFlagStore) -> None:
    """
    A stored value of the wrong type falls back to the default.
    """
    await flags.merge(
        PLAYER_1_ID,
        CONFIG.ui.namespace,
        "settings",
        {"inject-button": "yes"},
    )
    assume(await inject_button(PLAYER_1_ID, flags=flags) == CONFIG.ui.inject_button)


@pytest.mark.asyncio(loop_scope="session")
async def test_inject_button_write_failure() -> None:
    """
    Failure to save the setting is raised, no change callback is triggered.
    """
    flags = BrokenFlagStore()
    renders = []

    async def _on_change() -> None:
        renders.append(True)

    with pytest.raises(PersistenceError):
        await set_inject_button(
            PLAYER_1_ID,
            False,
            flags=flags,
            on_change=_on_change,
        )
    assume(renders == [])
    assume(await inject_button(PLAYER_1_ID, flags=flags) == CONFIG.ui.inject_button)
