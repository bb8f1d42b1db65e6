import pytest
from conftest import GM_ID, PLAYER_1_ID
from pytest_assume.plugin import assume

from dont_forget.helpers.config import CONFIG
from dont_forget.helpers.config_models.flags import FlagsModel, ModeEnum
from dont_forget.helpers.config_models.root import RootModel
from dont_forget.main import readiness, reminder_form, reminder_store, submit_form
from dont_forget.models.readiness import ReadinessEnum
from dont_forget.persistence.memory import MemoryFlagStore


def test_config_users() -> None:
    """
    Users of the local config are loaded in the directory.
    """
    assume(any(user.id == GM_ID and user.is_gm for user in CONFIG.users.directory))


def test_config_version() -> None:
    """
    Version comes from the environment only, through the monitoring module.
    """
    assume("version" not in RootModel.model_fields)


def test_config_flags_validation() -> None:
    with pytest.raises(ValueError):
        FlagsModel.model_validate({"mode": ModeEnum.REDIS.value})
    assume(isinstance(FlagsModel().instance, MemoryFlagStore))


@pytest.mark.asyncio(loop_scope="session")
async def test_main() -> None:
    """
    Store and form are wired to the configured backends.
    """
    assume(reminder_store() is reminder_store())
    assume((await readiness()).status == ReadinessEnum.OK)

    async def _confirm(title: str, content: str) -> bool:  # noqa: ARG001
        return True

    form = await reminder_form(GM_ID, _confirm)
    assert form
    assume(await form.handle_action("create"))
    data = await form.get_data()
    assume(any(reminder.user_id == GM_ID for reminder in data["reminders"].values()))


@pytest.mark.asyncio(loop_scope="session")
async def test_submit_form() -> None:
    """
    Form errors are returned in the standard format, successful saves return nothing.
    """

    async def _confirm(title: str, content: str) -> bool:  # noqa: ARG001
        return True

    form = await reminder_form(PLAYER_1_ID, _confirm)
    assert form

    error = await submit_form(form, "not a mapping")  # pyright: ignore
    assert error
    assume(error.error.message == "Form data is not a mapping")
    assume(error.error.details == ["str"])

    error = await submit_form(form, {"unknown.label": "Hijacked"})
    assert error
    assume(error.error.message == f"Reminder unknown not visible by {PLAYER_1_ID}")
    assume(error.error.details == [])

    assume(await submit_form(form, {}) is None)
