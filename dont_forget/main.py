from collections.abc import Awaitable, Callable, Mapping
from functools import cache
from typing import Any

from dont_forget.helpers.config import CONFIG
from dont_forget.helpers.features import inject_button
from dont_forget.helpers.logging import logger
from dont_forget.helpers.monitoring import VERSION
from dont_forget.helpers.reminder_data import ReminderStore
from dont_forget.helpers.reminder_form import ReminderForm
from dont_forget.models.error import ErrorModel, ReminderError
from dont_forget.models.readiness import ReadinessModel

logger.info("dont-forget v%s", VERSION)


@cache
def reminder_store() -> ReminderStore:
    """
    Reminder store wired to the configured backends.
    """
    return ReminderStore(
        flags=CONFIG.flags.instance,
        namespace=CONFIG.ui.namespace,
        users=CONFIG.users.instance,
    )


async def reminder_form(
    user_id: str,
    confirm: Callable[[str, str], Awaitable[bool]],
) -> ReminderForm | None:
    """
    Open the reminders window for a user, if the client setting allows it.
    """
    if not await inject_button(user_id):
        logger.debug("Reminders button disabled for %s", user_id)
        return None
    return ReminderForm(
        confirm=confirm,
        store=reminder_store(),
        user_id=user_id,
    )


async def readiness() -> ReadinessModel:
    return await reminder_store().readiness()


async def submit_form(
    form: ReminderForm,
    form_data: Mapping[str, Any],
) -> ErrorModel | None:
    """
    Save the reminders window.

    Returns `None` if saved, else the error in a standard format for the host to display.
    """
    try:
        await form.submit(form_data)
    except ReminderError as e:
        logger.warning("Reminders form not saved: %s", e)
        return e.model()
    return None
