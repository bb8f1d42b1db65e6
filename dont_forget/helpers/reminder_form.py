from collections.abc import Awaitable, Callable, Mapping
from enum import Enum
from typing import Any

from dont_forget.helpers.logging import logger
from dont_forget.helpers.reminder_data import ReminderStore
from dont_forget.models.error import InvalidInputError
from dont_forget.models.reminder import ReminderModel


class ActionEnum(str, Enum):
    CREATE = "create"
    """Add an empty reminder for the user of the form."""
    DELETE = "delete"
    """Delete a reminder, after confirmation."""


class ReminderForm:
    """
    Controller of the reminders window.

    Rendering is done by the host, this only prepares the template data and reacts to the buttons and to the submission.
    """

    _confirm: Callable[[str, str], Awaitable[bool]]
    _store: ReminderStore
    _user_id: str

    def __init__(
        self,
        confirm: Callable[[str, str], Awaitable[bool]],
        store: ReminderStore,
        user_id: str,
    ):
        self._confirm = confirm
        self._store = store
        self._user_id = user_id

    async def get_data(self) -> dict[str, dict[str, ReminderModel]]:
        """
        Template data, GMs see the reminders of everyone.
        """
        return {
            "reminders": await self._store.list(self._user_id),
        }

    async def handle_action(
        self,
        action: str,
        reminder_id: str | None = None,
    ) -> bool:
        """
        React to a button click.

        Returns `True` if the form should be rendered again.
        """
        try:
            action_enum = ActionEnum(action)
        except ValueError:
            logger.warning("Unknown form action %s", action)
            return False

        if action_enum == ActionEnum.CREATE:
            await self._store.create(self._user_id)
            return True

        # Delete
        if not reminder_id:
            logger.warning("Delete action without reminder ID")
            return False
        reminder = (await self._store.list(self._user_id)).get(reminder_id, None)
        if not reminder:
            logger.warning("Reminder %s not visible by %s", reminder_id, self._user_id)
            return False
        confirmed = await self._confirm(
            "Confirm Deletion",
            f'Are you sure you want to delete "{reminder.label}"?',
        )
        if not confirmed:
            logger.debug("Deletion of %s cancelled", reminder_id)
            return False
        # GMs can delete the reminders of others, owner comes from the reminder
        await self._store.delete(reminder.id, reminder.user_id)
        return True

    async def submit(self, form_data: Mapping[str, Any]) -> None:
        """
        Save the whole form, replacing the reminders of their owners.

        Form fields are flat, named "<reminder id>.<field>". Submitted fields are applied on top of the displayed reminders, so a GM form keeps each reminder with its owner.

        Only displayed reminders can be edited, new ones come from the create action. The whole form is validated before any write.
        """
        visible = await self._store.list(self._user_id)
        by_owner: dict[str, dict[str, Any]] = {}
        for reminder in visible.values():
            by_owner.setdefault(reminder.user_id, {})[reminder.id] = (
                reminder.model_dump(by_alias=True)
            )

        changed = {self._user_id}
        for reminder_id, data in expand_object(form_data).items():
            reminder = visible.get(reminder_id, None)
            if not reminder:
                logger.error(
                    "Reminder %s not visible by %s, form rejected",
                    reminder_id,
                    self._user_id,
                )
                raise InvalidInputError(
                    f"Reminder {reminder_id} not visible by {self._user_id}"
                )
            if not isinstance(data, Mapping):
                logger.error("Invalid form data for reminder %s", reminder_id)
                raise InvalidInputError(
                    f"Invalid form data for reminder {reminder_id}",
                    type(data).__name__,
                )
            # ID and owner are not editable
            by_owner[reminder.user_id][reminder_id].update(
                {
                    field: value
                    for field, value in data.items()
                    if field not in ("id", "userId", "user_id")
                }
            )
            changed.add(reminder.user_id)

        for owner_id in sorted(changed):
            await self._store.update_user_reminders(
                collection=by_owner.get(owner_id, {}),
                user_id=owner_id,
            )


def expand_object(flat: Mapping[str, Any]) -> dict[str, Any]:
    """
    Expand dotted keys into nested mappings.

    Example: `{"abc.label": "x"}` becomes `{"abc": {"label": "x"}}`.
    """
    if not isinstance(flat, Mapping):
        raise InvalidInputError("Form data is not a mapping", type(flat).__name__)

    res: dict[str, Any] = {}
    for key, value in flat.items():
        *parents, leaf = str(key).split(".")
        node = res
        for parent in parents:
            child = node.setdefault(parent, {})
            if not isinstance(child, dict):
                raise InvalidInputError(f'Form field "{key}" conflicts with "{parent}"')
            node = child
        node[leaf] = value
    return res
