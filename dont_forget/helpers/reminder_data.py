import asyncio
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from pydantic import ValidationError

from dont_forget.helpers.identity import random_id
from dont_forget.helpers.logging import logger
from dont_forget.helpers.monitoring import (
    SpanAttributeEnum,
    counter_add,
    reminder_created,
    reminder_deleted,
    reminder_updated,
    start_as_current_span,
)
from dont_forget.models.error import (
    InvalidInputError,
    PersistenceError,
    ReminderNotFoundError,
    UserNotFoundError,
)
from dont_forget.models.readiness import (
    ReadinessCheckModel,
    ReadinessEnum,
    ReadinessModel,
)
from dont_forget.models.reminder import ReminderModel, ReminderUpdateModel
from dont_forget.persistence.iflags import IFlagStore
from dont_forget.persistence.iusers import IUserDirectory


class ReminderStore:
    """
    Data layer of the reminders.

    Each user owns a collection of reminders, persisted in its own flag. Game masters see the reminders of everyone, other users only theirs.

    Errors are logged, then raised to the caller. When raised, nothing has been written.
    """

    FLAG_KEY = "reminders"

    _flags: IFlagStore
    _namespace: str
    _new_id: Callable[[], str]
    _users: IUserDirectory

    def __init__(
        self,
        flags: IFlagStore,
        users: IUserDirectory,
        namespace: str = "dont-forget",
        new_id: Callable[[], str] = random_id,
    ):
        self._flags = flags
        self._namespace = namespace
        self._new_id = new_id
        self._users = users

    @start_as_current_span("reminder_readiness")
    async def readiness(self) -> ReadinessModel:
        """
        Check the readiness of the backends.

        If one of the checks fails, the whole readiness fails.
        """
        flags_check, users_check = await asyncio.gather(
            self._flags.readiness(),
            self._users.readiness(),
        )
        readiness = ReadinessModel(
            checks=[
                ReadinessCheckModel(id="flags", status=flags_check),
                ReadinessCheckModel(id="users", status=users_check),
            ],
            status=ReadinessEnum.OK,
        )
        for check in readiness.checks:
            if check.status != ReadinessEnum.OK:
                readiness.status = ReadinessEnum.FAIL
                break
        return readiness

    @start_as_current_span("reminder_list")
    async def list(self, requesting_user_id: str) -> dict[str, ReminderModel]:
        """
        List the reminders visible by a user.

        Game masters get the reminders of all users, others only their own.
        """
        SpanAttributeEnum.USER_ID.attribute(requesting_user_id)
        user = await self._users.get(requesting_user_id)
        if not user:
            logger.error("User %s not found", requesting_user_id)
            raise UserNotFoundError(f"User {requesting_user_id} not found")

        if user.is_gm:
            logger.debug("User %s is GM, listing all reminders", user.id)
            return await self.list_all()

        logger.debug("User %s is not GM, listing own reminders", user.id)
        return await self.list_for_user(user.id)

    @start_as_current_span("reminder_list_all")
    async def list_all(self) -> dict[str, ReminderModel]:
        """
        Aggregate the reminders of all users.

        Built on each call from independent reads, this is not a transactional snapshot.
        """
        users = await self._users.search_all()
        collections = await asyncio.gather(
            *[self.list_for_user(user.id) for user in users]
        )
        res: dict[str, ReminderModel] = {}
        for collection in collections:
            for reminder_id, reminder in collection.items():
                if reminder_id in res:
                    logger.warning(
                        "Reminder %s is owned by %s and %s, keeping the first",
                        reminder_id,
                        res[reminder_id].user_id,
                        reminder.user_id,
                    )
                    continue
                res[reminder_id] = reminder
        return res

    @start_as_current_span("reminder_list_for_user")
    async def list_for_user(self, user_id: str) -> dict[str, ReminderModel]:
        """
        List the reminders owned by a user.

        Unknown users have no reminders, no error is raised. Stored entries are keyed by their ID and owned by the user, whatever their content says, as bulk updates can store partial data.
        """
        user = await self._users.get(user_id)
        if not user:
            logger.debug("User %s not found, no reminders", user_id)
            return {}

        stored = await self._flags.get(user.id, self._namespace, self.FLAG_KEY) or {}
        res: dict[str, ReminderModel] = {}
        for reminder_id, data in stored.items():
            if not isinstance(data, Mapping):
                logger.warning("Skipping reminder %s, not a mapping", reminder_id)
                continue
            try:
                res[reminder_id] = ReminderModel.model_validate(
                    {
                        **data,
                        "id": reminder_id,
                        "userId": user.id,
                    }
                )
            except ValidationError as e:
                logger.warning("Skipping reminder %s: %s", reminder_id, e.errors())
        return res

    @start_as_current_span("reminder_create")
    async def create(
        self,
        owner_user_id: str,
        fields: Mapping[str, Any] | None = None,
    ) -> ReminderModel:
        """
        Create a reminder for a user.

        Reminder is not done by default. ID and owner are always set by the store, values from the caller are ignored. Existing reminders of the user are kept.
        """
        SpanAttributeEnum.USER_ID.attribute(owner_user_id)
        if fields is not None and not isinstance(fields, Mapping):
            logger.error("Invalid reminder data for user %s", owner_user_id)
            raise InvalidInputError(
                f"Invalid reminder data for user {owner_user_id}", type(fields).__name__
            )

        user = await self._users.get(owner_user_id)
        if not user:
            logger.error("User %s not found", owner_user_id)
            raise UserNotFoundError(f"User {owner_user_id} not found")

        # Generate a fresh ID, unique across all users
        existing = await self.list_all()
        reminder_id = self._new_id()
        while reminder_id in existing:
            reminder_id = self._new_id()

        data = {
            key: value
            for key, value in (fields or {}).items()
            if key not in ("id", "userId", "user_id")
        }
        try:
            reminder = ReminderModel.model_validate(
                {
                    **data,
                    "id": reminder_id,
                    "userId": user.id,
                }
            )
        except ValidationError as e:
            logger.error("Invalid reminder data for user %s: %s", user.id, e.errors())
            raise InvalidInputError(
                f"Invalid reminder data for user {user.id}",
                *[error["msg"] for error in e.errors()],
            ) from e

        # Additive write, other reminders of the user are kept
        await self._write(
            self._flags.merge(
                key=self.FLAG_KEY,
                namespace=self._namespace,
                user_id=user.id,
                value={reminder.id: reminder.model_dump(by_alias=True)},
            ),
            user_id=user.id,
        )
        SpanAttributeEnum.REMINDER_ID.attribute(reminder.id)
        counter_add(reminder_created, 1)
        logger.info("Reminder %s created for %s", reminder.id, user.id)
        return reminder

    @start_as_current_span("reminder_update")
    async def update(
        self,
        reminder_id: str,
        fields: Mapping[str, Any] | ReminderUpdateModel,
    ) -> ReminderModel:
        """
        Update the label or the done state of a reminder.

        Only the fields given are changed. Owner is taken from the reminder itself, other reminders of the owner are kept.
        """
        SpanAttributeEnum.REMINDER_ID.attribute(reminder_id)
        try:
            update = ReminderUpdateModel.model_validate(fields)
        except ValidationError as e:
            logger.error("Invalid update for reminder %s: %s", reminder_id, e.errors())
            raise InvalidInputError(
                f"Invalid update for reminder {reminder_id}",
                *[error["msg"] for error in e.errors()],
            ) from e

        reminder = (await self.list_all()).get(reminder_id, None)
        if not reminder:
            logger.error("Reminder %s not found", reminder_id)
            raise ReminderNotFoundError(f"Reminder {reminder_id} not found")

        changes = update.changes()
        if not changes:
            logger.debug("Nothing to update for reminder %s", reminder_id)
            return reminder

        updated = ReminderModel.model_validate(
            {
                **reminder.model_dump(by_alias=True),
                **changes,
            }
        )
        await self._write(
            self._flags.merge(
                key=self.FLAG_KEY,
                namespace=self._namespace,
                user_id=updated.user_id,
                value={updated.id: updated.model_dump(by_alias=True)},
            ),
            user_id=updated.user_id,
        )
        counter_add(reminder_updated, 1)
        logger.info("Reminder %s updated", reminder_id)
        return updated

    @start_as_current_span("reminder_update_user_reminders")
    async def update_user_reminders(
        self,
        user_id: str,
        collection: Mapping[str, Any],
    ) -> None:
        """
        Replace all the reminders of a user.

        Used by bulk form submissions, where the full edited set is sent. Data is stored as given, entries can be partial.
        """
        SpanAttributeEnum.USER_ID.attribute(user_id)
        if not isinstance(collection, Mapping):
            logger.error("Invalid update data provided for user %s", user_id)
            raise InvalidInputError(
                f"Invalid update data provided for user {user_id}",
                type(collection).__name__,
            )

        value: dict[str, Any] = {}
        for reminder_id, data in collection.items():
            if isinstance(data, ReminderModel):
                data = data.model_dump(by_alias=True)
            if not isinstance(reminder_id, str) or not isinstance(data, Mapping):
                logger.error(
                    "Invalid reminder %s provided for user %s", reminder_id, user_id
                )
                raise InvalidInputError(
                    f"Invalid reminder {reminder_id} provided for user {user_id}"
                )
            value[reminder_id] = dict(data)

        user = await self._users.get(user_id)
        if not user:
            logger.error("User %s not found", user_id)
            raise UserNotFoundError(f"User {user_id} not found")

        await self._write(
            self._flags.replace(
                key=self.FLAG_KEY,
                namespace=self._namespace,
                user_id=user.id,
                value=value,
            ),
            user_id=user.id,
        )
        counter_add(reminder_updated, len(value))
        logger.info("Reminders of %s replaced, %s in total", user.id, len(value))

    @start_as_current_span("reminder_delete")
    async def delete(
        self,
        reminder_id: str,
        owner_user_id: str,
    ) -> bool:
        """
        Delete a reminder.

        Ownership is checked against the stored reminders of the owner, a reminder of another user is reported as not found.
        """
        SpanAttributeEnum.REMINDER_ID.attribute(reminder_id)
        SpanAttributeEnum.USER_ID.attribute(owner_user_id)
        if reminder_id not in await self.list_for_user(owner_user_id):
            logger.error(
                "Reminder %s not found for user %s", reminder_id, owner_user_id
            )
            raise ReminderNotFoundError(
                f"Reminder {reminder_id} not found for user {owner_user_id}"
            )

        await self._write(
            self._flags.delete(
                key=self.FLAG_KEY,
                namespace=self._namespace,
                sub_key=reminder_id,
                user_id=owner_user_id,
            ),
            user_id=owner_user_id,
        )
        counter_add(reminder_deleted, 1)
        logger.info("Reminder %s deleted for %s", reminder_id, owner_user_id)
        return True

    async def _write(self, write: Awaitable[bool], user_id: str) -> None:
        """
        Await a flag write, raise if the backend reports a failure.
        """
        SpanAttributeEnum.FLAG_KEY.attribute(self.FLAG_KEY)
        if not await write:
            logger.error("Failed to write reminders of %s", user_id)
            raise PersistenceError(f"Failed to write reminders of {user_id}")
