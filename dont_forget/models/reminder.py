from pydantic import BaseModel, ConfigDict, Field


class ReminderModel(BaseModel):
    """
    A single reminder, owned by a user.

    Always dump it with `by_alias=True`, stored flag data keeps the host field names (`isDone`, `userId`).
    """

    model_config = ConfigDict(
        extra="allow",  # Callers can attach their own fields
        populate_by_name=True,
    )

    # Immutable fields
    id: str = Field(frozen=True)
    user_id: str = Field(alias="userId", frozen=True)
    # Editable fields
    is_done: bool = Field(alias="isDone", default=False)
    label: str = ""


class ReminderUpdateModel(BaseModel):
    """
    Partial update of a reminder.

    Only fields explicitly set by the caller are applied, see `model_fields_set`. Immutable fields are dropped.
    """

    model_config = ConfigDict(
        extra="ignore",  # Drop "id" and "userId" if sent
        populate_by_name=True,
    )

    is_done: bool | None = Field(alias="isDone", default=None)
    label: str | None = None

    def changes(self) -> dict[str, bool | str]:
        """
        Return the fields to apply, keyed by their stored name.
        """
        return self.model_dump(
            by_alias=True,
            exclude_none=True,
            exclude_unset=True,
        )
