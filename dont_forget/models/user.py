from pydantic import BaseModel, Field


class UserModel(BaseModel, frozen=True):
    id: str
    display_name: str = ""
    is_gm: bool = Field(
        default=False,
        description="Elevated privilege, the user can see and manage the reminders of everyone.",
    )
