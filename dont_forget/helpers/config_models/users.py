from functools import cached_property

from pydantic import BaseModel, field_validator

from dont_forget.models.user import UserModel
from dont_forget.persistence.iusers import IUserDirectory


class UsersModel(BaseModel):
    """
    Users known by the host, used to seed the user directory.
    """

    directory: list[UserModel] = []

    @field_validator("directory")
    @classmethod
    def _validate_directory(cls, directory: list[UserModel]) -> list[UserModel]:
        ids = [user.id for user in directory]
        duplicates = sorted({user_id for user_id in ids if ids.count(user_id) > 1})
        if duplicates:
            raise ValueError(f"Duplicated user ids: {', '.join(duplicates)}")
        return directory

    @cached_property
    def instance(self) -> IUserDirectory:
        from dont_forget.persistence.memory import (
            MemoryUserDirectory,
        )

        return MemoryUserDirectory(self.directory)
