from enum import Enum
from functools import cached_property

from pydantic import BaseModel, Field, SecretStr, ValidationInfo, field_validator

from dont_forget.persistence.iflags import IFlagStore


class ModeEnum(str, Enum):
    MEMORY = "memory"
    """Use memory flags, lost on restart."""
    REDIS = "redis"
    """Use Redis flags."""
    SQLITE = "sqlite"
    """Use SQLite flags."""


class MemoryModel(BaseModel, frozen=True):
    @cached_property
    def instance(self) -> IFlagStore:
        from dont_forget.persistence.memory import (
            MemoryFlagStore,
        )

        return MemoryFlagStore(self)


class SqliteModel(BaseModel, frozen=True):
    path: str = ".local/flags"
    schema_version: int = 1
    table: str = "flags"

    def full_path(self) -> str:
        """
        Returns the full path to the sqlite database file.

        Formatted as: `{path}-v{schema_version}.sqlite`.
        """
        return f"{self.path}-v{self.schema_version}.sqlite"

    @cached_property
    def instance(self) -> IFlagStore:
        from dont_forget.persistence.sqlite import (
            SqliteFlagStore,
        )

        return SqliteFlagStore(self)


class RedisModel(BaseModel, frozen=True):
    database: int = Field(default=0, ge=0)
    host: str
    password: SecretStr | None = None
    port: int = 6379
    prefix: str = "dont-forget"
    ssl: bool = True

    @cached_property
    def instance(self) -> IFlagStore:
        from dont_forget.persistence.redis import (
            RedisFlagStore,
        )

        return RedisFlagStore(self)


class FlagsModel(BaseModel):
    memory: MemoryModel | None = MemoryModel()  # Object is fully defined by default
    mode: ModeEnum = ModeEnum.MEMORY
    redis: RedisModel | None = Field(default=None, validate_default=True)
    sqlite: SqliteModel | None = SqliteModel()  # Object is fully defined by default

    @field_validator("memory")
    @classmethod
    def _validate_memory(
        cls,
        memory: MemoryModel | None,
        info: ValidationInfo,
    ) -> MemoryModel | None:
        if not memory and info.data.get("mode", None) == ModeEnum.MEMORY:
            raise ValueError("Memory config required")
        return memory

    @field_validator("redis")
    @classmethod
    def _validate_redis(
        cls,
        redis: RedisModel | None,
        info: ValidationInfo,
    ) -> RedisModel | None:
        if not redis and info.data.get("mode", None) == ModeEnum.REDIS:
            raise ValueError("Redis config required")
        return redis

    @field_validator("sqlite")
    @classmethod
    def _validate_sqlite(
        cls,
        sqlite: SqliteModel | None,
        info: ValidationInfo,
    ) -> SqliteModel | None:
        if not sqlite and info.data.get("mode", None) == ModeEnum.SQLITE:
            raise ValueError("SQLite config required")
        return sqlite

    @cached_property
    def instance(self) -> IFlagStore:
        if self.mode == ModeEnum.MEMORY:
            assert self.memory
            return self.memory.instance

        if self.mode == ModeEnum.SQLITE:
            assert self.sqlite
            return self.sqlite.instance

        assert self.redis
        return self.redis.instance
