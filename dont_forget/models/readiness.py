from enum import Enum

from pydantic import BaseModel


class ReadinessEnum(str, Enum):
    FAIL = "fail"
    """The backend is not ready."""
    OK = "ok"
    """The backend is ready."""


class ReadinessCheckModel(BaseModel):
    id: str
    """Name of the backend, e.g. "flags" or "users"."""
    status: ReadinessEnum


class ReadinessModel(BaseModel):
    checks: list[ReadinessCheckModel]
    status: ReadinessEnum
