from pydantic import BaseModel


class ErrorInnerModel(BaseModel):
    message: str
    details: list[str]


class ErrorModel(BaseModel):
    error: ErrorInnerModel


class ReminderError(Exception):
    """
    Base error for the reminder operations.

    All errors are local and recoverable, no write is done when raised.
    """

    def model(self) -> ErrorModel:
        """
        Describe the error for the UI layer.
        """
        return ErrorModel(
            error=ErrorInnerModel(
                details=[str(arg) for arg in self.args[1:]],
                message=str(self.args[0]) if self.args else self.__class__.__name__,
            )
        )


class UserNotFoundError(ReminderError):
    pass


class ReminderNotFoundError(ReminderError):
    pass


class InvalidInputError(ReminderError):
    pass


class PersistenceError(ReminderError):
    pass
