import contextlib
from enum import Enum
from typing import ClassVar, Literal


class ErrorMessageMode(Enum):
    DEVELOPER = "developer"
    USER = "user"


ErrorMode = Literal["developer", "user"]


class ErrorConfig:
    _message_mode: ClassVar[ErrorMessageMode] = ErrorMessageMode.DEVELOPER
    _mode_stack: ClassVar[list[ErrorMode]] = []

    @classmethod
    def set_message_mode(cls, mode: ErrorMode) -> None:
        if mode not in [mode.value for mode in ErrorMessageMode]:
            raise ValueError(f"Invalid message mode: {mode}. Valid modes are: {list(ErrorMessageMode)}")
        cls._message_mode = ErrorMessageMode(mode)

    @classmethod
    @contextlib.contextmanager
    def message_mode(cls, mode: ErrorMode):
        cls._mode_stack.append(cls._message_mode.value)
        cls.set_message_mode(mode)
        try:
            yield
        finally:
            cls.set_message_mode(cls._mode_stack.pop())

    @classmethod
    def get_message_mode(cls) -> ErrorMessageMode:
        return cls._message_mode


class CpuscopeBaseError(ValueError):
    """Base exception class for all package errors."""

    def __init__(self, dev_message: str, user_message: str) -> None:
        self.dev_message: str = dev_message
        self.user_message: str = user_message

        match ErrorConfig.get_message_mode():
            case ErrorMessageMode.DEVELOPER:
                message = self.dev_message
            case ErrorMessageMode.USER:
                message = self.user_message

        super().__init__(message)
