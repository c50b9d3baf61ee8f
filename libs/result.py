from dataclasses import dataclass, asdict
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class Error:
    code: str
    message: str
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {key: value for key, value in asdict(self).items() if value is not None}


class Result(Generic[T]):
    def __init__(self, value=None, error=None):
        self._value = value
        self._error = error

    def is_ok(self) -> bool:
        return self._error is None

    def is_err(self) -> bool:
        return self._error is not None

    @property
    def value(self) -> T:
        return self._value

    @property
    def error(self) -> Error:
        return self._error

    def unwrap(self) -> T:
        """Return the value or raise if the result carries an error."""
        if self._error is not None:
            raise ValueError(f"{self._error.code}: {self._error.message}")
        return self._value

    def __repr__(self) -> str:
        if self.is_ok():
            return f"Result.ok({self._value!r})"
        return f"Result.err({self._error!r})"


class Return:
    @staticmethod
    def ok(value):
        return Result(value=value)

    @staticmethod
    def err(error):
        return Result(error=error)
