from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from workspace_engine.utils.errors import WorkspaceError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: WorkspaceError

    @property
    def ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return self.error.message

    def unwrap(self):
        raise self.error


Result = Union[Ok[T], Err]
