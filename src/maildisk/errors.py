"""Error taxonomy and the discriminated result returned by ObjectStore."""

from dataclasses import dataclass
from typing import Generic, TypeVar


T = TypeVar("T")


class StoreError(Exception):
    """Base class for every failure the store reports."""
    kind = "error"

    @property
    def message(self) -> str:
        return str(self) or self.__class__.__name__


class ConnectError(StoreError):
    """Session could not be established or authenticated."""
    kind = "connection"


class NotConfiguredError(StoreError):
    kind = "not_configured"


class SearchError(StoreError):
    kind = "search"


class FetchError(StoreError):
    kind = "fetch"


class StructureError(StoreError):
    """Structure could not be turned into attachments, or a locator is unusable."""
    kind = "structure"


class NotFoundError(StoreError):
    kind = "not_found"


class DecodeError(StoreError):
    kind = "decode"


class UpdateError(StoreError):
    """Flag mutation, expunge or append failed."""
    kind = "update"


class SendError(StoreError):
    kind = "send"


class UsageError(StoreError):
    """Bad input from a CLI or HTTP caller (invalid id, missing field)."""
    kind = "usage"


@dataclass(frozen=True)
class Result(Generic[T]):
    """Success-with-value or failure-with-error."""
    value: T | None = None
    error: StoreError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> str | None:
        return self.error.kind if self.error else None

    @property
    def message(self) -> str | None:
        return self.error.message if self.error else None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value

    def failure_dict(self) -> dict:
        return {"success": False, "error": self.message, "kind": self.kind}
