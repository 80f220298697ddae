from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class TablebatchError(Exception):
    pass


class ValidationError(TablebatchError):
    pass


class ConfigurationError(TablebatchError):
    pass


class TransportError(TablebatchError):
    pass


class AwsError(TransportError):
    def __init__(self, *, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message


class ThrottledError(AwsError):
    pass


class RequestRejectedError(AwsError):
    pass


class NotFoundError(TransportError):
    pass


class UnprocessedItemsError(TransportError):
    def __init__(self, *, target: str, requests: Sequence[Any] = ()) -> None:
        super().__init__(f"{target}: store left {len(requests)} write request(s) unprocessed")
        self.target = target
        self.requests = tuple(requests)

    @property
    def unprocessed_count(self) -> int:
        return len(self.requests)


class GraphQLError(TransportError):
    def __init__(self, message: str, *, errors: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.errors = errors


class LoopExceededError(TablebatchError):
    def __init__(self, *, operation: str, limit: int, pending: int | None = None) -> None:
        detail = f"{operation}: iteration limit {limit} exceeded"
        if pending is not None:
            detail += f" (pending={pending})"
        super().__init__(detail)
        self.operation = operation
        self.limit = limit
        self.pending = pending
