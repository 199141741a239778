"""Transaction boundary contract the services are written against."""

from __future__ import annotations

from abc import ABC, abstractmethod


class UnitOfWork(ABC):
    """
    One use case, one transaction.

    Implementations expose ``users`` and ``refresh_tokens`` repositories bound
    to the same session, and decide on ``__exit__`` whether the work is kept.
    """

    @abstractmethod
    def __enter__(self) -> UnitOfWork: ...

    @abstractmethod
    def __exit__(self, exc_type, exc, tb) -> None: ...

    @abstractmethod
    def commit(self) -> None: ...

    @abstractmethod
    def rollback(self) -> None: ...
