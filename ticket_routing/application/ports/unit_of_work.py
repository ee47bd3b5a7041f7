"""Port interface for nested units of work inside the caller's transaction."""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager


class UnitOfWork(ABC):
    @abstractmethod
    def savepoint(self) -> AbstractAsyncContextManager[object]:
        """Open a nested transaction that rolls back on its own if the block raises."""
        ...
