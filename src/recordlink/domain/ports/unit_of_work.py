"""Unit-of-work abstraction around an entity store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from recordlink.domain.ports.store import EntityStore


@runtime_checkable
class UnitOfWork(Protocol):
    """Transactional boundary around one :class:`EntityStore`."""

    @property
    def store(self) -> EntityStore: ...

    def __enter__(self) -> UnitOfWork: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
