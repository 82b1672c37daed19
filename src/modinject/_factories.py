from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator, Sequence
from typing import TYPE_CHECKING, Any, Generic, Protocol, TypeVar

from ._errors import ParameterError, ResolutionError


if TYPE_CHECKING:
    from ._keys import BindingKey


logger = logging.getLogger(__name__)

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)

# Marks an empty singleton cache slot; None is a storable value.
_UNSET: Any = object()


class Params:
    """Positional construction parameters handed to a producer.

    `supplied` is False when the caller passed no parameters at all, in which
    case every accessor fails.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Sequence[object] | None = None) -> None:
        self._values = tuple(values) if values is not None else None

    @property
    def supplied(self) -> bool:
        return self._values is not None

    def get(self, tp: type[T], index: int = 0) -> T:
        """Return the parameter at `index`, which must be an instance of `tp`."""
        values = self._require()
        if index < 0 or index >= len(values):
            msg = f"Index {index} is out of bounds for {len(values)} parameter(s)"
            raise ParameterError(msg)

        value = values[index]
        if not isinstance(value, tp):
            msg = f"Parameter at index {index} is of type {type(value).__name__}, expected {_type_name(tp)}"
            raise ParameterError(msg)
        return value

    def first(self, tp: type[T]) -> T:
        """Return the first parameter that is an instance of `tp`."""
        values = self._require()
        for value in values:
            if isinstance(value, tp):
                return value

        msg = f"No parameter of type {_type_name(tp)} found among {len(values)} parameter(s)"
        raise ParameterError(msg)

    def _require(self) -> tuple[object, ...]:
        if self._values is None:
            msg = "No parameters were supplied"
            raise ParameterError(msg)
        return self._values

    def __len__(self) -> int:
        return len(self._values or ())

    def __iter__(self) -> Iterator[object]:
        return iter(self._values or ())

    def __repr__(self) -> str:
        return f"Params({self._values!r})"


class Factory(Protocol[T_co]):
    def create(self, params: Params) -> T_co: ...


class FactoryBinding(Generic[T]):
    """Calls its producer on every `create`; keeps no state."""

    __slots__ = ("_producer",)

    def __init__(self, producer: Callable[[Params], T]) -> None:
        self._producer = producer

    def create(self, params: Params) -> T:
        return self._producer(params)


class SingletonBinding(Generic[T]):
    """Runs its producer at most once and returns the cached result afterwards.

    The cache slot is filled under a lock with double-checked locking, so
    concurrent first calls still construct exactly one instance. A producer
    that raises leaves the slot empty; the next call tries again. Parameters
    are only seen by the call that constructs the instance.
    """

    def __init__(self, producer: Callable[[Params], T], key: BindingKey) -> None:
        self._producer = producer
        self._key = key
        self._instance: T = _UNSET
        self._creating = False
        self._lock = threading.RLock()

    @property
    def created(self) -> bool:
        return self._instance is not _UNSET

    def create(self, params: Params) -> T:
        instance = self._instance
        if instance is not _UNSET:
            return instance

        with self._lock:
            if self._instance is not _UNSET:
                return self._instance

            # RLock lets the owning thread back in; catch the cycle here.
            if self._creating:
                msg = f"Circular construction of singleton for {self._key.describe()}"
                raise ResolutionError(msg)

            self._creating = True
            try:
                instance = self._producer(params)
            finally:
                self._creating = False

            self._instance = instance
            logger.debug("Constructed singleton %s", self._key)
            return instance


def _type_name(tp: object) -> str:
    if isinstance(tp, tuple):
        return " | ".join(_type_name(t) for t in tp)
    return getattr(tp, "__name__", repr(tp))
