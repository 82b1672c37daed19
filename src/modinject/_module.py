from __future__ import annotations

import inspect
import logging
import threading
import typing
from collections.abc import Callable, Iterable, Mapping
from enum import Enum
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    Any,
    Generic,
    Protocol,
    TypeVar,
    cast,
    overload,
)

from ._errors import BindingNotFoundError, ResolutionError
from ._factories import Factory, FactoryBinding, Params, SingletonBinding
from ._keys import BindingKey, Qualifier


if TYPE_CHECKING:
    from ._keys import Token


logger = logging.getLogger(__name__)

T = TypeVar("T")
C = TypeVar("C", bound=Callable[..., Any])

Declaration = Callable[["ModuleBuilder"], None]
Producer = Callable[[Params], T]


class Provider(Generic[T]):
    """Deferred resolution handle.

    Nothing is constructed until `get` is called; each call resolves again,
    so factory bindings yield a fresh value and singletons the cached one.
    """

    __slots__ = ("_params", "_qualifier", "_resolver", "_token")

    def __init__(
        self,
        resolver: _Resolver,
        token: Token[T],
        params: tuple[Any, ...],
        qualifier: Qualifier | None,
    ) -> None:
        self._resolver = resolver
        self._token = token
        self._params = params
        self._qualifier = qualifier

    def get(self) -> T:
        return cast("T", self._resolver.instance(self._token, *self._params, qualifier=self._qualifier))

    def __repr__(self) -> str:
        return f"Provider({BindingKey.of(self._token, self._qualifier)})"


class _Resolver:
    """Lookup shared by `ModuleBuilder` (during declaration) and `Module` (after)."""

    def _registry(self) -> Mapping[BindingKey, Factory[Any]]:
        raise NotImplementedError

    @overload
    def instance(self, token: type[T], *params: Any, qualifier: Qualifier | None = ...) -> T: ...

    @overload
    def instance(self, token: str, *params: Any, qualifier: Qualifier | None = ...) -> object: ...

    def instance(self, token: Token[T], *params: Any, qualifier: Qualifier | None = None) -> object:
        """Resolve `token` (optionally qualified), passing `params` to its producer."""
        key = BindingKey.of(token, qualifier)
        factory = self._lookup(key)
        produced = factory.create(Params(params) if params else Params())
        _check_produced(token, key, produced)
        return produced

    @overload
    def provider(self, token: type[T], *params: Any, qualifier: Qualifier | None = ...) -> Provider[T]: ...

    @overload
    def provider(self, token: str, *params: Any, qualifier: Qualifier | None = ...) -> Provider[object]: ...

    def provider(self, token: Token[T], *params: Any, qualifier: Qualifier | None = None) -> Provider[Any]:
        """Return a `Provider` for `token`.

        The binding must already exist; construction waits until `Provider.get`.
        """
        self._lookup(BindingKey.of(token, qualifier))
        return Provider(self, token, params, qualifier)

    def _lookup(self, key: BindingKey) -> Factory[Any]:
        factory = self._registry().get(key)
        if factory is None:
            raise BindingNotFoundError(key)
        return factory


class ModuleBuilder(_Resolver):
    """Mutable registry used while one declaration is evaluated.

    `instance` and `provider` see parent bindings plus whatever this block has
    declared so far.
    """

    def __init__(self, bindings: Mapping[BindingKey, Factory[Any]] | None = None) -> None:
        self._bindings: dict[BindingKey, Factory[Any]] = dict(bindings or {})

    @property
    def bindings(self) -> Mapping[BindingKey, Factory[Any]]:
        return MappingProxyType(self._bindings)

    def _registry(self) -> Mapping[BindingKey, Factory[Any]]:
        return self._bindings

    @overload
    def factory(self, token: Token[T], producer: Producer[T], *, qualifier: Qualifier | None = ...) -> None: ...

    @overload
    def factory(
        self, token: Token[T], producer: None = ..., *, qualifier: Qualifier | None = ...
    ) -> Callable[[Producer[T]], Producer[T]]: ...

    def factory(
        self,
        token: Token[T],
        producer: Producer[T] | None = None,
        *,
        qualifier: Qualifier | None = None,
    ) -> Callable[[Producer[T]], Producer[T]] | None:
        """Bind `token` to a producer that runs on every resolution.

        Example:
          b.factory(Repository, lambda params: Repository())

          @b.factory(UseCase, qualifier=Qualifier("main"))
          def make_use_case(params: Params) -> UseCase:
              return UseCase(b.instance(Repository), params.get(str))

        """
        key = BindingKey.of(token, qualifier)
        if producer is None:
            return self._decorator(key, FactoryBinding)
        self._put(key, FactoryBinding(_require_callable(producer)))
        return None

    @overload
    def singleton(self, token: Token[T], producer: Producer[T], *, qualifier: Qualifier | None = ...) -> None: ...

    @overload
    def singleton(
        self, token: Token[T], producer: None = ..., *, qualifier: Qualifier | None = ...
    ) -> Callable[[Producer[T]], Producer[T]]: ...

    def singleton(
        self,
        token: Token[T],
        producer: Producer[T] | None = None,
        *,
        qualifier: Qualifier | None = None,
    ) -> Callable[[Producer[T]], Producer[T]] | None:
        """Bind `token` to a producer that runs once; its result is shared."""
        key = BindingKey.of(token, qualifier)

        def make(fn: Producer[Any]) -> SingletonBinding[Any]:
            return SingletonBinding(fn, key)

        if producer is None:
            return self._decorator(key, make)
        self._put(key, make(_require_callable(producer)))
        return None

    def _decorator(
        self, key: BindingKey, make: Callable[[Producer[Any]], Factory[Any]]
    ) -> Callable[[Producer[T]], Producer[T]]:
        def register(fn: Producer[T]) -> Producer[T]:
            self._put(key, make(_require_callable(fn)))
            return fn

        return register

    def _put(self, key: BindingKey, factory: Factory[Any]) -> None:
        if key in self._bindings:
            logger.debug("Replacing binding %s", key)
        else:
            logger.debug("Registering binding %s", key)
        self._bindings[key] = factory


class _BuildState(Enum):
    UNBUILT = "unbuilt"
    BUILDING = "building"
    BUILT = "built"


class Module(_Resolver):
    """Immutable registry built by replaying declarations in order.

    The registry is built on first access, exactly once even when several
    threads get there together. Use `module()` to create one.
    """

    def __init__(self, declarations: Iterable[Declaration] = ()) -> None:
        self._declarations = tuple(declarations)
        self._bindings: Mapping[BindingKey, Factory[Any]] | None = None
        self._state = _BuildState.UNBUILT
        self._lock = threading.RLock()

    @property
    def declarations(self) -> tuple[Declaration, ...]:
        return self._declarations

    @property
    def bindings(self) -> Mapping[BindingKey, Factory[Any]]:
        return self._registry()

    @property
    def is_built(self) -> bool:
        return self._state is _BuildState.BUILT

    def _registry(self) -> Mapping[BindingKey, Factory[Any]]:
        bindings = self._bindings
        if bindings is not None:
            return bindings

        with self._lock:
            if self._bindings is not None:
                return self._bindings

            if self._state is _BuildState.BUILDING:
                msg = "Module registry was accessed from one of its own declarations while being built"
                raise ResolutionError(msg)

            self._state = _BuildState.BUILDING
            try:
                built = self._build()
            except BaseException:
                self._state = _BuildState.UNBUILT
                raise

            self._state = _BuildState.BUILT
            self._bindings = MappingProxyType(built)
            return self._bindings

    def _build(self) -> dict[BindingKey, Factory[Any]]:
        merged: dict[BindingKey, Factory[Any]] = {}
        for declaration in self._declarations:
            builder = ModuleBuilder(merged)
            try:
                declaration(builder)
            except Exception:
                logger.warning("Declaration %s failed while building module", _describe(declaration))
                raise
            merged.update(builder.bindings)

        logger.debug("Built module registry: %d binding(s) from %d declaration(s)", len(merged), len(self._declarations))
        return merged

    def __repr__(self) -> str:
        return f"<Module declarations={len(self._declarations)} state={self._state.value}>"


@overload
def module(declaration: Declaration, dependencies: Iterable[Module] = ...) -> Module: ...


@overload
def module(declaration: None = ..., dependencies: Iterable[Module] = ...) -> Callable[[Declaration], Module]: ...


def module(
    declaration: Declaration | None = None,
    dependencies: Iterable[Module] = (),
) -> Module | Callable[[Declaration], Module]:
    """Create a `Module` from parent modules and a declaration.

    Parent declarations are replayed first, in the order given, then
    `declaration`; a later binding for the same key wins. Each module gets its
    own bindings, so modules only see each other's bindings through
    `dependencies`.

    Example:
      core = module(lambda b: b.singleton(Counter, lambda _: Counter()))

      @module(dependencies=[core])
      def app(b: ModuleBuilder) -> None:
          b.factory(ViewModel, lambda _: ViewModel(counter=b.instance(Counter)))

      app.instance(ViewModel)

    """
    parents: list[Module] = []
    for dependency in dependencies:
        if not isinstance(dependency, Module):
            msg = f"Dependencies must be Module instances, got {type(dependency).__name__}"
            raise TypeError(msg)
        if not any(dependency is parent for parent in parents):
            parents.append(dependency)

    def build(decl: Declaration) -> Module:
        declarations: list[Declaration] = []
        for parent in parents:
            declarations.extend(parent.declarations)
        declarations.append(_require_callable(decl))
        return Module(declarations)

    if declaration is None:
        return build
    return build(declaration)


def _check_produced(token: Token[Any], key: BindingKey, produced: object) -> None:
    if produced is None:
        raise BindingNotFoundError(key, "producer returned None")

    # String tokens and static-only protocols cannot be checked at runtime.
    if not inspect.isclass(token) or not _is_runtime_checkable(token):
        return

    if not isinstance(produced, token):
        detail = f"resolved {type(produced).__name__} is not an instance of {token.__name__}"
        raise BindingNotFoundError(key, detail)


def _is_runtime_checkable(tp: type) -> bool:
    if not _is_protocol(tp):
        return True

    try:
        isinstance(None, tp)
    except TypeError:
        return False
    else:
        return True


if hasattr(typing, "is_protocol"):
    # https://docs.python.org/3/library/typing.html#typing.is_protocol
    def _is_protocol(tp: type) -> bool:
        return typing.is_protocol(tp)

else:

    def _is_protocol(tp: type) -> bool:
        return issubclass(tp, cast("type", Protocol)) and bool(getattr(tp, "_is_protocol", False))


def _require_callable(fn: C) -> C:
    if not callable(fn):
        msg = f"Expected a callable, got {type(fn).__name__}"
        raise TypeError(msg)
    return fn


def _describe(fn: object) -> str:
    return getattr(fn, "__qualname__", repr(fn))
