from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar


if TYPE_CHECKING:
    T = TypeVar("T")

    Token = type[T] | str


@dataclass(frozen=True)
class Qualifier:
    """Named discriminator between several bindings of the same type."""

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            msg = f"Qualifier value must be a string, got {type(self.value).__name__}"
            raise TypeError(msg)
        if not self.value:
            msg = "Qualifier value must not be empty"
            raise ValueError(msg)

    def __str__(self) -> str:
        return self.value


def type_identity(token: Token[Any]) -> str:
    """Return the canonical, value-comparable name of a token.

    Classes map to ``"<module>.<qualname>"``, string tokens are used verbatim.
    """
    if isinstance(token, str):
        if not token:
            msg = "String tokens must not be empty"
            raise ValueError(msg)
        return token

    if inspect.isclass(token):
        return f"{token.__module__}.{token.__qualname__}"

    msg = f"Token must be a class or a string, got {token!r}"
    raise TypeError(msg)


@dataclass(frozen=True)
class BindingKey:
    """Registry key: type identity plus qualifier ("" is the default bucket)."""

    type_identity: str
    qualifier: str = ""

    @classmethod
    def of(cls, token: Token[Any], qualifier: Qualifier | None = None) -> BindingKey:
        if qualifier is not None and not isinstance(qualifier, Qualifier):
            msg = f"qualifier must be a Qualifier or None, got {type(qualifier).__name__}"
            raise TypeError(msg)
        return cls(type_identity(token), qualifier.value if qualifier is not None else "")

    def describe(self) -> str:
        return f"type {self.type_identity}, qualifier {self.qualifier or 'default'}"

    def __str__(self) -> str:
        return f"{self.type_identity}:{self.qualifier}"
