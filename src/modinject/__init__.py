"""Minimal module-based dependency injection.

Bindings are declared once, inside a module declaration, and resolved later by
type (plus an optional qualifier), supplying construction parameters when the
producer needs them.

Exports:
- `module`: Build a `Module` from parent modules and a declaration.
- `Module`: Finished, immutable registry exposing `instance` and `provider`.
- `ModuleBuilder`: Declaration context with `factory`, `singleton`, `instance`
  and `provider`.
- `Provider`: Deferred resolution handle with a single `get()`.
- `Qualifier`: String discriminator for several bindings of one type.
- `Params`: Construction parameters handed to producers.
"""

from ._errors import BindingNotFoundError, ParameterError, ResolutionError
from ._factories import Factory, FactoryBinding, Params, SingletonBinding
from ._keys import BindingKey, Qualifier, type_identity
from ._module import Declaration, Module, ModuleBuilder, Provider, module


__all__ = [
    "BindingKey",
    "BindingNotFoundError",
    "Declaration",
    "Factory",
    "FactoryBinding",
    "Module",
    "ModuleBuilder",
    "Params",
    "ParameterError",
    "Provider",
    "Qualifier",
    "ResolutionError",
    "SingletonBinding",
    "module",
    "type_identity",
]
