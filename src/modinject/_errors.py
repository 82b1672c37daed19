from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from ._keys import BindingKey


class ResolutionError(RuntimeError):
    pass


class BindingNotFoundError(ResolutionError):
    """No usable binding exists for the requested type and qualifier.

    Also raised when a binding produces a value that is not an instance of the
    requested type; callers see both cases the same way.
    """

    def __init__(self, key: BindingKey, detail: str | None = None) -> None:
        self.key = key
        msg = f"No binding found for {key.describe()}"
        if detail:
            msg = f"{msg} ({detail})"
        super().__init__(msg)


class ParameterError(ValueError):
    """A producer asked for a construction parameter that was not supplied."""
