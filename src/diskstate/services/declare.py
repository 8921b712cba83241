"""Class declaration sugar over :class:`Persistent`.

``@persistent(...)`` binds a class to one Binding::

    @persistent(kind=BaseDir.CONFIG, project="MyProject", stem="state", format="json")
    class State(BaseModel):
        number: int = 0

    State(number=7).save()
    State.load()

The handle lives on the class as ``__persistent__``. Declaring a class
that already carries its own binding raises :class:`DeclarationError`;
subclasses may declare their own.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from diskstate.config.settings import DiskSettings
from diskstate.domain.binding import Binding, Metadata
from diskstate.domain.errors import DeclarationError
from diskstate.infrastructure.codecs import CodecRegistry
from diskstate.plugins.manager import PluginManager
from diskstate.services.persistent import Persistent

C = TypeVar("C", bound=type)

HANDLE_ATTR = "__persistent__"


def _save(self: Any) -> Metadata:
    return handle_of(type(self)).save(self)


def _load(cls: type) -> Any:
    return handle_of(cls).load()


def _exists(cls: type) -> bool:
    return handle_of(cls).exists()


def _rm(cls: type) -> Metadata:
    return handle_of(cls).rm()


def _absolute_path(cls: type) -> Path:
    return handle_of(cls).absolute_path()


_METHODS: dict[str, Any] = {
    "save": _save,
    "load": classmethod(_load),
    "exists": classmethod(_exists),
    "rm": classmethod(_rm),
    "absolute_path": classmethod(_absolute_path),
}


def handle_of(cls: type) -> Persistent[Any]:
    """Return the :class:`Persistent` handle bound to *cls* (or a base class).

    Raises:
        DeclarationError: If neither *cls* nor a base class was declared.
    """
    handle = getattr(cls, HANDLE_ATTR, None)
    if handle is None:
        msg = f"{cls.__name__} is not declared persistent"
        raise DeclarationError(msg)
    return handle


def persistent(
    binding: Binding | None = None,
    /,
    *,
    settings: DiskSettings | None = None,
    registry: CodecRegistry | None = None,
    plugins: PluginManager | None = None,
    **binding_fields: Any,
) -> Callable[[C], C]:
    """Class decorator binding the decorated type to one file.

    Pass a ready :class:`Binding` or its fields as keyword arguments.
    Adds ``save()`` to instances and ``load()``, ``exists()``, ``rm()``,
    ``absolute_path()`` to the class, unless the class defines them itself.

    Raises:
        TypeError: If both a Binding and binding fields are given.
        DeclarationError: If the class is already declared.
    """
    if binding is None:
        binding = Binding(**binding_fields)
    elif binding_fields:
        msg = "Pass either a Binding or binding fields, not both"
        raise TypeError(msg)

    def decorate(cls: C) -> C:
        if HANDLE_ATTR in cls.__dict__:
            msg = f"{cls.__name__} is already declared persistent"
            raise DeclarationError(msg)
        handle = Persistent(binding, cls, settings=settings, registry=registry, plugins=plugins)
        setattr(cls, HANDLE_ATTR, handle)
        for name, method in _METHODS.items():
            if name not in cls.__dict__:
                setattr(cls, name, method)
        return cls

    return decorate
