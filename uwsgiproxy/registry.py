"""
Explicit module registration for host proxies.

Nothing is registered when uwsgiproxy is imported. A host creates a
`Registry` at startup and registers the modules it wants to offer:

>>> registry = Registry()
>>> registry.register(Transport.module_info())
>>> transport = registry.load("http.reverse_proxy.transport.uwsgi", {"SCRIPT_NAME": "/app"})
"""

import re
from collections.abc import Callable
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

_id_re = re.compile(r"^[a-z0-9_]+(\.[a-z0-9_]+)*$")


@dataclass(frozen=True)
class ModuleInfo:
    id: str
    """A stable, dot-separated identifier, e.g. "http.reverse_proxy.transport.uwsgi"."""
    new: Callable[..., Any]
    """Creates a new module instance."""
    validate: Callable[[Any], None] | None = None
    """Checks a module instance after construction and raises if it is misconfigured."""

    def __post_init__(self):
        if not _id_re.match(self.id):
            raise ValueError(f"Invalid module id: {self.id!r}")

    @property
    def name(self) -> str:
        """The last label of the id, e.g. "uwsgi"."""
        return self.id.rpartition(".")[2]

    @property
    def namespace(self) -> str:
        """Everything but the last label, e.g. "http.reverse_proxy.transport"."""
        return self.id.rpartition(".")[0]


class Registry:
    def __init__(self) -> None:
        self._modules: dict[str, ModuleInfo] = {}

    def __contains__(self, module_id: str) -> bool:
        return module_id in self._modules

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._modules))

    def __len__(self) -> int:
        return len(self._modules)

    def register(self, info: ModuleInfo) -> None:
        """
        Register a module.

        *Raises:*
         - ValueError, if a module with the same id is already registered.
        """
        if info.id in self._modules:
            raise ValueError(f"Module already registered: {info.id}")
        self._modules[info.id] = info

    def get(self, module_id: str) -> ModuleInfo:
        try:
            return self._modules[module_id]
        except KeyError:
            raise KeyError(f"Unknown module: {module_id}") from None

    def namespace(self, namespace: str) -> list[ModuleInfo]:
        """
        All modules directly within the given namespace.
        """
        return [
            info
            for module_id, info in sorted(self._modules.items())
            if info.namespace == namespace
        ]

    def load(self, module_id: str, *args, **kwargs) -> Any:
        """
        Create and validate a new instance of the given module.
        """
        info = self.get(module_id)
        instance = info.new(*args, **kwargs)
        if info.validate is not None:
            info.validate(instance)
        return instance
