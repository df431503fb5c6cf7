"""Component registry for pluggable checks and probes.

Check factories register themselves under a *category* and a *name*, via
the ``@registry.register(...)`` decorator or ``register_instance(...)``.
The suite builder resolves the names selected on the command line or in a
configuration file through this registry, so an unknown name surfaces as
a lookup error before any sampling starts.

A module-level ``registry`` is provided for the built-in checks.  Tests
and embedding applications can create their own ``ComponentRegistry``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ComponentRegistry:
    """Service locator keyed by ``(category, name)`` pairs.

    Names are unique within a category and keep registration order,
    which is also the default execution order of registered checks.

    Usage::

        @registry.register("check", "FileOpenDelay")
        def file_open_delay(config):
            ...

        registry.register_instance("check", "Custom", build_custom)
    """

    def __init__(self) -> None:
        self._components: dict[str, dict[str, Any]] = {}

    # -- registration -------------------------------------------------------

    def register(
        self,
        category: str,
        name: str,
        *,
        overwrite: bool = False,
    ) -> Callable[[T], T]:
        """Decorator registering the decorated object under ``(category, name)``."""

        def decorator(component: T) -> T:
            self._set(category, name, component, overwrite=overwrite)
            return component

        return decorator

    def register_instance(
        self,
        category: str,
        name: str,
        instance: Any,
        *,
        overwrite: bool = False,
    ) -> None:
        """Imperatively register *instance* under ``(category, name)``."""
        self._set(category, name, instance, overwrite=overwrite)

    # -- lookup -------------------------------------------------------------

    def get(self, category: str, name: str) -> Any:
        """Return the component for ``(category, name)``.

        Raises ``KeyError`` listing the available names when missing.
        """
        try:
            return self._components[category][name]
        except KeyError:
            available = self.list_category(category)
            raise KeyError(
                f"Component '{category}/{name}' not registered. "
                f"Available in '{category}': {available}"
            ) from None

    def get_or_none(self, category: str, name: str) -> Any | None:
        return self._components.get(category, {}).get(name)

    def has(self, category: str, name: str) -> bool:
        return name in self._components.get(category, {})

    def list_category(self, category: str) -> list[str]:
        """Names registered under *category*, in registration order."""
        return list(self._components.get(category, {}).keys())

    def list_categories(self) -> list[str]:
        return list(self._components.keys())

    # -- removal ------------------------------------------------------------

    def unregister(self, category: str, name: str) -> Any:
        """Remove and return a component.  Raises ``KeyError`` if missing."""
        try:
            return self._components[category].pop(name)
        except KeyError:
            raise KeyError(
                f"Cannot unregister '{category}/{name}': not found."
            ) from None

    def clear(self, category: str | None = None) -> None:
        """Clear one category, or everything when *category* is ``None``."""
        if category is not None:
            self._components.pop(category, None)
        else:
            self._components.clear()

    # -- internal -----------------------------------------------------------

    def _set(
        self,
        category: str,
        name: str,
        component: Any,
        *,
        overwrite: bool = False,
    ) -> None:
        bucket = self._components.setdefault(category, {})
        if not overwrite and name in bucket:
            raise ValueError(
                f"Component '{category}/{name}' is already registered. "
                f"Pass overwrite=True to replace."
            )
        bucket[name] = component
        logger.debug("Registered %s/%s: %r", category, name, component)

    def __repr__(self) -> str:
        parts = [f"{cat}({len(ns)})" for cat, ns in self._components.items()]
        return f"<ComponentRegistry [{', '.join(parts)}]>"

    def __contains__(self, key: object) -> bool:
        """Support ``("check", "FileOpenDelay") in registry``."""
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        category, name = key
        return self.has(category, name)


registry = ComponentRegistry()
"""Module-level registry holding the built-in check factories."""
