"""
Callable Registry: maps stable keys to schema/configure/initializer functions

Module definitions refer to functions by namespaced key rather than by
import path. The registry is populated at process startup and looked up
by key during a build.

Usage:
    registry = CallableRegistry()

    @registry.register("acme.web/schema")
    def web_schema():
        return {"server/port": {"type": "int"}}

    registry.register("acme.web/configure", configure_web)

    fn = registry.resolve("acme.web/schema")
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from .definition import is_namespaced


logger = logging.getLogger(__name__)


class UnknownReference(KeyError):
    """Raised when a key has no registered callable."""

    def __init__(self, key: Any, known: List[str]):
        self.key = key
        self.known = known
        super().__init__(key)

    def __str__(self) -> str:
        return f"No callable registered under {self.key!r} ({len(self.known)} keys registered)"


class CallableRegistry:
    """
    Registry of named callables.

    Registering the same function twice under one key is a no-op;
    registering a different function under a taken key is an error.
    """

    def __init__(self):
        """Initialize empty registry."""
        self._callables: Dict[str, Callable[..., Any]] = {}

    def register(self, key: str, fn: Optional[Callable[..., Any]] = None):
        """
        Register a callable under a namespaced key.

        Can be called directly or used as a decorator when `fn` is omitted.

        Args:
            key: Namespaced key (e.g., "acme.web/schema")
            fn: Callable to register

        Raises:
            ValueError: If key is malformed or already bound to another callable
        """
        if fn is None:
            def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
                self.register(key, func)
                return func
            return decorator

        if not is_namespaced(key):
            raise ValueError(f"Registry key {key!r} must be a namespaced name like `acme/fn`")
        if not callable(fn):
            raise ValueError(f"Cannot register non-callable {fn!r} under {key}")

        existing = self._callables.get(key)
        if existing is not None and existing is not fn:
            raise ValueError(f"Key {key} already registered to {existing!r}, cannot register {fn!r}")

        self._callables[key] = fn
        logger.debug("Registered %s", key)
        return fn

    def unregister(self, key: str) -> bool:
        """
        Unregister a callable by key.

        Returns:
            True if unregistered, False if not found
        """
        if key not in self._callables:
            return False
        del self._callables[key]
        return True

    def resolve(self, ref: Any) -> Callable[..., Any]:
        """
        Turn a reference into a callable.

        Callables pass through unchanged; strings are looked up by key.

        Raises:
            UnknownReference: If the key is not registered
        """
        if callable(ref):
            return ref
        try:
            return self._callables[ref]
        except (KeyError, TypeError):
            raise UnknownReference(ref, self.keys()) from None

    def keys(self) -> List[str]:
        """Registered keys, sorted."""
        return sorted(self._callables)

    def __len__(self) -> int:
        return len(self._callables)

    def __contains__(self, key: str) -> bool:
        return key in self._callables


# Process-wide default registry
_registry: Optional[CallableRegistry] = None


def get_registry() -> CallableRegistry:
    """Get (or lazily create) the default registry."""
    global _registry
    if _registry is None:
        _registry = CallableRegistry()
    return _registry


def reset_registry() -> None:
    """Drop the default registry (used by tests)."""
    global _registry
    _registry = None
