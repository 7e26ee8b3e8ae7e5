"""Once-initialised cells and per-instance lazy handles."""

from __future__ import annotations

import functools
import threading
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

from rivulet.kernel import LazyDeferred

T = TypeVar("T")

_UNSET: Any = object()


class Lazy(Generic[T]):
    """Value created by ``factory`` on first access and cached afterwards.

    Thread-safe via double-checked locking: racing first accesses still call
    the factory once and all receive the same value.
    """

    def __init__(self, factory: Callable[[], T]) -> None:
        self._factory = factory
        self._lock = threading.Lock()
        self._value: T = _UNSET

    @property
    def value(self) -> T:
        value = self._value
        if value is not _UNSET:
            return value
        with self._lock:
            if self._value is _UNSET:
                self._value = self._factory()
            return self._value

    def is_initialized(self) -> bool:
        return self._value is not _UNSET

    def __call__(self) -> T:
        return self.value

    def __repr__(self) -> str:
        if self.is_initialized():
            return f"Lazy({self._value!r})"
        return "Lazy(<not initialized>)"


class LazyDeferredProperty(Generic[T]):
    """Descriptor turning a method into a per-instance LazyDeferred.

    The handle is built on first attribute access, using the scope stored on
    the instance under ``scope_attr``, and cached on the instance. The method
    runs only when the handle is first observed.

    Usage:
        class Dashboard:
            def __init__(self, scope: Scope) -> None:
                self.scope = scope

            @lazy_deferred
            async def orders(self) -> list[Order]:
                return await fetch_orders()

        board.orders          # same LazyDeferred on every access
        await board.orders    # runs fetch_orders() once
    """

    def __init__(self, method: Callable[[Any], Awaitable[T] | T], scope_attr: str = "scope") -> None:
        self._method = method
        self._scope_attr = scope_attr
        self._attr_name = f"_lazy_{method.__name__}"
        self._lock = threading.Lock()
        self.__doc__ = method.__doc__

    def __set_name__(self, owner: type, name: str) -> None:
        self._attr_name = f"_lazy_{name}"

    def __get__(self, obj: Any, objtype: type | None = None) -> Any:
        if obj is None:
            return self
        cached = obj.__dict__.get(self._attr_name)
        if cached is not None:
            return cached
        with self._lock:
            cached = obj.__dict__.get(self._attr_name)
            if cached is None:
                scope = getattr(obj, self._scope_attr)
                cached = LazyDeferred(scope, functools.partial(self._method, obj))
                obj.__dict__[self._attr_name] = cached
            return cached


def lazy_deferred(
    method: Callable[[Any], Awaitable[T] | T] | None = None,
    *,
    scope_attr: str = "scope",
) -> Any:
    """Decorator form of LazyDeferredProperty.

    Usable bare (``@lazy_deferred``) or with a custom scope attribute
    (``@lazy_deferred(scope_attr="tasks")``).
    """
    if method is None:
        return lambda fn: LazyDeferredProperty(fn, scope_attr)
    return LazyDeferredProperty(method, scope_attr)
