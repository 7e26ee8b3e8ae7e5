"""Combinators - starting, deferring and zipping scoped computations."""

from .lazy import Lazy, LazyDeferredProperty, lazy_deferred
from .ops import (
    MAX_ARITY,
    MIN_ARITY,
    eager_start,
    lazy_start,
    memoized_lazy_start,
    suspend_zip,
)

__all__ = [
    "eager_start",
    "lazy_start",
    "memoized_lazy_start",
    "suspend_zip",
    "MIN_ARITY",
    "MAX_ARITY",
    # Lazy cells
    "Lazy",
    "LazyDeferredProperty",
    "lazy_deferred",
]
