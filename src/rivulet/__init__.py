from .combinators import (
    Lazy,
    LazyDeferredProperty,
    eager_start,
    lazy_deferred,
    lazy_start,
    memoized_lazy_start,
    suspend_zip,
)
from .kernel import (
    CombinatorError,
    Computation,
    Deferred,
    DeferredState,
    Evidence,
    LazyDeferred,
    Scope,
    ScopeClosedError,
    ScopeConfig,
    SiblingCancelledError,
    Trace,
)

__all__ = [
    # Scope
    "Scope",
    "ScopeConfig",
    "Computation",
    # Handles
    "Deferred",
    "LazyDeferred",
    "DeferredState",
    # Combinators
    "eager_start",
    "lazy_start",
    "memoized_lazy_start",
    "suspend_zip",
    "Lazy",
    "LazyDeferredProperty",
    "lazy_deferred",
    # Errors
    "CombinatorError",
    "ScopeClosedError",
    "SiblingCancelledError",
    # Tracing
    "Trace",
    "Evidence",
]
