"""Kernel layer - scopes, handles and the computation protocol."""

from rivulet.kernel.computation import Computation, describe, invoke
from rivulet.kernel.config import ScopeConfig
from rivulet.kernel.deferred import Deferred, DeferredState, LazyDeferred
from rivulet.kernel.errors import CombinatorError, ScopeClosedError, SiblingCancelledError
from rivulet.kernel.scope import Scope, ScopeStatus
from rivulet.kernel.trace import Evidence, Trace

__all__ = [
    "Computation",
    "invoke",
    "describe",
    # Scope
    "Scope",
    "ScopeConfig",
    "ScopeStatus",
    # Handles
    "Deferred",
    "LazyDeferred",
    "DeferredState",
    # Errors
    "CombinatorError",
    "ScopeClosedError",
    "SiblingCancelledError",
    # Tracing
    "Trace",
    "Evidence",
]
