"""Error types for scopes and deferred handles.

A failure raised by a computation is never wrapped: the handle stores the
exception object and re-raises that same object to every awaiter.
"""

from __future__ import annotations


class CombinatorError(Exception):
    """Base class for errors raised by rivulet itself."""


class ScopeClosedError(CombinatorError):
    """Work was submitted to a scope that is not accepting children.

    Raised when the scope was never entered, has finished teardown, or is
    shutting down after a child failure.
    """

    def __init__(self, scope_name: str, reason: str = "scope is closed") -> None:
        self.scope_name = scope_name
        self.reason = reason
        super().__init__(f"Scope '{scope_name}': {reason}")

    def __repr__(self) -> str:
        return f"ScopeClosedError(scope_name={self.scope_name!r}, reason={self.reason!r})"


class SiblingCancelledError(CombinatorError):
    """The observed computation was cancelled by its scope's teardown.

    This happens when a sibling in the same scope failed while the
    computation was still running. The computation itself saw
    ``asyncio.CancelledError``; this error is what its observers get.
    """

    def __init__(self, computation_name: str) -> None:
        self.computation_name = computation_name
        super().__init__(f"Computation '{computation_name}' was cancelled by its scope")

    def __repr__(self) -> str:
        return f"SiblingCancelledError(computation_name={self.computation_name!r})"
