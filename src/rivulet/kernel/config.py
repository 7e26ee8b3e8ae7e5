"""Scope configuration."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ScopeConfig(BaseModel):
    """Settings for a Scope.

    Attributes:
        name: Scope name used in errors, logs and trace events.
        trace: Create a Trace for the scope when none is passed explicitly.
        annotate_suppressed: Add a note to the surfaced failure listing the
            sibling failures that were not re-raised.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="scope", min_length=1)
    trace: bool = False
    annotate_suppressed: bool = True

    def nested(self, child: str) -> ScopeConfig:
        """Config for a child scope, named ``<parent>.<child>``."""
        return self.model_copy(update={"name": f"{self.name}.{child}"})
