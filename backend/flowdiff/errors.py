"""Exceptions raised inside the diff engine.

The engine converts these into ``DiffError`` entries; callers of
``WorkflowDiffEngine.apply_diff`` only ever see an ``ApplyResult``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flowdiff.models.result import StructuralReport


class DiffEngineError(Exception):
    """Base exception for diff engine errors."""

    pass


class OperationValidationError(DiffEngineError):
    """A single operation's precondition failed against the current graph."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class StructuralValidationError(DiffEngineError):
    """The whole-graph invariant check failed."""

    def __init__(self, report: StructuralReport):
        super().__init__(f"Workflow structure is invalid: {report.summary()}")
        self.report = report


class InternalFault(DiffEngineError):
    """Unexpected failure unrelated to the validity of the input."""

    pass
