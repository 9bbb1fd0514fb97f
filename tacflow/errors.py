"""
tacflow.errors
==============

Exception types raised by tacflow.

Only *misuse* of the library raises.  Analysis outcomes never do: a division
by a constant zero evaluates to UNDEF, a call site with no target simply has
no call edge, and an expression the constant folder does not model evaluates
to NAC.  Callers therefore only need to guard against the errors below when
they hand the library inconsistent input.

Hierarchy::

    TacflowError
    ├── AnalysisError        - bad arguments to an analysis or lattice API
    │   ├── MalformedCFGError
    │   └── ConvergenceError
    └── HierarchyError       - inconsistent class hierarchy
"""

from __future__ import annotations


class TacflowError(Exception):
    """Base class of every exception raised by tacflow."""
    pass


class AnalysisError(TacflowError):
    """An analysis or lattice operation was used incorrectly."""
    pass


class MalformedCFGError(AnalysisError):
    """An edge refers to a node outside the graph, or carries bad labels."""
    pass


class ConvergenceError(AnalysisError):
    """The worklist solver exceeded its iteration bound.

    Monotone analyses over finite-height lattices always converge, so this
    indicates a non-monotone transfer function.
    """

    def __init__(self, analysis_id: str, iterations: int) -> None:
        self.analysis_id = analysis_id
        self.iterations = iterations
        super().__init__(
            f"analysis '{analysis_id}' did not reach a fixpoint "
            f"after {iterations} iterations"
        )


class HierarchyError(TacflowError):
    """The class hierarchy was populated inconsistently."""
    pass
