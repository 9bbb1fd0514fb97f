"""
tacflow.ctrlflow_analyses
=========================

Control-flow analyses that combine CFG structure with dataflow results.

DeadCodeDetection
    Reports, for one method, the statements that are

    * **unreachable** once branch conditions and switch selectors that
      constant propagation resolves to a constant are taken into account,
      and
    * **dead assignments**: ``x = e`` where ``x`` is not live afterwards
      and evaluating ``e`` cannot have a side effect.

The traversal walks the CFG forward from the entry.  Every reached statement
is expanded exactly once; dead assignments are not *kept* but their
successors are still explored, so a loop consisting only of dead
assignments terminates like any other.

Usage example
-------------
::

    from tacflow.ctrlflow_analyses import detect_dead_code

    for stmt in detect_dead_code(cfg):
        print(f"line {stmt.line}: dead code: {stmt}")
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Iterator, List, Optional, Sequence, Set, Tuple

from tacflow.abstract_domains import CPFact, SetFact
from tacflow.config import AnalysisConfig
from tacflow.ctrlflow_graph import CFG, EdgeKind
from tacflow.dataflow_analyses import ConstantPropagation, LiveVariableAnalysis, evaluate
from tacflow.dataflow_engine import DataflowResult
from tacflow.ir import (
    ArithmeticExp,
    ArithmeticOp,
    ArrayAccess,
    AssignStmt,
    CastExp,
    Exp,
    FieldAccess,
    If,
    NewExp,
    Stmt,
    SwitchStmt,
    Var,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Side-effect classification
# ---------------------------------------------------------------------------

def has_no_side_effect(rvalue: Exp) -> bool:
    """True if evaluating *rvalue* can neither change state nor trap."""
    # new: heap allocation and class initialisation
    # cast: ClassCastException
    # field access: class initialisation (static) or NPE (instance)
    # array access: NPE or index out of bounds
    if isinstance(rvalue, (NewExp, CastExp, FieldAccess, ArrayAccess)):
        return False
    if isinstance(rvalue, ArithmeticExp):
        return rvalue.op not in (ArithmeticOp.DIV, ArithmeticOp.REM)
    return True


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

class DeadCodeResult(Sequence[Stmt]):
    """Dead statements of one method, ordered by statement index.

    Attributes
    ----------
    unreachable : tuple of Stmt
        Statements never reached under the resolved branch conditions.
    dead_assignments : tuple of Stmt
        Reached assignments whose value is never used.
    """

    def __init__(self, unreachable: Sequence[Stmt],
                 dead_assignments: Sequence[Stmt]) -> None:
        self.unreachable: Tuple[Stmt, ...] = _by_index(unreachable)
        self.dead_assignments: Tuple[Stmt, ...] = _by_index(dead_assignments)
        self._stmts = _by_index(list(unreachable) + list(dead_assignments))

    def __getitem__(self, i):
        return self._stmts[i]

    def __len__(self) -> int:
        return len(self._stmts)

    def __iter__(self) -> Iterator[Stmt]:
        return iter(self._stmts)

    def __contains__(self, stmt: object) -> bool:
        return any(s is stmt for s in self._stmts)

    def indexes(self) -> List[int]:
        return [s.index for s in self._stmts]

    def __repr__(self) -> str:
        return (
            f"DeadCodeResult(unreachable={[s.index for s in self.unreachable]}, "
            f"dead_assignments={[s.index for s in self.dead_assignments]})"
        )


def _by_index(stmts: Sequence[Stmt]) -> Tuple[Stmt, ...]:
    return tuple(sorted(stmts, key=lambda s: s.index))


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------

class DeadCodeDetection:
    """Dead-code detector for one method.

    Parameters
    ----------
    config : AnalysisConfig, optional
        Defaults to ``AnalysisConfig("deadcode")``.
    """

    ID = "deadcode"

    def __init__(self, config: Optional[AnalysisConfig] = None) -> None:
        self.config = AnalysisConfig.of(self.ID, config)

    def analyze(
        self,
        cfg: CFG,
        constants: DataflowResult[CPFact],
        live_vars: DataflowResult[SetFact],
    ) -> DeadCodeResult:
        """Compute the dead statements of *cfg*.

        Parameters
        ----------
        cfg : CFG
        constants : DataflowResult[CPFact]
            Constant propagation result; IN facts are consulted.
        live_vars : DataflowResult[SetFact]
            Live-variable result; OUT facts (live after) are consulted.
        """
        reached: Set[int] = set()
        live: Set[int] = set()
        worklist: Deque[Stmt] = deque([cfg.get_entry()])
        while worklist:
            stmt = worklist.popleft()
            if id(stmt) in reached:
                continue
            reached.add(id(stmt))
            if not self._is_dead_assignment(stmt, live_vars):
                live.add(id(stmt))
            worklist.extend(self._successors(cfg, stmt, constants))

        unreachable: List[Stmt] = []
        dead_assignments: List[Stmt] = []
        for node in cfg:
            if cfg.is_exit(node) or id(node) in live:
                continue
            if id(node) in reached:
                dead_assignments.append(node)
            else:
                unreachable.append(node)
        result = DeadCodeResult(unreachable, dead_assignments)
        logger.debug(
            "%s: %d unreachable, %d dead assignments in %r",
            self.config.id, len(result.unreachable),
            len(result.dead_assignments), cfg,
        )
        return result

    @staticmethod
    def _is_dead_assignment(stmt: Stmt, live_vars: DataflowResult[SetFact]) -> bool:
        if not isinstance(stmt, AssignStmt):
            return False
        lhs = stmt.get_lvalue()
        if not isinstance(lhs, Var):
            return False
        return (not live_vars.get_result(stmt).contains(lhs)
                and has_no_side_effect(stmt.get_rvalue()))

    @staticmethod
    def _successors(cfg: CFG, stmt: Stmt,
                    constants: DataflowResult[CPFact]) -> List[Stmt]:
        if isinstance(stmt, If):
            cond = evaluate(stmt.condition, constants.get_in_fact(stmt))
            if cond.is_constant():
                value = cond.get_constant()
                return [e.target for e in cfg.get_out_edges_of(stmt)
                        if (e.kind is EdgeKind.IF_TRUE and value == 1)
                        or (e.kind is EdgeKind.IF_FALSE and value == 0)]
        elif isinstance(stmt, SwitchStmt):
            selector = evaluate(stmt.var, constants.get_in_fact(stmt))
            if selector.is_constant():
                value = selector.get_constant()
                if value in stmt.case_values:
                    return [e.target for e in cfg.get_out_edges_of(stmt)
                            if e.is_switch_case() and e.case_value == value]
                return [e.target for e in cfg.get_out_edges_of(stmt)
                        if e.kind is EdgeKind.SWITCH_DEFAULT]
        return cfg.get_succs_of(stmt)


def detect_dead_code(cfg: CFG, config: Optional[AnalysisConfig] = None) -> DeadCodeResult:
    """Run constant propagation, live variables and dead-code detection.

    The options of *config* (``strategy``, ``max_iterations``, ...) are
    passed on to both dataflow analyses under their own ids.
    """
    options = config.options if config is not None else {}
    constants = ConstantPropagation(
        AnalysisConfig.of(ConstantPropagation.ID, **options)).analyze(cfg)
    live_vars = LiveVariableAnalysis(
        AnalysisConfig.of(LiveVariableAnalysis.ID, **options)).analyze(cfg)
    return DeadCodeDetection(config).analyze(cfg, constants, live_vars)
