"""
tacflow.dataflow_engine
=======================

A generic worklist solver for intraprocedural dataflow analyses over a
statement-level :class:`~tacflow.ctrlflow_graph.CFG`.

Theory
------
An analysis supplies:

1.  a **direction** - forward (facts flow along edges) or backward,
2.  a **boundary fact** for the entry (forward) or exit (backward) node,
3.  an **initial fact** for every other node,
4.  a **meet** that folds a neighbour's fact *into* a node's fact in place,
5.  a **transfer function** that recomputes a node's output fact from its
    input fact and reports whether the output changed.

The solver keeps two facts per node.  A node is re-queued only when a
transfer reports a change, so every fact is mutated by exactly one loop and
no fact object is shared between nodes.

Worklist strategies
-------------------
``FIFO``
    Breadth-first.
``LIFO``
    Depth-first.
``RPO``
    Reverse post-order of the graph walked in the analysis direction (the
    reversed CFG for backward analyses); the default, and usually the
    fastest to converge.

Public API
----------
    Direction           - forward / backward
    WorklistStrategy    - iteration order
    DataflowAnalysis    - base class of analyses
    DataflowResult      - per-node IN/OUT facts
    WorklistSolver      - the fixpoint engine
    solve               - convenience wrapper
"""

from __future__ import annotations

import abc
import enum
import heapq
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar

from tacflow.config import AnalysisConfig
from tacflow.ctrlflow_graph import CFG
from tacflow.errors import AnalysisError, ConvergenceError
from tacflow.ir import Stmt

logger = logging.getLogger(__name__)

Fact = TypeVar("Fact")


# ===========================================================================
# DIRECTION / STRATEGY
# ===========================================================================

class Direction(enum.Enum):
    """Direction of dataflow propagation."""
    FORWARD = "forward"
    BACKWARD = "backward"


class WorklistStrategy(enum.Enum):
    """Order in which pending nodes are processed."""
    FIFO = "fifo"
    LIFO = "lifo"
    RPO = "rpo"

    @classmethod
    def parse(cls, value: Any) -> "WorklistStrategy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise AnalysisError(
                f"unknown worklist strategy {value!r}; "
                f"expected one of {[s.value for s in cls]}"
            ) from None


# ===========================================================================
# ANALYSIS CONTRACT
# ===========================================================================

class DataflowAnalysis(abc.ABC, Generic[Fact]):
    """Base class of dataflow analyses run by :class:`WorklistSolver`.

    Subclasses define ``ID`` and implement the abstract methods.  The
    ``config`` given at construction is available as ``self.config``.
    """

    ID: str = "dataflow"

    def __init__(self, config: Optional[AnalysisConfig] = None) -> None:
        self.config = AnalysisConfig.of(self.ID, config)

    @abc.abstractmethod
    def is_forward(self) -> bool:
        ...

    @abc.abstractmethod
    def new_boundary_fact(self, cfg: CFG) -> Fact:
        """Fact at the entry (forward) or exit (backward) node."""

    @abc.abstractmethod
    def new_initial_fact(self) -> Fact:
        """Fact every other node starts from."""

    @abc.abstractmethod
    def meet_into(self, fact: Fact, target: Fact) -> None:
        """Meet *fact* into *target* in place."""

    @abc.abstractmethod
    def transfer_node(self, node: Stmt, in_fact: Fact, out_fact: Fact) -> bool:
        """Apply the transfer function; return True if the output changed.

        Forward analyses compute *out_fact* from *in_fact*; backward ones
        compute *in_fact* from *out_fact*.
        """

    @property
    def direction(self) -> Direction:
        return Direction.FORWARD if self.is_forward() else Direction.BACKWARD

    def analyze(self, cfg: CFG) -> "DataflowResult[Fact]":
        """Run this analysis to fixpoint on *cfg*."""
        return WorklistSolver.from_config(self).solve(cfg)


# ===========================================================================
# RESULT
# ===========================================================================

@dataclass
class DataflowResult(Generic[Fact]):
    """Per-node facts computed by the solver.

    Attributes
    ----------
    facts_in : dict
        ``id(node)`` -> fact before the node.
    facts_out : dict
        ``id(node)`` -> fact after the node.
    iterations : int
        Number of transfer-function applications.
    converged : bool
    elapsed_seconds : float
    direction : Direction
    """
    facts_in: Dict[int, Fact] = field(default_factory=dict)
    facts_out: Dict[int, Fact] = field(default_factory=dict)
    iterations: int = 0
    converged: bool = False
    elapsed_seconds: float = 0.0
    direction: Direction = Direction.FORWARD

    def get_in_fact(self, node: Stmt) -> Fact:
        return self._lookup(self.facts_in, node)

    def get_out_fact(self, node: Stmt) -> Fact:
        return self._lookup(self.facts_out, node)

    def get_result(self, node: Stmt) -> Fact:
        """OUT fact of *node*: after it (forward) or live after it (backward)."""
        return self._lookup(self.facts_out, node)

    def set_in_fact(self, node: Stmt, fact: Fact) -> None:
        self.facts_in[id(node)] = fact

    def set_out_fact(self, node: Stmt, fact: Fact) -> None:
        self.facts_out[id(node)] = fact

    @staticmethod
    def _lookup(table: Dict[int, Fact], node: Stmt) -> Fact:
        try:
            return table[id(node)]
        except KeyError:
            raise AnalysisError(f"no dataflow fact for {node!r}") from None


# ===========================================================================
# SOLVER
# ===========================================================================

class _Worklist:
    """Duplicate-free worklist honouring a :class:`WorklistStrategy`."""

    def __init__(self, strategy: WorklistStrategy, priority: Dict[int, int]) -> None:
        self.strategy = strategy
        self.priority = priority
        self._deque: deque = deque()
        self._heap: List = []
        self._pending: set = set()

    def push(self, node: Stmt) -> None:
        nid = id(node)
        if nid in self._pending:
            return
        self._pending.add(nid)
        if self.strategy is WorklistStrategy.RPO:
            heapq.heappush(self._heap, (self.priority.get(nid, 0), node.index, nid, node))
        else:
            self._deque.append(node)

    def pop(self) -> Stmt:
        if self.strategy is WorklistStrategy.RPO:
            node = heapq.heappop(self._heap)[3]
        elif self.strategy is WorklistStrategy.LIFO:
            node = self._deque.pop()
        else:
            node = self._deque.popleft()
        self._pending.discard(id(node))
        return node

    def __bool__(self) -> bool:
        return bool(self._pending)


class WorklistSolver(Generic[Fact]):
    """Fixpoint engine for one :class:`DataflowAnalysis`.

    Parameters
    ----------
    analysis : DataflowAnalysis
    strategy : WorklistStrategy
        Worklist iteration order.
    max_iterations : int
        Safety bound on transfer applications; exceeding it raises
        :class:`~tacflow.errors.ConvergenceError`.
    """

    def __init__(
        self,
        analysis: DataflowAnalysis[Fact],
        strategy: WorklistStrategy = WorklistStrategy.RPO,
        max_iterations: int = 100_000,
    ) -> None:
        self.analysis = analysis
        self.strategy = strategy
        self.max_iterations = max_iterations

    @classmethod
    def from_config(cls, analysis: DataflowAnalysis[Fact]) -> "WorklistSolver[Fact]":
        config = analysis.config
        return cls(
            analysis,
            strategy=WorklistStrategy.parse(config.get("strategy", "rpo")),
            max_iterations=config.max_iterations,
        )

    def solve(self, cfg: CFG) -> DataflowResult[Fact]:
        t0 = time.monotonic()
        result: DataflowResult[Fact] = DataflowResult(direction=self.analysis.direction)
        if self.analysis.is_forward():
            self._initialize_forward(cfg, result)
            iterations = self._solve_forward(cfg, result)
        else:
            self._initialize_backward(cfg, result)
            iterations = self._solve_backward(cfg, result)
        result.iterations = iterations
        result.converged = True
        result.elapsed_seconds = time.monotonic() - t0
        logger.debug(
            "%s: %d nodes, %d iterations, %.4fs",
            self.analysis.config.id, len(cfg), iterations, result.elapsed_seconds,
        )
        return result

    # ----- initialisation --------------------------------------------------

    def _initialize_forward(self, cfg: CFG, result: DataflowResult[Fact]) -> None:
        entry = cfg.get_entry()
        result.set_in_fact(entry, self.analysis.new_boundary_fact(cfg))
        result.set_out_fact(entry, self.analysis.new_boundary_fact(cfg))
        for node in cfg:
            if node is not entry:
                result.set_in_fact(node, self.analysis.new_initial_fact())
                result.set_out_fact(node, self.analysis.new_initial_fact())

    def _initialize_backward(self, cfg: CFG, result: DataflowResult[Fact]) -> None:
        exit_ = cfg.get_exit()
        result.set_in_fact(exit_, self.analysis.new_boundary_fact(cfg))
        result.set_out_fact(exit_, self.analysis.new_boundary_fact(cfg))
        for node in cfg:
            if node is not exit_:
                result.set_in_fact(node, self.analysis.new_initial_fact())
                result.set_out_fact(node, self.analysis.new_initial_fact())

    # ----- iteration -------------------------------------------------------

    def _solve_forward(self, cfg: CFG, result: DataflowResult[Fact]) -> int:
        entry = cfg.get_entry()
        worklist = _Worklist(self.strategy, self._priorities(cfg, forward=True))
        for node in cfg:
            if node is not entry:
                worklist.push(node)
        iterations = 0
        while worklist:
            node = worklist.pop()
            iterations = self._tick(iterations)
            in_fact = result.get_in_fact(node)
            for pred in cfg.get_preds_of(node):
                self.analysis.meet_into(result.get_out_fact(pred), in_fact)
            if self.analysis.transfer_node(node, in_fact, result.get_out_fact(node)):
                for succ in cfg.get_succs_of(node):
                    worklist.push(succ)
        return iterations

    def _solve_backward(self, cfg: CFG, result: DataflowResult[Fact]) -> int:
        exit_ = cfg.get_exit()
        worklist = _Worklist(self.strategy, self._priorities(cfg, forward=False))
        for node in cfg:
            if node is not exit_:
                worklist.push(node)
        iterations = 0
        while worklist:
            node = worklist.pop()
            iterations = self._tick(iterations)
            out_fact = result.get_out_fact(node)
            for succ in cfg.get_succs_of(node):
                self.analysis.meet_into(result.get_in_fact(succ), out_fact)
            if self.analysis.transfer_node(node, result.get_in_fact(node), out_fact):
                for pred in cfg.get_preds_of(node):
                    worklist.push(pred)
        return iterations

    def _tick(self, iterations: int) -> int:
        iterations += 1
        if iterations > self.max_iterations:
            raise ConvergenceError(self.analysis.config.id, self.max_iterations)
        return iterations

    # ----- ordering --------------------------------------------------------

    def _priorities(self, cfg: CFG, forward: bool) -> Dict[int, int]:
        """Map ``id(node)`` to its position in (reverse) post-order."""
        if self.strategy is not WorklistStrategy.RPO:
            return {}
        # Reverse post-order of the graph walked in the analysis direction.
        order = self._postorder(cfg, forward)
        order.reverse()
        return {id(n): i for i, n in enumerate(order)}

    @staticmethod
    def _postorder(cfg: CFG, forward: bool) -> List[Stmt]:
        """Iterative DFS post-order from the entry (or exit, backward)."""
        nexts = cfg.get_succs_of if forward else cfg.get_preds_of
        start = cfg.get_entry() if forward else cfg.get_exit()
        visited = set()
        order: List[Stmt] = []
        roots = [start] + [n for n in cfg if n is not start]
        for root in roots:
            if id(root) in visited:
                continue
            visited.add(id(root))
            stack = [(root, iter(nexts(root)))]
            while stack:
                node, children = stack[-1]
                for child in children:
                    if id(child) not in visited:
                        visited.add(id(child))
                        stack.append((child, iter(nexts(child))))
                        break
                else:
                    stack.pop()
                    order.append(node)
        return order


def solve(
    analysis: DataflowAnalysis[Fact],
    cfg: CFG,
    strategy: Optional[WorklistStrategy] = None,
) -> DataflowResult[Fact]:
    """Run *analysis* on *cfg*, overriding the configured strategy if given."""
    solver = WorklistSolver.from_config(analysis)
    if strategy is not None:
        solver.strategy = strategy
    return solver.solve(cfg)
