"""
tacflow.ctrlflow_graph
======================

Statement-level control-flow graph container.

Each node is one :class:`~tacflow.ir.Stmt` of a method body, plus two
synthetic :class:`~tacflow.ir.Nop` nodes: the *entry* (index ``-1``) and the
*exit* (index ``len(stmts)``).  Edges are labelled with an :class:`EdgeKind`;
switch-case edges additionally carry the case value they are taken for.

This module does not derive edges from the IR.  A front end (or a test)
adds them with :meth:`CFG.add_edge`::

    ir = IR(None, [p], [s0, s1, s2])
    cfg = CFG(ir)
    cfg.add_edge(cfg.get_entry(), s0, EdgeKind.ENTRY)
    cfg.add_edge(s0, s1, EdgeKind.IF_TRUE)
    cfg.add_edge(s0, s2, EdgeKind.IF_FALSE)
    ...

Public API
----------
    EdgeKind    - kind of a CFG edge
    CFGEdge     - a labelled edge
    CFG         - the graph
    cfg_summary - human-readable dump
"""

from __future__ import annotations

import enum
from collections import OrderedDict, deque
from typing import Dict, Iterator, List, Optional, Set, Tuple

from tacflow.errors import MalformedCFGError
from tacflow.ir import IR, Nop, Stmt, Var


# ---------------------------------------------------------------------------
# Edge kinds
# ---------------------------------------------------------------------------

class EdgeKind(enum.Enum):
    """Classification of a CFG edge."""

    ENTRY = "entry"                    # synthetic entry -> first stmt
    FALL_THROUGH = "fall-through"
    GOTO = "goto"
    IF_TRUE = "if-true"
    IF_FALSE = "if-false"
    SWITCH_CASE = "switch-case"
    SWITCH_DEFAULT = "switch-default"
    RETURN = "return"                  # return -> synthetic exit


# ---------------------------------------------------------------------------
# CFGEdge
# ---------------------------------------------------------------------------

class CFGEdge:
    """A directed, labelled control-flow edge.

    Attributes
    ----------
    kind : EdgeKind
    source : Stmt
    target : Stmt
    case_value : int or None
        Only for ``SWITCH_CASE`` edges.
    """

    __slots__ = ("kind", "source", "target", "case_value")

    def __init__(
        self,
        kind: EdgeKind,
        source: Stmt,
        target: Stmt,
        case_value: Optional[int] = None,
    ) -> None:
        if kind is EdgeKind.SWITCH_CASE and case_value is None:
            raise MalformedCFGError(
                f"switch-case edge {source.index} -> {target.index} "
                f"has no case value"
            )
        if kind is not EdgeKind.SWITCH_CASE and case_value is not None:
            raise MalformedCFGError(
                f"{kind.value} edge {source.index} -> {target.index} "
                f"cannot carry a case value"
            )
        self.kind = kind
        self.source = source
        self.target = target
        self.case_value = case_value

    def is_switch_case(self) -> bool:
        return self.kind is EdgeKind.SWITCH_CASE

    def get_case_value(self) -> int:
        if self.case_value is None:
            raise MalformedCFGError(f"{self!r} is not a switch-case edge")
        return self.case_value

    def _key(self) -> Tuple[int, int, EdgeKind, Optional[int]]:
        return (id(self.source), id(self.target), self.kind, self.case_value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CFGEdge):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        label = self.kind.value
        if self.case_value is not None:
            label += f"({self.case_value})"
        return f"CFGEdge({self.source.index} -[{label}]-> {self.target.index})"


# ---------------------------------------------------------------------------
# CFG
# ---------------------------------------------------------------------------

class CFG:
    """Control-flow graph of one method body.

    Parameters
    ----------
    ir : IR
        The method body.  All of its statements become nodes.
    """

    def __init__(self, ir: IR) -> None:
        self.ir = ir
        stmts = ir.get_stmts()
        self._entry = Nop()
        self._entry.index = -1
        self._exit = Nop()
        self._exit.index = len(stmts)
        self._nodes: List[Stmt] = [self._entry] + stmts + [self._exit]
        self._node_ids: Set[int] = {id(n) for n in self._nodes}
        self._out_edges: Dict[int, "OrderedDict[CFGEdge, None]"] = {
            id(n): OrderedDict() for n in self._nodes
        }
        self._in_edges: Dict[int, "OrderedDict[CFGEdge, None]"] = {
            id(n): OrderedDict() for n in self._nodes
        }

    # ----- construction ----------------------------------------------------

    def add_edge(
        self,
        source: Stmt,
        target: Stmt,
        kind: EdgeKind = EdgeKind.FALL_THROUGH,
        case_value: Optional[int] = None,
    ) -> CFGEdge:
        """Add an edge; adding an identical edge twice is a no-op."""
        for end in (source, target):
            if id(end) not in self._node_ids:
                raise MalformedCFGError(f"{end!r} is not a node of {self!r}")
        if source is self._exit:
            raise MalformedCFGError("the exit node cannot have successors")
        if target is self._entry:
            raise MalformedCFGError("the entry node cannot have predecessors")
        edge = CFGEdge(kind, source, target, case_value)
        self._out_edges[id(source)][edge] = None
        self._in_edges[id(target)][edge] = None
        return edge

    # ----- queries ---------------------------------------------------------

    def get_ir(self) -> IR:
        return self.ir

    def get_params(self) -> Tuple[Var, ...]:
        return self.ir.get_params()

    def get_entry(self) -> Stmt:
        return self._entry

    def get_exit(self) -> Stmt:
        return self._exit

    def is_entry(self, node: Stmt) -> bool:
        return node is self._entry

    def is_exit(self, node: Stmt) -> bool:
        return node is self._exit

    def get_nodes(self) -> List[Stmt]:
        return list(self._nodes)

    def get_out_edges_of(self, node: Stmt) -> List[CFGEdge]:
        return list(self._edges(self._out_edges, node))

    def get_in_edges_of(self, node: Stmt) -> List[CFGEdge]:
        return list(self._edges(self._in_edges, node))

    def get_succs_of(self, node: Stmt) -> List[Stmt]:
        return _unique(e.target for e in self._edges(self._out_edges, node))

    def get_preds_of(self, node: Stmt) -> List[Stmt]:
        return _unique(e.source for e in self._edges(self._in_edges, node))

    def get_edges(self) -> List[CFGEdge]:
        edges: List[CFGEdge] = []
        for node in self._nodes:
            edges.extend(self._out_edges[id(node)])
        return edges

    def reachable_from(self, start: Optional[Stmt] = None) -> List[Stmt]:
        """Nodes reachable from *start* (default: entry), in BFS order."""
        start = self._entry if start is None else start
        seen = {id(start)}
        order = [start]
        queue = deque([start])
        while queue:
            node = queue.popleft()
            for succ in self.get_succs_of(node):
                if id(succ) not in seen:
                    seen.add(id(succ))
                    order.append(succ)
                    queue.append(succ)
        return order

    def _edges(self, table, node: Stmt):
        try:
            return table[id(node)]
        except KeyError:
            raise MalformedCFGError(f"{node!r} is not a node of {self!r}") from None

    # ----- output ----------------------------------------------------------

    def to_dot(self, title: Optional[str] = None) -> str:
        """Return a Graphviz DOT representation of this CFG."""
        lines = ["digraph CFG {"]
        if title:
            lines.append(f'  label="{title}";')
        lines.append("  node [shape=box, fontname=monospace, fontsize=10];")
        for n in self._nodes:
            if n is self._entry:
                lines.append(f'  S{_dot_id(n)} [label="entry", style=filled, fillcolor="#ccffcc"];')
                continue
            if n is self._exit:
                lines.append(f'  S{_dot_id(n)} [label="exit", style=filled, fillcolor="#ffcccc"];')
                continue
            lbl = str(n).replace('"', '\\"')
            lines.append(f'  S{_dot_id(n)} [label="{lbl}"];')
        for e in self.get_edges():
            elabel = e.kind.value
            if e.case_value is not None:
                elabel += f": {e.case_value}"
            style = ""
            if e.kind is EdgeKind.IF_TRUE:
                style = ", color=green, fontcolor=green"
            elif e.kind is EdgeKind.IF_FALSE:
                style = ", color=red, fontcolor=red"
            elif e.kind is EdgeKind.SWITCH_DEFAULT:
                style = ", style=dashed"
            lines.append(
                f'  S{_dot_id(e.source)} -> S{_dot_id(e.target)} '
                f'[label="{elabel}"{style}];'
            )
        lines.append("}")
        return "\n".join(lines)

    # ----- dunder ----------------------------------------------------------

    def __contains__(self, node: object) -> bool:
        return id(node) in self._node_ids

    def __iter__(self) -> Iterator[Stmt]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return (
            f"CFG(method={self.ir!r}, nodes={len(self._nodes)}, "
            f"edges={len(self.get_edges())})"
        )


def _unique(nodes) -> List[Stmt]:
    seen: Set[int] = set()
    out: List[Stmt] = []
    for n in nodes:
        if id(n) not in seen:
            seen.add(id(n))
            out.append(n)
    return out


def _dot_id(node: Stmt) -> str:
    return "entry" if node.index < 0 else str(node.index)


def cfg_summary(cfg: CFG) -> str:
    """Return a multi-line human-readable summary of *cfg*."""
    lines = [repr(cfg)]
    for node in cfg:
        succs = ", ".join(
            f"{e.target.index}({e.kind.value})" for e in cfg.get_out_edges_of(node))
        preds = ", ".join(str(p.index) for p in cfg.get_preds_of(node))
        if cfg.is_entry(node):
            text = "entry"
        elif cfg.is_exit(node):
            text = "exit"
        else:
            text = str(node)
        lines.append(f"  {text:<32} succ=[{succs}]  pred=[{preds}]")
    return "\n".join(lines)
