"""
tacflow.callgraph
=================

Whole-program call graph construction by class hierarchy analysis (CHA).

The call graph is a directed graph where:

- **Nodes** are reachable :class:`~tacflow.class_hierarchy.JMethod` objects.
- **Edges** connect a call site (an :class:`~tacflow.ir.Invoke` statement
  inside the caller) to one callee, labelled with the call site's
  :class:`CallKind`.

Resolution
----------
``STATIC`` / ``SPECIAL``
    Exactly one candidate: the method found by :meth:`CHABuilder.dispatch`
    from the declaring class of the method reference.  No candidate, no
    edge.
``VIRTUAL`` / ``INTERFACE``
    Every class and interface reachable from the declaring class through
    direct-subclass, direct-subinterface and direct-implementor relations is
    visited once; each non-None dispatch result is a callee.

Public API
----------
    CallKind            - dispatch kind of a call site
    call_kind_of        - kind of an Invoke
    CallGraphEdge       - a labelled edge
    CallGraph           - the call graph
    CHABuilder          - CHA construction from an explicit Program
    build_callgraph     - convenience wrapper
    callgraph_summary   - human-readable summary
    unreachable_methods - declared methods CHA never reached

Typical usage::

    from tacflow.callgraph import build_callgraph

    cg = build_callgraph(program)
    for method in cg.reachable_methods():
        for site in cg.call_sites_in(method):
            print(site, "->", cg.callees_of(site))
    print(cg.to_dot())
"""

from __future__ import annotations

import logging
from collections import OrderedDict, deque
from typing import Any, Deque, Dict, Iterator, List, Optional, Set

from tacflow.class_hierarchy import ClassHierarchy, JClass, JMethod, Subsignature
from tacflow.config import AnalysisConfig
from tacflow.errors import HierarchyError
from tacflow.ir import CallKind, Invoke
from tacflow.program import Program

logger = logging.getLogger(__name__)


def call_kind_of(call_site: Invoke) -> CallKind:
    """Return the dispatch kind of *call_site*."""
    return call_site.call_kind


# ---------------------------------------------------------------------------
# CallGraphEdge
# ---------------------------------------------------------------------------

class CallGraphEdge:
    """A call edge from a call site to one of its callees.

    Attributes
    ----------
    kind : CallKind
    call_site : Invoke
    callee : JMethod
    """

    __slots__ = ("kind", "call_site", "callee")

    def __init__(self, kind: CallKind, call_site: Invoke, callee: JMethod) -> None:
        self.kind = kind
        self.call_site = call_site
        self.callee = callee

    @property
    def caller(self) -> Optional[JMethod]:
        return self.call_site.container

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CallGraphEdge):
            return NotImplemented
        return (self.kind is other.kind
                and self.call_site is other.call_site
                and self.callee is other.callee)

    def __hash__(self) -> int:
        return hash((self.kind, id(self.call_site), id(self.callee)))

    def __repr__(self) -> str:
        caller = self.caller.signature if self.caller is not None else "?"
        return (
            f"CallGraphEdge({caller}[{self.call_site.index}] -> "
            f"{self.callee.signature}, {self.kind.value})"
        )


# ---------------------------------------------------------------------------
# CallGraph
# ---------------------------------------------------------------------------

class CallGraph:
    """Call graph over reachable methods.

    Every callee of an edge is a reachable method, and every entry method is
    reachable.  Method and edge collections preserve insertion order.
    """

    def __init__(self) -> None:
        self._entry_methods: "OrderedDict[JMethod, None]" = OrderedDict()
        self._reachable: "OrderedDict[JMethod, None]" = OrderedDict()
        self._edges: "OrderedDict[CallGraphEdge, None]" = OrderedDict()
        self._out_edges: Dict[Invoke, List[CallGraphEdge]] = {}
        self._in_edges: Dict[JMethod, List[CallGraphEdge]] = {}

    # ----- construction ----------------------------------------------------

    def add_entry_method(self, method: JMethod) -> None:
        self._entry_methods[method] = None
        self.add_reachable_method(method)

    def add_reachable_method(self, method: JMethod) -> bool:
        """Add *method*; return True if it was not reachable before."""
        if method in self._reachable:
            return False
        self._reachable[method] = None
        return True

    def add_edge(self, edge: CallGraphEdge) -> bool:
        """Add *edge* (and its callee); return True if the edge is new."""
        if edge in self._edges:
            return False
        self._edges[edge] = None
        self._out_edges.setdefault(edge.call_site, []).append(edge)
        self._in_edges.setdefault(edge.callee, []).append(edge)
        self.add_reachable_method(edge.callee)
        return True

    # ----- queries ---------------------------------------------------------

    def contains(self, method: JMethod) -> bool:
        return method in self._reachable

    def entry_methods(self) -> List[JMethod]:
        return list(self._entry_methods)

    def reachable_methods(self) -> List[JMethod]:
        return list(self._reachable)

    def edges(self) -> List[CallGraphEdge]:
        return list(self._edges)

    def call_sites_in(self, method: JMethod) -> Iterator[Invoke]:
        if not method.has_ir():
            return iter(())
        return method.get_ir().invokes()

    def edges_out_of(self, call_site: Invoke) -> List[CallGraphEdge]:
        return list(self._out_edges.get(call_site, ()))

    def edges_into(self, method: JMethod) -> List[CallGraphEdge]:
        return list(self._in_edges.get(method, ()))

    def callees_of(self, call_site: Invoke) -> List[JMethod]:
        return [e.callee for e in self._out_edges.get(call_site, ())]

    def callees_of_method(self, method: JMethod) -> List[JMethod]:
        seen: "OrderedDict[JMethod, None]" = OrderedDict()
        for site in self.call_sites_in(method):
            for callee in self.callees_of(site):
                seen[callee] = None
        return list(seen)

    def callers_of(self, method: JMethod) -> List[Invoke]:
        """Call sites that may invoke *method*."""
        seen: "OrderedDict[Invoke, None]" = OrderedDict()
        for edge in self._in_edges.get(method, ()):
            seen[edge.call_site] = None
        return list(seen)

    def statistics(self) -> Dict[str, Any]:
        """Return a dict with summary statistics."""
        by_kind = {kind: 0 for kind in CallKind}
        for edge in self._edges:
            by_kind[edge.kind] += 1
        polymorphic = sum(1 for edges in self._out_edges.values() if len(edges) > 1)
        return {
            "entry_methods": len(self._entry_methods),
            "reachable_methods": len(self._reachable),
            "total_edges": len(self._edges),
            "resolved_call_sites": len(self._out_edges),
            "polymorphic_call_sites": polymorphic,
            "static_edges": by_kind[CallKind.STATIC],
            "special_edges": by_kind[CallKind.SPECIAL],
            "virtual_edges": by_kind[CallKind.VIRTUAL],
            "interface_edges": by_kind[CallKind.INTERFACE],
        }

    # ----- serialisation ---------------------------------------------------

    def to_dot(self, title: Optional[str] = None) -> str:
        """Return a Graphviz DOT representation."""
        lines = ["digraph CallGraph {"]
        lines.append("  rankdir=TB;")
        if title:
            lines.append(f'  label="{title}";')
        lines.append('  node [shape=box, fontname="Helvetica", fontsize=10];')
        for method in self._reachable:
            attrs = ""
            if method in self._entry_methods:
                attrs = ', style=filled, fillcolor="#ccffcc", shape=invhouse'
            lines.append(f'  "{_dot_escape(method.signature)}" '
                         f'[label="{_dot_escape(method.signature)}"{attrs}];')
        kind_attrs = {
            CallKind.STATIC: "",
            CallKind.SPECIAL: ", color=gray40",
            CallKind.VIRTUAL: ", style=dashed, color=blue",
            CallKind.INTERFACE: ", style=dotted, color=purple",
        }
        for edge in self._edges:
            caller = edge.caller.signature if edge.caller is not None else "?"
            lines.append(
                f'  "{_dot_escape(caller)}" -> "{_dot_escape(edge.callee.signature)}" '
                f'[label="{edge.kind.value}:{edge.call_site.index}"{kind_attrs[edge.kind]}];'
            )
        lines.append("}")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self._reachable)

    def __contains__(self, method: object) -> bool:
        return method in self._reachable

    def __repr__(self) -> str:
        return f"CallGraph(methods={len(self._reachable)}, edges={len(self._edges)})"


def _dot_escape(text: str) -> str:
    return text.replace('"', '\\"')


# ---------------------------------------------------------------------------
# CHA builder
# ---------------------------------------------------------------------------

class CHABuilder:
    """Builds a :class:`CallGraph` by class hierarchy analysis.

    Parameters
    ----------
    program : Program
        Supplies the class hierarchy and the entry method.
    config : AnalysisConfig, optional
        Defaults to ``AnalysisConfig("cha")``.
    """

    ID = "cha"

    def __init__(self, program: Program, config: Optional[AnalysisConfig] = None) -> None:
        self.program = program
        self.hierarchy: ClassHierarchy = program.get_class_hierarchy()
        self.config = AnalysisConfig.of(self.ID, config)

    def build(self) -> CallGraph:
        return self.build_call_graph(self.program.get_main_method())

    def build_call_graph(self, entry: JMethod) -> CallGraph:
        call_graph = CallGraph()
        call_graph.add_entry_method(entry)
        worklist: Deque[JMethod] = deque([entry])
        processed: Set[JMethod] = set()
        while worklist:
            method = worklist.popleft()
            if method in processed:
                continue
            processed.add(method)
            call_graph.add_reachable_method(method)
            for call_site in self.program.call_sites_in(method):
                kind = call_kind_of(call_site)
                for callee in self.resolve(call_site):
                    if not call_graph.contains(callee):
                        worklist.append(callee)
                    call_graph.add_edge(CallGraphEdge(kind, call_site, callee))
        logger.info(
            "%s: %d reachable methods, %d call edges from %s",
            self.config.id, len(call_graph), len(call_graph.edges()),
            entry.signature,
        )
        return call_graph

    def resolve(self, call_site: Invoke) -> List[JMethod]:
        """Possible callees of *call_site*, without duplicates, in discovery order."""
        method_ref = call_site.method_ref
        subsig = method_ref.subsignature
        result: "OrderedDict[JMethod, None]" = OrderedDict()
        kind = call_kind_of(call_site)
        if call_site.is_static() or call_site.is_special():
            target = self.dispatch(method_ref.declaring_class, subsig)
            if target is not None:
                result[target] = None
        else:
            visited: Set[str] = set()
            pending: Deque[JClass] = deque([method_ref.declaring_class])
            while pending:
                jclass = pending.popleft()
                if jclass.name in visited:
                    continue
                visited.add(jclass.name)
                target = self.dispatch(jclass, subsig)
                if target is not None:
                    result[target] = None
                pending.extend(self.hierarchy.get_direct_subclasses_of(jclass))
                pending.extend(self.hierarchy.get_direct_subinterfaces_of(jclass))
                pending.extend(self.hierarchy.get_direct_implementors_of(jclass))
        if not result:
            logger.warning("unresolved %s call site %s", kind.value, call_site)
        else:
            logger.debug("%s -> %s", call_site, [m.signature for m in result])
        return list(result)

    def dispatch(self, jclass: JClass, subsignature: Subsignature) -> Optional[JMethod]:
        """Find the concrete method *jclass* uses for *subsignature*.

        Walks the superclass chain from *jclass*, skipping classes that do
        not declare the method or declare it abstract.  Returns None if no
        concrete declaration exists up to the root.  Ancestors need not be
        registered in the hierarchy; only a class met twice on the chain
        raises :class:`~tacflow.errors.HierarchyError`.
        """
        current: Optional[JClass] = jclass
        seen: Set[int] = set()
        while current is not None:
            if id(current) in seen:
                raise HierarchyError(f"cyclic superclass chain above {jclass.name}")
            seen.add(id(current))
            method = current.get_declared_method(subsignature)
            if method is not None and not method.is_abstract:
                return method
            current = current.get_super_class()
        return None


def build_callgraph(program: Program, config: Optional[AnalysisConfig] = None) -> CallGraph:
    """Build the CHA call graph of *program* from its main method."""
    return CHABuilder(program, config).build()


def callgraph_summary(cg: CallGraph) -> str:
    """Return a human-readable multi-line summary."""
    stats = cg.statistics()
    lines = [
        "Call Graph Summary",
        f"  Entry methods:        {stats['entry_methods']}",
        f"  Reachable methods:    {stats['reachable_methods']}",
        f"  Total edges:          {stats['total_edges']}",
        f"  Resolved call sites:  {stats['resolved_call_sites']}",
        f"  Polymorphic sites:    {stats['polymorphic_call_sites']}",
        f"  Static/special edges: {stats['static_edges'] + stats['special_edges']}",
        f"  Virtual edges:        {stats['virtual_edges']}",
        f"  Interface edges:      {stats['interface_edges']}",
        "",
        "Methods:",
    ]
    for method in cg.reachable_methods():
        callees = [m.signature for m in cg.callees_of_method(method)]
        lines.append(f"  {method.signature}: calls [{', '.join(callees)}]")
    return "\n".join(lines)


def unreachable_methods(program: Program, cg: CallGraph) -> List[JMethod]:
    """Concrete methods of *program* that *cg* never reaches."""
    return [
        m for m in program.all_methods()
        if not m.is_abstract and not cg.contains(m)
    ]
