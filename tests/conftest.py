"""
Shared helpers for the tacflow test suite.

CFGs are wired by hand: ``make_cfg`` takes statements plus an edge list in
which statements are referred to by index and the synthetic nodes by the
strings ``"entry"`` and ``"exit"``.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence, Tuple

import pytest

from tacflow.class_hierarchy import ClassHierarchy, JClass, JMethod, MethodRef, Subsignature
from tacflow.ctrlflow_graph import CFG, EdgeKind
from tacflow.ir import (
    IR,
    CallKind,
    ClassType,
    Invoke,
    InvokeExp,
    PrimitiveType,
    Return,
    Stmt,
    Var,
)
from tacflow.program import Program


# ── Variables ────────────────────────────────────────────────────

def int_var(name: str) -> Var:
    return Var(name, PrimitiveType.INT)


def ref_var(name: str, class_name: str = "java.lang.Object") -> Var:
    return Var(name, ClassType(class_name))


# ── CFG wiring ───────────────────────────────────────────────────

EdgeTuple = Tuple  # (src, dst) | (src, dst, kind) | (src, dst, kind, case)


def make_cfg(
    stmts: Sequence[Stmt],
    edges: Iterable[EdgeTuple],
    params: Sequence[Var] = (),
) -> CFG:
    """Build an IR and a CFG from statements and an explicit edge list."""
    ir = IR(None, params, stmts)
    cfg = CFG(ir)
    nodes = {"entry": cfg.get_entry(), "exit": cfg.get_exit()}
    for stmt in stmts:
        nodes[stmt.index] = stmt
    for edge in edges:
        src, dst = edge[0], edge[1]
        kind = edge[2] if len(edge) > 2 else EdgeKind.FALL_THROUGH
        case = edge[3] if len(edge) > 3 else None
        cfg.add_edge(nodes[src], nodes[dst], kind, case)
    return cfg


def straight_line_cfg(stmts: Sequence[Stmt], params: Sequence[Var] = ()) -> CFG:
    """entry -> s0 -> s1 -> ... -> exit."""
    edges = [("entry", 0, EdgeKind.ENTRY)]
    for i in range(len(stmts) - 1):
        edges.append((i, i + 1))
    last = len(stmts) - 1
    last_kind = EdgeKind.RETURN if isinstance(stmts[last], Return) else EdgeKind.FALL_THROUGH
    edges.append((last, "exit", last_kind))
    return make_cfg(stmts, edges, params)


# ── Class hierarchy ──────────────────────────────────────────────

VOID_M = Subsignature.of("m")


def call(kind: CallKind, jclass: JClass, subsig: Subsignature,
         receiver: Optional[Var] = None, result: Optional[Var] = None) -> Invoke:
    return Invoke(InvokeExp(kind, MethodRef(jclass, subsig), (), receiver), result)


def static_call(method: JMethod, result: Optional[Var] = None) -> Invoke:
    return call(CallKind.STATIC, method.declaring_class, method.subsignature,
                result=result)


def give_body(method: JMethod, *calls: Invoke) -> JMethod:
    """Attach a body made of *calls* followed by ``return``."""
    method.set_body([], list(calls) + [Return()])
    return method


def make_program(hierarchy: ClassHierarchy, main: JMethod) -> Program:
    return Program(hierarchy, main)


@pytest.fixture
def hierarchy() -> ClassHierarchy:
    return ClassHierarchy()


@pytest.fixture
def main_class(hierarchy: ClassHierarchy) -> JClass:
    return hierarchy.add_class(JClass("Main"))
