# tests/test_ir_cfg.py
"""
Tests for the IR classes and the CFG container.
"""

import pytest

from tacflow.class_hierarchy import JClass, MethodRef, Subsignature
from tacflow.ctrlflow_graph import CFG, CFGEdge, EdgeKind, cfg_summary
from tacflow.errors import AnalysisError, MalformedCFGError
from tacflow.ir import (
    IR,
    ArithmeticExp,
    ArithmeticOp,
    ArrayAccess,
    ArrayType,
    AssignStmt,
    BitwiseOp,
    CallKind,
    ClassType,
    ConditionExp,
    ConditionOp,
    FieldAccess,
    FieldRef,
    If,
    IntLiteral,
    Invoke,
    InvokeExp,
    Nop,
    PrimitiveType,
    Return,
    Var,
    can_hold_int,
)
from tests.conftest import int_var, make_cfg, ref_var, straight_line_cfg


class TestTypes:

    @pytest.mark.parametrize("ptype", [
        PrimitiveType.BYTE, PrimitiveType.SHORT, PrimitiveType.INT,
        PrimitiveType.CHAR, PrimitiveType.BOOLEAN,
    ])
    def test_int_like_types(self, ptype):
        assert can_hold_int(ptype)
        assert can_hold_int(Var("v", ptype))

    @pytest.mark.parametrize("vtype", [
        PrimitiveType.LONG, PrimitiveType.FLOAT, PrimitiveType.DOUBLE,
        ClassType("java.lang.Integer"), ArrayType(PrimitiveType.INT),
    ])
    def test_other_types(self, vtype):
        assert not can_hold_int(vtype)
        assert not can_hold_int(Var("v", vtype))

    def test_array_type_str(self):
        assert str(ArrayType(PrimitiveType.INT)) == "int[]"


class TestExpressions:

    def test_binary_family_rejects_foreign_operator(self):
        x = int_var("x")
        with pytest.raises(AnalysisError):
            ArithmeticExp(BitwiseOp.OR, x, x)

    def test_uses_in_operand_order(self):
        a, b = int_var("a"), int_var("b")
        exp = ArithmeticExp(ArithmeticOp.SUB, b, a)
        assert exp.get_uses() == [b, a]
        assert ArithmeticExp(ArithmeticOp.ADD, a, IntLiteral(1)).get_uses() == [a]

    def test_str(self):
        x = int_var("x")
        assert str(ConditionExp(ConditionOp.LE, x, IntLiteral(3))) == "x <= 3"

    def test_vars_are_value_objects(self):
        assert int_var("x") == int_var("x")
        assert Var("x", PrimitiveType.INT) != Var("x", PrimitiveType.LONG)


class TestStatements:

    def test_ir_assigns_indexes(self):
        stmts = [Nop(), Nop(), Return()]
        ir = IR(None, [], stmts)
        assert [s.index for s in ir] == [0, 1, 2]
        assert ir.get_stmt(2) is stmts[2]
        with pytest.raises(AnalysisError):
            ir.get_stmt(7)

    def test_assign_def_and_uses(self):
        x, y = int_var("x"), int_var("y")
        stmt = AssignStmt(x, ArithmeticExp(ArithmeticOp.MUL, y, y))
        assert stmt.get_def() == x
        assert stmt.get_uses() == [y, y]

    def test_store_defines_nothing_but_reads_base(self):
        obj, v = ref_var("o", "C"), int_var("v")
        stmt = AssignStmt(FieldAccess(FieldRef("C", "f"), obj), v)
        assert stmt.get_def() is None
        assert set(stmt.get_uses()) == {obj, v}

    def test_array_store_reads_base_and_index(self):
        arr, i = Var("a", ArrayType(PrimitiveType.INT)), int_var("i")
        stmt = AssignStmt(ArrayAccess(arr, i), IntLiteral(0))
        assert stmt.get_uses() == [arr, i]

    def test_call_cannot_be_assigned(self):
        ref = MethodRef(JClass("C"), Subsignature.of("f", returns=PrimitiveType.INT))
        with pytest.raises(AnalysisError):
            AssignStmt(int_var("x"), InvokeExp(CallKind.STATIC, ref))

    @pytest.mark.parametrize("kind,predicate", [
        (CallKind.STATIC, "is_static"),
        (CallKind.SPECIAL, "is_special"),
        (CallKind.VIRTUAL, "is_virtual"),
        (CallKind.INTERFACE, "is_interface"),
    ])
    def test_invoke_kind_predicates(self, kind, predicate):
        ref = MethodRef(JClass("C"), Subsignature.of("f"))
        stmt = Invoke(InvokeExp(kind, ref, (), ref_var("o", "C")))
        predicates = ("is_static", "is_special", "is_virtual", "is_interface")
        assert [getattr(stmt, p)() for p in predicates] == [p == predicate for p in predicates]
        assert stmt.call_kind is kind

    def test_statements_hash_by_identity(self):
        a, b = Nop(), Nop()
        assert a != b
        assert len({a, b}) == 2


class TestCFG:

    def test_entry_and_exit(self):
        cfg = straight_line_cfg([Nop(), Return()])
        assert cfg.get_entry().index == -1
        assert cfg.get_exit().index == 2
        assert len(cfg) == 4
        assert cfg.is_entry(cfg.get_entry()) and cfg.is_exit(cfg.get_exit())

    def test_succs_and_preds(self):
        x = int_var("x")
        s0 = If(ConditionExp(ConditionOp.EQ, x, IntLiteral(0)))
        s1, s2 = Return(), Return()
        cfg = make_cfg([s0, s1, s2], [
            ("entry", 0, EdgeKind.ENTRY),
            (0, 1, EdgeKind.IF_TRUE),
            (0, 2, EdgeKind.IF_FALSE),
            (1, "exit", EdgeKind.RETURN),
            (2, "exit", EdgeKind.RETURN),
        ], params=[x])
        assert cfg.get_succs_of(s0) == [s1, s2]
        assert cfg.get_preds_of(cfg.get_exit()) == [s1, s2]
        assert [e.kind for e in cfg.get_out_edges_of(s0)] == [EdgeKind.IF_TRUE, EdgeKind.IF_FALSE]
        assert cfg.get_params() == (x,)

    def test_duplicate_edge_is_ignored(self):
        s0 = Nop()
        cfg = make_cfg([s0], [("entry", 0, EdgeKind.ENTRY), (0, "exit")])
        cfg.add_edge(s0, cfg.get_exit())
        assert len(cfg.get_out_edges_of(s0)) == 1

    def test_foreign_node_rejected(self):
        cfg = straight_line_cfg([Nop()])
        with pytest.raises(MalformedCFGError):
            cfg.add_edge(cfg.get_entry(), Nop())

    def test_entry_and_exit_orientation(self):
        s0 = Nop()
        cfg = straight_line_cfg([s0])
        with pytest.raises(MalformedCFGError):
            cfg.add_edge(cfg.get_exit(), s0)
        with pytest.raises(MalformedCFGError):
            cfg.add_edge(s0, cfg.get_entry())

    def test_switch_case_edge_needs_value(self):
        a, b = Nop(), Nop()
        with pytest.raises(MalformedCFGError):
            CFGEdge(EdgeKind.SWITCH_CASE, a, b)
        with pytest.raises(MalformedCFGError):
            CFGEdge(EdgeKind.GOTO, a, b, case_value=3)
        assert CFGEdge(EdgeKind.SWITCH_CASE, a, b, 3).get_case_value() == 3

    def test_reachable_from_entry(self):
        s0, s1 = Return(), Nop()
        cfg = make_cfg([s0, s1], [("entry", 0, EdgeKind.ENTRY), (0, "exit", EdgeKind.RETURN)])
        reached = cfg.reachable_from()
        assert s0 in reached
        assert all(n is not s1 for n in reached)

    def test_to_dot_and_summary(self):
        cfg = straight_line_cfg([AssignStmt(int_var("x"), IntLiteral(1)), Return()])
        dot = cfg.to_dot("demo")
        assert dot.startswith("digraph CFG {")
        assert 'label="demo"' in dot
        assert "Sentry -> S0" in dot
        summary = cfg_summary(cfg)
        assert "x = 1" in summary
        assert summary.splitlines()[0].startswith("CFG(")
