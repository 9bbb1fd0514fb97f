# tests/test_livevar.py
"""
Tests for the backward live-variable analysis.
"""

from tacflow.abstract_domains import SetFact
from tacflow.ctrlflow_graph import EdgeKind
from tacflow.dataflow_analyses import LiveVariableAnalysis
from tacflow.dataflow_engine import Direction
from tacflow.ir import (
    ArithmeticExp,
    ArithmeticOp,
    AssignStmt,
    ConditionExp,
    ConditionOp,
    FieldAccess,
    FieldRef,
    Goto,
    If,
    IntLiteral,
    Return,
)
from tests.conftest import int_var, make_cfg, ref_var, straight_line_cfg


class TestLiveVariables:

    def test_direction_and_id(self):
        lv = LiveVariableAnalysis()
        assert not lv.is_forward()
        assert lv.direction is Direction.BACKWARD
        assert lv.config.id == "livevar"

    def test_straight_line(self):
        a, b = int_var("a"), int_var("b")
        stmts = [
            AssignStmt(a, IntLiteral(1)),
            AssignStmt(b, ArithmeticExp(ArithmeticOp.ADD, a, IntLiteral(1))),
            Return(b),
        ]
        result = LiveVariableAnalysis().analyze(straight_line_cfg(stmts))
        assert result.get_result(stmts[0]) == SetFact([a])
        assert result.get_result(stmts[1]) == SetFact([b])
        assert result.get_result(stmts[2]) == SetFact()
        assert result.get_in_fact(stmts[0]) == SetFact()

    def test_redefinition_kills(self):
        a = int_var("a")
        stmts = [
            AssignStmt(a, IntLiteral(1)),
            AssignStmt(a, IntLiteral(2)),
            Return(a),
        ]
        result = LiveVariableAnalysis().analyze(straight_line_cfg(stmts))
        assert not result.get_result(stmts[0]).contains(a)
        assert result.get_result(stmts[1]).contains(a)

    def test_field_store_reads_base_and_value(self):
        o, v = ref_var("o", "C"), int_var("v")
        stmts = [
            AssignStmt(v, IntLiteral(3)),
            AssignStmt(FieldAccess(FieldRef("C", "f"), o), v),
            Return(),
        ]
        result = LiveVariableAnalysis().analyze(straight_line_cfg(stmts, params=[o]))
        assert result.get_result(stmts[0]) == SetFact([o, v])
        assert result.get_in_fact(stmts[0]) == SetFact([o])

    def test_loop_keeps_counter_live(self):
        i, n = int_var("i"), int_var("n")
        stmts = [
            AssignStmt(i, IntLiteral(0)),
            If(ConditionExp(ConditionOp.LT, i, n)),
            AssignStmt(i, ArithmeticExp(ArithmeticOp.ADD, i, IntLiteral(1))),
            Goto(),
            Return(),
        ]
        cfg = make_cfg(stmts, [
            ("entry", 0, EdgeKind.ENTRY),
            (0, 1),
            (1, 2, EdgeKind.IF_TRUE),
            (1, 4, EdgeKind.IF_FALSE),
            (2, 3),
            (3, 1, EdgeKind.GOTO),
            (4, "exit", EdgeKind.RETURN),
        ], params=[n])
        result = LiveVariableAnalysis().analyze(cfg)
        assert result.get_result(stmts[2]) == SetFact([i, n])
        assert result.get_result(stmts[3]) == SetFact([i, n])
        assert result.get_result(stmts[1]) == SetFact([i, n])
        assert result.get_result(stmts[4]) == SetFact()
        assert result.get_result(cfg.get_entry()) == SetFact([n])
