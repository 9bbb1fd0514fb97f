"""
tacflow.dataflow_analyses
=========================

Concrete intraprocedural dataflow analyses built on
:mod:`tacflow.dataflow_engine`.

ConstantPropagation
    Forward; per statement, a :class:`~tacflow.abstract_domains.CPFact`
    mapping each ``int``-like variable to UNDEF, a 32-bit constant, or NAC.
    Constant folding follows Java ``int`` semantics exactly (wrap-around,
    truncating division, shift distances masked to five bits).

LiveVariableAnalysis
    Backward; per statement, the :class:`~tacflow.abstract_domains.SetFact`
    of variables that may be read before being redefined.

Usage::

    from tacflow.dataflow_analyses import ConstantPropagation

    result = ConstantPropagation().analyze(cfg)
    fact = result.get_out_fact(stmt)
    print(fact.get(x))           # UNDEF, NAC or an int
"""

from __future__ import annotations

import operator
from typing import Callable, Dict

from tacflow.abstract_domains import CPFact, SetFact, Value, meet_value, to_int32
from tacflow.ctrlflow_graph import CFG
from tacflow.dataflow_engine import DataflowAnalysis
from tacflow.ir import (
    ArithmeticOp,
    BinaryExp,
    BitwiseOp,
    ConditionOp,
    DefinitionStmt,
    Exp,
    IntLiteral,
    ShiftOp,
    Stmt,
    Var,
    can_hold_int,
)


# ===========================================================================
# JAVA INT ARITHMETIC
# ===========================================================================

def _div(a: int, b: int) -> int:
    # Java truncates toward zero; Python floors.
    q = abs(a) // abs(b)
    return -q if (a < 0) != (b < 0) else q


def _rem(a: int, b: int) -> int:
    return a - b * _div(a, b)


def _shl(a: int, b: int) -> int:
    return a << (b & 0x1F)


def _shr(a: int, b: int) -> int:
    return a >> (b & 0x1F)


def _ushr(a: int, b: int) -> int:
    return (a & 0xFFFFFFFF) >> (b & 0x1F)


_FOLDERS: Dict[object, Callable[[int, int], int]] = {
    ArithmeticOp.ADD: operator.add,
    ArithmeticOp.SUB: operator.sub,
    ArithmeticOp.MUL: operator.mul,
    ArithmeticOp.DIV: _div,
    ArithmeticOp.REM: _rem,
    BitwiseOp.OR: operator.or_,
    BitwiseOp.AND: operator.and_,
    BitwiseOp.XOR: operator.xor,
    ConditionOp.EQ: lambda a, b: int(a == b),
    ConditionOp.NE: lambda a, b: int(a != b),
    ConditionOp.LT: lambda a, b: int(a < b),
    ConditionOp.GT: lambda a, b: int(a > b),
    ConditionOp.LE: lambda a, b: int(a <= b),
    ConditionOp.GE: lambda a, b: int(a >= b),
    ShiftOp.SHL: _shl,
    ShiftOp.SHR: _shr,
    ShiftOp.USHR: _ushr,
}


def fold(exp: BinaryExp, c1: int, c2: int) -> int:
    """Fold ``c1 op c2`` with 32-bit signed semantics.

    The caller guarantees a non-zero divisor for ``/`` and ``%``.
    """
    return to_int32(_FOLDERS[exp.op](c1, c2))


# ===========================================================================
# CONSTANT PROPAGATION
# ===========================================================================

def evaluate(exp: Exp, fact: CPFact) -> Value:
    """Abstract value of *exp* under *fact*.

    Parameters
    ----------
    exp : Exp
        Right-hand side (or branch condition / switch selector).
    fact : CPFact
        IN fact of the statement containing *exp*.

    Returns
    -------
    Value
        UNDEF for a division or remainder by constant zero (checked before
        NAC operands) or for a binary expression with an UNDEF operand and
        no NAC operand; NAC for non-``int`` variables and for every
        expression shape other than literals, variables and binary
        expressions.
    """
    if isinstance(exp, IntLiteral):
        return Value.make_constant(exp.value)
    if isinstance(exp, Var):
        return fact.get(exp) if can_hold_int(exp) else Value.get_nac()
    if isinstance(exp, BinaryExp):
        v1 = evaluate(exp.operand1, fact)
        v2 = evaluate(exp.operand2, fact)
        if (exp.op in (ArithmeticOp.DIV, ArithmeticOp.REM)
                and v2.is_constant() and v2.get_constant() == 0):
            return Value.get_undef()
        if v1.is_nac() or v2.is_nac():
            return Value.get_nac()
        if v1.is_constant() and v2.is_constant():
            return Value.make_constant(fold(exp, v1.get_constant(), v2.get_constant()))
        return Value.get_undef()
    # Default arm: calls, field and array reads, casts, allocations and
    # negation are not modelled.
    return Value.get_nac()


class ConstantPropagation(DataflowAnalysis[CPFact]):
    """Forward constant propagation over ``int``-like local variables.

    Parameters
    ----------
    config : AnalysisConfig, optional
        Defaults to ``AnalysisConfig("constprop")``.
    """

    ID = "constprop"

    def is_forward(self) -> bool:
        return True

    def new_boundary_fact(self, cfg: CFG) -> CPFact:
        fact = self.new_initial_fact()
        for param in cfg.get_params():
            if can_hold_int(param):
                fact.update(param, Value.get_nac())
        return fact

    def new_initial_fact(self) -> CPFact:
        return CPFact()

    def meet_into(self, fact: CPFact, target: CPFact) -> None:
        for var, value in fact.items():
            target.update(var, meet_value(value, target.get(var)))

    def meet_value(self, v1: Value, v2: Value) -> Value:
        return meet_value(v1, v2)

    def transfer_node(self, node: Stmt, in_fact: CPFact, out_fact: CPFact) -> bool:
        if isinstance(node, DefinitionStmt):
            lvalue = node.get_lvalue()
            if isinstance(lvalue, Var):
                new_out = in_fact.copy()
                new_out.remove(lvalue)
                if can_hold_int(lvalue):
                    new_out.update(lvalue, evaluate(node.get_rvalue(), in_fact))
                return out_fact.replace_with(new_out)
        return out_fact.replace_with(in_fact)

    evaluate = staticmethod(evaluate)
    can_hold_int = staticmethod(can_hold_int)


# ===========================================================================
# LIVE VARIABLES
# ===========================================================================

class LiveVariableAnalysis(DataflowAnalysis[SetFact]):
    """Backward may-analysis of live variables.

    ``in = (out - def) | uses``.  The OUT fact of a statement is the set of
    variables live immediately after it.
    """

    ID = "livevar"

    def is_forward(self) -> bool:
        return False

    def new_boundary_fact(self, cfg: CFG) -> SetFact:
        return SetFact()

    def new_initial_fact(self) -> SetFact:
        return SetFact()

    def meet_into(self, fact: SetFact, target: SetFact) -> None:
        target.union(fact)

    def transfer_node(self, node: Stmt, in_fact: SetFact, out_fact: SetFact) -> bool:
        new_in = out_fact.copy()
        defined = node.get_def()
        if defined is not None:
            new_in.remove(defined)
        for use in node.get_uses():
            new_in.add(use)
        return in_fact.copy_from(new_in)
