# tests/test_abstract_domains.py
"""
Tests for the constant-propagation value lattice and dataflow facts.
"""

import itertools

import pytest

from tacflow.abstract_domains import CPFact, SetFact, Value, meet_value, to_int32
from tacflow.errors import AnalysisError
from tests.conftest import int_var


UNDEF = Value.get_undef()
NAC = Value.get_nac()
SAMPLES = [
    UNDEF,
    NAC,
    Value.make_constant(0),
    Value.make_constant(1),
    Value.make_constant(-1),
    Value.make_constant(2 ** 31 - 1),
]


# ── Value ────────────────────────────────────────────────────────

class TestValue:

    def test_undef_and_nac_are_singletons(self):
        assert Value.get_undef() is Value.get_undef()
        assert Value.get_nac() is Value.get_nac()

    def test_predicates(self):
        c = Value.make_constant(7)
        assert c.is_constant() and not c.is_nac() and not c.is_undef()
        assert UNDEF.is_undef() and not UNDEF.is_constant()
        assert NAC.is_nac() and not NAC.is_constant()

    def test_constants_compare_by_value(self):
        assert Value.make_constant(3) == Value.make_constant(3)
        assert Value.make_constant(3) != Value.make_constant(4)
        assert Value.make_constant(0) != UNDEF

    def test_make_constant_wraps_to_int32(self):
        assert Value.make_constant(2 ** 31).get_constant() == -2 ** 31
        assert Value.make_constant(-2 ** 31 - 1).get_constant() == 2 ** 31 - 1
        assert Value.make_constant(2 ** 32 + 5).get_constant() == 5

    def test_get_constant_on_non_constant_raises(self):
        with pytest.raises(AnalysisError):
            UNDEF.get_constant()
        with pytest.raises(AnalysisError):
            NAC.get_constant()

    def test_repr(self):
        assert repr(UNDEF) == "UNDEF"
        assert repr(NAC) == "NAC"
        assert repr(Value.make_constant(-4)) == "-4"

    def test_to_int32(self):
        assert to_int32(0xFFFFFFFF) == -1
        assert to_int32(0x7FFFFFFF) == 2 ** 31 - 1
        assert to_int32(-1) == -1


# ── Meet ─────────────────────────────────────────────────────────

class TestMeetValue:

    def test_nac_absorbs(self):
        for v in SAMPLES:
            assert meet_value(NAC, v) is NAC
            assert meet_value(v, NAC) is NAC

    def test_undef_is_identity(self):
        c = Value.make_constant(5)
        assert meet_value(UNDEF, c) == c
        assert meet_value(c, UNDEF) == c
        assert meet_value(UNDEF, UNDEF) is UNDEF

    def test_equal_constants(self):
        assert meet_value(Value.make_constant(5), Value.make_constant(5)) == Value.make_constant(5)

    def test_different_constants(self):
        assert meet_value(Value.make_constant(5), Value.make_constant(6)) is NAC

    @pytest.mark.parametrize("a,b", list(itertools.product(SAMPLES, repeat=2)))
    def test_commutative(self, a, b):
        assert meet_value(a, b) == meet_value(b, a)

    @pytest.mark.parametrize("a,b,c", list(itertools.product(SAMPLES[:5], repeat=3)))
    def test_associative(self, a, b, c):
        assert meet_value(a, meet_value(b, c)) == meet_value(meet_value(a, b), c)

    @pytest.mark.parametrize("a", SAMPLES)
    def test_idempotent(self, a):
        assert meet_value(a, a) == a


# ── CPFact ───────────────────────────────────────────────────────

class TestCPFact:

    def test_absent_variable_is_undef(self):
        assert CPFact().get(int_var("x")) is UNDEF

    def test_update_reports_change(self):
        x = int_var("x")
        fact = CPFact()
        assert fact.update(x, Value.make_constant(1)) is True
        assert fact.update(x, Value.make_constant(1)) is False
        assert fact.update(x, NAC) is True

    def test_update_to_undef_removes_key(self):
        x = int_var("x")
        fact = CPFact()
        fact.update(x, Value.make_constant(1))
        assert fact.update(x, UNDEF) is True
        assert x not in fact
        assert len(fact) == 0
        assert fact.update(x, UNDEF) is False

    def test_copy_is_independent(self):
        x, y = int_var("x"), int_var("y")
        fact = CPFact()
        fact.update(x, Value.make_constant(1))
        dup = fact.copy()
        assert isinstance(dup, CPFact)
        dup.update(y, NAC)
        assert y not in fact
        assert dup != fact

    def test_replace_with(self):
        x, y = int_var("x"), int_var("y")
        a, b = CPFact(), CPFact()
        a.update(x, Value.make_constant(1))
        b.update(y, NAC)
        assert a.replace_with(b) is True
        assert a == b
        assert x not in a
        assert a.replace_with(b) is False

    def test_copy_from_keeps_existing_entries(self):
        x, y = int_var("x"), int_var("y")
        a, b = CPFact(), CPFact()
        a.update(x, Value.make_constant(1))
        b.update(y, Value.make_constant(2))
        assert a.copy_from(b) is True
        assert a.get(x) == Value.make_constant(1)
        assert a.get(y) == Value.make_constant(2)

    def test_value_changes_at_most_twice(self):
        # Height-3 lattice: UNDEF -> constant -> NAC.
        x = int_var("x")
        fact = CPFact()
        changes = 0
        for c in [1, 1, 2, 3, 1, 5]:
            new = meet_value(fact.get(x), Value.make_constant(c))
            changes += fact.update(x, new)
        assert changes == 2
        assert fact.get(x) is NAC


# ── SetFact ──────────────────────────────────────────────────────

class TestSetFact:

    def test_add_remove(self):
        x = int_var("x")
        s = SetFact()
        assert s.add(x) is True
        assert s.add(x) is False
        assert s.contains(x)
        assert s.remove(x) is True
        assert s.remove(x) is False
        assert len(s) == 0

    def test_union_reports_growth(self):
        x, y = int_var("x"), int_var("y")
        a, b = SetFact([x]), SetFact([x, y])
        assert a.union(b) is True
        assert a.union(b) is False
        assert a == b

    def test_copy_from(self):
        x, y = int_var("x"), int_var("y")
        a, b = SetFact([x]), SetFact([y])
        assert a.copy_from(b) is True
        assert list(a) == [y]
        assert a.copy_from(b) is False

    def test_repr_sorted(self):
        assert repr(SetFact([int_var("b"), int_var("a")])) == "{a, b}"
