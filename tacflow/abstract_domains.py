"""
tacflow.abstract_domains
========================

Abstract values and dataflow facts.

Value lattice
-------------
Constant propagation tracks, per variable, one element of the flat lattice::

                  NAC
           / |  ...  |  \\
        … -1  0   1   2 …          Constant(i), i a 32-bit signed int
           \\ |  ...  |  /
                 UNDEF

``UNDEF`` is bottom ("no value seen yet"), ``NAC`` ("not a constant") is top.
Two different constants meet to ``NAC``; ``NAC`` absorbs everything.  The
lattice has height 3, so a variable's value changes at most twice during a
fixpoint computation.

Facts
-----
    MapFact     - mutable mapping fact with change-reporting updates
    CPFact      - MapFact from Var to Value; absent key means UNDEF
    SetFact     - mutable set fact (live variables)

Public API
----------
    Value, meet_value, to_int32, MapFact, CPFact, SetFact
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import (
    Dict,
    Generic,
    Iterable,
    Iterator,
    Optional,
    Set,
    Tuple,
    TypeVar,
)

from tacflow.errors import AnalysisError

K = TypeVar("K")
V = TypeVar("V")
E = TypeVar("E")

_INT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


def to_int32(n: int) -> int:
    """Wrap an arbitrary Python int to a 32-bit two's-complement value."""
    n &= _INT32_MASK
    return n - (1 << 32) if n & _INT32_SIGN else n


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1: VALUE LATTICE
# ═══════════════════════════════════════════════════════════════════════════

class ValueKind(enum.Enum):
    UNDEF = "undef"
    CONSTANT = "constant"
    NAC = "nac"


@dataclass(frozen=True)
class Value:
    """Element of the constant-propagation lattice.

    Use the factories :meth:`get_undef`, :meth:`get_nac` and
    :meth:`make_constant` rather than the constructor.

    Examples
    --------
    >>> Value.make_constant(1) == Value.make_constant(1)
    True
    >>> meet_value(Value.make_constant(1), Value.make_constant(2))
    NAC
    """
    kind: ValueKind
    constant: int = 0

    @staticmethod
    def get_undef() -> "Value":
        return _UNDEF

    @staticmethod
    def get_nac() -> "Value":
        return _NAC

    @staticmethod
    def make_constant(value: int) -> "Value":
        return Value(ValueKind.CONSTANT, to_int32(value))

    def is_undef(self) -> bool:
        return self.kind is ValueKind.UNDEF

    def is_constant(self) -> bool:
        return self.kind is ValueKind.CONSTANT

    def is_nac(self) -> bool:
        return self.kind is ValueKind.NAC

    def get_constant(self) -> int:
        if self.kind is not ValueKind.CONSTANT:
            raise AnalysisError(f"{self} is not a constant")
        return self.constant

    def __repr__(self) -> str:
        if self.kind is ValueKind.UNDEF:
            return "UNDEF"
        if self.kind is ValueKind.NAC:
            return "NAC"
        return str(self.constant)

    __str__ = __repr__


_UNDEF = Value(ValueKind.UNDEF)
_NAC = Value(ValueKind.NAC)


def meet_value(v1: Value, v2: Value) -> Value:
    """Meet of two lattice values."""
    if v1.is_nac() or v2.is_nac():
        return _NAC
    if v1.is_undef():
        return v2
    if v2.is_undef():
        return v1
    if v1.constant == v2.constant:
        return v1
    return _NAC


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2: MAP FACTS
# ═══════════════════════════════════════════════════════════════════════════

class MapFact(Generic[K, V]):
    """Mutable mapping used as a per-node dataflow fact.

    Every mutating operation reports whether the fact changed, which is what
    the worklist solver needs to decide whether to propagate.
    """

    __slots__ = ("_map",)

    def __init__(self, entries: Optional[Dict[K, V]] = None) -> None:
        self._map: Dict[K, V] = dict(entries) if entries else {}

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        return self._map.get(key, default)

    def update(self, key: K, value: V) -> bool:
        """Bind *key* to *value*; return True if the binding changed."""
        if key in self._map and self._map[key] == value:
            return False
        self._map[key] = value
        return True

    def remove(self, key: K) -> Optional[V]:
        return self._map.pop(key, None)

    def copy_from(self, other: "MapFact[K, V]") -> bool:
        """Add every entry of *other* to this fact; return True on change."""
        changed = False
        for key, value in other.items():
            changed |= self.update(key, value)
        return changed

    def replace_with(self, other: "MapFact[K, V]") -> bool:
        """Make this fact an exact copy of *other*; return True on change."""
        if self._map == other._map:
            return False
        self._map = dict(other._map)
        return True

    def copy(self) -> "MapFact[K, V]":
        return type(self)(self._map)

    def keys(self) -> Iterable[K]:
        return self._map.keys()

    def items(self) -> Iterable[Tuple[K, V]]:
        return list(self._map.items())

    def __contains__(self, key: object) -> bool:
        return key in self._map

    def __iter__(self) -> Iterator[K]:
        return iter(self._map)

    def __len__(self) -> int:
        return len(self._map)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MapFact):
            return NotImplemented
        return self._map == other._map

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        body = ", ".join(f"{k}={v}" for k, v in self._map.items())
        return f"{{{body}}}"


class CPFact(MapFact["Var", Value]):
    """Constant-propagation fact.

    A variable that is absent from the map is UNDEF; conversely binding a
    variable to UNDEF removes it, so only tracked values are stored.
    """

    __slots__ = ()

    def get(self, key, default=None) -> Value:
        return self._map.get(key, _UNDEF)

    def update(self, key, value: Value) -> bool:
        if value.is_undef():
            return self._map.pop(key, None) is not None
        old = self._map.get(key)
        self._map[key] = value
        return old != value


# ═══════════════════════════════════════════════════════════════════════════
#  PART 3: SET FACTS
# ═══════════════════════════════════════════════════════════════════════════

class SetFact(Generic[E]):
    """Mutable set used as a per-node dataflow fact."""

    __slots__ = ("_set",)

    def __init__(self, elements: Iterable[E] = ()) -> None:
        self._set: Set[E] = set(elements)

    def contains(self, element: E) -> bool:
        return element in self._set

    def add(self, element: E) -> bool:
        if element in self._set:
            return False
        self._set.add(element)
        return True

    def remove(self, element: E) -> bool:
        if element not in self._set:
            return False
        self._set.discard(element)
        return True

    def union(self, other: "SetFact[E]") -> bool:
        """In-place union; return True if this set grew."""
        before = len(self._set)
        self._set |= other._set
        return len(self._set) != before

    def copy_from(self, other: "SetFact[E]") -> bool:
        """Make this set an exact copy of *other*; return True on change."""
        if self._set == other._set:
            return False
        self._set = set(other._set)
        return True

    def copy(self) -> "SetFact[E]":
        return SetFact(self._set)

    def __contains__(self, element: object) -> bool:
        return element in self._set

    def __iter__(self) -> Iterator[E]:
        return iter(self._set)

    def __len__(self) -> int:
        return len(self._set)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SetFact):
            return NotImplemented
        return self._set == other._set

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        return "{" + ", ".join(sorted(str(e) for e in self._set)) + "}"
