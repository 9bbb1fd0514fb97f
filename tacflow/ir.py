"""
tacflow.ir
==========

A small three-address intermediate representation for Java-like methods.

The analyses in this package never parse source code.  Callers build method
bodies directly from the classes below (tests do so through the helpers in
``tests/conftest.py``).  The IR is intentionally close to what a bytecode
front end would produce:

* every operand of a binary expression is a variable or an integer literal,
* every statement has a unique, totally ordered ``index`` inside its method,
* calls are separate statements (:class:`Invoke`) carrying a dispatch kind
  and a symbolic :class:`~tacflow.class_hierarchy.MethodRef`.

Types
-----
    PrimitiveType   - Java primitive types
    ClassType       - reference to a named class
    ArrayType       - array of some element type
    can_hold_int    - whether a type (or variable) is an ``int``-like type

Expressions
-----------
    Var, IntLiteral,
    ArithmeticExp, BitwiseExp, ConditionExp, ShiftExp  (all BinaryExp),
    NegExp, CastExp, NewExp, FieldRef, FieldAccess, ArrayAccess, InvokeExp

Statements
----------
    AssignStmt, Invoke  (both DefinitionStmt),
    If, SwitchStmt, Goto, Return, Nop

Method body
-----------
    IR              - parameters + statement list of one method
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from tacflow.errors import AnalysisError

if TYPE_CHECKING:
    from tacflow.class_hierarchy import JMethod, MethodRef


# ===========================================================================
# TYPES
# ===========================================================================

class PrimitiveType(enum.Enum):
    """Java primitive types."""
    BYTE = "byte"
    SHORT = "short"
    INT = "int"
    CHAR = "char"
    BOOLEAN = "boolean"
    LONG = "long"
    FLOAT = "float"
    DOUBLE = "double"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ClassType:
    """Reference type naming a class or interface."""
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class ArrayType:
    """Array type with the given element type."""
    element_type: "Type"

    def __str__(self) -> str:
        return f"{self.element_type}[]"


Type = Union[PrimitiveType, ClassType, ArrayType]

# Types whose values fit into a 32-bit JVM int slot.
_INT_LIKE_TYPES = frozenset({
    PrimitiveType.BYTE,
    PrimitiveType.SHORT,
    PrimitiveType.INT,
    PrimitiveType.CHAR,
    PrimitiveType.BOOLEAN,
})


def can_hold_int(type_or_var: Union["Type", "Var"]) -> bool:
    """Return True if the type (or the variable's type) can hold an int.

    Only ``byte``, ``short``, ``int``, ``char`` and ``boolean`` qualify;
    ``long``, ``float``, ``double`` and every reference type do not.
    """
    if isinstance(type_or_var, Var):
        type_or_var = type_or_var.type
    return type_or_var in _INT_LIKE_TYPES


# ===========================================================================
# EXPRESSIONS
# ===========================================================================

class Exp:
    """Base class of all expressions.

    Expressions are immutable trees.  :meth:`get_uses` returns the variables
    read when evaluating the expression, in operand order.
    """

    __slots__ = ()

    def get_uses(self) -> List["Var"]:
        return []


@dataclass(frozen=True)
class Var(Exp):
    """A local variable (or parameter) of a method.

    Variables are identified by name and declared type.
    """
    name: str
    type: Type = PrimitiveType.INT

    def get_uses(self) -> List["Var"]:
        return [self]

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class IntLiteral(Exp):
    value: int

    def __str__(self) -> str:
        return str(self.value)


Operand = Union[Var, IntLiteral]


class ArithmeticOp(enum.Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    REM = "%"


class BitwiseOp(enum.Enum):
    OR = "|"
    AND = "&"
    XOR = "^"


class ConditionOp(enum.Enum):
    EQ = "=="
    NE = "!="
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="


class ShiftOp(enum.Enum):
    SHL = "<<"
    SHR = ">>"
    USHR = ">>>"


BinaryOp = Union[ArithmeticOp, BitwiseOp, ConditionOp, ShiftOp]


@dataclass(frozen=True)
class BinaryExp(Exp):
    """``operand1 op operand2``.  Use one of the four concrete families."""
    op: Any
    operand1: Operand
    operand2: Operand

    # Operator enum accepted by the concrete subclass.
    OP_TYPE = None

    def __post_init__(self) -> None:
        if self.OP_TYPE is None:
            raise AnalysisError(
                "BinaryExp is abstract; use ArithmeticExp, BitwiseExp, "
                "ConditionExp or ShiftExp"
            )
        if not isinstance(self.op, self.OP_TYPE):
            raise AnalysisError(
                f"{type(self).__name__} does not accept operator {self.op!r}"
            )

    def get_uses(self) -> List[Var]:
        return self.operand1.get_uses() + self.operand2.get_uses()

    def __str__(self) -> str:
        return f"{self.operand1} {self.op.value} {self.operand2}"


@dataclass(frozen=True)
class ArithmeticExp(BinaryExp):
    OP_TYPE = ArithmeticOp


@dataclass(frozen=True)
class BitwiseExp(BinaryExp):
    OP_TYPE = BitwiseOp


@dataclass(frozen=True)
class ConditionExp(BinaryExp):
    """Relational comparison; evaluates to ``1`` or ``0``."""
    OP_TYPE = ConditionOp


@dataclass(frozen=True)
class ShiftExp(BinaryExp):
    OP_TYPE = ShiftOp


@dataclass(frozen=True)
class NegExp(Exp):
    operand: Var

    def get_uses(self) -> List[Var]:
        return [self.operand]

    def __str__(self) -> str:
        return f"-{self.operand}"


@dataclass(frozen=True)
class CastExp(Exp):
    value: Var
    cast_type: Type

    def get_uses(self) -> List[Var]:
        return [self.value]

    def __str__(self) -> str:
        return f"({self.cast_type}) {self.value}"


@dataclass(frozen=True)
class NewExp(Exp):
    """Object or array allocation.  ``lengths`` is empty for objects."""
    type: Type
    lengths: Tuple[Operand, ...] = ()

    def get_uses(self) -> List[Var]:
        uses: List[Var] = []
        for length in self.lengths:
            uses.extend(length.get_uses())
        return uses

    def __str__(self) -> str:
        if not self.lengths:
            return f"new {self.type}"
        dims = "".join(f"[{n}]" for n in self.lengths)
        return f"new {self.type}{dims}"


@dataclass(frozen=True)
class FieldRef:
    declaring_class: str
    name: str
    type: Type = PrimitiveType.INT
    is_static: bool = False

    def __str__(self) -> str:
        return f"<{self.declaring_class}: {self.type} {self.name}>"


@dataclass(frozen=True)
class FieldAccess(Exp):
    """Static (``base is None``) or instance field access."""
    field_ref: FieldRef
    base: Optional[Var] = None

    def is_static(self) -> bool:
        return self.base is None

    def get_uses(self) -> List[Var]:
        return [] if self.base is None else [self.base]

    def __str__(self) -> str:
        if self.base is None:
            return str(self.field_ref)
        return f"{self.base}.{self.field_ref}"


@dataclass(frozen=True)
class ArrayAccess(Exp):
    base: Var
    index: Operand

    def get_uses(self) -> List[Var]:
        return [self.base] + self.index.get_uses()

    def __str__(self) -> str:
        return f"{self.base}[{self.index}]"


class CallKind(enum.Enum):
    """Dispatch kind of a call site."""
    STATIC = "static"
    SPECIAL = "special"
    VIRTUAL = "virtual"
    INTERFACE = "interface"


@dataclass(frozen=True)
class InvokeExp(Exp):
    """Method invocation.  ``receiver`` is None for static calls."""
    kind: CallKind
    method_ref: "MethodRef"
    args: Tuple[Operand, ...] = ()
    receiver: Optional[Var] = None

    def get_uses(self) -> List[Var]:
        uses: List[Var] = [] if self.receiver is None else [self.receiver]
        for arg in self.args:
            uses.extend(arg.get_uses())
        return uses

    def __str__(self) -> str:
        args = ", ".join(str(a) for a in self.args)
        prefix = "" if self.receiver is None else f"{self.receiver}."
        return f"invoke{self.kind.value} {prefix}{self.method_ref}({args})"


LValue = Union[Var, FieldAccess, ArrayAccess]


# ===========================================================================
# STATEMENTS
# ===========================================================================

@dataclass(eq=False)
class Stmt:
    """Base class of all statements.

    Statements hash and compare by identity.  ``index`` is assigned by
    :class:`IR`; the synthetic entry and exit nodes of a CFG use ``-1`` and
    ``len(stmts)`` respectively.
    """

    def __post_init__(self) -> None:
        self.index: int = -1
        self.line: int = -1

    def get_def(self) -> Optional[Var]:
        """Variable defined by this statement, if any."""
        return None

    def get_uses(self) -> List[Var]:
        """Variables read by this statement."""
        return []

    def _text(self) -> str:
        return type(self).__name__.lower()

    def __str__(self) -> str:
        return f"{self.index}: {self._text()}"

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self}>"


class DefinitionStmt(Stmt):
    """Statement with a left-hand side and a right-hand side."""

    def get_lvalue(self) -> Optional[LValue]:
        raise NotImplementedError

    def get_rvalue(self) -> Exp:
        raise NotImplementedError

    def get_def(self) -> Optional[Var]:
        lvalue = self.get_lvalue()
        return lvalue if isinstance(lvalue, Var) else None

    def get_uses(self) -> List[Var]:
        uses = list(self.get_rvalue().get_uses())
        lvalue = self.get_lvalue()
        # x.f = ... and a[i] = ... read their base/index.
        if lvalue is not None and not isinstance(lvalue, Var):
            uses.extend(lvalue.get_uses())
        return uses


@dataclass(eq=False, repr=False)
class AssignStmt(DefinitionStmt):
    """``lvalue = rvalue``.  Calls are :class:`Invoke` statements instead."""
    lvalue: LValue
    rvalue: Exp

    def __post_init__(self) -> None:
        super().__post_init__()
        if isinstance(self.rvalue, InvokeExp):
            raise AnalysisError(
                f"call {self.rvalue} must be an Invoke statement, not an assignment"
            )

    def get_lvalue(self) -> LValue:
        return self.lvalue

    def get_rvalue(self) -> Exp:
        return self.rvalue

    def _text(self) -> str:
        return f"{self.lvalue} = {self.rvalue}"


@dataclass(eq=False, repr=False)
class Invoke(DefinitionStmt):
    """Call site.  ``result`` receives the return value, if any."""
    invoke_exp: InvokeExp
    result: Optional[Var] = None

    def __post_init__(self) -> None:
        super().__post_init__()
        self.container: Optional["JMethod"] = None

    @property
    def call_kind(self) -> CallKind:
        return self.invoke_exp.kind

    @property
    def method_ref(self) -> "MethodRef":
        return self.invoke_exp.method_ref

    def is_static(self) -> bool:
        return self.invoke_exp.kind is CallKind.STATIC

    def is_special(self) -> bool:
        return self.invoke_exp.kind is CallKind.SPECIAL

    def is_virtual(self) -> bool:
        return self.invoke_exp.kind is CallKind.VIRTUAL

    def is_interface(self) -> bool:
        return self.invoke_exp.kind is CallKind.INTERFACE

    def get_lvalue(self) -> Optional[Var]:
        return self.result

    def get_rvalue(self) -> InvokeExp:
        return self.invoke_exp

    def _text(self) -> str:
        if self.result is None:
            return str(self.invoke_exp)
        return f"{self.result} = {self.invoke_exp}"


@dataclass(eq=False, repr=False)
class If(Stmt):
    """Two-way branch on a :class:`ConditionExp`.

    Targets are given by the ``IF_TRUE``/``IF_FALSE`` edges of the CFG.
    """
    condition: ConditionExp

    def get_uses(self) -> List[Var]:
        return self.condition.get_uses()

    def _text(self) -> str:
        return f"if ({self.condition})"


@dataclass(eq=False, repr=False)
class SwitchStmt(Stmt):
    """Multi-way branch on ``var``.

    Targets are given by the ``SWITCH_CASE``/``SWITCH_DEFAULT`` edges of the
    CFG.
    """
    var: Var
    case_values: Tuple[int, ...] = ()

    def get_uses(self) -> List[Var]:
        return [self.var]

    def _text(self) -> str:
        cases = ", ".join(str(v) for v in self.case_values)
        return f"switch ({self.var}) [{cases}]"


@dataclass(eq=False, repr=False)
class Goto(Stmt):
    pass


@dataclass(eq=False, repr=False)
class Return(Stmt):
    value: Optional[Operand] = None

    def get_uses(self) -> List[Var]:
        return [] if self.value is None else self.value.get_uses()

    def _text(self) -> str:
        return "return" if self.value is None else f"return {self.value}"


@dataclass(eq=False, repr=False)
class Nop(Stmt):
    pass


# ===========================================================================
# METHOD BODY
# ===========================================================================

class IR:
    """Intermediate representation of one method body.

    Parameters
    ----------
    method : JMethod or None
        The method owning this body.  May be omitted for purely
        intraprocedural use.
    params : sequence of Var
        Formal parameters (excluding ``this``).
    stmts : sequence of Stmt
        Statements in program order.  Their ``index`` is (re)assigned here.
    this : Var, optional
        The receiver variable of instance methods.
    """

    def __init__(
        self,
        method: Optional["JMethod"],
        params: Sequence[Var],
        stmts: Sequence[Stmt],
        this: Optional[Var] = None,
    ) -> None:
        self.method = method
        self.params: Tuple[Var, ...] = tuple(params)
        self.this = this
        self._stmts: List[Stmt] = list(stmts)
        for i, stmt in enumerate(self._stmts):
            stmt.index = i
            if isinstance(stmt, Invoke):
                stmt.container = method

    def get_params(self) -> Tuple[Var, ...]:
        return self.params

    def get_this(self) -> Optional[Var]:
        return self.this

    def get_stmts(self) -> List[Stmt]:
        return list(self._stmts)

    def get_stmt(self, index: int) -> Stmt:
        if not 0 <= index < len(self._stmts):
            raise AnalysisError(f"no statement with index {index} in {self!r}")
        return self._stmts[index]

    def invokes(self) -> Iterator[Invoke]:
        """Yield the call sites of this body in statement order."""
        for stmt in self._stmts:
            if isinstance(stmt, Invoke):
                yield stmt

    def __iter__(self) -> Iterator[Stmt]:
        return iter(self._stmts)

    def __len__(self) -> int:
        return len(self._stmts)

    def __repr__(self) -> str:
        owner = self.method.signature if self.method is not None else "?"
        return f"IR({owner}, {len(self._stmts)} stmts)"
