"""
tacflow.class_hierarchy
=======================

Classes, methods and the hierarchy relations used by call-graph
construction.

The hierarchy is populated by the caller (there is no class loading here).
:class:`ClassHierarchy` maintains three reverse indexes as classes are added:

* direct subclasses       - classes whose superclass is ``C``
* direct subinterfaces    - interfaces that list ``C`` among their interfaces
* direct implementors     - non-interface classes that list ``C`` among theirs

Public API
----------
    Subsignature    - method name + parameter/return types
    JMethod         - a method declared in a class
    JClass          - a class or interface
    MethodRef       - symbolic reference used at call sites
    ClassHierarchy  - registry of classes and their relations
"""

from __future__ import annotations

import logging
from collections import OrderedDict, defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from tacflow.errors import AnalysisError, HierarchyError
from tacflow.ir import IR, ClassType, Stmt, Type, Var

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Subsignature
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Subsignature:
    """Method signature without the declaring class."""
    name: str
    param_types: Tuple[Type, ...] = ()
    return_type: Optional[Type] = None

    @classmethod
    def of(cls, name: str, *param_types: Type,
           returns: Optional[Type] = None) -> "Subsignature":
        return cls(name, tuple(param_types), returns)

    def __str__(self) -> str:
        ret = "void" if self.return_type is None else str(self.return_type)
        params = ",".join(str(t) for t in self.param_types)
        return f"{ret} {self.name}({params})"


# ---------------------------------------------------------------------------
# JMethod
# ---------------------------------------------------------------------------

class JMethod:
    """A method declared in a :class:`JClass`.

    Attributes
    ----------
    declaring_class : JClass
    subsignature : Subsignature
    is_abstract : bool
        Abstract (and interface) methods have no body.
    is_static : bool
    """

    __slots__ = ("declaring_class", "subsignature", "is_abstract",
                 "is_static", "_ir")

    def __init__(
        self,
        declaring_class: "JClass",
        subsignature: Subsignature,
        *,
        is_abstract: bool = False,
        is_static: bool = False,
    ) -> None:
        self.declaring_class = declaring_class
        self.subsignature = subsignature
        self.is_abstract = is_abstract
        self.is_static = is_static
        self._ir: Optional[IR] = None

    @property
    def name(self) -> str:
        return self.subsignature.name

    @property
    def signature(self) -> str:
        return f"<{self.declaring_class.name}: {self.subsignature}>"

    def has_ir(self) -> bool:
        return self._ir is not None

    def get_ir(self) -> IR:
        if self._ir is None:
            raise AnalysisError(f"{self.signature} has no body")
        return self._ir

    def set_body(
        self,
        params: Sequence[Var],
        stmts: Sequence[Stmt],
        this: Optional[Var] = None,
    ) -> IR:
        """Attach a body to this method and return its :class:`IR`."""
        if self.is_abstract:
            raise AnalysisError(f"abstract method {self.signature} cannot have a body")
        if this is None and not self.is_static:
            this = Var("this", ClassType(self.declaring_class.name))
        self._ir = IR(self, params, stmts, this)
        return self._ir

    def __repr__(self) -> str:
        return self.signature

    __str__ = __repr__


# ---------------------------------------------------------------------------
# JClass
# ---------------------------------------------------------------------------

class JClass:
    """A class or interface.

    Parameters
    ----------
    name : str
        Fully-qualified name; unique within a :class:`ClassHierarchy`.
    superclass : JClass, optional
        Direct superclass.  ``None`` only for the root of a hierarchy
        (and, by convention here, for interfaces).
    interfaces : iterable of JClass
        Directly implemented (or, for interfaces, extended) interfaces.
    """

    __slots__ = ("name", "superclass", "interfaces", "is_interface",
                 "is_abstract", "_methods")

    def __init__(
        self,
        name: str,
        superclass: Optional["JClass"] = None,
        interfaces: Iterable["JClass"] = (),
        *,
        is_interface: bool = False,
        is_abstract: bool = False,
    ) -> None:
        self.name = name
        self.superclass = superclass
        self.interfaces: Tuple[JClass, ...] = tuple(interfaces)
        self.is_interface = is_interface
        self.is_abstract = is_abstract or is_interface
        self._methods: "OrderedDict[Subsignature, JMethod]" = OrderedDict()

    def get_super_class(self) -> Optional["JClass"]:
        return self.superclass

    def get_interfaces(self) -> Tuple["JClass", ...]:
        return self.interfaces

    def declare_method(
        self,
        subsignature: Subsignature,
        *,
        is_abstract: bool = False,
        is_static: bool = False,
    ) -> JMethod:
        """Create and register a method declared directly in this class."""
        if subsignature in self._methods:
            raise HierarchyError(
                f"{self.name} already declares {subsignature}"
            )
        method = JMethod(
            self, subsignature,
            is_abstract=is_abstract or self.is_interface,
            is_static=is_static,
        )
        self._methods[subsignature] = method
        return method

    def get_declared_method(self, subsignature: Subsignature) -> Optional[JMethod]:
        return self._methods.get(subsignature)

    def get_declared_methods(self) -> List[JMethod]:
        return list(self._methods.values())

    def __repr__(self) -> str:
        kind = "interface" if self.is_interface else "class"
        return f"<{kind} {self.name}>"

    def __str__(self) -> str:
        return self.name


# ---------------------------------------------------------------------------
# MethodRef
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MethodRef:
    """Symbolic method reference as it appears at a call site."""
    declaring_class: JClass
    subsignature: Subsignature

    def __str__(self) -> str:
        return f"<{self.declaring_class.name}: {self.subsignature}>"


# ---------------------------------------------------------------------------
# ClassHierarchy
# ---------------------------------------------------------------------------

class ClassHierarchy:
    """Registry of classes with direct sub-type indexes."""

    def __init__(self, classes: Iterable[JClass] = ()) -> None:
        self._classes: "OrderedDict[str, JClass]" = OrderedDict()
        self._subclasses: Dict[str, List[JClass]] = defaultdict(list)
        self._subinterfaces: Dict[str, List[JClass]] = defaultdict(list)
        self._implementors: Dict[str, List[JClass]] = defaultdict(list)
        for jclass in classes:
            self.add_class(jclass)

    def add_class(self, jclass: JClass) -> JClass:
        if jclass.name in self._classes:
            raise HierarchyError(f"duplicate class {jclass.name}")
        if jclass.superclass is not None and jclass.superclass.is_interface:
            raise HierarchyError(
                f"{jclass.name} cannot extend interface {jclass.superclass.name}"
            )
        self._classes[jclass.name] = jclass
        if jclass.superclass is not None:
            self._subclasses[jclass.superclass.name].append(jclass)
        for iface in jclass.interfaces:
            if not iface.is_interface:
                raise HierarchyError(
                    f"{jclass.name} lists non-interface {iface.name} as an interface"
                )
            if jclass.is_interface:
                self._subinterfaces[iface.name].append(jclass)
            else:
                self._implementors[iface.name].append(jclass)
        logger.debug("added %r", jclass)
        return jclass

    def get_class(self, name: str) -> Optional[JClass]:
        return self._classes.get(name)

    def all_classes(self) -> List[JClass]:
        return list(self._classes.values())

    def get_direct_subclasses_of(self, jclass: JClass) -> List[JClass]:
        return list(self._subclasses.get(jclass.name, ()))

    def get_direct_subinterfaces_of(self, jclass: JClass) -> List[JClass]:
        return list(self._subinterfaces.get(jclass.name, ()))

    def get_direct_implementors_of(self, jclass: JClass) -> List[JClass]:
        return list(self._implementors.get(jclass.name, ()))

    def is_subclass(self, superclass: JClass, subclass: JClass) -> bool:
        """True if *subclass* is *superclass* or inherits from it."""
        pending = [subclass]
        seen = set()
        while pending:
            current = pending.pop()
            if current is superclass:
                return True
            if current.name in seen:
                continue
            seen.add(current.name)
            if current.superclass is not None:
                pending.append(current.superclass)
            pending.extend(current.interfaces)
        return False

    def __contains__(self, jclass: JClass) -> bool:
        return self._classes.get(jclass.name) is jclass

    def __len__(self) -> int:
        return len(self._classes)

    def __repr__(self) -> str:
        return f"ClassHierarchy({len(self._classes)} classes)"
