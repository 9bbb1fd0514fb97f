"""
tacflow.program
===============

The whole-program context handed to interprocedural analyses.

A :class:`Program` bundles the class hierarchy with the designated entry
method.  It is passed explicitly to :class:`~tacflow.callgraph.CHABuilder`;
nothing in this package keeps a process-wide "current program".
"""

from __future__ import annotations

from typing import Iterator, List

from tacflow.class_hierarchy import ClassHierarchy, JMethod
from tacflow.errors import HierarchyError
from tacflow.ir import Invoke


class Program:
    """Class hierarchy plus entry point.

    Parameters
    ----------
    hierarchy : ClassHierarchy
    main_method : JMethod
        Entry method; its declaring class must belong to *hierarchy*.
    """

    def __init__(self, hierarchy: ClassHierarchy, main_method: JMethod) -> None:
        if main_method.declaring_class not in hierarchy:
            raise HierarchyError(
                f"entry method {main_method.signature} is declared in a class "
                f"outside the hierarchy"
            )
        self.hierarchy = hierarchy
        self.main_method = main_method

    def get_class_hierarchy(self) -> ClassHierarchy:
        return self.hierarchy

    def get_main_method(self) -> JMethod:
        return self.main_method

    def call_sites_in(self, method: JMethod) -> Iterator[Invoke]:
        """Yield the call sites in *method*'s body (none if it has no body)."""
        if not method.has_ir():
            return iter(())
        return method.get_ir().invokes()

    def all_methods(self) -> List[JMethod]:
        methods: List[JMethod] = []
        for jclass in self.hierarchy.all_classes():
            methods.extend(jclass.get_declared_methods())
        return methods

    def __repr__(self) -> str:
        return f"Program(main={self.main_method.signature}, {self.hierarchy!r})"
