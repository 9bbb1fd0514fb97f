"""
tacflow: Dataflow and Call-Graph Analyses over a Three-Address IR
==================================================================

This package provides classic static analyses for Java-like programs in a
three-address intermediate representation: intraprocedural constant
propagation and live variables on a worklist solver, dead-code detection
combining both with CFG reachability, and whole-program call graph
construction by class hierarchy analysis (CHA).

Modules
-------
errors
    Exception hierarchy (raised only on API misuse).
config
    ``AnalysisConfig``: per-analysis id and options.
ir
    Types, variables, expressions, statements and method bodies.
ctrlflow_graph
    Statement-level CFG container with labelled edges.
class_hierarchy
    Classes, methods, subsignatures and sub-type indexes.
program
    Explicit whole-program context (hierarchy + main method).
abstract_domains
    The UNDEF / constant / NAC value lattice and per-node facts.
dataflow_engine
    Analysis base class and the worklist fixpoint solver.
dataflow_analyses
    ``ConstantPropagation`` and ``LiveVariableAnalysis``.
ctrlflow_analyses
    ``DeadCodeDetection``.
callgraph
    ``CallGraph`` and ``CHABuilder``.

Quick start
-----------
>>> from tacflow import Var, IntLiteral, ArithmeticExp, ArithmeticOp, CPFact, Value
>>> from tacflow import ConstantPropagation
>>> x, y = Var("x"), Var("y")
>>> fact = CPFact()
>>> fact.update(x, Value.make_constant(1))
True
>>> fact.update(y, Value.make_constant(2))
True
>>> ConstantPropagation.evaluate(ArithmeticExp(ArithmeticOp.ADD, x, y), fact)
3
"""

from __future__ import annotations

import importlib
import logging
import sys
from typing import List

# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------

__version__ = "0.1.0"
__author__ = "tacflow contributors"
__license__ = "MIT"
__all__: List[str] = []          # populated below

_log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Registry: module name -> public names re-exported at package level.
# Modules are listed leaves first; every one is required.
# ---------------------------------------------------------------------------

_CORE_MODULES = {
    "errors": [
        "TacflowError",
        "AnalysisError",
        "MalformedCFGError",
        "ConvergenceError",
        "HierarchyError",
    ],
    "config": [
        "AnalysisConfig",
    ],
    "ir": [
        "PrimitiveType",
        "ClassType",
        "ArrayType",
        "can_hold_int",
        "Var",
        "IntLiteral",
        "ArithmeticOp",
        "BitwiseOp",
        "ConditionOp",
        "ShiftOp",
        "ArithmeticExp",
        "BitwiseExp",
        "ConditionExp",
        "ShiftExp",
        "NegExp",
        "CastExp",
        "NewExp",
        "FieldRef",
        "FieldAccess",
        "ArrayAccess",
        "CallKind",
        "InvokeExp",
        "Stmt",
        "DefinitionStmt",
        "AssignStmt",
        "Invoke",
        "If",
        "SwitchStmt",
        "Goto",
        "Return",
        "Nop",
        "IR",
    ],
    "ctrlflow_graph": [
        "EdgeKind",
        "CFGEdge",
        "CFG",
        "cfg_summary",
    ],
    "class_hierarchy": [
        "Subsignature",
        "JMethod",
        "JClass",
        "MethodRef",
        "ClassHierarchy",
    ],
    "program": [
        "Program",
    ],
    "abstract_domains": [
        "Value",
        "meet_value",
        "MapFact",
        "CPFact",
        "SetFact",
    ],
    "dataflow_engine": [
        "Direction",
        "WorklistStrategy",
        "DataflowAnalysis",
        "DataflowResult",
        "WorklistSolver",
        "solve",
    ],
    "dataflow_analyses": [
        "ConstantPropagation",
        "LiveVariableAnalysis",
        "evaluate",
    ],
    "ctrlflow_analyses": [
        "DeadCodeDetection",
        "DeadCodeResult",
        "has_no_side_effect",
        "detect_dead_code",
    ],
    "callgraph": [
        "call_kind_of",
        "CallGraphEdge",
        "CallGraph",
        "CHABuilder",
        "build_callgraph",
        "callgraph_summary",
        "unreachable_methods",
    ],
}


def _import_names(module_rel_name: str, names: List[str]) -> None:
    """Import *names* from a submodule and bind them in the package namespace.

    Parameters
    ----------
    module_rel_name:
        Module name relative to this package (e.g. ``"ir"``).
    names:
        Public symbols to re-export.
    """
    fq_name = f"{__name__}.{module_rel_name}"
    try:
        mod = importlib.import_module(fq_name)
    except ImportError as exc:
        raise ImportError(
            f"tacflow: required submodule '{module_rel_name}' "
            f"failed to import: {exc}"
        ) from exc

    current_module = sys.modules[__name__]
    for name in names:
        if not hasattr(mod, name):
            raise AttributeError(f"tacflow.{module_rel_name} does not export '{name}'")
        setattr(current_module, name, getattr(mod, name))
        __all__.append(name)

    setattr(current_module, module_rel_name, mod)
    if module_rel_name not in __all__:
        __all__.append(module_rel_name)


for _mod, _names in _CORE_MODULES.items():
    _import_names(_mod, _names)

del _mod, _names

_log.debug("tacflow %s loaded %d modules", __version__, len(_CORE_MODULES))


def list_submodules() -> List[str]:
    """Return the names of all submodules in the package."""
    return sorted(_CORE_MODULES)
