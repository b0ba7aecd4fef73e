"""
narrowcast — lossy numeric conversion checker for C/C++
=======================================================

Walks every function body of a program and reports the conversions that
drop a 64-bit value into a 32-bit type: ``int64_t`` → ``int32_t``,
``double`` → ``float``, 64-bit integer → ``float`` and ``double`` → 32-bit
integer.  Explicit casts are reported exactly like implicit conversions.
Programs are read from ``cppcheck --dump`` files.

Core modules
------------
type_model
    Type handles, the ``TypeQuery`` facade and target bit widths.
tree
    The syntax tree of a function body as the analysis sees it.
resolve
    Seeing through conversion wrappers to the original source type.
policy
    The 64 → 32 bit narrowing decision table.
diagnostics
    Diagnostic model, suppressions and the reporting emitter.
walker
    The tree walker and the per-function ``analyze()`` entry point.
errors
    Exceptions raised by the host layer.

Host modules
------------
frontend
    cppcheck token AST → syntax tree.
checkers
    Checker framework, runner and the ``narrowcast`` command.
reporter
    Colour terminal output.

Quick start
-----------
>>> from narrowcast import analyze, Assign, VarRef, named_type
>>> i32, i64 = named_type("int32_t"), named_type("int64_t")
>>> diags = analyze(Assign(VarRef("a", i32), VarRef("b", i64)))
>>> print(diags[0].message)
lossy conversion from 'int64_t' to 'int32_t' in assignment
"""

from __future__ import annotations

import importlib
import logging
import sys
import warnings
from typing import TYPE_CHECKING, List

# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------

__version__ = "0.2.0"
__author__ = "narrowcast contributors"
__license__ = "MIT"
__all__: List[str] = []          # populated incrementally below

_log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Internal registry: (module_name, list_of_names_to_import)
#
#   CORE  — always imported; failure is fatal
#   ADDON — the cppcheck host; failure only warns (the core stays usable)
# ---------------------------------------------------------------------------

_CORE_MODULES = {
    "type_model": [
        "CType",
        "TypeKind",
        "TypeQuery",
        "CTypeQuery",
        "Platform",
        "named_type",
        "valuetype_to_ctype",
    ],
    "diagnostics": [
        "Diagnostic",
        "DiagnosticSeverity",
        "DiagnosticEmitter",
        "ConversionContext",
        "SourceLocation",
        "SuppressionManager",
    ],
    "tree": [
        "Node",
        "NodeKind",
        "ConversionOp",
        "FunctionDecl",
        "VarRef",
        "Literal",
        "FunctionRef",
        "AddressOf",
        "Convert",
        "InitExpr",
        "Assign",
        "Call",
        "Operation",
        "VarDecl",
        "DeclStmt",
        "Return",
        "ExprStmt",
        "Block",
        "Bind",
        "If",
        "For",
        "While",
        "DoWhile",
        "Switch",
        "CaseLabel",
        "Opaque",
    ],
    "resolve": [
        "resolve_original_type",
        "resolve_callee",
    ],
    "policy": [
        "Verdict",
        "NarrowingRule",
        "classify",
        "narrowing_rule",
    ],
    "walker": [
        "AnalysisContext",
        "FunctionContext",
        "NarrowingWalker",
        "analyze",
        "analyze_function",
    ],
    "errors": [
        "NarrowcastError",
        "DumpLoadError",
        "FrontendError",
    ],
}

_ADDON_MODULES = {
    "frontend": [
        "TreeBuilder",
    ],
    "checkers": [
        "NarrowingCastChecker",
        "CheckerRunner",
        "run_addon",
    ],
    "reporter": [
        "TerminalReporter",
    ],
}

# ---------------------------------------------------------------------------
# Import helper
# ---------------------------------------------------------------------------

def _import_names(
    module_rel_name: str,
    names: List[str],
    *,
    fatal: bool = True,
) -> None:
    """Import *names* from a submodule and bind them in the package namespace.

    Parameters
    ----------
    module_rel_name:
        Module name relative to this package (e.g. ``"walker"``).
    names:
        Public symbols to re-export.
    fatal:
        If ``True``, an ``ImportError`` propagates.  If ``False``, a warning
        is issued and the names are skipped (addon tier).
    """
    fq_name = f"{__name__}.{module_rel_name}"
    try:
        mod = importlib.import_module(fq_name)
    except ImportError as exc:
        if fatal:
            raise ImportError(
                f"narrowcast: required submodule '{module_rel_name}' "
                f"failed to import: {exc}"
            ) from exc
        warnings.warn(
            f"narrowcast: optional submodule '{module_rel_name}' "
            f"could not be imported ({exc}); related symbols will be unavailable.",
            ImportWarning,
            stacklevel=2,
        )
        _log.debug("Skipped optional module %s: %s", module_rel_name, exc)
        return

    current_module = sys.modules[__name__]
    for name in names:
        obj = getattr(mod, name, None)
        if obj is None:
            msg = f"narrowcast.{module_rel_name} does not export '{name}'"
            if fatal:
                raise AttributeError(msg)
            _log.warning(msg)
            continue
        setattr(current_module, name, obj)
        __all__.append(name)

    setattr(current_module, module_rel_name, mod)
    if module_rel_name not in __all__:
        __all__.append(module_rel_name)


for _mod, _names in _CORE_MODULES.items():
    _import_names(_mod, _names, fatal=True)

for _mod, _names in _ADDON_MODULES.items():
    _import_names(_mod, _names, fatal=False)

del _mod, _names

__all__ += ["__version__"]

if TYPE_CHECKING:
    from .type_model import (
        CType as CType,
        TypeKind as TypeKind,
        TypeQuery as TypeQuery,
        CTypeQuery as CTypeQuery,
        Platform as Platform,
        named_type as named_type,
        valuetype_to_ctype as valuetype_to_ctype,
    )
    from .diagnostics import (
        Diagnostic as Diagnostic,
        DiagnosticSeverity as DiagnosticSeverity,
        DiagnosticEmitter as DiagnosticEmitter,
        ConversionContext as ConversionContext,
        SourceLocation as SourceLocation,
        SuppressionManager as SuppressionManager,
    )
    from .tree import (
        Node as Node,
        NodeKind as NodeKind,
        ConversionOp as ConversionOp,
        FunctionDecl as FunctionDecl,
        VarRef as VarRef,
        Literal as Literal,
        FunctionRef as FunctionRef,
        AddressOf as AddressOf,
        Convert as Convert,
        InitExpr as InitExpr,
        Assign as Assign,
        Call as Call,
        Operation as Operation,
        VarDecl as VarDecl,
        DeclStmt as DeclStmt,
        Return as Return,
        ExprStmt as ExprStmt,
        Block as Block,
        Bind as Bind,
        If as If,
        For as For,
        While as While,
        DoWhile as DoWhile,
        Switch as Switch,
        CaseLabel as CaseLabel,
        Opaque as Opaque,
    )
    from .resolve import (
        resolve_original_type as resolve_original_type,
        resolve_callee as resolve_callee,
    )
    from .policy import (
        Verdict as Verdict,
        NarrowingRule as NarrowingRule,
        classify as classify,
        narrowing_rule as narrowing_rule,
    )
    from .walker import (
        AnalysisContext as AnalysisContext,
        FunctionContext as FunctionContext,
        NarrowingWalker as NarrowingWalker,
        analyze as analyze,
        analyze_function as analyze_function,
    )
    from .errors import (
        NarrowcastError as NarrowcastError,
        DumpLoadError as DumpLoadError,
        FrontendError as FrontendError,
    )
    from .frontend import TreeBuilder as TreeBuilder
    from .checkers import (
        NarrowingCastChecker as NarrowingCastChecker,
        CheckerRunner as CheckerRunner,
        run_addon as run_addon,
    )
    from .reporter import TerminalReporter as TerminalReporter
