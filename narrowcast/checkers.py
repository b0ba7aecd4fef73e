"""
narrowcast/checkers.py
══════════════════════

Checker framework and the cppcheck addon entry point.

This is the host layer: it enumerates the function scopes of a cppcheck
dump, builds a syntax tree for each (``narrowcast.frontend``), runs the
narrowing walker over it once, and turns the findings into
cppcheck-addon-compatible diagnostics.

Architecture
────────────

  ┌─────────────────────────────────────────────────────────┐
  │                   CheckerRunner                         │
  │  ┌───────────────────────────────────────────────────┐  │
  │  │             NarrowingCastChecker                  │  │
  │  │   Function scope ──► TreeBuilder ──► analyze()    │  │
  │  └─────────────────────────┬─────────────────────────┘  │
  │                            │                            │
  │  ┌─────────────────────────▼─────────────────────────┐  │
  │  │           SuppressionManager                      │  │
  │  │  // cppcheck-suppress  │  file-level  │  global   │  │
  │  └─────────────────────────┬─────────────────────────┘  │
  │                            │                            │
  │  ┌─────────────────────────▼─────────────────────────┐  │
  │  │   JSON (cppcheck protocol) / GCC / summary /      │  │
  │  │   pretty (narrowcast.reporter)                    │  │
  │  └───────────────────────────────────────────────────┘  │
  └─────────────────────────────────────────────────────────┘

Each Checker follows a four-phase lifecycle:

  1. **configure()**        — read options, set up the emitter
  2. **collect_evidence()** — build one syntax tree per function
  3. **diagnose()**         — run the walker over every tree
  4. **report()**           — return diagnostics (filtered by suppressions)

Command line
────────────
    narrowcast file.c.dump [--output json|gcc|summary|pretty]
                           [--suppress ID ...] [--severity SEV]
                           [--log-level LEVEL] [--list-checkers]

Exit status: 0 no findings, 1 findings, 2 the dump could not be loaded.

License: MIT — same as narrowcast.
"""

from __future__ import annotations

import logging
import sys
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from typing import (
    Any,
    ClassVar,
    Dict,
    FrozenSet,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    Type,
)

from narrowcast.diagnostics import (
    Diagnostic,
    DiagnosticEmitter,
    DiagnosticSeverity,
    SourceLocation,
    SuppressionManager,
)
from narrowcast.errors import DumpLoadError, FrontendError
from narrowcast.frontend import TreeBuilder
from narrowcast.policy import NarrowingRule
from narrowcast.tree import Block, FunctionDecl
from narrowcast.type_model import LP64, CTypeQuery, Platform
from narrowcast.walker import AnalysisContext, analyze_function

_log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_LOAD_ERROR = 2

OUTPUT_FORMATS = ("json", "gcc", "summary", "pretty")


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — CHECKER BASE CLASS
# ═════════════════════════════════════════════════════════════════════════

class Checker(ABC):
    """
    Abstract base class for all checkers.

    Lifecycle
    ─────────
      1. ``configure(ctx)``        — receive context, read options
      2. ``collect_evidence(ctx)``  — gather what is to be checked
      3. ``diagnose(ctx)``          — turn evidence into diagnostics
      4. ``report(ctx)``            — yield final diagnostics

    Subclass Contract
    ─────────────────
      - Override ``name``, ``description``, ``error_ids``
      - Implement ``collect_evidence()`` and ``diagnose()``
      - Optionally override ``configure()`` for custom setup
    """

    name: ClassVar[str] = "base-checker"
    description: ClassVar[str] = ""
    error_ids: ClassVar[FrozenSet[str]] = frozenset()
    default_severity: ClassVar[DiagnosticSeverity] = DiagnosticSeverity.WARNING
    cwe_ids: ClassVar[Dict[str, int]] = {}  # error_id → CWE number

    def __init__(self) -> None:
        self._diagnostics: List[Diagnostic] = []

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return list(self._diagnostics)

    def configure(self, ctx: CheckerContext) -> None:
        """
        Called before evidence collection.

        Override to read configuration.  Default implementation does nothing.
        """
        pass

    @abstractmethod
    def collect_evidence(self, ctx: CheckerContext) -> None:
        ...

    @abstractmethod
    def diagnose(self, ctx: CheckerContext) -> None:
        """Append diagnostics to ``self._diagnostics``."""
        ...

    def report(self, ctx: CheckerContext) -> List[Diagnostic]:
        """Return final diagnostics, filtered by suppressions."""
        return ctx.suppressions.filter_diagnostics(self._diagnostics)

    def severity(self, ctx: CheckerContext) -> DiagnosticSeverity:
        """The severity requested in the options, else the default."""
        option = ctx.get_option("severity")
        if option is None:
            return self.default_severity
        if isinstance(option, DiagnosticSeverity):
            return option
        return DiagnosticSeverity.from_string(str(option))

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} '{self.name}'>"


@dataclass
class CheckerContext:
    """
    Shared context passed to every checker during execution.

    Attributes
    ----------
    cfg          : cppcheckdata.Configuration
    platform     : bit widths of the analysed target
    suppressions : SuppressionManager
    options      : user-provided options dict
    stats        : mutable dict for timing / counting statistics
    """
    cfg: Any  # cppcheckdata.Configuration
    platform: Platform = LP64
    suppressions: SuppressionManager = field(default_factory=SuppressionManager)
    options: Dict[str, Any] = field(default_factory=dict)
    stats: Dict[str, Any] = field(default_factory=dict)

    def get_option(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)

    def bump(self, key: str, amount: int = 1) -> None:
        self.stats[key] = self.stats.get(key, 0) + amount


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — CHECKER REGISTRY
# ═════════════════════════════════════════════════════════════════════════

class CheckerRegistry:
    """
    Registry of available checkers with discovery and filtering.

    Usage
    -----
    >>> registry = CheckerRegistry()
    >>> registry.register(NarrowingCastChecker)
    >>> checkers = registry.get_enabled()
    >>> checkers = registry.filter_by_error_id("narrowingConversion")
    """

    def __init__(self) -> None:
        self._checkers: Dict[str, Type[Checker]] = {}
        self._disabled: Set[str] = set()

    def register(self, checker_cls: Type[Checker]) -> None:
        self._checkers[checker_cls.name] = checker_cls

    def disable(self, name: str) -> None:
        self._disabled.add(name)

    def enable(self, name: str) -> None:
        self._disabled.discard(name)

    def get_enabled(self) -> List[Type[Checker]]:
        return [
            cls for name, cls in self._checkers.items()
            if name not in self._disabled
        ]

    def get_by_name(self, name: str) -> Optional[Type[Checker]]:
        return self._checkers.get(name)

    def filter_by_error_id(self, error_id: str) -> List[Type[Checker]]:
        """Return checkers that can produce the given error_id."""
        return [
            cls for cls in self._checkers.values()
            if error_id in cls.error_ids
        ]

    @property
    def names(self) -> List[str]:
        return sorted(self._checkers.keys())


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — NARROWING CAST CHECKER
# ═════════════════════════════════════════════════════════════════════════

class NarrowingCastChecker(Checker):
    """
    Detects 64 → 32 bit conversions that lose range or precision.

    Every variable initialization, assignment, direct-call argument and
    return value in every function body is checked; explicit casts are
    reported exactly like implicit conversions.

    CWE-197: Numeric Truncation Error
    CWE-681: Incorrect Conversion between Numeric Types
    """

    name: ClassVar[str] = "narrowing-cast"
    description: ClassVar[str] = "Lossy 64-bit to 32-bit numeric conversions"
    error_ids: ClassVar[FrozenSet[str]] = frozenset(r.error_id for r in NarrowingRule)
    cwe_ids: ClassVar[Dict[str, int]] = {r.error_id: r.cwe for r in NarrowingRule}

    def __init__(self) -> None:
        super().__init__()
        self._functions: List[Tuple[FunctionDecl, Block]] = []
        self._context: Optional[AnalysisContext] = None

    def configure(self, ctx: CheckerContext) -> None:
        types = CTypeQuery()
        emitter = DiagnosticEmitter(
            types=types,
            severity=self.severity(ctx),
            checker_name=self.name,
            sink=self._diagnostics,
        )
        self._context = AnalysisContext(types=types, emitter=emitter)

    def collect_evidence(self, ctx: CheckerContext) -> None:
        scopes = list(getattr(ctx.cfg, "scopes", None) or [])
        builder = TreeBuilder(ctx.platform, scopes=scopes)
        for scope in scopes:
            if getattr(scope, "type", "") != "Function":
                continue
            try:
                self._functions.append(builder.build_function(scope))
            except FrontendError as exc:
                _log.warning("skipping function: %s", exc)
                ctx.bump("functions_skipped")

    def diagnose(self, ctx: CheckerContext) -> None:
        if self._context is None:
            self.configure(ctx)
        for decl, body in self._functions:
            analyze_function(decl, body, self._context)
            ctx.bump("functions_analyzed")


# ═════════════════════════════════════════════════════════════════════════
#  PART 4 — CHECKER RUNNER
# ═════════════════════════════════════════════════════════════════════════

_DEFAULT_REGISTRY = CheckerRegistry()
_DEFAULT_REGISTRY.register(NarrowingCastChecker)


@dataclass
class CheckerRunResults:
    """
    Aggregate results from running a suite of checkers.

    Attributes
    ----------
    diagnostics            : All diagnostics from all checkers
    diagnostics_by_checker : Diagnostics grouped by checker name
    stats                  : Timing and counting statistics
    checker_names          : Names of checkers that were run
    """
    diagnostics: List[Diagnostic] = field(default_factory=list)
    diagnostics_by_checker: Dict[str, List[Diagnostic]] = field(
        default_factory=lambda: defaultdict(list)
    )
    stats: Dict[str, Any] = field(default_factory=dict)
    checker_names: List[str] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(
            1 for d in self.diagnostics
            if d.severity == DiagnosticSeverity.ERROR
        )

    @property
    def warning_count(self) -> int:
        return sum(
            1 for d in self.diagnostics
            if d.severity == DiagnosticSeverity.WARNING
        )

    @property
    def total_count(self) -> int:
        return len(self.diagnostics)

    def by_error_id(self, error_id: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.error_id == error_id]

    def by_file(self, file: str) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.location.file == file]

    def by_cwe(self, cwe: int) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.cwe == cwe]

    def to_json_lines(self) -> str:
        """Format all diagnostics as cppcheck JSON addon output."""
        return "\n".join(d.to_json_str() for d in self.diagnostics)

    def to_gcc_format(self) -> str:
        return "\n".join(d.to_gcc_format() for d in self.diagnostics)

    def summary(self) -> str:
        """Human-readable summary."""
        lines = [
            f"Checker run complete: {self.total_count} diagnostics "
            f"({self.error_count} errors, {self.warning_count} warnings)",
        ]
        for name in self.checker_names:
            count = len(self.diagnostics_by_checker.get(name, []))
            elapsed = self.stats.get(f"{name}_elapsed_ms", 0)
            lines.append(f"  {name}: {count} findings ({elapsed:.1f}ms)")
        analyzed = self.stats.get("functions_analyzed", 0)
        skipped = self.stats.get("functions_skipped", 0)
        lines.append(f"  functions: {analyzed} analyzed, {skipped} skipped")
        return "\n".join(lines)


def _diagnostic_key(diag: Diagnostic) -> Tuple[str, int, int, str, str]:
    loc = diag.location
    return (loc.file, loc.line, loc.column, diag.error_id, diag.message)


class CheckerRunner:
    """
    Runs a suite of checkers against a cppcheck Configuration.

    Usage
    -----
    >>> runner = CheckerRunner()
    >>> results = runner.run(cfg)
    >>> print(results.summary())

    >>> # Every configuration of a dump, suppressions from the dump applied:
    >>> results = runner.run_all_configurations(data)

    Parameters for constructor
    ─────────────────────────
    registry    : CheckerRegistry — source of checker classes
    suppressions: SuppressionManager — pre-loaded suppression rules
    options     : dict — per-checker configuration (``severity``)
    """

    def __init__(
        self,
        registry: Optional[CheckerRegistry] = None,
        suppressions: Optional[SuppressionManager] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.registry = registry or _DEFAULT_REGISTRY
        self.suppressions = suppressions or SuppressionManager()
        self.options = options or {}

    def run(
        self,
        cfg: Any,
        checkers: Optional[Sequence[str]] = None,
        platform: Platform = LP64,
    ) -> CheckerRunResults:
        """
        Run checkers against a single Configuration.

        Parameters
        ----------
        cfg      : cppcheckdata.Configuration
        checkers : list of checker names to run (None = all enabled)
        platform : bit widths of the analysed target

        Returns
        -------
        CheckerRunResults
        """
        results = CheckerRunResults()
        ctx = CheckerContext(
            cfg=cfg,
            platform=platform,
            suppressions=self.suppressions,
            options=self.options,
        )

        if checkers is not None:
            checker_classes: List[Type[Checker]] = []
            for name in checkers:
                cls = self.registry.get_by_name(name)
                if cls is None:
                    _log.warning("unknown checker %r", name)
                    continue
                checker_classes.append(cls)
        else:
            checker_classes = self.registry.get_enabled()

        for cls in checker_classes:
            checker = cls()
            checker_name = cls.name
            results.checker_names.append(checker_name)

            t0 = time.monotonic()
            try:
                checker.configure(ctx)
                checker.collect_evidence(ctx)
                checker.diagnose(ctx)
                diags = checker.report(ctx)
            except Exception as exc:
                # Graceful degradation: report the failure, don't crash
                _log.exception("checker %s failed", checker_name)
                diags = [Diagnostic(
                    error_id="checkerInternalError",
                    message=f"Checker '{checker_name}' failed: {exc}",
                    severity=DiagnosticSeverity.INFORMATION,
                    location=SourceLocation(),
                    checker_name=checker_name,
                )]
            elapsed_ms = (time.monotonic() - t0) * 1000.0

            results.diagnostics.extend(diags)
            results.diagnostics_by_checker[checker_name] = diags
            results.stats[f"{checker_name}_elapsed_ms"] = elapsed_ms

        results.stats.update(ctx.stats)
        return results

    def run_all_configurations(
        self,
        data: Any,
        checkers: Optional[Sequence[str]] = None,
    ) -> CheckerRunResults:
        """
        Run checkers across all configurations in a CppcheckData dump.

        The same function usually appears in every preprocessor
        configuration; a finding reported by more than one is kept once.

        Parameters
        ----------
        data     : cppcheckdata.CppcheckData (result of parsedump())
        checkers : list of checker names (None = all enabled)
        """
        self.suppressions.load_inline_suppressions(data)
        platform = Platform.from_cppcheck(getattr(data, "platform", None))
        _log.debug("platform %s: int=%d long=%d long long=%d", platform.name,
                   platform.int_bit, platform.long_bit, platform.long_long_bit)

        combined = CheckerRunResults()
        seen: Set[Tuple[str, int, int, str, str]] = set()
        for cfg in getattr(data, "configurations", None) or []:
            _log.info("checking configuration %r", getattr(cfg, "name", ""))
            partial = self.run(cfg, checkers=checkers, platform=platform)
            for name, diags in partial.diagnostics_by_checker.items():
                for diag in diags:
                    key = _diagnostic_key(diag)
                    if key in seen:
                        continue
                    seen.add(key)
                    combined.diagnostics.append(diag)
                    combined.diagnostics_by_checker[name].append(diag)
            for key, val in partial.stats.items():
                combined.stats[key] = combined.stats.get(key, 0) + val
            for name in partial.checker_names:
                if name not in combined.checker_names:
                    combined.checker_names.append(name)
        return combined


# ═════════════════════════════════════════════════════════════════════════
#  PART 5 — CONVENIENCE ENTRY POINT FOR CPPCHECK ADDONS
# ═════════════════════════════════════════════════════════════════════════

def load_dump(dump_file: str) -> Any:
    """
    Parse a ``cppcheck --dump`` file with ``cppcheckdata``.

    Raises
    ------
    DumpLoadError
        if ``cppcheckdata`` is not importable or the file cannot be parsed.
    """
    try:
        from cppcheckdata import parsedump  # type: ignore[import-untyped]
    except ImportError as exc:
        raise DumpLoadError(
            "cppcheckdata module not found (it ships with cppcheck's addons)",
            dump_file,
        ) from exc
    try:
        return parsedump(dump_file)
    except (OSError, SyntaxError, ValueError) as exc:
        # xml.etree's ParseError is a SyntaxError
        raise DumpLoadError(f"cannot parse dump: {exc}", dump_file) from exc


def run_addon(
    dump_file: str,
    checkers: Optional[Sequence[str]] = None,
    output: str = "json",
    suppress: Optional[Sequence[str]] = None,
    severity: Optional[str] = None,
) -> int:
    """
    Run the checker suite as a cppcheck addon entry point.

    Parameters
    ----------
    dump_file : Path to the .dump file from ``cppcheck --dump``
    checkers  : Checker names to run (None = all)
    output    : "json" for cppcheck protocol, "gcc" for GCC-style,
                "summary", or "pretty" for coloured terminal output
    suppress  : Error IDs to globally suppress
    severity  : Severity to report findings with (default: warning)

    Returns
    -------
    Exit code (0 = no findings, 1 = findings, 2 = dump not loadable)
    """
    try:
        data = load_dump(dump_file)
    except DumpLoadError as exc:
        sys.stderr.write(f"ERROR: {exc}\n")
        return EXIT_LOAD_ERROR

    sm = SuppressionManager()
    for eid in suppress or ():
        sm.add_global_suppression(eid)

    options: Dict[str, Any] = {}
    if severity:
        options["severity"] = DiagnosticSeverity.from_string(severity)

    runner = CheckerRunner(suppressions=sm, options=options)
    results = runner.run_all_configurations(data, checkers=checkers)

    if output == "json":
        for diag in results.diagnostics:
            sys.stdout.write(diag.to_json_str() + "\n")
    elif output == "gcc":
        for diag in results.diagnostics:
            sys.stdout.write(diag.to_gcc_format() + "\n")
    elif output == "pretty":
        from narrowcast.reporter import TerminalReporter

        with TerminalReporter(sys.stdout) as reporter:
            reporter.report_all(results.diagnostics)
    else:
        sys.stdout.write(results.summary() + "\n")

    return EXIT_FINDINGS if results.total_count > 0 else EXIT_OK


# ═════════════════════════════════════════════════════════════════════════
#  PART 6 — MODULE MAIN (addon entry point)
# ═════════════════════════════════════════════════════════════════════════

def _configure_logging(level: str) -> None:
    """Send ``narrowcast`` log records to stderr at ``level``."""
    root = logging.getLogger("narrowcast")
    root.setLevel(level.upper())
    if root.handlers:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(fmt="%(levelname)s %(name)s: %(message)s")
    )
    root.addHandler(handler)


def _severity_arg(value: str) -> str:
    import argparse

    try:
        DiagnosticSeverity.from_string(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None
    return value


def _main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entry point for ``narrowcast`` / ``python -m narrowcast``."""
    import argparse

    from narrowcast import __version__

    parser = argparse.ArgumentParser(
        description="Report lossy 64-bit to 32-bit numeric conversions "
                    "in a cppcheck dump",
        prog="narrowcast",
    )
    parser.add_argument("dump_files", nargs="*", metavar="dump_file",
                        help="Path to .dump file(s)")
    parser.add_argument(
        "--checkers", nargs="*", default=None,
        help="Checker names to run (default: all)",
    )
    parser.add_argument(
        "--output", choices=OUTPUT_FORMATS,
        default="json", help="Output format",
    )
    parser.add_argument(
        "--cli", action="store_true",
        help="Invoked by cppcheck: emit the JSON addon protocol",
    )
    parser.add_argument(
        "--suppress", nargs="*", default=None,
        help="Error IDs to suppress",
    )
    parser.add_argument(
        "--severity", type=_severity_arg, default=None,
        help="Severity of reported findings (default: warning)",
    )
    parser.add_argument(
        "--log-level", default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper, help="Diagnostic logging on stderr",
    )
    parser.add_argument(
        "--list-checkers", action="store_true",
        help="List available checkers and exit",
    )
    parser.add_argument("--version", action="version", version=__version__)

    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    if args.list_checkers:
        for name in _DEFAULT_REGISTRY.names:
            cls = _DEFAULT_REGISTRY.get_by_name(name)
            desc = cls.description if cls else ""
            ids = ", ".join(sorted(cls.error_ids)) if cls else ""
            cwes = ", ".join(
                f"CWE-{v}" for v in sorted(set(cls.cwe_ids.values()))
            ) if cls else ""
            print(f"  {name:25s} {desc}")
            print(f"  {'':25s} IDs: {ids}")
            print(f"  {'':25s} CWEs: {cwes}")
            print()
        sys.exit(EXIT_OK)

    if not args.dump_files:
        parser.error("at least one dump file is required")

    output = "json" if args.cli else args.output
    exit_code = EXIT_OK
    for dump_file in args.dump_files:
        code = run_addon(
            dump_file=dump_file,
            checkers=args.checkers,
            output=output,
            suppress=args.suppress,
            severity=args.severity,
        )
        exit_code = max(exit_code, code)
    sys.exit(exit_code)


if __name__ == "__main__":
    _main()


# ═════════════════════════════════════════════════════════════════════════
#  PART 7 — PUBLIC API
# ═════════════════════════════════════════════════════════════════════════

__all__ = [
    "Checker",
    "CheckerContext",
    "CheckerRegistry",
    "NarrowingCastChecker",
    "CheckerRunner",
    "CheckerRunResults",
    "load_dump",
    "run_addon",
    "EXIT_OK",
    "EXIT_FINDINGS",
    "EXIT_LOAD_ERROR",
]
