"""
narrowcast/diagnostics.py
═════════════════════════

Diagnostic model, suppressions, and the emitter the tree walker reports
through.

A diagnostic is write-only from the analysis' point of view: the walker
calls ``DiagnosticEmitter.report`` once per lossy site and never looks at
what was recorded.  The rest of this module turns those records into
cppcheck's JSON addon protocol or GCC-style lines and filters them against
``// cppcheck-suppress`` comments and command-line suppressions.

License: MIT — same as narrowcast.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from fnmatch import fnmatch
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Iterable,
    List,
    Optional,
    Set,
    Tuple,
)

if TYPE_CHECKING:
    from narrowcast.policy import NarrowingRule
    from narrowcast.type_model import TypeQuery

_log = logging.getLogger(__name__)

ADDON_NAME = "narrowcast"


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — DIAGNOSTIC MODEL
# ═════════════════════════════════════════════════════════════════════════

class DiagnosticSeverity(Enum):
    """cppcheck-compatible severity levels."""
    ERROR = "error"
    WARNING = "warning"
    STYLE = "style"
    PERFORMANCE = "performance"
    PORTABILITY = "portability"
    INFORMATION = "information"

    @classmethod
    def from_string(cls, s: str) -> DiagnosticSeverity:
        """Parse a severity from its cppcheck name (case-insensitive)."""
        try:
            return cls(s.strip().lower())
        except ValueError:
            raise ValueError(
                f"unknown severity {s!r}; expected one of "
                + ", ".join(m.value for m in cls)
            ) from None


class ConversionContext(str, Enum):
    """Syntactic role of a checked conversion site."""
    VARIABLE_INITIALIZATION = "variable initialization"
    ASSIGNMENT = "assignment"
    FUNCTION_ARGUMENT = "function argument"
    RETURN_VALUE = "return value"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class SourceLocation:
    """A specific point in source code."""
    file: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.column:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.file}:{self.line}"

    @property
    def is_known(self) -> bool:
        return bool(self.file or self.line)


UNKNOWN_LOCATION = SourceLocation()


@dataclass(frozen=True)
class Diagnostic:
    """
    A single lossy-conversion finding.

    Designed for direct serialization to cppcheck's JSON addon protocol.

    Attributes
    ----------
    error_id     : cppcheck error id (``narrowingConversion`` ...)
    message      : Human-readable description
    severity     : DiagnosticSeverity
    location     : Where the conversion happens
    from_type    : Display name of the original source type
    to_type      : Display name of the destination type
    context      : Syntactic role of the site (assignment, ...)
    cwe          : CWE identifier (0 = none)
    checker_name : Name of the checker that produced this
    addon        : Addon name for cppcheck protocol
    extra        : Additional context string
    """
    error_id: str
    message: str
    severity: DiagnosticSeverity
    location: SourceLocation
    from_type: str = ""
    to_type: str = ""
    context: str = ""
    cwe: int = 0
    checker_name: str = ""
    addon: str = ADDON_NAME
    extra: str = ""

    def to_cppcheck_json(self) -> Dict[str, Any]:
        """Serialize to cppcheck's JSON addon output format."""
        result: Dict[str, Any] = {
            "file": self.location.file,
            "linenr": self.location.line,
            "column": self.location.column,
            "severity": self.severity.value,
            "message": self.message,
            "addon": self.addon,
            "errorId": self.error_id,
            "extra": self.extra,
        }
        if self.cwe:
            result["cwe"] = self.cwe
        return result

    def to_json_str(self) -> str:
        """Single-line JSON string for cppcheck addon stdout."""
        return json.dumps(self.to_cppcheck_json())

    def to_gcc_format(self) -> str:
        """GCC-style diagnostic string: file:line:col: severity: message."""
        sev = self.severity.value
        return f"{self.location}: {sev}: {self.message} [{self.error_id}]"


def format_message(from_type: str, to_type: str, context: str) -> str:
    return f"lossy conversion from '{from_type}' to '{to_type}' in {context}"


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — SUPPRESSION MANAGER
# ═════════════════════════════════════════════════════════════════════════

class SuppressionManager:
    """
    Manages diagnostic suppressions from multiple sources.

    Sources:
      1. Inline comments:  ``// cppcheck-suppress errorId``
      2. File-level suppressions (passed programmatically)
      3. Global suppressions (command-line or config)

    Usage
    -----
    >>> sm = SuppressionManager()
    >>> sm.load_inline_suppressions(cfg)
    >>> sm.add_file_suppression("narrowingConversion", "legacy/*.c")
    >>> sm.add_global_suppression("intToFloatPrecisionLoss")
    >>> kept = sm.filter_diagnostics(diagnostics)
    """

    def __init__(self) -> None:
        # {(file, line)} → set of error_ids suppressed at that location
        self._inline: Dict[Tuple[str, int], Set[str]] = defaultdict(set)
        # file pattern → set of error_ids
        self._file_level: Dict[str, Set[str]] = defaultdict(set)
        # globally suppressed error_ids
        self._global: Set[str] = set()

    def load_inline_suppressions(self, data: Any) -> None:
        """
        Read the suppressions cppcheck parsed into the dump.

        cppcheck records ``// cppcheck-suppress`` comments (and
        ``--suppress`` options) in ``data.suppressions``; entries with a
        line apply to that line, entries with only a file to the whole file.
        """
        for supp in getattr(data, "suppressions", None) or []:
            error_id = getattr(supp, "errorId", None)
            file = getattr(supp, "fileName", "") or ""
            try:
                line = int(getattr(supp, "lineNumber", 0) or 0)
            except (TypeError, ValueError):
                line = 0
            if not error_id:
                continue
            if file and line:
                self._inline[(file, line)].add(error_id)
            elif file:
                self._file_level[file].add(error_id)
            else:
                self._global.add(error_id)

    def add_file_suppression(self, error_id: str, file_pattern: str) -> None:
        """Suppress ``error_id`` in files matching ``file_pattern``."""
        self._file_level[file_pattern].add(error_id)

    def add_global_suppression(self, error_id: str) -> None:
        """Globally suppress ``error_id``."""
        self._global.add(error_id)

    def is_suppressed(self, diag: Diagnostic) -> bool:
        """Check whether a diagnostic should be suppressed."""
        eid = diag.error_id

        if eid in self._global or "*" in self._global:
            return True

        loc = diag.location

        # Inline (exact line match, or line-1 for preceding-line suppress)
        for line_offset in (0, 1):
            key = (loc.file, loc.line - line_offset)
            suppressed_ids = self._inline.get(key, set())
            if eid in suppressed_ids or "*" in suppressed_ids:
                return True

        for pattern, ids in self._file_level.items():
            if eid not in ids and "*" not in ids:
                continue
            if pattern == loc.file or loc.file.endswith(pattern):
                return True
            if fnmatch(loc.file, pattern):
                return True

        return False

    def filter_diagnostics(
        self, diagnostics: Iterable[Diagnostic]
    ) -> List[Diagnostic]:
        """Return only non-suppressed diagnostics."""
        return [d for d in diagnostics if not self.is_suppressed(d)]


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — EMITTER
# ═════════════════════════════════════════════════════════════════════════

@dataclass
class DiagnosticEmitter:
    """
    The reporting channel handed to the tree walker.

    ``report`` formats one finding and appends it to ``sink``.  It never
    raises: a failure to build the record is logged and the site is
    dropped, so one odd type handle cannot abort a whole function.
    """

    types: "TypeQuery"
    severity: DiagnosticSeverity = DiagnosticSeverity.WARNING
    checker_name: str = ""
    sink: List[Diagnostic] = field(default_factory=list)

    def report(
        self,
        location: SourceLocation,
        from_type: Any,
        to_type: Any,
        context: str,
        rule: Optional["NarrowingRule"] = None,
    ) -> None:
        try:
            from_name = self.types.display_name(from_type)
            to_name = self.types.display_name(to_type)
            error_id = rule.error_id if rule is not None else "narrowingConversion"
            cwe = rule.cwe if rule is not None else 197
            self.sink.append(Diagnostic(
                error_id=error_id,
                message=format_message(from_name, to_name, str(context)),
                severity=self.severity,
                location=location,
                from_type=from_name,
                to_type=to_name,
                context=str(context),
                cwe=cwe,
                checker_name=self.checker_name,
            ))
        except Exception:
            _log.exception("could not record diagnostic at %s", location)

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return list(self.sink)


__all__ = [
    "ADDON_NAME",
    "DiagnosticSeverity",
    "ConversionContext",
    "SourceLocation",
    "UNKNOWN_LOCATION",
    "Diagnostic",
    "format_message",
    "SuppressionManager",
    "DiagnosticEmitter",
]
