"""
narrowcast/reporter.py
══════════════════════

Colourful terminal rendering of narrowing diagnostics.

``--output pretty`` uses this instead of the cppcheck JSON protocol:

    warning[narrowingConversion]: lossy conversion from 'int64_t' to 'int32_t' in assignment
      --> demo.c:14:9
       14 |     i32 = i64;
          |         ^ 'int64_t' does not fit in 'int32_t'
      = CWE-197: https://cwe.mitre.org/data/definitions/197.html
    [demo.c:14]: (warning) lossy conversion ... [narrowingConversion]

When the stream is not a TTY (or ``colour=False``) only the classic
cppcheck one-liner is written.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, TextIO, Union

from termcolor import colored

from narrowcast.diagnostics import Diagnostic, DiagnosticSeverity, SourceLocation

_SEVERITY_COLOURS: Dict[DiagnosticSeverity, str] = {
    DiagnosticSeverity.ERROR: "red",
    DiagnosticSeverity.WARNING: "yellow",
    DiagnosticSeverity.STYLE: "cyan",
    DiagnosticSeverity.PERFORMANCE: "magenta",
    DiagnosticSeverity.PORTABILITY: "blue",
    DiagnosticSeverity.INFORMATION: "white",
}


def cppcheck_line(diag: Diagnostic) -> str:
    """Classic one-liner: ``[file:line]: (severity) message [id]``."""
    loc = diag.location
    return (f"[{loc.file}:{loc.line}]: ({diag.severity.value}) "
            f"{diag.message} [{diag.error_id}]")


@dataclass
class ReporterStats:
    """Aggregate counts per severity."""
    error: int = 0
    warning: int = 0
    style: int = 0
    performance: int = 0
    portability: int = 0
    information: int = 0

    def record(self, severity: DiagnosticSeverity) -> None:
        attr = severity.value
        setattr(self, attr, getattr(self, attr) + 1)

    @property
    def total(self) -> int:
        return (
            self.error
            + self.warning
            + self.style
            + self.performance
            + self.portability
            + self.information
        )

    def summary_line(self) -> str:
        parts: List[str] = []
        if self.error:
            parts.append(f"{self.error} error{'s' if self.error != 1 else ''}")
        if self.warning:
            parts.append(f"{self.warning} warning{'s' if self.warning != 1 else ''}")
        if self.style:
            parts.append(f"{self.style} style")
        if self.performance:
            parts.append(f"{self.performance} performance")
        if self.portability:
            parts.append(f"{self.portability} portability")
        if self.information:
            parts.append(f"{self.information} info")
        if not parts:
            return "no lossy conversions found"
        return "; ".join(parts) + f" ({self.total} total)"


# ═════════════════════════════════════════════════════════════════════════
#  RENDERERS
# ═════════════════════════════════════════════════════════════════════════

class _TerminalRenderer:
    """Render diagnostics to a terminal with colours."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._sources: Dict[str, Optional[List[str]]] = {}

    def render(self, diag: Diagnostic) -> None:
        colour = _SEVERITY_COLOURS.get(diag.severity, "white")
        lines: List[str] = []

        header = colored(f"{diag.severity.value}[{diag.error_id}]", colour, attrs=["bold"])
        lines.append(f"{header}: {colored(diag.message, attrs=['bold'])}")

        loc = diag.location
        if loc.is_known:
            arrow = colored("-->", "blue", attrs=["bold"])
            lines.append(f"  {arrow} {loc}")
            lines.extend(self._excerpt(loc, diag, colour))

        if diag.cwe:
            cwe = colored(f"CWE-{diag.cwe}", "blue", attrs=["underline"])
            lines.append(f"  = {cwe}: https://cwe.mitre.org/data/definitions/{diag.cwe}.html")

        lines.append(colored(cppcheck_line(diag), attrs=["dark"]))
        lines.append("")
        self._stream.write("\n".join(lines) + "\n")
        self._stream.flush()

    def _excerpt(self, loc: SourceLocation, diag: Diagnostic, colour: str) -> List[str]:
        source = self._read_source(loc.file)
        if not source or not 0 < loc.line <= len(source):
            return []
        gutter_w = len(str(loc.line)) + 1
        pipe = colored("|", "blue", attrs=["bold"])
        number = colored(str(loc.line).rjust(gutter_w), "blue", attrs=["bold"])
        result = [f" {number} {pipe} {source[loc.line - 1]}"]
        if diag.from_type and diag.to_type:
            pad = " " * (loc.column - 1) if loc.column > 0 else ""
            label = f"^ '{diag.from_type}' does not fit in '{diag.to_type}'"
            result.append(f" {' ' * gutter_w} {pipe} {pad}{colored(label, colour, attrs=['bold'])}")
        return result

    def _read_source(self, filepath: str) -> Optional[List[str]]:
        """Source lines of ``filepath``, cached; None when unreadable."""
        if filepath not in self._sources:
            try:
                with open(filepath, "r", errors="replace") as fh:
                    self._sources[filepath] = [ln.rstrip("\n\r") for ln in fh]
            except OSError:
                self._sources[filepath] = None
        return self._sources[filepath]


class _PlainRenderer:
    """Non-coloured renderer; one cppcheck-compatible line per diagnostic."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def render(self, diag: Diagnostic) -> None:
        self._stream.write(cppcheck_line(diag) + "\n")
        self._stream.flush()


# ═════════════════════════════════════════════════════════════════════════
#  REPORTER
# ═════════════════════════════════════════════════════════════════════════

class TerminalReporter:
    """
    Writes diagnostics for humans.

    Use as a context manager::

        with TerminalReporter() as rep:
            rep.report_all(results.diagnostics)
        # finish() prints the summary line
    """

    def __init__(self, stream: Optional[TextIO] = None, colour: Optional[bool] = None) -> None:
        self.stream = stream if stream is not None else sys.stdout
        self.stats = ReporterStats()
        use_colour = colour if colour is not None else (
            hasattr(self.stream, "isatty") and self.stream.isatty()
        )
        self._renderer: Union[_TerminalRenderer, _PlainRenderer]
        if use_colour:
            self._renderer = _TerminalRenderer(self.stream)
        else:
            self._renderer = _PlainRenderer(self.stream)

    def __enter__(self) -> TerminalReporter:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.finish()

    @property
    def colour(self) -> bool:
        return isinstance(self._renderer, _TerminalRenderer)

    def report(self, diag: Diagnostic) -> None:
        self.stats.record(diag.severity)
        self._renderer.render(diag)

    def report_all(self, diagnostics: Iterable[Diagnostic]) -> None:
        for diag in diagnostics:
            self.report(diag)

    def finish(self) -> ReporterStats:
        """Print the summary line and return the final counts."""
        summary = self.stats.summary_line()
        if self.colour:
            colour = "red" if self.stats.error else "yellow" if self.stats.total else "green"
            self.stream.write(colored(f"  ╰─ {summary}", colour, attrs=["bold"]) + "\n")
        else:
            self.stream.write(f"  {summary}\n")
        self.stream.flush()
        return self.stats


__all__ = ["TerminalReporter", "ReporterStats", "cppcheck_line"]
