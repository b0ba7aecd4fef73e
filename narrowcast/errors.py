"""
narrowcast/errors.py

Exceptions raised by the host layer (dump loading and the cppcheck
frontend).  The analysis core itself never raises; anything odd it meets
degrades to "skip this site".

Hierarchy
─────────
  NarrowcastError (base)
  ├── DumpLoadError   - cppcheckdata missing, or the dump cannot be parsed
  └── FrontendError   - a function's token range cannot be converted
"""

from __future__ import annotations

from typing import Any, Optional


class NarrowcastError(Exception):
    """Base class for all narrowcast errors."""


class DumpLoadError(NarrowcastError):
    """A cppcheck dump file could not be loaded."""

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path

    def __str__(self) -> str:
        if self.path:
            return f"{self.path}: {self.args[0]}"
        return str(self.args[0])


class FrontendError(NarrowcastError):
    """A function scope's tokens do not form a well-formed body."""

    def __init__(self, message: str, token: Optional[Any] = None) -> None:
        super().__init__(message)
        self.token = token

    def __str__(self) -> str:
        tok = self.token
        if tok is None:
            return str(self.args[0])
        file = getattr(tok, "file", "") or "?"
        line = getattr(tok, "linenr", 0) or 0
        return f"[{file}:{line}] {self.args[0]}"


__all__ = ["NarrowcastError", "DumpLoadError", "FrontendError"]
