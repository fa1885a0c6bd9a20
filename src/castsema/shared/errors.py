"""
Error Reporting

Diagnostics are rendered in the rustc style:

    error[E0606]: cannot cast 'Base*' to 'Widget*'
     --> main.sema:7:14
      |
    7 | let w = static_cast<Widget*>(b);
      |         ^^^^^^^^^^^ unrelated class types
      |
      = note: neither class appears in the other's base chain

The second half of the module holds the exception taxonomy. Fatal errors
abort the analysis; recoverable errors and ownership violations are
recorded in the report and the walk continues.
"""

import os
import sys
from dataclasses import dataclass
from typing import Optional, List, Dict

from .source_location import SourceLocation


# ---------------------------------------------------------------------------
# ANSI color helpers (disabled when NO_COLOR is set)
# ---------------------------------------------------------------------------

def _use_color() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    explicit = os.environ.get("CASTSEMA_COLOR", "").lower()
    if explicit in ("0", "false", "no", "never"):
        return False
    return sys.stderr.isatty()


_BOLD = "\033[1m"
_RED = "\033[31m"
_YELLOW = "\033[33m"
_BLUE = "\033[34m"
_CYAN = "\033[36m"
_RESET = "\033[0m"

_SEVERITY_COLORS = {
    "error": _RED,
    "warning": _YELLOW,
    "note": _CYAN,
}


def _style(text: str, *codes: str, color: bool = True) -> str:
    if not color or not codes:
        return text
    return "".join(codes) + text + _RESET


# ---------------------------------------------------------------------------
# Error dataclass
# ---------------------------------------------------------------------------

@dataclass
class Error:
    """One rendered diagnostic (error, warning or note)."""
    message: str
    location: Optional[SourceLocation]
    code: Optional[str] = None
    severity: str = "error"
    help: Optional[str] = None
    note: Optional[str] = None
    label: Optional[str] = None


# ---------------------------------------------------------------------------
# Formatting engine
# ---------------------------------------------------------------------------

def _format_diagnostic(error: Error, source_files: Dict[str, str], color: bool = False) -> str:
    out: List[str] = []
    tint = _SEVERITY_COLORS.get(error.severity, _RED)
    code_str = f"[{error.code}]" if error.code else ""
    out.append(
        _style(f"{error.severity}{code_str}", _BOLD, tint, color=color)
        + _style(f": {error.message}", _BOLD, color=color)
    )

    loc = error.location
    if loc is None:
        out.append(_style(" --> ", _BOLD, _BLUE, color=color) + "<unknown location>")
        _append_annotations(out, error, 1, color)
        return "\n".join(out)

    source = source_files.get(loc.file)
    if source is None:
        out.append(_style(" --> ", _BOLD, _BLUE, color=color) + str(loc))
        _append_annotations(out, error, 1, color)
        return "\n".join(out)

    lines = source.split("\n")
    gutter = len(str(loc.line))
    pad = " " * gutter
    out.append(_style(f"{pad}--> ", _BOLD, _BLUE, color=color) + str(loc))
    out.append(_style(f"{pad} |", _BOLD, _BLUE, color=color))

    code_line = lines[loc.line - 1] if 0 < loc.line <= len(lines) else ""
    out.append(_style(f"{loc.line} | ", _BOLD, _BLUE, color=color) + code_line)

    start = max(loc.column, 1) - 1
    if loc.end_line in (0, loc.line) and loc.end_column > loc.column:
        span = loc.end_column - loc.column
    else:
        span = _guess_span(code_line, start)
    carets = " " * start + "^" * max(1, span)
    if error.label:
        carets += f" {error.label}"
    out.append(_style(f"{pad} | ", _BOLD, _BLUE, color=color) + _style(carets, _BOLD, tint, color=color))

    _append_annotations(out, error, gutter, color)
    return "\n".join(out)


def _guess_span(code_line: str, col_start: int) -> int:
    """Guess token length when end_column is unavailable."""
    length = 0
    for ch in code_line[col_start:]:
        if ch in " \t;,)]}":
            break
        length += 1
    return max(1, length)


def _append_annotations(out: List[str], error: Error, gutter: int, color: bool) -> None:
    if not (error.help or error.note):
        return
    pad = " " * (gutter + 1)
    out.append(_style(f"{pad}|", _BOLD, _BLUE, color=color))
    if error.help:
        out.append(_style(f"{pad}= ", _BOLD, _CYAN, color=color) + _style("help: ", _BOLD, color=color) + error.help)
    if error.note:
        out.append(_style(f"{pad}= ", _BOLD, _CYAN, color=color) + _style("note: ", _BOLD, color=color) + error.note)


# ---------------------------------------------------------------------------
# ErrorReporter
# ---------------------------------------------------------------------------

class ErrorReporter:
    """Collects diagnostics and renders them against the analyzed sources."""

    def __init__(self, source_files: Dict[str, str]):
        self.source_files = source_files
        self.diagnostics: List[Error] = []

    def report(self, diagnostic: Error) -> None:
        self.diagnostics.append(diagnostic)

    def report_error(
        self,
        message: str,
        location: Optional[SourceLocation],
        code: Optional[str] = None,
        severity: str = "error",
        help: Optional[str] = None,
        note: Optional[str] = None,
        label: Optional[str] = None,
    ) -> None:
        self.report(Error(
            message=message,
            location=location,
            code=code,
            severity=severity,
            help=help,
            note=note,
            label=label,
        ))

    def error_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.severity == "error")

    def warning_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.severity == "warning")

    def has_errors(self) -> bool:
        return self.error_count() > 0

    def format_error(self, error: Error, color: Optional[bool] = None) -> str:
        use_color = color if color is not None else _use_color()
        return _format_diagnostic(error, self.source_files, color=use_color)

    def format_summary(self, color: Optional[bool] = None) -> str:
        use_color = color if color is not None else _use_color()
        errors, warnings = self.error_count(), self.warning_count()
        parts = []
        if errors:
            parts.append(f"{errors} error{'s' if errors != 1 else ''}")
        if warnings:
            parts.append(f"{warnings} warning{'s' if warnings != 1 else ''}")
        text = "analysis finished with " + (" and ".join(parts) if parts else "no findings")
        return _style(text, _BOLD, color=use_color)

    def format_all(self, color: Optional[bool] = None) -> str:
        parts = [self.format_error(d, color=color) for d in self.diagnostics]
        parts.append(self.format_summary(color=color))
        return "\n\n".join(parts)


# ============================================================================
# Exception Classes
# ============================================================================

class CastsemaError(Exception):
    """Base exception for every finding raised by the analysis."""
    code = "E0001"
    severity = "error"

    def __init__(self, message: str, location: Optional[SourceLocation] = None):
        super().__init__(message)
        self.message = message
        self.location = location

    def __str__(self):
        if self.location:
            return f"{self.severity}[{self.code}]: {self.message}\n --> {self.location}"
        return self.message

    def to_diagnostic(self, note: Optional[str] = None) -> Error:
        return Error(
            message=self.message,
            location=self.location,
            code=self.code,
            severity=self.severity,
            note=note,
        )


class FatalAnalysisError(CastsemaError):
    """Structural error: the whole analysis aborts."""


class RecoverableAnalysisError(CastsemaError):
    """Per-node error: recorded in the report, traversal continues."""


class OwnershipViolation(CastsemaError):
    """Misuse of an ownership handle: recorded, fatal only under --strict."""


# --- fatal / structural -----------------------------------------------------

class ParseError(FatalAnalysisError):
    code = "E0001"


class UnknownTypeError(FatalAnalysisError):
    code = "E0412"


class UnknownIdentifierError(FatalAnalysisError):
    code = "E0425"


class UnknownMemberError(FatalAnalysisError):
    code = "E0609"


class CyclicHierarchyError(FatalAnalysisError):
    code = "E0391"

    def __init__(self, cycle: List[str], location: Optional[SourceLocation] = None):
        self.cycle = list(cycle)
        super().__init__("cyclic class hierarchy: " + " -> ".join(self.cycle), location)


class DuplicateTypeError(FatalAnalysisError):
    code = "E0428"


class DuplicateDeclarationError(DuplicateTypeError):
    """Same-scope redeclaration of a variable (shadowing needs a nested scope)."""
    code = "E0128"


class AmbiguousOverloadError(FatalAnalysisError):
    code = "E0034"


class NoViableOverloadError(FatalAnalysisError):
    code = "E0369"


class TemplateArgumentError(FatalAnalysisError):
    code = "E0107"


# --- recoverable / per-node -------------------------------------------------

class CastError(RecoverableAnalysisError):
    """A cast whose requested mechanism cannot convert source to target."""


class UnrelatedTypesError(CastError):
    code = "E0606"


class NotPolymorphicError(CastError):
    code = "E0607"


class NotReinterpretableError(CastError):
    code = "E0608"


class IndexOutOfRangeError(RecoverableAnalysisError):
    code = "E0614"

    def __init__(self, index: int, arity: int, location: Optional[SourceLocation] = None):
        self.index = index
        self.arity = arity
        super().__init__(f"tuple index {index} is out of range for a tuple of arity {arity}", location)


# --- ownership violations ---------------------------------------------------

class UseAfterMoveError(OwnershipViolation):
    code = "E0382"


class UseAfterReleaseError(OwnershipViolation):
    code = "E0383"


class NonCopyableError(OwnershipViolation):
    code = "E0384"


class DoubleReleaseError(OwnershipViolation):
    code = "E0385"


# --- internal misuse --------------------------------------------------------

class CastsemaImplementationError(Exception):
    """
    Error in castsema itself (not in the analyzed input).

    Never raise this for problems in user input.
    """
    def __init__(self, message: str, error_code: str = "E9999"):
        super().__init__(message)
        self.message = message
        self.error_code = error_code

    def __str__(self):
        return f"[{self.error_code}] {self.message}"


class RegistryFrozenError(CastsemaImplementationError):
    def __init__(self, name: str):
        super().__init__(f"cannot register '{name}': the type registry is frozen", "E9001")


class ResolutionError(CastsemaImplementationError):
    def __init__(self, message: str):
        super().__init__(message, "E9002")
