"""
Analysis Report
===============

Everything one analysis run found, in the order it was found:

- expression records (one per resolved node, post-order)
- cast records (explicit casts and implicit conversions)
- findings (recoverable errors that are not cast classifications)
- ownership violations
- the fatal error that aborted the run, if any

The report can be rendered as rustc-style diagnostics or serialized to an
S-expression through sexpdata.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, List, Optional

import sexpdata

from ..shared.errors import (
    Error,
    FatalAnalysisError,
    OwnershipViolation,
    RecoverableAnalysisError,
)
from ..shared.nodes import Expression, ExpressionKind
from ..shared.source_location import SourceLocation
from ..shared.types import Type
from ..utils.config import EXIT_CLEAN, EXIT_FATAL, EXIT_FINDINGS, MAX_SEXPR_LINE

if TYPE_CHECKING:
    from ..passes.cast_classification import CastClassification


class Severity(Enum):
    CLEAN = "clean"
    FINDINGS = "findings"
    FATAL = "fatal"


_EXIT_CODES = {
    Severity.CLEAN: EXIT_CLEAN,
    Severity.FINDINGS: EXIT_FINDINGS,
    Severity.FATAL: EXIT_FATAL,
}


@dataclass
class ExpressionRecord:
    index: int
    kind: ExpressionKind
    text: str
    type: Type
    is_lvalue: bool
    location: Optional[SourceLocation] = None


@dataclass
class CastRecord:
    """One classified conversion; `implicit` marks conversions with no cast syntax."""
    index: int
    text: str
    classification: 'CastClassification'
    implicit: bool = False
    location: Optional[SourceLocation] = None

    @property
    def legal(self) -> bool:
        return self.classification.legal

    @property
    def notes(self):
        return self.classification.notes


@dataclass
class AnalysisReport:
    expressions: List[ExpressionRecord] = field(default_factory=list)
    casts: List[CastRecord] = field(default_factory=list)
    findings: List[RecoverableAnalysisError] = field(default_factory=list)
    violations: List[OwnershipViolation] = field(default_factory=list)
    fatal: Optional[FatalAnalysisError] = None

    # -- recording -------------------------------------------------------------

    def record_expression(self, expr: Expression) -> ExpressionRecord:
        record = ExpressionRecord(
            index=len(self.expressions),
            kind=expr.kind,
            text=str(expr),
            type=expr.resolved_type,
            is_lvalue=expr.is_lvalue,
            location=expr.location,
        )
        self.expressions.append(record)
        return record

    def record_cast(self, text: str, classification: 'CastClassification',
                    implicit: bool = False, location: Optional[SourceLocation] = None) -> CastRecord:
        record = CastRecord(len(self.casts), text, classification, implicit, location)
        self.casts.append(record)
        return record

    def record_finding(self, error: RecoverableAnalysisError) -> None:
        self.findings.append(error)

    def record_violation(self, violation: OwnershipViolation) -> None:
        self.violations.append(violation)

    # -- queries ---------------------------------------------------------------

    @property
    def illegal_casts(self) -> List[CastRecord]:
        return [c for c in self.casts if not c.legal]

    @property
    def noted_casts(self) -> List[CastRecord]:
        return [c for c in self.casts if c.notes]

    def type_of(self, text: str) -> Optional[Type]:
        """Type of the last expression rendered as `text` (test and debugging helper)."""
        for record in reversed(self.expressions):
            if record.text == text:
                return record.type
        return None

    def has_nonfatal_findings(self) -> bool:
        return bool(self.illegal_casts or self.noted_casts or self.findings or self.violations)

    def severity(self, strict: bool = False) -> Severity:
        if self.fatal is not None:
            return Severity.FATAL
        if self.has_nonfatal_findings():
            return Severity.FATAL if strict else Severity.FINDINGS
        return Severity.CLEAN

    def exit_code(self, strict: bool = False) -> int:
        return _EXIT_CODES[self.severity(strict)]

    # -- rendering ---------------------------------------------------------------

    def to_diagnostics(self) -> List[Error]:
        out: List[Error] = []
        for cast in self.casts:
            prefix = "implicit conversion" if cast.implicit else f"cast '{cast.text}'"
            if cast.classification.reason is not None:
                out.append(cast.classification.reason.to_diagnostic(
                    note=f"requested mechanism: {cast.classification.requested.value}"
                ))
            for note in cast.notes:
                out.append(Error(
                    message=f"{prefix}: {note.message}",
                    location=cast.location,
                    code=note.code,
                    severity="warning",
                ))
        for finding in self.findings:
            out.append(finding.to_diagnostic())
        for violation in self.violations:
            out.append(violation.to_diagnostic())
        if self.fatal is not None:
            out.append(self.fatal.to_diagnostic(note="analysis aborted"))
        return out

    def to_sexpr(self) -> list:
        return ReportSerializer().serialize_to_sexpr(self)


# ============================================================================
# S-expression serialization
# ============================================================================

def _pretty_dumps(sexpr: Any, indent: int = 0, indent_str: str = "  ", max_line: int = MAX_SEXPR_LINE) -> str:
    """Keeps short forms on one line; breaks only when needed."""
    if sexpr is None:
        return "()"
    if isinstance(sexpr, bool):
        return "true" if sexpr else "false"
    if isinstance(sexpr, (int, float)):
        return str(sexpr)
    # Symbol before str (sexpdata.Symbol subclasses str)
    if isinstance(sexpr, sexpdata.Symbol):
        return sexpr.value()
    if isinstance(sexpr, str):
        escaped = sexpr.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    if isinstance(sexpr, list):
        if not sexpr:
            return "()"
        parts = [_pretty_dumps(e, indent + 1, indent_str, max_line) for e in sexpr]
        one_line = "(" + " ".join(parts) + ")"
        if len(one_line) <= max_line and "\n" not in one_line:
            return one_line
        prefix = indent_str * indent
        next_prefix = indent_str * (indent + 1)
        rest = "\n".join(next_prefix + p for p in parts[1:])
        inner = parts[0] + ("\n" + rest if rest else "")
        return f"({inner}\n{prefix})"
    return str(sexpr)


def serialize_report(report: AnalysisReport, pretty: bool = True, strict: bool = False) -> str:
    sexpr = ReportSerializer(strict=strict).serialize_to_sexpr(report)
    if pretty:
        return _pretty_dumps(sexpr)
    return sexpdata.dumps(sexpr)


class ReportSerializer:
    """
    Report to structured S-expression.

    Keywords are sexpdata symbols (unquoted); source text, type spellings
    and messages are strings.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict

    @staticmethod
    def _sym(s: str) -> sexpdata.Symbol:
        return sexpdata.Symbol(s)

    def _bool(self, value: bool) -> sexpdata.Symbol:
        # Symbols avoid sexpdata's True -> t / False -> () mapping
        return self._sym("true" if value else "false")

    def _location(self, location: Optional[SourceLocation]) -> list:
        if location is None:
            return []
        return [self._sym(":at"), str(location)]

    def serialize_to_sexpr(self, report: AnalysisReport) -> list:
        return [
            self._sym("report"),
            [self._sym("expressions")] + [self._expression(r) for r in report.expressions],
            [self._sym("casts")] + [self._cast(c) for c in report.casts],
            [self._sym("findings")] + [self._error("finding", f) for f in report.findings],
            [self._sym("violations")] + [self._error("violation", v) for v in report.violations],
            [self._sym("fatal")] + (self._error("error", report.fatal)[1:] if report.fatal else []),
            [self._sym("status"), self._sym(report.severity(self.strict).value)],
        ]

    def _expression(self, record: ExpressionRecord) -> list:
        return [
            self._sym("expr"), record.index, self._sym(record.kind.value), record.text,
            self._sym(":type"), str(record.type),
            self._sym(":lvalue"), self._bool(record.is_lvalue),
        ] + self._location(record.location)

    def _cast(self, record: CastRecord) -> list:
        c = record.classification
        core = [
            self._sym("cast"), record.index, record.text,
            self._sym(":from"), str(c.source),
            self._sym(":to"), str(c.target),
            self._sym(":requested"), self._sym(c.requested.value),
            self._sym(":mechanism"), self._sym(c.mechanism.value),
            self._sym(":legal"), self._bool(c.legal),
        ]
        if record.implicit:
            core += [self._sym(":implicit"), self._bool(True)]
        if c.runtime_checked:
            core += [self._sym(":runtime-checked"), self._bool(True)]
        if c.direction is not None:
            core += [self._sym(":direction"), self._sym(c.direction.value)]
        if c.reason is not None:
            core += [self._sym(":reason"), [self._sym(c.reason.code), c.reason.message]]
        if c.notes:
            core += [self._sym(":notes")] + [[self._sym(n.code), n.message] for n in c.notes]
        return core + self._location(record.location)

    def _error(self, tag: str, error) -> list:
        return [self._sym(tag), self._sym(error.code), error.message] + self._location(error.location)
