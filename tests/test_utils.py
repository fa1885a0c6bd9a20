"""
Test utilities for the castsema test suite.

Helpers for the analyze-then-inspect pattern: run a source snippet through
the driver, then look up expression types and cast records by their
rendered text.
"""

import sys
import textwrap
from pathlib import Path
from typing import List, Optional

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
from castsema.analysis.report import CastRecord
from castsema.compiler.driver import AnalysisDriver, AnalysisResult
from castsema.shared.types import Type


def analyze(source: str, driver: Optional[AnalysisDriver] = None, strict: bool = False,
            source_file: str = "test.sema") -> AnalysisResult:
    """Analyze a dedented snippet."""
    driver = driver or AnalysisDriver()
    return driver.analyze(textwrap.dedent(source), source_file, strict=strict)


def type_of(result: AnalysisResult, text: str) -> Type:
    ty = result.report.type_of(text)
    assert ty is not None, (
        f"no expression rendered as {text!r}; have: "
        + ", ".join(repr(r.text) for r in result.report.expressions)
    )
    return ty


def type_name(result: AnalysisResult, text: str) -> str:
    return str(type_of(result, text))


def cast_for(result: AnalysisResult, text: str) -> CastRecord:
    for record in result.report.casts:
        if record.text == text:
            return record
    raise AssertionError(
        f"no cast rendered as {text!r}; have: " + ", ".join(repr(c.text) for c in result.report.casts)
    )


def violation_codes(result: AnalysisResult) -> List[str]:
    return [v.code for v in result.report.violations]


def assert_clean(result: AnalysisResult) -> None:
    report = result.report
    assert report.fatal is None, f"unexpected fatal error: {report.fatal}"
    assert not report.illegal_casts, [c.classification.reason.message for c in report.illegal_casts]
    assert not report.findings, [f.message for f in report.findings]
    assert not report.violations, [v.message for v in report.violations]
