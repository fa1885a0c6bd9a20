"""
Analysis Driver

Orchestrates one run: parse -> collect declarations (build and freeze the
registry) -> resolve expressions -> report.

A fatal error aborts the pipeline; the report keeps everything resolved
before it, and the error itself is stored as `report.fatal`.
"""

import logging
from typing import Optional

from ..analysis.report import AnalysisReport
from ..frontend.parser import Parser
from ..passes.base import AnalysisContext, PassManager
from ..passes.declaration_collection import DeclarationCollectionPass
from ..passes.type_resolution import TypeResolutionPass
from ..shared.errors import FatalAnalysisError
from ..shared.nodes import Program

logger = logging.getLogger("castsema.compiler.driver")


class AnalysisResult:
    """Outcome of one analysis run."""

    def __init__(self, report: AnalysisReport, ctx: Optional[AnalysisContext] = None,
                 program: Optional[Program] = None, strict: bool = False):
        self.report = report
        self.ctx = ctx
        self.program = program
        self.strict = strict

    @property
    def success(self) -> bool:
        """True when the analysis ran to completion (findings allowed)."""
        return self.report.fatal is None

    @property
    def exit_code(self) -> int:
        return self.report.exit_code(self.strict)

    def has_findings(self) -> bool:
        return self.report.has_nonfatal_findings()

    def format_diagnostics(self, color: Optional[bool] = None) -> str:
        reporter = self.ctx.reporter
        reporter.diagnostics.clear()
        for diagnostic in self.report.to_diagnostics():
            reporter.report(diagnostic)
        return reporter.format_all(color=color)


class AnalysisDriver:
    """Runs the analysis pipeline over a source string or an already built Program."""

    def __init__(self):
        self.parser = Parser()
        self.pass_manager = PassManager()
        self._register_passes()

    def _register_passes(self) -> None:
        self.pass_manager.register_pass(DeclarationCollectionPass)
        self.pass_manager.register_pass(TypeResolutionPass)

    def analyze(self, source: str, source_file: str = "<input>", strict: bool = False) -> AnalysisResult:
        ctx = AnalysisContext(strict=strict)
        ctx.source_files[source_file] = source
        try:
            program = self.parser.parse(source, source_file)
        except FatalAnalysisError as e:
            logger.debug("parse failed: %s", e.message)
            ctx.report.fatal = e
            return AnalysisResult(ctx.report, ctx, None, strict)
        return self._run(program, ctx)

    def analyze_program(self, program: Program, source: Optional[str] = None,
                        strict: bool = False) -> AnalysisResult:
        """Analyze a Program built without the parser."""
        ctx = AnalysisContext(strict=strict)
        if source is not None:
            ctx.source_files[program.source_file] = source
        return self._run(program, ctx)

    def _run(self, program: Program, ctx: AnalysisContext) -> AnalysisResult:
        try:
            self.pass_manager.run_all(program, ctx)
        except FatalAnalysisError as e:
            logger.debug("analysis aborted by %s: %s", type(e).__name__, e.message)
            ctx.report.fatal = e
        report = ctx.report
        logger.debug(
            "analysis of %s: %d expressions, %d casts, %d findings, %d violations",
            program.source_file, len(report.expressions), len(report.casts),
            len(report.findings), len(report.violations),
        )
        return AnalysisResult(report, ctx, program, ctx.strict)
